"""Main entry point when executing resilayer as a package.

This allows running the package using python -m resilayer.
"""

from resilayer.main import cli_entry_point

if __name__ == "__main__":
    cli_entry_point()
