"""Monitoring: logging setup, rolling metrics and timing helpers."""
