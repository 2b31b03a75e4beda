"""Metrics and limits of Linux control groups for processes."""

__version__ = "0.1.0"