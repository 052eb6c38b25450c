"""Serve a single-page app / progressive web app from a local directory."""

__version__ = "1.0.0"
