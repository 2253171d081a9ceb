"""Download, decode and cache variant analysis results."""

__version__ = "0.1.0"
