"""daybrief - narrated daily digests from saved content summaries."""

__version__ = "0.1.0"
