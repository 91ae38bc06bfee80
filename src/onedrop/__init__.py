"""Download audio for a media identifier and split it into stems."""

__version__ = "0.1.0"
