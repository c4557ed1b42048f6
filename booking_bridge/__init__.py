"""HTTP bridge between a voice agent and a remote scheduling service."""

__version__ = "0.1.0"
