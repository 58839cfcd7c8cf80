"""Token-gated short-video download API."""

__version__ = "1.0.0"
