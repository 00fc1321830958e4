"""Multi-destination article publishing client."""

__version__ = "0.1.0"
