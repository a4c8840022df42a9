"""Docker registry v2 manifest client with bearer token authentication."""

__version__ = "0.1.0"
