"""relpkg - turn author packages into normalized release archives."""

__version__ = "0.1.0"
