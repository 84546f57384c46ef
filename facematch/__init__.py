"""Face enrollment and identity resolution service."""

__version__ = "0.1.0"
