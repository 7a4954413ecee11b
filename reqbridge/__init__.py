"""reqbridge - .http file interchange and variable resolution."""

__version__ = "0.1.0"
