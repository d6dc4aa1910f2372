"""Key administration service: authorized, audited updates of API keys."""

__version__ = "0.1.0"
