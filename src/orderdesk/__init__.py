"""orderdesk: back-office order pricing and management."""

__version__ = "0.1.0"
