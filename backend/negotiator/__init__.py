"""Smart marketplace negotiation engine."""

__version__ = "0.1.0"
