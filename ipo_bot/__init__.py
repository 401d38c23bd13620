"""Multi-source IPO listings aggregator."""

__version__ = "0.1.0"
