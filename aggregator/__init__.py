"""Claude Marketplace Aggregator."""

__version__ = "0.1.0"
