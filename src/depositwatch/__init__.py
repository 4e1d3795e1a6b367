"""depositwatch - exactly-once deposit notifications from a ledger indexer."""

__version__ = "0.1.0"
