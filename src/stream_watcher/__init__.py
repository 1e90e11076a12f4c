"""stream_watcher - Soroban payment-stream event indexer."""

__version__ = "0.1.0"
