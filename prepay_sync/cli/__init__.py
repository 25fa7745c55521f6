"""Command line entrypoint (``prepay-sync`` / ``python -m prepay_sync.cli``)."""
