"""Background jobs (dramatiq actors) for the ledger."""
