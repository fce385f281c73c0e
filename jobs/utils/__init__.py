"""Job utilities."""
