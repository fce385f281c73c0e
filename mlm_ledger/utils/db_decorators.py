"""
Storage error translation.

Connection-level failures are surfaced as StorageUnavailable so callers
can decide on retry; everything else propagates unchanged.
"""

from sqlalchemy.exc import DBAPIError

from mlm_ledger.utils.exceptions import (
    TRANSIENT_STORAGE_ERRORS,
    StorageUnavailable,
)


def translate_storage_error(operation: str, exc: Exception) -> Exception:
    """
    Map connection-level SQLAlchemy errors to StorageUnavailable.

    Args:
        operation: Name of the failing operation
        exc: Original exception

    Returns:
        StorageUnavailable for transient storage errors, exc otherwise
    """
    if isinstance(exc, TRANSIENT_STORAGE_ERRORS) or (
        isinstance(exc, DBAPIError) and exc.connection_invalidated
    ):
        return StorageUnavailable(operation, f"{type(exc).__name__}: {exc}")
    return exc
