"""
Exceptions raised below the tool boundary.

Tools never let these escape: they are turned into failure envelopes by
the resolver. They exist so repositories and workflows can signal
dependency failures without leaking driver-specific exception types.
"""


class StorageError(Exception):
    """A storage read/write failed or returned an unexpected shape."""

    def __init__(self, operation: str, cause: Exception = None):
        self.operation = operation
        self.cause = cause
        message = f"Storage operation '{operation}' failed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class OrderPlacementError(Exception):
    """Order creation failed and nothing was left behind."""


class OrderRollbackError(OrderPlacementError):
    """Order items failed AND deleting the orphan order failed too.

    The order row identified by ``order_id`` exists without items and must
    be cleaned up manually.
    """

    def __init__(self, order_id, cause: Exception = None):
        self.order_id = order_id
        self.cause = cause
        super().__init__(f"Rollback of order {order_id} failed: {cause}")
