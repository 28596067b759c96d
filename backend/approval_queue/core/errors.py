"""Exception types raised by the approval queue core.

Partial batch failures have no exception type: a batch that ran is reported
through ``BulkOperationResult.failed_count``, never raised.
"""


class ApprovalQueueError(Exception):
    """Base class for approval queue errors."""


class BulkValidationError(ApprovalQueueError):
    """A bulk selection broke one or more eligibility rules.

    Raised before anything reaches the network. ``errors`` lists every
    violated rule in evaluation order.
    """

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Bulk operation is not valid")


class TransportError(ApprovalQueueError):
    """A collaborator was unreachable or answered without a usable payload."""

    def __init__(self, operation: str, message: str, status_code: int | None = None):
        self.operation = operation
        self.status_code = status_code
        super().__init__(f"{operation} failed: {message}")


class BulkOperationInProgressError(ApprovalQueueError):
    """A bulk run was requested while another one has not been reset."""


class DecisionInputError(ApprovalQueueError):
    """A decision was requested with inputs the approval service would refuse."""
