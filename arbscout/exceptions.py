"""Scout exceptions.

Centralized exception hierarchy for the scout pipeline, its stores and the
daemon lifecycle.
"""


class ScoutError(Exception):
    """Base exception for scout errors."""

    pass


class ScoutValidationError(ScoutError, ValueError):
    """Raised when a configuration, filter or review request is malformed."""

    pass


class ScoutConfigNotFoundError(ScoutError, LookupError):
    """Raised when a scout config id does not exist."""

    def __init__(self, config_id: str):
        super().__init__(f"Scout config {config_id} not found")
        self.config_id = config_id


class QueueItemNotFoundError(ScoutError, LookupError):
    """Raised when a queue item id does not exist."""

    def __init__(self, item_id: str):
        super().__init__(f"Queue item {item_id} not found")
        self.item_id = item_id


class QueueItemNotReviewableError(ScoutError):
    """Raised when a queue item is not in the status a transition requires."""

    def __init__(self, item_id: str, status: str, required: str = "pending"):
        super().__init__(
            f"Queue item {item_id} is {status}, expected {required}"
        )
        self.item_id = item_id
        self.status = status
        self.required = required


class ScannerError(ScoutError):
    """Raised by scanner adapters when a platform search fails."""

    pass


class CycleInProgressError(ScoutError):
    """Raised when a cycle is requested for a config that is already scanning."""

    def __init__(self, config_id: str):
        super().__init__(f"Scan cycle already running for scout config {config_id}")
        self.config_id = config_id


class DaemonError(ScoutError):
    """Base exception for daemon lifecycle errors."""

    pass


class DaemonStoppedError(DaemonError):
    """Raised when starting a daemon instance that has already been stopped."""

    pass


class DaemonAlreadyRunningError(DaemonError):
    """Raised when starting a daemon instance that is already running."""

    pass
