"""Exception hierarchy for the companion core."""


class CompanionError(Exception):
    """Base class for all errors raised by the companion core."""


class MetricValidationError(CompanionError, ValueError):
    """Raised when a metric value supplied by the caller is not a usable number."""

    def __init__(self, raw_value: object, reason: str = "not a number") -> None:
        self.raw_value = raw_value
        self.reason = reason
        super().__init__(f"Invalid metric value {raw_value!r}: {reason}")


class PersistenceError(CompanionError):
    """A durable read or write against the key-value backend failed."""

    def __init__(self, key: str, message: str) -> None:
        self.key = key
        super().__init__(f"{key}: {message}")


class StoredDataParseError(CompanionError):
    """Persisted data exists but could not be decoded into domain models."""

    def __init__(self, key: str, message: str) -> None:
        self.key = key
        super().__init__(f"{key}: {message}")


class TriageInProgressError(CompanionError, RuntimeError):
    """A second triage was started on an aggregator that is still analyzing."""
