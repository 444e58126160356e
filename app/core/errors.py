"""Error kinds raised by ticket sync. Fatal errors abort a run; InvalidFieldValue only skips one field."""


class ReconciliationError(Exception):
    """Base for errors that abort a sync run."""

    retryable: bool = False

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class TrackerConfigurationError(ReconciliationError):
    """Client or configuration problem (no scope, no statuses, unknown issue type, tracker not configured)."""

    retryable = False


class TrackerNotConfiguredError(TrackerConfigurationError):
    """Raised when tracker connection settings are missing."""


class TrackerCallError(ReconciliationError):
    """Tracker call failed (network, auth, 4xx/5xx). Carries the ticket being processed and the keys left undone."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        ticket_key: str | None = None,
        pending_keys: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.ticket_key = ticket_key
        self.pending_keys = list(pending_keys or [])

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.status_code is None or self.status_code >= 500

    def for_key(self, ticket_key: str, pending_keys: list[str]) -> "TrackerCallError":
        """Copy of this error attributed to the key being processed when it occurred."""
        return TrackerCallError(
            f"{self.message} (while processing {ticket_key!r})",
            status_code=self.status_code,
            ticket_key=ticket_key,
            pending_keys=pending_keys,
        )


class InvalidFieldValue(ValueError):
    """A custom field value cannot be encoded for its field type. The field is skipped; the sync continues."""

    def __init__(self, field_name: str, message: str) -> None:
        self.field_name = field_name
        self.message = message
        super().__init__(f"{field_name}: {message}")
