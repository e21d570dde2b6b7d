class BillingError(Exception):
    """Base exception for the billing engine."""

    pass


class BillingValidationError(BillingError):
    """Raised when a command is rejected before any state changes.

    No event is appended and no invoice row is created.
    """

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class NotFoundError(BillingError):
    """Raised when a project, task or invoice does not exist."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} '{entity_id}' not found")


class InvariantViolationError(BillingError):
    """Raised when a runtime accounting invariant would be broken.

    Always fatal for the offending command. Never clamp or retry.
    """

    def __init__(self, project_id: str, detail: str):
        self.project_id = project_id
        self.detail = detail
        super().__init__(f"Invariant violated for project '{project_id}': {detail}")


class LockTimeoutError(BillingError):
    """Raised when a project lock cannot be acquired in time."""

    def __init__(self, key: str, timeout: float):
        self.key = key
        self.timeout = timeout
        super().__init__(f"Could not acquire lock '{key}' within {timeout}s")


class EventSchemaError(BillingError):
    """Raised when a known event type is appended without its required metadata."""

    def __init__(self, event_type: str, missing: list[str]):
        self.event_type = event_type
        self.missing = missing
        super().__init__(f"Event '{event_type}' missing required metadata: {', '.join(missing)}")
