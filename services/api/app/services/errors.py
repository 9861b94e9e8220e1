from __future__ import annotations


class QuoteError(Exception):
    """Base class for quote domain errors."""


class ValidationError(QuoteError):
    """Malformed caller input. Recoverable only by correcting the input."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"Invalid {field}: {message}")
        self.field = field
        self.message = message


class NotFoundError(QuoteError):
    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class MismatchError(QuoteError):
    def __init__(self, option_id: str, base_item_id: str, owner_id: str) -> None:
        super().__init__(
            f"Option {option_id} belongs to base item {owner_id}, not {base_item_id}"
        )
        self.option_id = option_id
        self.base_item_id = base_item_id
        self.owner_id = owner_id


class ConflictError(QuoteError):
    """A submission with the same idempotency key is still in progress."""

    def __init__(self, idempotency_key: str) -> None:
        super().__init__(
            f"A submission with idempotency key {idempotency_key!r} is in progress. "
            "Retry with the same key."
        )
        self.idempotency_key = idempotency_key


class PersistenceFailure(QuoteError):
    def __init__(self, operation: str, cause: Exception | None = None) -> None:
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Quote storage failed during {operation}{detail}")
        self.operation = operation
        self.cause = cause
