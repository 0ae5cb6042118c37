"""
Base exception classes for the storefront domain layer.
"""


class ShopException(Exception):
    """
    Base exception for all domain errors.

    All custom exceptions in the domain layer inherit from this class.
    This allows catching all domain exceptions with a single handler.

    Attributes:
        message: Human-readable error message
        details: Optional dict with additional context (entity IDs, states, etc.)
        kind: Stable error kind reported to callers
        http_status: Status code an HTTP layer should answer with
    """

    kind: str = "InternalError"
    http_status: int = 500

    def __init__(self, message: str, details: dict | None = None):
        """
        Initialize base exception.

        Args:
            message: Human-readable error message
            details: Optional dict with additional context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message."""
        return self.message

    def __repr__(self) -> str:
        """Return detailed representation with context."""
        if self.details:
            details_str = ', '.join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.__class__.__name__}('{self.message}', {details_str})"
        return f"{self.__class__.__name__}('{self.message}')"


class NotFoundException(ShopException):
    """Base exception for missing entities."""

    kind = "NotFound"
    http_status = 404

    def __init__(self, entity: str, entity_id: int):
        super().__init__(
            f"{entity} {entity_id} not found",
            details={'entity': entity, 'entity_id': entity_id}
        )
        self.entity = entity
        self.entity_id = entity_id


class ValidationException(ShopException):
    """Raised when a field violates its constraints."""

    kind = "ValidationError"
    http_status = 400

    def __init__(self, field: str, reason: str):
        super().__init__(
            f"Invalid value for '{field}': {reason}",
            details={'field': field, 'reason': reason}
        )
        self.field = field
        self.reason = reason

    @classmethod
    def from_pydantic(cls, error) -> 'ValidationException':
        """Build from the first error of a pydantic ValidationError."""
        first = error.errors()[0]
        field = ".".join(str(part) for part in first.get('loc', ())) or "value"
        return cls(field, first.get('msg', 'invalid value'))


class OperationNotAllowedException(ShopException):
    """Raised for operations the domain never permits (e.g. deleting an order)."""

    kind = "OperationNotAllowed"
    http_status = 409

    def __init__(self, operation: str, reason: str):
        super().__init__(
            f"Operation '{operation}' is not allowed: {reason}",
            details={'operation': operation, 'reason': reason}
        )
        self.operation = operation
        self.reason = reason
