"""Domain exceptions for the quantity / itemized statement engine."""
from typing import Any, Dict, List, Optional


class SekisanError(Exception):
    """Base exception for all application errors."""
    def __init__(self, message="An internal error occurred", status_code=500, payload=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload

    def to_dict(self):
        rv = dict(self.payload or ())
        rv['message'] = self.message
        rv['status'] = 'error'
        rv['code'] = self.code
        return rv

    @property
    def code(self) -> str:
        return "INTERNAL_ERROR"


class NotFoundError(SekisanError):
    """Raised when a table, group, item or statement does not exist (or is deleted)."""
    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} not found: {entity_id}", 404, {"entity": entity, "entity_id": entity_id})

    @property
    def code(self) -> str:
        return "NOT_FOUND"


class InvalidNumericInputError(SekisanError, ValueError):
    """Non-numeric characters in a numeric field. The edit is refused."""
    def __init__(self, raw: Any, field: Optional[str] = None):
        label = field or "value"
        super().__init__(f"{label} must be a number: {raw!r}", 400, {"field": field, "value": str(raw)})

    @property
    def code(self) -> str:
        return "INVALID_NUMERIC_INPUT"


class FieldValidationError(SekisanError):
    """One or more fields violate their specification; nothing was saved."""
    def __init__(self, errors: List[Dict[str, Any]]):
        detail = "; ".join(e["message"] for e in errors)
        super().__init__(f"Field validation failed: {detail}", 400, {"field_errors": errors})
        self.errors = errors

    @property
    def code(self) -> str:
        return "FIELD_VALIDATION_ERROR"


class ConcurrencyConflictError(SekisanError):
    """The caller's version token is stale. Re-fetch and reapply."""
    def __init__(self, entity: str, entity_id: str, expected_version: int, actual_version: int):
        super().__init__(
            f"{entity} {entity_id} was modified by someone else "
            f"(expected version {expected_version}, actual {actual_version})",
            409,
            {"expected_version": expected_version, "actual_version": actual_version},
        )
        self.expected_version = expected_version
        self.actual_version = actual_version

    @property
    def code(self) -> str:
        return "CONCURRENCY_CONFLICT"


class DuplicateNameError(SekisanError):
    """An itemized statement with the same name already exists in the project."""
    def __init__(self, name: str, project_id: str):
        super().__init__(
            f"Itemized statement '{name}' already exists in project {project_id}",
            409,
            {"name": name, "project_id": project_id},
        )

    @property
    def code(self) -> str:
        return "DUPLICATE_NAME"


class QuantityOverflowError(SekisanError):
    """A summed quantity left the representable range during aggregation."""
    def __init__(self, key: str, total, min_value, max_value):
        super().__init__(
            f"Quantity total {total} for '{key}' is outside {min_value}..{max_value}",
            422,
            {"group_key": key, "total": str(total)},
        )

    @property
    def code(self) -> str:
        return "QUANTITY_OVERFLOW"


class EmptyQuantityTableError(SekisanError):
    """An itemized statement cannot be created from a table with no items."""
    def __init__(self, quantity_table_id: str):
        super().__init__(
            f"Quantity table {quantity_table_id} has no items",
            422,
            {"quantity_table_id": quantity_table_id},
        )

    @property
    def code(self) -> str:
        return "EMPTY_QUANTITY_TABLE"


class BusinessRuleError(SekisanError):
    """Operation violates a structural rule (e.g. moving an item into another table)."""
    def __init__(self, message: str):
        super().__init__(message, 400)

    @property
    def code(self) -> str:
        return "BUSINESS_RULE_ERROR"
