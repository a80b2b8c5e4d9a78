"""
Domain error taxonomy shared by the services and the HTTP layer.
"""
from decimal import Decimal
from typing import Any, Dict, Optional


class ServiceError(Exception):
    """Base class for all errors raised by the BOM services."""

    status_code = 400

    def __init__(self, message: str, code: str = "ERROR", details: Optional[Dict] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)


class ValidationError(ServiceError):
    """Malformed input or a reference that crosses a tenant boundary."""

    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict] = None):
        super().__init__(message, "validation_error", details)
        self.field = field
        if field:
            self.details.setdefault("field", field)


class InvalidStateTransition(ValidationError):
    """A lifecycle/status change that the state machine does not allow."""

    status_code = 409

    def __init__(self, entity: str, current: str, target: str):
        super().__init__(
            f"Cannot move {entity} from '{current}' to '{target}'",
            details={"entity": entity, "current": current, "target": target},
        )
        self.code = "invalid_state_transition"


class NotFoundError(ServiceError):
    """Missing entity, or an entity owned by another tenant."""

    status_code = 404

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            f"{resource} not found: {identifier}",
            "not_found",
            {"resource": resource, "identifier": str(identifier)},
        )


class InsufficientStockError(ServiceError):
    """A stock mutation would drive a material's stock below zero."""

    status_code = 409

    def __init__(self, material_name: str, required: Decimal, available: Decimal):
        super().__init__(
            f"Insufficient stock for {material_name}: required {required}, available {available}",
            "insufficient_stock",
            {"material": material_name, "required": str(required), "available": str(available)},
        )
        self.required = required
        self.available = available


class ConfigurationError(ServiceError):
    """Product is not BOM-managed, or has no usable active recipe."""

    status_code = 422

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, "configuration_error", details)
