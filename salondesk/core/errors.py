from decimal import Decimal
from typing import Any


class InventoryError(Exception):
    code = "inventory_error"
    status_code = 400

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class NotFound(InventoryError):
    code = "not_found"
    status_code = 404

    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(
            f"{entity.capitalize()} not found: {entity_id}",
            {"entity": entity, "id": entity_id},
        )
        self.entity = entity
        self.entity_id = entity_id


class InsufficientStock(InventoryError):
    code = "insufficient_stock"
    status_code = 400

    def __init__(
        self,
        *,
        material_id: str,
        material_name: str,
        requested: Decimal,
        available: Decimal,
    ) -> None:
        super().__init__(
            f"Insufficient stock for {material_name}: requested {requested}, available {available}",
            {
                "material_id": material_id,
                "material_name": material_name,
                "requested": float(requested),
                "available": float(available),
            },
        )
        self.material_id = material_id
        self.material_name = material_name
        self.requested = requested
        self.available = available


class ValidationError(InventoryError):
    code = "validation_error"
    status_code = 400

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message, {"field": field} if field else None)
        self.field = field


class Conflict(InventoryError):
    code = "conflict"
    status_code = 409
