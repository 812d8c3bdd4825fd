"""Error taxonomy for the order core.

Services raise these; ``main.py`` maps them to HTTP responses. Every error
carries a human-readable message plus optional context (product id, available
vs requested quantity) that is returned alongside ``detail``.
"""


class InventoryError(Exception):
    status_code = 400

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        return {"detail": self.message, **self.context}


class ValidationError(InventoryError):
    """Malformed or empty input, or an illegal status transition."""


class NotFoundError(InventoryError):
    status_code = 404


class InsufficientStockError(InventoryError):
    def __init__(self, product_id: str, product_name: str, available: int, requested: int):
        super().__init__(
            f"Insufficient stock for {product_name}. Available: {available}, Requested: {requested}",
            product_id=product_id,
            product_name=product_name,
            available=available,
            requested=requested,
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested


class ConflictError(InventoryError):
    """Concurrent modification that did not resolve within the retry budget."""

    status_code = 409


class PersistenceError(InventoryError):
    status_code = 500

    def to_dict(self) -> dict:
        # Storage details stay in the logs
        return {"detail": "Storage operation failed"}


class PartialFailureError(PersistenceError):
    """Rollback of a failed unit did not complete; needs operator intervention."""

    def to_dict(self) -> dict:
        return {"detail": "Storage operation failed and could not be rolled back"}
