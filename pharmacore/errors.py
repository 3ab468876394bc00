"""Domain errors surfaced to the operator.

All of these are deterministic rejections. Nothing here is retried; callers
render ``str(err)`` directly.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Optional


class PharmacoreError(ValueError):
    """Base class for domain-level errors."""


class ValidationError(PharmacoreError):
    pass


class NotFoundError(PharmacoreError):
    pass


class FloorPriceError(PharmacoreError):
    def __init__(self, batch_id: Optional[int], attempted: Decimal, minimum: Decimal):
        self.batch_id = batch_id
        self.attempted = attempted
        self.minimum = minimum
        where = f" for batch {batch_id}" if batch_id is not None else ""
        super().__init__(
            f"Selling price {attempted} (ex-VAT) is below the floor price {minimum}{where}."
        )


class InsufficientStockError(PharmacoreError):
    def __init__(
        self,
        batch_id: Optional[int],
        requested: int,
        available: int,
        *,
        product_id: Optional[int] = None,
    ):
        self.batch_id = batch_id
        self.product_id = product_id
        self.requested = requested
        self.available = available
        if batch_id is not None:
            msg = f"Insufficient stock for batch {batch_id}: requested {requested}, available {available}."
        else:
            msg = (
                f"No single batch of product {product_id} has {requested} units "
                f"(largest available: {available})."
            )
        super().__init__(msg)
