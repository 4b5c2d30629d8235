"""Order intake: validate, reserve, insert, or roll back.

High-level flow:
    validate payload -> reserve each item -> insert order -> done

Creating an order touches several documents (one per lesson plus the order
itself) that are not written in one transaction, so this is a small saga:

- If a reservation fails, every reservation already taken for this order is
  released and the failure is returned. No order is written.
- If the order insert fails, all reservations are released and the caller
  gets STORE_UNAVAILABLE.
- The rollback sits in a `finally` block, so it also runs when an unexpected
  exception or an interrupt escapes mid-way.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from pydantic import ValidationError

from .ledger import InventoryLedger
from .models import Order, OrderRequest, describe_errors, to_object_id
from .mongo import STORE_ERRORS, MongoStore
from .results import (
    Created,
    Failure,
    Reserved,
    StoreUnavailableError,
    store_unavailable,
    validation_failed,
)

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class OrderIntake:
    """Creates orders against the inventory ledger."""

    def __init__(
        self,
        store: MongoStore,
        ledger: InventoryLedger,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._clock = clock

    def create_order(self, payload: Any) -> Created | Failure:
        """Validate `payload` and create the order if every item fits.

        Returns:
            Created(order_id) on success, otherwise a Failure with code
            VALIDATION_ERROR, INVALID_ID, LESSON_NOT_FOUND,
            INSUFFICIENT_SPACES or STORE_UNAVAILABLE.
        """
        try:
            request = OrderRequest.model_validate(payload)
        except ValidationError as e:
            return validation_failed("Invalid order data", describe_errors(e))

        reserved: list[Reserved] = []
        committed = False
        try:
            for item in request.items:
                result = self._ledger.reserve(item.lessonId, item.quantity)
                if isinstance(result, Failure):
                    logger.info(
                        "[Orders] Rejected order for %s: %s",
                        request.customerName,
                        result.code.value,
                    )
                    return result
                reserved.append(result)

            order_id = self._insert(request)
            if order_id is None:
                return store_unavailable("Failed to create order")

            committed = True
            logger.info("[Orders] Created order %s with %s item(s)", order_id, len(reserved))
            return Created(order_id=order_id)
        finally:
            if not committed and reserved:
                outstanding = self._ledger.compensate(reserved)
                logger.info(
                    "[Orders] Rolled back %s reservation(s), %s parked",
                    len(reserved) - len(outstanding),
                    len(outstanding),
                )

    def _insert(self, request: OrderRequest) -> str | None:
        doc = {
            "customerName": request.customerName,
            "customerPhone": request.customerPhone,
            "customerEmail": request.customerEmail,
            "items": [
                {"lessonId": to_object_id(item.lessonId), "quantity": item.quantity}
                for item in request.items
            ],
            "createdAt": self._clock(),
        }
        try:
            result = self._store.orders.insert_one(doc)
        except STORE_ERRORS as e:
            logger.error("[Orders] Insert failed: %s", e)
            return None
        return str(result.inserted_id)

    def list_orders(self) -> list[Order]:
        """Return every stored order, oldest first.

        Raises:
            StoreUnavailableError: if MongoDB cannot be reached.
        """
        try:
            docs = list(self._store.orders.find({}).sort("createdAt", 1))
        except STORE_ERRORS as e:
            logger.error("[Orders] Failed to fetch orders: %s", e)
            raise StoreUnavailableError("Failed to fetch orders") from e
        return [Order.from_document(doc) for doc in docs]
