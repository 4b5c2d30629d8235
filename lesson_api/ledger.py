"""Inventory ledger: the only code path that consumes lesson capacity.

Key design choice (important):
- A reservation is ONE conditional update:

      find_one_and_update({_id: id, spaces: {$gte: q}}, {$inc: {spaces: -q}})

  MongoDB applies the match and the increment atomically on a single
  document, so two concurrent reservations can never both see the same
  `spaces` value. Whichever lands second is matched against the already
  decremented value and fails if it no longer fits.
- A read-then-write (`find_one` then `update_one` with the computed value)
  would let two requests both pass the check and oversell the lesson.

No in-process locks are used and no lesson state is cached between calls.

Compensation:
    Order intake reserves lesson by lesson. If a later step fails the
    reservations already taken are handed back through `compensate`. A release
    that cannot be applied (store down) is parked in the recovery collection
    and replayed by `replay_pending_releases` on the next startup.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Iterable

from pymongo import ReturnDocument

from . import config
from .models import is_object_id, to_object_id
from .mongo import STORE_ERRORS, MongoStore
from .results import (
    Failure,
    Released,
    Reserved,
    insufficient_spaces,
    invalid_id,
    lesson_not_found,
    store_unavailable,
    validation_failed,
)

logger = logging.getLogger(__name__)


class InventoryLedger:
    """Reserve and release lesson spaces with atomic conditional updates."""

    def __init__(self, store: MongoStore, release_attempts: int = config.RELEASE_ATTEMPTS) -> None:
        self._store = store
        self._release_attempts = max(1, release_attempts)

    def reserve(self, lesson_id: str, quantity: int) -> Reserved | Failure:
        """Take `quantity` spaces from a lesson, or fail without side effects.

        Retrying a failed call is safe: every call is a fresh conditional
        update against the current stored value.
        """
        if not is_object_id(lesson_id):
            return invalid_id(lesson_id)
        if quantity < 1:
            return validation_failed(
                "Invalid quantity",
                [{"field": "quantity", "reason": "quantity must be a positive integer"}],
            )

        oid = to_object_id(lesson_id)
        try:
            before = self._store.lessons.find_one_and_update(
                {"_id": oid, "spaces": {"$gte": quantity}},
                {"$inc": {"spaces": -quantity}},
                projection={"spaces": True},
                return_document=ReturnDocument.BEFORE,
            )
        except STORE_ERRORS as e:
            logger.error("[Ledger] Reserve failed lesson=%s qty=%s: %s", lesson_id, quantity, e)
            return store_unavailable()

        if before is not None:
            reserved = Reserved(
                lesson_id=lesson_id,
                quantity=quantity,
                spaces_before=before["spaces"],
                spaces_after=before["spaces"] - quantity,
            )
            logger.info(
                "[Ledger] Reserved lesson=%s qty=%s spaces %s -> %s",
                lesson_id,
                quantity,
                reserved.spaces_before,
                reserved.spaces_after,
            )
            return reserved

        # The update matched nothing. This read only picks the error kind;
        # it never feeds a write.
        try:
            exists = self._store.lessons.find_one({"_id": oid}, projection={"_id": True})
        except STORE_ERRORS as e:
            logger.error("[Ledger] Existence check failed lesson=%s: %s", lesson_id, e)
            return store_unavailable()

        if exists is None:
            logger.info("[Ledger] Lesson %s not found", lesson_id)
            return lesson_not_found(lesson_id)

        logger.info("[Ledger] Insufficient spaces lesson=%s qty=%s", lesson_id, quantity)
        return insufficient_spaces(lesson_id, quantity)

    def release(self, lesson_id: str, quantity: int) -> Released | Failure:
        """Give `quantity` spaces back to a lesson.

        A lesson that no longer exists is left alone (`applied=False`).
        """
        if not is_object_id(lesson_id):
            return invalid_id(lesson_id)
        try:
            result = self._store.lessons.update_one(
                {"_id": to_object_id(lesson_id)}, {"$inc": {"spaces": quantity}}
            )
        except STORE_ERRORS as e:
            logger.error("[Ledger] Release failed lesson=%s qty=%s: %s", lesson_id, quantity, e)
            return store_unavailable()

        applied = result.matched_count > 0
        if applied:
            logger.info("[Ledger] Released lesson=%s qty=%s", lesson_id, quantity)
        else:
            logger.warning("[Ledger] Release skipped, lesson %s no longer exists", lesson_id)
        return Released(lesson_id=lesson_id, quantity=quantity, applied=applied)

    def compensate(self, reservations: Iterable[Reserved]) -> list[Reserved]:
        """Release every reservation, parking the ones that cannot be applied.

        Returns:
            The reservations that could not be released right now. Each of
            them has a recovery marker (or a CRITICAL log line if even the
            marker could not be written).
        """
        outstanding = []
        for reserved in reservations:
            if not self._release_with_retry(reserved):
                self._park(reserved)
                outstanding.append(reserved)
        return outstanding

    def _release_with_retry(self, reserved: Reserved) -> bool:
        for attempt in range(1, self._release_attempts + 1):
            result = self.release(reserved.lesson_id, reserved.quantity)
            if isinstance(result, Released):
                return True
            logger.warning(
                "[Ledger] Release attempt %s/%s failed lesson=%s",
                attempt,
                self._release_attempts,
                reserved.lesson_id,
            )
        return False

    def _park(self, reserved: Reserved) -> None:
        marker = {
            "lessonId": reserved.lesson_id,
            "quantity": reserved.quantity,
            "createdAt": datetime.now(timezone.utc),
        }
        try:
            self._store.recoveries.insert_one(marker)
            logger.error(
                "[Ledger] Parked release lesson=%s qty=%s for replay",
                reserved.lesson_id,
                reserved.quantity,
            )
        except STORE_ERRORS as e:
            logger.critical(
                "[Ledger] Could not release or park lesson=%s qty=%s, manual fix needed: %s",
                reserved.lesson_id,
                reserved.quantity,
                e,
            )

    def replay_pending_releases(self) -> int:
        """Apply parked releases, claiming each marker before it is applied.

        A marker is removed with `find_one_and_delete` before its release
        runs, so two replaying processes never apply the same marker and a
        marker is never applied twice. A release that fails is parked again
        and the replay stops until the next startup.

        Returns:
            Number of markers applied.
        """
        applied = 0
        while True:
            marker = self._store.recoveries.find_one_and_delete({})
            if marker is None:
                break
            result = self.release(marker["lessonId"], marker["quantity"])
            if isinstance(result, Failure) and not result.retryable:
                logger.error("[Ledger] Dropped unusable marker %s: %s", marker["_id"], result.message)
                continue
            if isinstance(result, Failure):
                logger.warning("[Ledger] Replay of %s deferred: %s", marker["_id"], result.message)
                self._repark(marker)
                break
            applied += 1
        if applied:
            logger.info("[Ledger] Replayed %s pending release(s)", applied)
        return applied

    def _repark(self, marker: dict) -> None:
        try:
            self._store.recoveries.insert_one(marker)
        except STORE_ERRORS as e:
            logger.critical(
                "[Ledger] Could not re-park lesson=%s qty=%s, manual fix needed: %s",
                marker["lessonId"],
                marker["quantity"],
                e,
            )
