"""Read and administrative update access to lesson documents.

Nothing here touches `spaces` on behalf of an order; order fulfilment goes
through `InventoryLedger`. `apply_admin_update` can overwrite `spaces`
directly, which is the manual capacity-correction path.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from .models import Lesson, LessonUpdate, describe_errors, is_object_id, to_object_id
from .mongo import STORE_ERRORS, MongoStore
from .results import (
    Failure,
    StoreUnavailableError,
    Updated,
    invalid_id,
    lesson_not_found,
    store_unavailable,
    validation_failed,
)

logger = logging.getLogger(__name__)


class LessonCatalog:
    """Lesson catalogue backed by the `lessons` collection."""

    def __init__(self, store: MongoStore) -> None:
        self._store = store

    def list_lessons(self) -> list[Lesson]:
        """Return every stored lesson, unfiltered and in store order.

        Raises:
            StoreUnavailableError: if MongoDB cannot be reached.
        """
        try:
            docs = list(self._store.lessons.find({}))
        except STORE_ERRORS as e:
            logger.error("[Catalog] Failed to fetch lessons: %s", e)
            raise StoreUnavailableError("Failed to fetch lessons") from e
        return [Lesson.from_document(doc) for doc in docs]

    def get_lesson(self, lesson_id: str) -> Lesson | Failure:
        if not is_object_id(lesson_id):
            return invalid_id(lesson_id)
        try:
            doc = self._store.lessons.find_one({"_id": to_object_id(lesson_id)})
        except STORE_ERRORS as e:
            logger.error("[Catalog] Failed to read lesson %s: %s", lesson_id, e)
            return store_unavailable()
        if doc is None:
            return lesson_not_found(lesson_id)
        return Lesson.from_document(doc)

    def apply_admin_update(self, lesson_id: str, fields: Any) -> Updated | Failure:
        """Merge allowed fields into a lesson document with `$set`.

        The id and the fields are validated before the store is contacted.
        """
        if not is_object_id(lesson_id):
            return invalid_id(lesson_id)

        try:
            update = LessonUpdate.model_validate(fields)
        except ValidationError as e:
            return validation_failed("Invalid lesson update", describe_errors(e))

        changes = update.to_set_fields()
        try:
            result = self._store.lessons.update_one(
                {"_id": to_object_id(lesson_id)}, {"$set": changes}
            )
        except STORE_ERRORS as e:
            logger.error("[Catalog] Failed to update lesson %s: %s", lesson_id, e)
            return store_unavailable()

        if result.matched_count == 0:
            return lesson_not_found(lesson_id)

        logger.info("[Catalog] Lesson %s updated: %s", lesson_id, sorted(changes))
        return Updated(lesson_id=lesson_id)
