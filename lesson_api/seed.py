"""Seed the lessons collection with a small sample catalogue.

- Default: inserts the sample lessons only when the collection is empty.
- --force: deletes every lesson first, then inserts the samples.

Usage:
    python -m lesson_api.seed [--force]
"""

from __future__ import annotations

import argparse
import logging

from .main import configure_logging
from .mongo import MongoStore

logger = logging.getLogger(__name__)

SAMPLE_LESSONS: list[dict] = [
    {"subject": "Math", "location": "London", "price": 100, "spaces": 5, "image": "math.png"},
    {"subject": "English", "location": "Oxford", "price": 90, "spaces": 5, "image": "english.png"},
    {"subject": "Music", "location": "Bristol", "price": 80, "spaces": 5, "image": "music.png"},
    {"subject": "Art", "location": "York", "price": 70, "spaces": 5, "image": "art.png"},
    {"subject": "Science", "location": "Leeds", "price": 95, "spaces": 5, "image": "science.png"},
    {"subject": "History", "location": "Bath", "price": 60, "spaces": 5, "image": "history.png"},
    {"subject": "Coding", "location": "Manchester", "price": 120, "spaces": 5, "image": "coding.png"},
    {"subject": "Drama", "location": "Cambridge", "price": 75, "spaces": 5, "image": "drama.png"},
    {"subject": "Chess", "location": "Brighton", "price": 50, "spaces": 5, "image": "chess.png"},
    {"subject": "French", "location": "Liverpool", "price": 85, "spaces": 5, "image": "french.png"},
]


def seed_lessons(store: MongoStore, force: bool = False) -> int:
    """Insert the sample lessons. Returns how many were inserted."""
    lessons = store.lessons
    if force:
        deleted = lessons.delete_many({}).deleted_count
        logger.info("[Seed] Removed %s lesson(s)", deleted)
    elif lessons.find_one({}) is not None:
        logger.info("[Seed] Lessons already present, nothing to do")
        return 0

    # insert_many mutates its input (adds _id); hand it copies.
    result = lessons.insert_many([dict(lesson) for lesson in SAMPLE_LESSONS])
    logger.info("[Seed] Inserted %s lesson(s)", len(result.inserted_ids))
    return len(result.inserted_ids)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Seed the lessons collection.")
    parser.add_argument("--force", action="store_true", help="replace existing lessons")
    args = parser.parse_args(argv)

    configure_logging()
    store = MongoStore()
    try:
        seed_lessons(store, force=args.force)
    finally:
        store.close()


if __name__ == "__main__":
    main()
