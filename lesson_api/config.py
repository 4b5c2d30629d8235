"""Service configuration.

Like the rest of the service this module only reads environment variables, so
the same code runs locally, in a container, or behind a process manager.

Defaults target local development. Override them in production.
"""

from __future__ import annotations

import os

# --- HTTP --------------------------------------------------------------------
HOST: str = os.getenv("HOST", "0.0.0.0")
PORT: int = int(os.getenv("PORT", "4000"))

# Comma separated list of allowed origins for the storefront front end.
CORS_ORIGINS: list[str] = [
    origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()
]

# Lesson images are served from here under `/images` (skipped if missing).
IMAGES_DIR: str = os.getenv("IMAGES_DIR", "images")

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# --- MongoDB -----------------------------------------------------------------
MONGODB_URI: str = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
MONGODB_DB_NAME: str = os.getenv("MONGODB_DB_NAME", "lesson-booking")

# Upper bound for server selection and connection establishment.
MONGODB_TIMEOUT_MS: int = int(os.getenv("MONGODB_TIMEOUT_MS", "10000"))

LESSONS_COLLECTION: str = os.getenv("LESSONS_COLLECTION", "lessons")
ORDERS_COLLECTION: str = os.getenv("ORDERS_COLLECTION", "orders")

# Releases that could not be applied during a rollback are parked here and
# replayed on the next startup.
RECOVERY_COLLECTION: str = os.getenv("RECOVERY_COLLECTION", "pending_releases")

# --- Inventory ---------------------------------------------------------------
# How many times a compensating release is tried before it is parked.
RELEASE_ATTEMPTS: int = int(os.getenv("RELEASE_ATTEMPTS", "3"))
