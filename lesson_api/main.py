"""Lesson booking FastAPI application.

Responsibilities:
- Serve the lesson catalogue: `GET /lessons`, `PUT /lessons/{id}`
- Accept orders: `POST /orders` (and `GET /orders` for debugging/demo)
- Report liveness and database connectivity: `GET /health`

Route handlers stay thin: they translate HTTP into calls on `LessonCatalog`
and `OrderIntake` and map result codes back to status codes. Handlers are
plain `def` functions, so FastAPI runs them concurrently in its threadpool;
the inventory ledger does not rely on any handler running alone.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastapi import APIRouter, Body, Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from . import config
from .catalog import LessonCatalog
from .ledger import InventoryLedger
from .models import Lesson, Order
from .mongo import STORE_ERRORS, MongoStore
from .orders import OrderIntake
from .results import ErrorCode, Failure, StoreUnavailableError

logger = logging.getLogger(__name__)

STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.INVALID_ID: 400,
    ErrorCode.LESSON_NOT_FOUND: 404,
    ErrorCode.INSUFFICIENT_SPACES: 409,
    ErrorCode.STORE_UNAVAILABLE: 503,
}

router = APIRouter()


def configure_logging() -> None:
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def raise_for_failure(failure: Failure) -> None:
    raise HTTPException(status_code=STATUS_BY_CODE[failure.code], detail=failure.to_dict())


def get_catalog(request: Request) -> LessonCatalog:
    return request.app.state.catalog


def get_intake(request: Request) -> OrderIntake:
    return request.app.state.intake


@router.get("/")
def root() -> dict[str, str]:
    return {"message": "Lessons API is running"}


@router.get("/health")
def health(request: Request) -> dict[str, Any]:
    """Liveness plus a database connectivity flag."""
    return {
        "status": "ok",
        "uptime": round(time.monotonic() - request.app.state.started_at, 3),
        "dbConnected": request.app.state.store.ping(),
    }


@router.get("/lessons", response_model=list[Lesson])
def list_lessons(catalog: LessonCatalog = Depends(get_catalog)):
    try:
        return catalog.list_lessons()
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.put("/lessons/{lesson_id}")
def update_lesson(
    lesson_id: str,
    fields: Any = Body(default=None),
    catalog: LessonCatalog = Depends(get_catalog),
) -> dict[str, str]:
    """Administrative merge of lesson fields (price, subject, location, spaces, image)."""
    result = catalog.apply_admin_update(lesson_id, fields)
    if isinstance(result, Failure):
        raise_for_failure(result)
    return {"message": "Lesson updated", "lessonId": result.lesson_id}


@router.get("/orders", response_model=list[Order])
def list_orders(intake: OrderIntake = Depends(get_intake)):
    try:
        return intake.list_orders()
    except StoreUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))


@router.post("/orders", status_code=201)
def create_order(
    payload: Any = Body(default=None),
    intake: OrderIntake = Depends(get_intake),
) -> dict[str, str]:
    """Create an order, consuming lesson spaces.

    Body:
        {
          "customerName": "...", "customerPhone": "...", "customerEmail": "...",
          "items": [{"lessonId": "<ObjectId>", "quantity": 1}, ...]
        }
    """
    result = intake.create_order(payload)
    if isinstance(result, Failure):
        raise_for_failure(result)
    return {"message": "Order created", "orderId": result.order_id}


async def _bad_request(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Malformed JSON never reaches the services; report it like any other
    # validation failure instead of FastAPI's default 422.
    details = [
        {"field": ".".join(str(p) for p in err.get("loc", ())), "reason": err.get("msg", "")}
        for err in exc.errors()
    ]
    failure = Failure(ErrorCode.VALIDATION_ERROR, "Malformed request body", tuple(details))
    return JSONResponse(status_code=400, content={"detail": failure.to_dict()})


def create_app(store: MongoStore | None = None) -> FastAPI:
    """Build the application.

    Args:
        store: persistence handle to use. When omitted, a `MongoStore` is
            created from the environment at startup and closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging()
        owns_store = store is None
        handle = store if store is not None else MongoStore()

        ledger = InventoryLedger(handle)
        app.state.store = handle
        app.state.ledger = ledger
        app.state.catalog = LessonCatalog(handle)
        app.state.intake = OrderIntake(handle, ledger)
        app.state.started_at = time.monotonic()

        try:
            ledger.replay_pending_releases()
        except STORE_ERRORS as e:
            logger.warning("[App] Pending releases not replayed: %s", e)

        logger.info("[App] Lessons API started")
        yield
        if owns_store:
            handle.close()
        logger.info("[App] Lessons API stopped")

    app = FastAPI(title="Lessons API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "[HTTP] %s %s %s %.1fms",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        return response

    app.add_exception_handler(RequestValidationError, _bad_request)
    app.include_router(router)

    images = Path(config.IMAGES_DIR)
    if images.is_dir():
        app.mount("/images", StaticFiles(directory=str(images)), name="images")

    return app


app = create_app()
