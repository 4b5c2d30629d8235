"""Pydantic models for the lesson booking API.

We validate input at the service boundary so that:
- bad requests fail fast with a field-level reason
- the store never sees a malformed order or lesson update
- the stored document shape stays consistent

Mongo documents use `_id` (an ObjectId); the API exposes it as a string `id`.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any

from bson import Decimal128, ObjectId
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    NonNegativeFloat,
    StrictInt,
    StringConstraints,
    ValidationError,
    field_validator,
    model_validator,
)

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


def is_object_id(value: Any) -> bool:
    return isinstance(value, str) and ObjectId.is_valid(value)


def to_object_id(value: str) -> ObjectId:
    """Convert a validated id string. Call `is_object_id` first."""
    return ObjectId(value)


def describe_errors(exc: ValidationError) -> list[dict[str, str]]:
    """Flatten pydantic errors into JSON-safe `{field, reason}` pairs."""
    details = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"]) or "body"
        details.append({"field": field, "reason": err["msg"]})
    return details


class Lesson(BaseModel):
    """A bookable lesson as stored in the `lessons` collection.

    Only these fields are exposed; any other stored attribute is ignored.
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    subject: str | None = None
    location: str | None = None
    price: float | int | None = None
    spaces: int = 0
    image: str | None = None

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> Lesson:
        data = {k: v for k, v in doc.items() if k not in ("_id", "id")}
        if isinstance(data.get("price"), Decimal128):
            data["price"] = float(data["price"].to_decimal())
        return cls(id=str(doc["_id"]), **data)


class LessonUpdate(BaseModel):
    """Body of `PUT /lessons/{id}`: an administrative partial update.

    Only the listed fields may be changed. `spaces` is an explicit override
    and does not go through the inventory ledger.
    """

    model_config = ConfigDict(extra="forbid")

    subject: NonEmptyStr | None = None
    location: NonEmptyStr | None = None
    price: NonNegativeFloat | None = None
    spaces: Annotated[StrictInt, Field(ge=0)] | None = None
    image: NonEmptyStr | None = None

    @model_validator(mode="after")
    def _check_fields(self) -> LessonUpdate:
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        for name in self.model_fields_set:
            if getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self

    def to_set_fields(self) -> dict[str, Any]:
        return self.model_dump(include=self.model_fields_set)


class OrderItem(BaseModel):
    """One line of an order: how many spaces of which lesson."""

    lessonId: str
    quantity: int = Field(strict=True, ge=1)

    @field_validator("lessonId")
    @classmethod
    def _check_lesson_id(cls, value: str) -> str:
        if not is_object_id(value):
            raise ValueError("lessonId must be a 24 character hex ObjectId")
        # Canonical lower-case hex, so the same id in another case is a duplicate.
        return str(ObjectId(value))


class OrderRequest(BaseModel):
    """Request body for `POST /orders`."""

    customerName: NonEmptyStr
    customerPhone: NonEmptyStr
    customerEmail: NonEmptyStr
    items: list[OrderItem] = Field(min_length=1)

    @field_validator("items")
    @classmethod
    def _check_unique_lessons(cls, items: list[OrderItem]) -> list[OrderItem]:
        seen: set[str] = set()
        for item in items:
            if item.lessonId in seen:
                raise ValueError(f"lessonId {item.lessonId} appears more than once")
            seen.add(item.lessonId)
        return items


class Order(BaseModel):
    """A stored order as returned by `GET /orders`."""

    id: str
    customerName: str
    customerPhone: str
    customerEmail: str
    items: list[OrderItem]
    createdAt: datetime

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> Order:
        return cls(
            id=str(doc["_id"]),
            customerName=doc["customerName"],
            customerPhone=doc["customerPhone"],
            customerEmail=doc["customerEmail"],
            items=[
                OrderItem(lessonId=str(item["lessonId"]), quantity=item["quantity"])
                for item in doc["items"]
            ],
            createdAt=doc["createdAt"],
        )
