"""Broker message contracts between the shop and the fulfillment devices.

Outbound (shop → dispensers): per-category totals for a new order.
    premium channel:  {"id_pedido": <order id>, "total_caro": <n>}
    standard channel: {"id_pedido": <order id>, "total_barato": <n>}

Inbound (dispensers → shop): remaining count for one category.
    premium channel:  {"caro": <n>}    optional "id_pedido"
    standard channel: {"barato": <n>}  optional "id_pedido"

Inbound (robot → shop): packing completion.
    robot status channel: {"id_pedido": <order id>, "command": "finished"}

The dispensers listen and report on the same topic, so the broker hands the
shop its own totals back. Those echoes are recognised and skipped.
"""

import json
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from shared.catalogue import Category
from shared.errors import MalformedMessageError

COMPLETION_MARKER = "finished"

_COUNT_KEYS = {
    Category.PREMIUM: "caro",
    Category.STANDARD: "barato",
}

_TOTAL_KEYS = {
    Category.PREMIUM: "total_caro",
    Category.STANDARD: "total_barato",
}

_JSON_OBJECT = TypeAdapter(dict[str, Any])

RemainingCount = Annotated[int, Field(strict=True, ge=0)]


def _coerce_order_ref(value):
    # Devices echo the identity back either as a JSON string or a number.
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


class CountReport(BaseModel):
    """Remaining bottles for one category, as reported by a dispenser."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    category: Category
    remaining: RemainingCount
    order_id: str | None = Field(default=None, alias="id_pedido")

    @field_validator("order_id", mode="before")
    @classmethod
    def _order_ref(cls, value):
        return _coerce_order_ref(value)


class CompletionReport(BaseModel):
    """Packing robot report for a single order."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    order_id: str = Field(alias="id_pedido")
    command: str

    @field_validator("order_id", mode="before")
    @classmethod
    def _order_ref(cls, value):
        return _coerce_order_ref(value)

    @property
    def is_finished(self) -> bool:
        return self.command == COMPLETION_MARKER


def _load_object(topic: str, payload: bytes | str) -> dict[str, Any]:
    try:
        return _JSON_OBJECT.validate_json(payload)
    except PydanticValidationError as exc:
        raise MalformedMessageError(topic, f"not a JSON object ({exc.error_count()} error(s))") from exc


def encode_totals(category: Category, order_id: str, total: int) -> bytes:
    """Encode the fulfillment request for one category of a new order."""
    return json.dumps({"id_pedido": order_id, _TOTAL_KEYS[category]: total}).encode("utf-8")


def decode_count(topic: str, category: Category, payload: bytes | str) -> CountReport | None:
    """Decode a dispenser count report.

    Returns None when the payload is the shop's own totals message echoed
    back by the broker. Raises MalformedMessageError for anything else that
    is not a valid count report.
    """
    body = _load_object(topic, payload)
    count_key = _COUNT_KEYS[category]
    if count_key not in body and _TOTAL_KEYS[category] in body:
        return None
    try:
        return CountReport.model_validate(
            {
                "category": category,
                "remaining": body.get(count_key),
                "id_pedido": body.get("id_pedido"),
            }
        )
    except PydanticValidationError as exc:
        raise MalformedMessageError(topic, f"invalid {count_key} report: {exc.errors()[0]['msg']}") from exc


def decode_completion(topic: str, payload: bytes | str) -> CompletionReport:
    """Decode a packing robot report. Raises MalformedMessageError on bad input."""
    body = _load_object(topic, payload)
    try:
        return CompletionReport.model_validate(body)
    except PydanticValidationError as exc:
        raise MalformedMessageError(topic, f"invalid completion report: {exc.errors()[0]['msg']}") from exc
