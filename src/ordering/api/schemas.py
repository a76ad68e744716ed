"""Pydantic request/response schemas for the Ordering API.

Request and response bodies for the HTTP surface. Routes translate these
to plain calls into the order intake and listing code.
"""

from typing import Any

from pydantic import BaseModel


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------
class PlaceOrderRequest(BaseModel):
    # Left untyped: shape problems are reported as a malformed order, not a 422.
    order: Any = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "order": [
                        {"wine_type": "GRAN CAPITANA", "quantity": 2},
                        {"wine_type": "LA TRUCHA", "quantity": 1},
                    ]
                }
            ]
        }
    }


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------
class ErrorResponse(BaseModel):
    message: str
    details: str


class OrderPlacedResponse(BaseModel):
    message: str = "Order registered."
    order_id: str


class OrderItemResponse(BaseModel):
    wine_type: str
    quantity: int


class OrderResponse(BaseModel):
    id: str
    created_at: str | None = None
    status: str
    items: list[OrderItemResponse] = []


class OrderListResponse(BaseModel):
    orders: list[OrderResponse]


class DatabaseProbeResponse(BaseModel):
    message: str = "DB connection OK"
    data: list[dict]


class TransportStatusResponse(BaseModel):
    connected: bool


class TrackedOrdersResponse(BaseModel):
    tracked: list[dict]
