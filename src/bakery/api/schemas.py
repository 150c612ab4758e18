"""Pydantic request/response schemas for the bakery API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

# --- Product Request Schemas ---


class AddProductRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "name": "Pastel de Nata",
                    "price": 1.2,
                    "category": "pastry",
                    "available_days": ["tuesday", "wednesday", "thursday", "friday", "saturday"],
                    "available_from": "07:00",
                    "available_until": "19:00",
                    "stock_quantity": 120,
                }
            ]
        }
    }

    name: str = Field(..., max_length=200)
    price: float = Field(..., ge=0)
    category: str | None = Field(None, max_length=50)
    available_days: list[str] | None = None
    available_from: str | None = Field(None, max_length=5)
    available_until: str | None = Field(None, max_length=5)
    stock_quantity: int = -1
    min_order_quantity: int = Field(1, ge=1)
    max_order_quantity: int = Field(50, ge=1)


class ChangePriceRequest(BaseModel):
    price: float = Field(..., ge=0)


class UpdateStockRequest(BaseModel):
    stock_quantity: int = Field(..., ge=-1)


class SetAvailabilityRequest(BaseModel):
    is_available: bool


# --- Cart Request Schemas ---


class Customization(BaseModel):
    name: str
    value: str | None = None
    additional_cost: float = Field(0.0, ge=0)


class AddToCartRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "product_id": "prod-001",
                    "quantity": 2,
                    "special_instructions": "Sliced, please",
                    "customizations": [{"name": "Filling", "value": "Custard", "additional_cost": 0.5}],
                }
            ]
        }
    }

    product_id: str
    quantity: int = Field(1, ge=1)
    special_instructions: str | None = Field(None, max_length=500)
    customizations: list[Customization] | None = None


class UpdateCartQuantityRequest(BaseModel):
    quantity: int


class SetCartDeliveryRequest(BaseModel):
    type: str = "pickup"
    street: str | None = None
    city: str | None = None
    postal_code: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    instructions: str | None = Field(None, max_length=500)
    preferred_time: str = "asap"
    specific_time: datetime | None = None


class SetCartPaymentRequest(BaseModel):
    method: str = "card"
    loyalty_points_used: int = Field(0, ge=0)


class ApplyCartDiscountRequest(BaseModel):
    code: str | None = None
    amount: float | None = Field(None, ge=0)


# --- Order Request Schemas ---


class PlaceOrderRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "customer_id": "cust-001",
                    "source": "website",
                    "customer_notes": "Please ring twice",
                    "is_urgent": False,
                }
            ]
        }
    }

    customer_id: str
    source: str = "website"
    customer_notes: str | None = Field(None, max_length=1000)
    is_urgent: bool = False


class UpdateOrderStatusRequest(BaseModel):
    status: str
    note: str | None = Field(None, max_length=500)
    actor_id: str | None = None
    actor_role: str = "staff"


class CancelOrderRequest(BaseModel):
    customer_id: str
    reason: str | None = Field(None, max_length=500)


class StaffReasonRequest(BaseModel):
    reason: str = Field(..., max_length=500)
    actor_id: str | None = None
    actor_role: str = "staff"


class RecordPaymentRequest(BaseModel):
    status: str
    transaction_id: str | None = None


# --- Loyalty Request Schemas ---


class PointsRequest(BaseModel):
    amount: int
    description: str = Field(..., max_length=500)
    order_id: str | None = None
    expires_in_days: int | None = None


class AdjustPointsRequest(BaseModel):
    amount: int
    description: str = Field(..., max_length=500)
    reason: str = Field(..., max_length=500)


class CreateRewardRequest(BaseModel):
    name: str = Field(..., max_length=200)
    description: str | None = None
    points_cost: int = Field(..., gt=0)
    discount_amount: float | None = Field(None, ge=0)
    discount_percentage: float | None = Field(None, ge=0, le=1)
    expires_at: datetime | None = None


class RedeemRewardRequest(BaseModel):
    order_id: str | None = None


class CreateGoalRequest(BaseModel):
    name: str = Field(..., max_length=200)
    description: str | None = None
    target_points: int = Field(..., gt=0)
    reward: str | None = None
    expires_at: datetime | None = None


# --- Delivery Request Schemas ---


class ScheduleDeliveryRequest(BaseModel):
    order_id: str
    customer_id: str
    street: str
    city: str
    postal_code: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    instructions: str | None = None
    delivery_fee: float = 0.0
    priority: str | None = None
    is_urgent: bool = False
    estimated_ready: datetime | None = None
    window_start: datetime | None = None
    window_end: datetime | None = None


class AssignDriverRequest(BaseModel):
    driver_id: str
    driver_role: str = "driver"


class LocationUpdateRequest(BaseModel):
    driver_id: str
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    accuracy: float = Field(0.0, ge=0)


class DeliveryStepRequest(BaseModel):
    actor_id: str | None = None
    note: str | None = Field(None, max_length=500)


class FailDeliveryRequest(BaseModel):
    reason: str = Field(..., max_length=500)
    actor_id: str | None = None


class DeliveryAddressRequest(BaseModel):
    street: str
    city: str
    postal_code: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    instructions: str | None = None


# --- Response Schemas ---


class ValidationReport(BaseModel):
    valid: bool
    errors: list[str]
