"""FastAPI endpoints for the bakery — products, carts, orders, loyalty and deliveries.

Every mutating endpoint processes one command synchronously and returns the
updated aggregate as a dict.
"""

import json

from fastapi import APIRouter
from protean.utils.globals import current_domain

from bakery.api.schemas import (
    AddProductRequest,
    AddToCartRequest,
    AdjustPointsRequest,
    ApplyCartDiscountRequest,
    AssignDriverRequest,
    CancelOrderRequest,
    ChangePriceRequest,
    CreateGoalRequest,
    CreateRewardRequest,
    DeliveryAddressRequest,
    DeliveryStepRequest,
    FailDeliveryRequest,
    LocationUpdateRequest,
    PlaceOrderRequest,
    PointsRequest,
    RecordPaymentRequest,
    RedeemRewardRequest,
    ScheduleDeliveryRequest,
    SetAvailabilityRequest,
    SetCartDeliveryRequest,
    SetCartPaymentRequest,
    StaffReasonRequest,
    UpdateCartQuantityRequest,
    UpdateOrderStatusRequest,
    UpdateStockRequest,
    ValidationReport,
)
from bakery.cart.items import AddToCart, RemoveFromCart, UpdateCartQuantity, existing_cart
from bakery.cart.management import ApplyCartDiscount, ClearCart, SetCartDelivery, SetCartPayment
from bakery.cart.validation import validate_cart
from bakery.catalogue.management import AddProduct, ChangeProductPrice, SetProductAvailability, UpdateProductStock
from bakery.catalogue.product import Product
from bakery.delivery.completion import CancelDelivery, CompleteDelivery, DispatchDelivery, FailDelivery, RecordPickup
from bakery.delivery.delivery import Delivery
from bakery.delivery.scheduling import AssignDriver, ScheduleDelivery, UpdateDeliveryAddress, delivery_for
from bakery.delivery.tracking import UpdateDriverLocation
from bakery.loyalty.points import (
    AdjustPoints,
    AwardBonusPoints,
    AwardPoints,
    OpenLoyaltyAccount,
    account_for,
    process_serialised,
    redeem_points,
)
from bakery.loyalty.rewards import CreateGoal, CreateReward, RedeemReward
from bakery.order.checkout import checkout
from bakery.order.order import Order
from bakery.order.status import (
    CancelOrder,
    ForceCancelOrder,
    RecordPayment,
    RefundOrder,
    UpdateOrderStatus,
    order_for,
)
from bakery.shared.errors import NotFoundError

product_router = APIRouter(prefix="/products", tags=["products"])
cart_router = APIRouter(prefix="/carts", tags=["carts"])
order_router = APIRouter(prefix="/orders", tags=["orders"])
loyalty_router = APIRouter(prefix="/loyalty", tags=["loyalty"])
delivery_router = APIRouter(prefix="/deliveries", tags=["deliveries"])


def _process(command) -> dict:
    return current_domain.process(command, asynchronous=False).to_dict()


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------
@product_router.post("", status_code=201)
async def add_product(body: AddProductRequest) -> dict:
    return _process(
        AddProduct(
            name=body.name,
            price=body.price,
            category=body.category,
            available_days=json.dumps(body.available_days) if body.available_days else None,
            available_from=body.available_from,
            available_until=body.available_until,
            stock_quantity=body.stock_quantity,
            min_order_quantity=body.min_order_quantity,
            max_order_quantity=body.max_order_quantity,
        )
    )


@product_router.get("/{product_id}")
async def get_product(product_id: str) -> dict:
    product = current_domain.repository_for(Product).get(product_id)
    return {**product.to_dict(), "is_available_now": product.is_available_now()}


@product_router.put("/{product_id}/price")
async def change_price(product_id: str, body: ChangePriceRequest) -> dict:
    return _process(ChangeProductPrice(product_id=product_id, price=body.price))


@product_router.put("/{product_id}/stock")
async def update_stock(product_id: str, body: UpdateStockRequest) -> dict:
    return _process(UpdateProductStock(product_id=product_id, stock_quantity=body.stock_quantity))


@product_router.put("/{product_id}/availability")
async def set_availability(product_id: str, body: SetAvailabilityRequest) -> dict:
    return _process(SetProductAvailability(product_id=product_id, is_available=body.is_available))


# ---------------------------------------------------------------------------
# Carts (addressed by customer)
# ---------------------------------------------------------------------------
@cart_router.get("/{customer_id}")
async def get_cart(customer_id: str) -> dict:
    return existing_cart(customer_id).to_dict()


@cart_router.get("/{customer_id}/validation", response_model=ValidationReport)
async def check_cart(customer_id: str) -> ValidationReport:
    return ValidationReport(**validate_cart(existing_cart(customer_id)))


@cart_router.post("/{customer_id}/items", status_code=201)
async def add_to_cart(customer_id: str, body: AddToCartRequest) -> dict:
    customizations = [c.model_dump() for c in body.customizations] if body.customizations else None
    return _process(
        AddToCart(
            customer_id=customer_id,
            product_id=body.product_id,
            quantity=body.quantity,
            special_instructions=body.special_instructions,
            customizations=json.dumps(customizations) if customizations else None,
        )
    )


@cart_router.put("/{customer_id}/items/{product_id}")
async def update_cart_quantity(customer_id: str, product_id: str, body: UpdateCartQuantityRequest) -> dict:
    return _process(UpdateCartQuantity(customer_id=customer_id, product_id=product_id, quantity=body.quantity))


@cart_router.delete("/{customer_id}/items/{product_id}")
async def remove_from_cart(customer_id: str, product_id: str) -> dict:
    return _process(RemoveFromCart(customer_id=customer_id, product_id=product_id))


@cart_router.delete("/{customer_id}")
async def clear_cart(customer_id: str) -> dict:
    return _process(ClearCart(customer_id=customer_id))


@cart_router.put("/{customer_id}/delivery")
async def set_cart_delivery(customer_id: str, body: SetCartDeliveryRequest) -> dict:
    return _process(SetCartDelivery(customer_id=customer_id, **body.model_dump()))


@cart_router.put("/{customer_id}/payment")
async def set_cart_payment(customer_id: str, body: SetCartPaymentRequest) -> dict:
    return _process(
        SetCartPayment(
            customer_id=customer_id,
            method=body.method,
            loyalty_points_used=body.loyalty_points_used,
        )
    )


@cart_router.put("/{customer_id}/discount")
async def apply_cart_discount(customer_id: str, body: ApplyCartDiscountRequest) -> dict:
    return _process(ApplyCartDiscount(customer_id=customer_id, code=body.code, amount=body.amount))


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
@order_router.post("", status_code=201)
async def place_order(body: PlaceOrderRequest) -> dict:
    order = checkout(
        customer_id=body.customer_id,
        source=body.source,
        customer_notes=body.customer_notes,
        is_urgent=body.is_urgent,
    )
    return order.to_dict()


@order_router.get("/{order_id}")
async def get_order(order_id: str) -> dict:
    return order_for(order_id).to_dict()


@order_router.get("/by-number/{order_number}")
async def get_order_by_number(order_number: str) -> dict:
    order = current_domain.repository_for(Order).find_by_number(order_number)
    if order is None:
        raise NotFoundError("Order", order_number)
    return order.to_dict()


@order_router.get("/customer/{customer_id}")
async def list_customer_orders(customer_id: str) -> list[dict]:
    return [order.to_dict() for order in current_domain.repository_for(Order).for_customer(customer_id)]


@order_router.put("/{order_id}/status")
async def update_order_status(order_id: str, body: UpdateOrderStatusRequest) -> dict:
    return _process(
        UpdateOrderStatus(
            order_id=order_id,
            status=body.status,
            note=body.note,
            actor_id=body.actor_id,
            actor_role=body.actor_role,
        )
    )


@order_router.put("/{order_id}/cancel")
async def cancel_order(order_id: str, body: CancelOrderRequest) -> dict:
    return _process(CancelOrder(order_id=order_id, customer_id=body.customer_id, reason=body.reason))


@order_router.put("/{order_id}/force-cancel")
async def force_cancel_order(order_id: str, body: StaffReasonRequest) -> dict:
    return _process(
        ForceCancelOrder(order_id=order_id, reason=body.reason, actor_id=body.actor_id, actor_role=body.actor_role)
    )


@order_router.put("/{order_id}/refund")
async def refund_order(order_id: str, body: StaffReasonRequest) -> dict:
    return _process(
        RefundOrder(order_id=order_id, reason=body.reason, actor_id=body.actor_id, actor_role=body.actor_role)
    )


@order_router.put("/{order_id}/payment")
async def record_payment(order_id: str, body: RecordPaymentRequest) -> dict:
    return _process(RecordPayment(order_id=order_id, status=body.status, transaction_id=body.transaction_id))


# ---------------------------------------------------------------------------
# Loyalty (addressed by customer)
# ---------------------------------------------------------------------------
@loyalty_router.post("/{customer_id}", status_code=201)
async def open_account(customer_id: str) -> dict:
    return _process(OpenLoyaltyAccount(customer_id=customer_id))


@loyalty_router.get("/{customer_id}")
async def get_account(customer_id: str) -> dict:
    account = account_for(customer_id)
    return {**account.to_dict(), "progress": account.progress_to_next_tier()}


@loyalty_router.post("/{customer_id}/points")
async def award_points(customer_id: str, body: PointsRequest) -> dict:
    return _process(
        AwardPoints(
            customer_id=customer_id,
            amount=body.amount,
            description=body.description,
            order_id=body.order_id,
            expires_in_days=body.expires_in_days,
        )
    )


@loyalty_router.post("/{customer_id}/bonus")
async def award_bonus(customer_id: str, body: PointsRequest) -> dict:
    return _process(
        AwardBonusPoints(
            customer_id=customer_id,
            amount=body.amount,
            description=body.description,
            expires_in_days=body.expires_in_days,
        )
    )


@loyalty_router.post("/{customer_id}/redemptions")
async def redeem(customer_id: str, body: PointsRequest) -> dict:
    return redeem_points(customer_id, body.amount, body.description, order_id=body.order_id).to_dict()


@loyalty_router.post("/{customer_id}/adjustments")
async def adjust(customer_id: str, body: AdjustPointsRequest) -> dict:
    command = AdjustPoints(
        customer_id=customer_id,
        amount=body.amount,
        description=body.description,
        reason=body.reason,
    )
    return process_serialised(customer_id, command).to_dict()


@loyalty_router.post("/{customer_id}/rewards", status_code=201)
async def create_reward(customer_id: str, body: CreateRewardRequest) -> dict:
    return _process(CreateReward(customer_id=customer_id, **body.model_dump(exclude_none=True)))


@loyalty_router.post("/{customer_id}/rewards/{reward_id}/redeem")
async def redeem_reward(customer_id: str, reward_id: str, body: RedeemRewardRequest) -> dict:
    command = RedeemReward(customer_id=customer_id, reward_id=reward_id, order_id=body.order_id)
    return process_serialised(customer_id, command).to_dict()


@loyalty_router.post("/{customer_id}/goals", status_code=201)
async def create_goal(customer_id: str, body: CreateGoalRequest) -> dict:
    return _process(CreateGoal(customer_id=customer_id, **body.model_dump(exclude_none=True)))


# ---------------------------------------------------------------------------
# Deliveries
# ---------------------------------------------------------------------------
@delivery_router.post("", status_code=201)
async def schedule_delivery(body: ScheduleDeliveryRequest) -> dict:
    return _process(ScheduleDelivery(**body.model_dump(exclude_none=True)))


@delivery_router.get("/driver/{driver_id}")
async def list_driver_deliveries(driver_id: str) -> list[dict]:
    return [delivery.to_dict() for delivery in current_domain.repository_for(Delivery).for_driver(driver_id)]


@delivery_router.get("/order/{order_id}")
async def get_order_delivery(order_id: str) -> dict:
    delivery = current_domain.repository_for(Delivery).find_by_order(order_id)
    if delivery is None:
        raise NotFoundError("Delivery", order_id)
    return delivery.to_dict()


@delivery_router.get("/{delivery_id}")
async def get_delivery(delivery_id: str) -> dict:
    delivery = delivery_for(delivery_id)
    return {
        **delivery.to_dict(),
        "delay_minutes": delivery.calculate_delay(),
        "remaining_distance": delivery.remaining_distance(),
        "within_window": delivery.is_within_delivery_window(),
    }


@delivery_router.put("/{delivery_id}/driver")
async def assign_driver(delivery_id: str, body: AssignDriverRequest) -> dict:
    return _process(AssignDriver(delivery_id=delivery_id, driver_id=body.driver_id, driver_role=body.driver_role))


@delivery_router.put("/{delivery_id}/address")
async def update_address(delivery_id: str, body: DeliveryAddressRequest) -> dict:
    return _process(UpdateDeliveryAddress(delivery_id=delivery_id, **body.model_dump()))


@delivery_router.post("/{delivery_id}/location")
async def update_location(delivery_id: str, body: LocationUpdateRequest) -> dict:
    return _process(UpdateDriverLocation(delivery_id=delivery_id, **body.model_dump()))


@delivery_router.put("/{delivery_id}/pickup")
async def record_pickup(delivery_id: str, body: DeliveryStepRequest) -> dict:
    return _process(RecordPickup(delivery_id=delivery_id, actor_id=body.actor_id, note=body.note))


@delivery_router.put("/{delivery_id}/dispatch")
async def dispatch_delivery(delivery_id: str, body: DeliveryStepRequest) -> dict:
    return _process(DispatchDelivery(delivery_id=delivery_id, actor_id=body.actor_id, note=body.note))


@delivery_router.put("/{delivery_id}/complete")
async def complete_delivery(delivery_id: str, body: DeliveryStepRequest) -> dict:
    return _process(CompleteDelivery(delivery_id=delivery_id, actor_id=body.actor_id, notes=body.note))


@delivery_router.put("/{delivery_id}/fail")
async def fail_delivery(delivery_id: str, body: FailDeliveryRequest) -> dict:
    return _process(FailDelivery(delivery_id=delivery_id, reason=body.reason, actor_id=body.actor_id))


@delivery_router.put("/{delivery_id}/cancel")
async def cancel_delivery(delivery_id: str, body: DeliveryStepRequest) -> dict:
    return _process(CancelDelivery(delivery_id=delivery_id, reason=body.note, actor_id=body.actor_id))
