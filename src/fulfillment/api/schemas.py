"""Pydantic API schemas for the fulfillment engine.

These are the external API contracts, separate from domain commands.
The API layer translates between these schemas and domain commands.
"""

from datetime import date, datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------
class RegisterCustomerRequest(BaseModel):
    business_name: str
    email: str
    contact_name: str | None = None


class ApproveCreditRequest(BaseModel):
    credit_limit: int = Field(ge=0)
    payment_terms: str | None = None
    notes: str | None = None
    approved_by: str
    role: str


class RejectCreditRequest(BaseModel):
    reason: str
    rejected_by: str
    role: str


class UpdateCreditLimitRequest(BaseModel):
    credit_limit: int = Field(ge=0)
    changed_by: str
    role: str


class SuspendAccountRequest(BaseModel):
    reason: str


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------
class RegisterProductRequest(BaseModel):
    sku: str
    name: str
    unit: str = "unit"
    unit_price: int = Field(ge=0)
    tax_rate: int = Field(default=1000, ge=0)
    low_stock_threshold: int = Field(default=0, ge=0)


class ReceiveStockRequest(BaseModel):
    quantity: int
    cost_per_unit: int = Field(default=0, ge=0)
    reference: str | None = None
    expiry_date: date | None = None


class AdjustStockRequest(BaseModel):
    quantity_change: int
    reason: str
    adjusted_by: str


class ConsumeBatchRequest(BaseModel):
    quantity: int


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class OrderLineRequest(BaseModel):
    product_id: str
    quantity: int


class DeliveryAddressRequest(BaseModel):
    street: str
    suburb: str
    state: str | None = None
    postcode: str
    zone: str
    latitude: float | None = None
    longitude: float | None = None


class PlaceOrderRequest(BaseModel):
    customer_id: str
    items: list[OrderLineRequest]
    delivery_address: DeliveryAddressRequest
    requested_delivery_date: date
    placed_by: str
    role: str = "customer"
    bypass_credit_limit: bool = False
    bypass_reason: str | None = None


class UpdateOrderStatusRequest(BaseModel):
    status: str
    changed_by: str
    role: str
    note: str | None = None


class CancelOrderRequest(BaseModel):
    reason: str
    cancelled_by: str
    role: str


class ApproveBackorderRequest(BaseModel):
    approved_by: str
    role: str
    approved_quantities: dict[str, int] | None = None
    notes: str | None = None
    expected_fulfillment: date | None = None


class RejectBackorderRequest(BaseModel):
    reason: str
    rejected_by: str
    role: str


class CorrectItemQuantityRequest(BaseModel):
    quantity: int
    corrected_by: str


class ActorRequest(BaseModel):
    actor: str
    role: str


class ReturnToWarehouseRequest(BaseModel):
    reason: str
    returned_by: str
    role: str


class CompleteDeliveryRequest(BaseModel):
    delivered_by: str
    role: str
    proof_of_delivery: str | None = None


class AssignDriverRequest(BaseModel):
    driver_id: str
    driver_name: str | None = None
    assigned_by: str
    role: str


# ---------------------------------------------------------------------------
# Packing
# ---------------------------------------------------------------------------
class PackItemRequest(BaseModel):
    packed_by: str
    packed: bool = True
    role: str = "packer"


class PausePackingRequest(BaseModel):
    paused_by: str


class PackingNoteRequest(BaseModel):
    note: str
    author: str


class ResetPackingRequest(BaseModel):
    reason: str
    reset_by: str
    role: str


class IdleSweepRequest(BaseModel):
    as_of: datetime | None = None


# ---------------------------------------------------------------------------
# Routes and accounting
# ---------------------------------------------------------------------------
class OptimizeRouteRequest(BaseModel):
    delivery_date: date
    optimized_by: str


class ProcessAccountingJobsRequest(BaseModel):
    as_of: datetime | None = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------
class CustomerIdResponse(BaseModel):
    customer_id: str


class ProductIdResponse(BaseModel):
    product_id: str


class BatchIdResponse(BaseModel):
    batch_id: str


class OrderIdResponse(BaseModel):
    order_id: str


class CreditResponse(BaseModel):
    customer_id: str
    credit_limit: int
    outstanding: int
    available: int


class PackResponse(BaseModel):
    order_id: str
    version: int


class RouteIdResponse(BaseModel):
    route_id: str


class RouteStalenessResponse(BaseModel):
    delivery_date: date
    stale: bool


class StatusResponse(BaseModel):
    status: str = "ok"
