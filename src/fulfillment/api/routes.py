"""FastAPI routes for the fulfillment engine.

Handlers are plain functions run in FastAPI's threadpool; a route solve or a
held order lock blocks only its own worker, never the event loop.
"""

import json
import os

from fastapi import APIRouter, HTTPException
from protean.utils.globals import current_domain

from fulfillment.accounting import get_accounting_gateway
from fulfillment.accounting.fake_adapter import FakeAccountingGateway
from fulfillment.accounting.job import AccountingJob, JobStatus
from fulfillment.accounting.worker import ProcessAccountingJobs, RetryAccountingJob
from fulfillment.api.schemas import (
    ActorRequest,
    AdjustStockRequest,
    ApproveBackorderRequest,
    ApproveCreditRequest,
    AssignDriverRequest,
    BatchIdResponse,
    CancelOrderRequest,
    CompleteDeliveryRequest,
    ConsumeBatchRequest,
    CorrectItemQuantityRequest,
    CreditResponse,
    CustomerIdResponse,
    IdleSweepRequest,
    OptimizeRouteRequest,
    OrderIdResponse,
    PackingNoteRequest,
    PackItemRequest,
    PackResponse,
    PausePackingRequest,
    PlaceOrderRequest,
    ProcessAccountingJobsRequest,
    ProductIdResponse,
    ReceiveStockRequest,
    RegisterCustomerRequest,
    RegisterProductRequest,
    RejectBackorderRequest,
    RejectCreditRequest,
    ResetPackingRequest,
    ReturnToWarehouseRequest,
    RouteIdResponse,
    RouteStalenessResponse,
    StatusResponse,
    SuspendAccountRequest,
    UpdateCreditLimitRequest,
    UpdateOrderStatusRequest,
)
from fulfillment.customer.account import (
    ApproveCredit,
    CloseAccount,
    CompleteOnboarding,
    ReactivateAccount,
    RegisterCustomer,
    RejectCredit,
    SuspendAccount,
    UpdateCreditLimit,
)
from fulfillment.customer.credit import CreditLedger
from fulfillment.customer.customer import Customer
from fulfillment.inventory.product import Product
from fulfillment.inventory.stock import AdjustStock, ConsumeBatch, ReceiveStock, RegisterProduct
from fulfillment.locks import customer_key, order_key, process_locked, product_key
from fulfillment.order.backorder import ApproveBackorder, RejectBackorder, approve_backorder, reject_backorder
from fulfillment.order.delivery import (
    CompleteDelivery,
    DispatchOrder,
    ReturnToWarehouse,
    complete_delivery,
    dispatch_order,
    return_to_warehouse,
)
from fulfillment.order.modification import CorrectItemQuantity, correct_item_quantity
from fulfillment.order.order import Order
from fulfillment.order.placement import PlaceOrder, place_order
from fulfillment.order.status import CancelOrder, UpdateOrderStatus, cancel_order, update_order_status
from fulfillment.packing.controller import PackingSessionController
from fulfillment.packing.packing import AddPackingNote, PausePacking, ResetPacking
from fulfillment.routing.drivers import AssignDriver, assign_driver
from fulfillment.routing.optimizer import (
    delivery_route_is_stale,
    ensure_delivery_route,
    latest_route,
    optimize_delivery_route,
    optimize_packing_route,
)
from fulfillment.routing.route import RouteType

# ---------------------------------------------------------------------------
# Customer Router
# ---------------------------------------------------------------------------
customer_router = APIRouter(prefix="/customers", tags=["customers"])


@customer_router.post("", status_code=201, response_model=CustomerIdResponse)
def register_customer(body: RegisterCustomerRequest) -> CustomerIdResponse:
    command = RegisterCustomer(
        business_name=body.business_name,
        email=body.email,
        contact_name=body.contact_name,
    )
    result = current_domain.process(command, asynchronous=False)
    return CustomerIdResponse(customer_id=result)


@customer_router.get("/{customer_id}")
def get_customer(customer_id: str) -> dict:
    return current_domain.repository_for(Customer).get(customer_id).to_dict()


@customer_router.get("/{customer_id}/credit", response_model=CreditResponse)
def get_credit(customer_id: str) -> CreditResponse:
    customer = current_domain.repository_for(Customer).get(customer_id)
    ledger = CreditLedger()
    outstanding = ledger.outstanding(customer.id)
    return CreditResponse(
        customer_id=str(customer.id),
        credit_limit=customer.credit_limit,
        outstanding=outstanding,
        available=customer.credit_limit - outstanding,
    )


@customer_router.put("/{customer_id}/onboarding/complete", response_model=StatusResponse)
def complete_onboarding(customer_id: str) -> StatusResponse:
    process_locked(CompleteOnboarding(customer_id=customer_id), [customer_key(customer_id)])
    return StatusResponse(status="onboarding_complete")


@customer_router.put("/{customer_id}/credit/approve", response_model=StatusResponse)
def approve_credit(customer_id: str, body: ApproveCreditRequest) -> StatusResponse:
    command = ApproveCredit(
        customer_id=customer_id,
        credit_limit=body.credit_limit,
        payment_terms=body.payment_terms,
        notes=body.notes,
        approved_by=body.approved_by,
        role=body.role,
    )
    process_locked(command, [customer_key(customer_id)])
    return StatusResponse(status="credit_approved")


@customer_router.put("/{customer_id}/credit/reject", response_model=StatusResponse)
def reject_credit(customer_id: str, body: RejectCreditRequest) -> StatusResponse:
    command = RejectCredit(customer_id=customer_id, reason=body.reason, rejected_by=body.rejected_by, role=body.role)
    process_locked(command, [customer_key(customer_id)])
    return StatusResponse(status="credit_rejected")


@customer_router.put("/{customer_id}/credit/limit", response_model=StatusResponse)
def update_credit_limit(customer_id: str, body: UpdateCreditLimitRequest) -> StatusResponse:
    command = UpdateCreditLimit(
        customer_id=customer_id,
        credit_limit=body.credit_limit,
        changed_by=body.changed_by,
        role=body.role,
    )
    process_locked(command, [customer_key(customer_id)])
    return StatusResponse(status="credit_limit_updated")


@customer_router.put("/{customer_id}/suspend", response_model=StatusResponse)
def suspend_account(customer_id: str, body: SuspendAccountRequest) -> StatusResponse:
    process_locked(SuspendAccount(customer_id=customer_id, reason=body.reason), [customer_key(customer_id)])
    return StatusResponse(status="suspended")


@customer_router.put("/{customer_id}/reactivate", response_model=StatusResponse)
def reactivate_account(customer_id: str) -> StatusResponse:
    process_locked(ReactivateAccount(customer_id=customer_id), [customer_key(customer_id)])
    return StatusResponse(status="active")


@customer_router.put("/{customer_id}/close", response_model=StatusResponse)
def close_account(customer_id: str) -> StatusResponse:
    process_locked(CloseAccount(customer_id=customer_id), [customer_key(customer_id)])
    return StatusResponse(status="closed")


# ---------------------------------------------------------------------------
# Product Router
# ---------------------------------------------------------------------------
product_router = APIRouter(prefix="/products", tags=["products"])


@product_router.post("", status_code=201, response_model=ProductIdResponse)
def register_product(body: RegisterProductRequest) -> ProductIdResponse:
    command = RegisterProduct(
        sku=body.sku,
        name=body.name,
        unit=body.unit,
        unit_price=body.unit_price,
        tax_rate=body.tax_rate,
        low_stock_threshold=body.low_stock_threshold,
    )
    result = current_domain.process(command, asynchronous=False)
    return ProductIdResponse(product_id=result)


@product_router.get("/{product_id}")
def get_product(product_id: str) -> dict:
    return current_domain.repository_for(Product).get(product_id).to_dict()


@product_router.post("/{product_id}/receipts", status_code=201, response_model=BatchIdResponse)
def receive_stock(product_id: str, body: ReceiveStockRequest) -> BatchIdResponse:
    command = ReceiveStock(
        product_id=product_id,
        quantity=body.quantity,
        cost_per_unit=body.cost_per_unit,
        reference=body.reference,
        expiry_date=body.expiry_date,
    )
    result = process_locked(command, [product_key(product_id)])
    return BatchIdResponse(batch_id=result)


@product_router.put("/{product_id}/adjust", response_model=StatusResponse)
def adjust_stock(product_id: str, body: AdjustStockRequest) -> StatusResponse:
    command = AdjustStock(
        product_id=product_id,
        quantity_change=body.quantity_change,
        reason=body.reason,
        adjusted_by=body.adjusted_by,
    )
    process_locked(command, [product_key(product_id)])
    return StatusResponse(status="adjusted")


@product_router.put("/{product_id}/batches/{batch_id}/consume", response_model=StatusResponse)
def consume_batch(product_id: str, batch_id: str, body: ConsumeBatchRequest) -> StatusResponse:
    command = ConsumeBatch(product_id=product_id, batch_id=batch_id, quantity=body.quantity)
    process_locked(command, [product_key(product_id)])
    return StatusResponse(status="consumed")


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderIdResponse)
def create_order(body: PlaceOrderRequest) -> OrderIdResponse:
    command = PlaceOrder(
        customer_id=body.customer_id,
        items=json.dumps([item.model_dump() for item in body.items]),
        delivery_address=json.dumps(body.delivery_address.model_dump()),
        requested_delivery_date=body.requested_delivery_date,
        placed_by=body.placed_by,
        role=body.role,
        bypass_credit_limit=body.bypass_credit_limit,
        bypass_reason=body.bypass_reason,
    )
    return OrderIdResponse(order_id=place_order(command))


@order_router.get("/{order_id}")
def get_order(order_id: str) -> dict:
    return current_domain.repository_for(Order).get(order_id).to_dict()


@order_router.put("/{order_id}/status", response_model=StatusResponse)
def change_status(order_id: str, body: UpdateOrderStatusRequest) -> StatusResponse:
    command = UpdateOrderStatus(
        order_id=order_id,
        status=body.status,
        changed_by=body.changed_by,
        role=body.role,
        note=body.note,
    )
    return StatusResponse(status=update_order_status(command))


@order_router.put("/{order_id}/cancel", response_model=StatusResponse)
def cancel(order_id: str, body: CancelOrderRequest) -> StatusResponse:
    cancel_order(CancelOrder(order_id=order_id, reason=body.reason, cancelled_by=body.cancelled_by, role=body.role))
    return StatusResponse(status="cancelled")


@order_router.put("/{order_id}/backorder/approve", response_model=StatusResponse)
def approve(order_id: str, body: ApproveBackorderRequest) -> StatusResponse:
    command = ApproveBackorder(
        order_id=order_id,
        approved_by=body.approved_by,
        role=body.role,
        approved_quantities=json.dumps(body.approved_quantities) if body.approved_quantities else None,
        notes=body.notes,
        expected_fulfillment=body.expected_fulfillment,
    )
    approve_backorder(command)
    return StatusResponse(status="confirmed")


@order_router.put("/{order_id}/backorder/reject", response_model=StatusResponse)
def reject(order_id: str, body: RejectBackorderRequest) -> StatusResponse:
    reject_backorder(
        RejectBackorder(order_id=order_id, reason=body.reason, rejected_by=body.rejected_by, role=body.role)
    )
    return StatusResponse(status="cancelled")


@order_router.put("/{order_id}/items/{item_id}/quantity", response_model=StatusResponse)
def correct_quantity(order_id: str, item_id: str, body: CorrectItemQuantityRequest) -> StatusResponse:
    correct_item_quantity(
        CorrectItemQuantity(order_id=order_id, item_id=item_id, quantity=body.quantity, corrected_by=body.corrected_by)
    )
    return StatusResponse(status="quantity_corrected")


@order_router.put("/{order_id}/dispatch", response_model=StatusResponse)
def dispatch(order_id: str, body: ActorRequest) -> StatusResponse:
    dispatch_order(DispatchOrder(order_id=order_id, dispatched_by=body.actor, role=body.role))
    return StatusResponse(status="out_for_delivery")


@order_router.put("/{order_id}/return", response_model=StatusResponse)
def return_order(order_id: str, body: ReturnToWarehouseRequest) -> StatusResponse:
    return_to_warehouse(
        ReturnToWarehouse(order_id=order_id, reason=body.reason, returned_by=body.returned_by, role=body.role)
    )
    return StatusResponse(status="ready_for_delivery")


@order_router.put("/{order_id}/deliver", response_model=StatusResponse)
def deliver(order_id: str, body: CompleteDeliveryRequest) -> StatusResponse:
    complete_delivery(
        CompleteDelivery(
            order_id=order_id,
            delivered_by=body.delivered_by,
            role=body.role,
            proof_of_delivery=body.proof_of_delivery,
        )
    )
    return StatusResponse(status="delivered")


@order_router.put("/{order_id}/driver", response_model=StatusResponse)
def set_driver(order_id: str, body: AssignDriverRequest) -> StatusResponse:
    assign_driver(
        AssignDriver(
            order_id=order_id,
            driver_id=body.driver_id,
            driver_name=body.driver_name,
            assigned_by=body.assigned_by,
            role=body.role,
        )
    )
    return StatusResponse(status="driver_assigned")


# ---------------------------------------------------------------------------
# Packing Router
# ---------------------------------------------------------------------------
packing_router = APIRouter(prefix="/packing", tags=["packing"])


@packing_router.get("/queue/{delivery_date}")
def packing_queue(delivery_date: str) -> list[dict]:
    controller = PackingSessionController()
    return [
        {
            "order_id": str(o.id),
            "order_number": o.order_number,
            "status": o.status,
            "packing_sequence": o.packing.packing_sequence if o.packing else None,
        }
        for o in controller.queue(delivery_date)
    ]


@packing_router.get("/{order_id}")
def packing_session(order_id: str) -> dict:
    return PackingSessionController().session(order_id)


@packing_router.put("/{order_id}/items/{sku}", response_model=PackResponse)
def pack_item(order_id: str, sku: str, body: PackItemRequest) -> PackResponse:
    version = PackingSessionController().mark_item(
        order_id, sku, packed_by=body.packed_by, packed=body.packed, role=body.role
    )
    return PackResponse(order_id=order_id, version=version)


@packing_router.put("/{order_id}/pause", response_model=StatusResponse)
def pause(order_id: str, body: PausePackingRequest) -> StatusResponse:
    process_locked(PausePacking(order_id=order_id, paused_by=body.paused_by), [order_key(order_id)])
    return StatusResponse(status="paused")


@packing_router.post("/{order_id}/notes", status_code=201, response_model=StatusResponse)
def add_note(order_id: str, body: PackingNoteRequest) -> StatusResponse:
    process_locked(AddPackingNote(order_id=order_id, note=body.note, author=body.author), [order_key(order_id)])
    return StatusResponse(status="note_added")


@packing_router.put("/{order_id}/reset", response_model=StatusResponse)
def reset(order_id: str, body: ResetPackingRequest) -> StatusResponse:
    command = ResetPacking(order_id=order_id, reason=body.reason, reset_by=body.reset_by, role=body.role)
    process_locked(command, [order_key(order_id)])
    return StatusResponse(status="confirmed")


@packing_router.post("/idle-sweep", response_model=StatusResponse)
def idle_sweep(body: IdleSweepRequest) -> StatusResponse:
    released = PackingSessionController().sweep_idle(body.as_of)
    return StatusResponse(status=f"released:{released}")


# ---------------------------------------------------------------------------
# Route Router
# ---------------------------------------------------------------------------
route_router = APIRouter(prefix="/routes", tags=["routes"])


@route_router.post("/packing", status_code=201, response_model=RouteIdResponse)
def optimize_packing(body: OptimizeRouteRequest) -> RouteIdResponse:
    return RouteIdResponse(route_id=optimize_packing_route(body.delivery_date, body.optimized_by))


@route_router.post("/delivery", status_code=201, response_model=RouteIdResponse)
def optimize_delivery(body: OptimizeRouteRequest) -> RouteIdResponse:
    return RouteIdResponse(route_id=optimize_delivery_route(body.delivery_date, body.optimized_by))


@route_router.post("/delivery/ensure")
def ensure_delivery(body: OptimizeRouteRequest) -> dict:
    route = ensure_delivery_route(body.delivery_date, body.optimized_by)
    return route.to_dict() if route else {}


@route_router.get("/delivery/{delivery_date}/stale", response_model=RouteStalenessResponse)
def delivery_staleness(delivery_date: str) -> RouteStalenessResponse:
    return RouteStalenessResponse(delivery_date=delivery_date, stale=delivery_route_is_stale(delivery_date))


@route_router.get("/{route_type}/{delivery_date}")
def get_latest_route(route_type: str, delivery_date: str, driver_id: str | None = None) -> dict:
    try:
        kind = RouteType(route_type)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown route type: {route_type}") from None
    route = latest_route(delivery_date, kind, driver_id)
    if route is None:
        raise HTTPException(status_code=404, detail=f"No {route_type} route for {delivery_date}")
    return route.to_dict()


# ---------------------------------------------------------------------------
# Accounting Router
# ---------------------------------------------------------------------------
accounting_router = APIRouter(prefix="/accounting", tags=["accounting"])


@accounting_router.get("/jobs")
def list_jobs(status: str = JobStatus.PENDING.value) -> list[dict]:
    try:
        wanted = JobStatus(status)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown job status: {status}") from None
    return [job.to_dict() for job in current_domain.repository_for(AccountingJob).find_by_status(wanted)]


@accounting_router.post("/jobs/process")
def process_jobs(body: ProcessAccountingJobsRequest) -> dict:
    return current_domain.process(ProcessAccountingJobs(as_of=body.as_of), asynchronous=False)


@accounting_router.put("/jobs/{job_id}/retry", response_model=StatusResponse)
def retry_job(job_id: str) -> StatusResponse:
    current_domain.process(RetryAccountingJob(job_id=job_id), asynchronous=False)
    return StatusResponse(status="pending")


@accounting_router.post("/gateway/configure", response_model=StatusResponse)
def configure_gateway(body: dict) -> StatusResponse:
    """Configure the fake accounting gateway (non-production only)."""
    if os.environ.get("PROTEAN_ENV") == "production":
        raise HTTPException(status_code=403, detail="Gateway configuration not available in production")

    gateway = get_accounting_gateway()
    if not isinstance(gateway, FakeAccountingGateway):
        raise HTTPException(status_code=400, detail="Gateway configuration only available for FakeAccountingGateway")

    gateway.configure(
        should_succeed=body.get("should_succeed", True),
        retryable=body.get("retryable", True),
        failure_reason=body.get("failure_reason", "Accounting system timeout"),
    )
    return StatusResponse(status="configured")
