"""
Order lifecycle API endpoints.

Creation, dispatch assignment, status transitions, priority changes, route
recording and tracking history. Domain errors propagate to the application
exception handler, which maps each error family to its HTTP status.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query, status

from freightdesk.api.deps import CurrentIdentity, OrderServiceDep
from freightdesk.core.logging import get_logger
from freightdesk.schemas.orders import (
    OrderAssignRequest,
    OrderCreateRequest,
    OrderListResponse,
    OrderPriorityUpdateRequest,
    OrderResponse,
    OrderStatusUpdateRequest,
    OrderTransitionResponse,
    RouteResponse,
)
from freightdesk.schemas.tracking import TrackingEventResponse, TrackingHistoryResponse
from freightdesk.services.maps.geocoder import Coordinate
from freightdesk.services.orders.ledger import fold_status

logger = get_logger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create order",
)
async def create_order(
    request: OrderCreateRequest,
    identity: CurrentIdentity,
    service: OrderServiceDep,
) -> OrderResponse:
    """Create an order in the initial status. No tracking event is written."""
    logger.info("Creating order", customer_id=str(request.customer_id))

    order = await service.create_order(**request.to_service_kwargs())
    return OrderResponse.model_validate(order)


@router.get(
    "",
    response_model=OrderListResponse,
    summary="List orders",
)
async def list_orders(
    identity: CurrentIdentity,
    service: OrderServiceDep,
    status_filter: Optional[str] = Query(None, alias="status", max_length=32),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
) -> OrderListResponse:
    orders, total = await service.list_orders(status=status_filter, skip=skip, limit=limit)
    return OrderListResponse(
        items=[OrderResponse.model_validate(o) for o in orders],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order",
)
async def get_order(
    order_id: UUID,
    identity: CurrentIdentity,
    service: OrderServiceDep,
) -> OrderResponse:
    order = await service.get_order(order_id)
    return OrderResponse.model_validate(order)


@router.patch(
    "/{order_id}/assign",
    response_model=OrderResponse,
    summary="Assign vehicle, driver and handler",
)
async def assign_order(
    order_id: UUID,
    request: OrderAssignRequest,
    identity: CurrentIdentity,
    service: OrderServiceDep,
) -> OrderResponse:
    """
    Attach a vehicle, a driver and optionally a handler to an order.

    The order's status does not change; move it to ASSIGNED separately.
    """
    logger.info(
        "Assigning order",
        order_id=str(order_id),
        vehicle_id=str(request.vehicle_id),
        driver_id=str(request.driver_id),
    )
    order, _ = await service.assign(
        order_id,
        vehicle_id=request.vehicle_id,
        driver_id=request.driver_id,
        handler_id=request.handler_id,
    )
    return OrderResponse.model_validate(order)


@router.patch(
    "/{order_id}/status",
    response_model=OrderTransitionResponse,
    summary="Transition order status",
)
async def update_order_status(
    order_id: UUID,
    request: OrderStatusUpdateRequest,
    identity: CurrentIdentity,
    service: OrderServiceDep,
) -> OrderTransitionResponse:
    """
    Move an order to a new status and append one tracking event.

    Errors:
        404 order not found or postal code does not geocode,
        409 illegal transition, missing assignment or concurrent update,
        422 unknown status, 502 geocoding provider failure
    """
    coordinate = (
        Coordinate(request.coordinate.latitude, request.coordinate.longitude)
        if request.coordinate
        else None
    )

    logger.info(
        "Updating order status",
        order_id=str(order_id),
        target_status=request.status,
    )
    order, event = await service.transition(
        order_id,
        request.status,
        location=request.location,
        postal_code=request.postal_code,
        coordinate=coordinate,
        notes=request.notes,
    )
    return OrderTransitionResponse(
        order=OrderResponse.model_validate(order),
        event=TrackingEventResponse.model_validate(event),
    )


@router.patch(
    "/{order_id}/priority",
    response_model=OrderResponse,
    summary="Change order priority",
)
async def update_order_priority(
    order_id: UUID,
    request: OrderPriorityUpdateRequest,
    identity: CurrentIdentity,
    service: OrderServiceDep,
) -> OrderResponse:
    order = await service.update_priority(order_id, request.priority)
    return OrderResponse.model_validate(order)


@router.post(
    "/{order_id}/route",
    response_model=RouteResponse,
    summary="Record driving route",
)
async def record_order_route(
    order_id: UUID,
    identity: CurrentIdentity,
    service: OrderServiceDep,
) -> RouteResponse:
    """Compute the driving distance between pickup and delivery and store it on the order."""
    order, route = await service.record_route(order_id)
    return RouteResponse(
        order=OrderResponse.model_validate(order),
        miles=route.miles,
        duration_minutes=route.duration_minutes,
        distance_text=route.distance_text,
        duration_text=route.duration_text,
    )


@router.get(
    "/{order_id}/tracking",
    response_model=TrackingHistoryResponse,
    summary="Get tracking history",
)
async def get_order_tracking(
    order_id: UUID,
    identity: CurrentIdentity,
    service: OrderServiceDep,
) -> TrackingHistoryResponse:
    """Tracking events ordered by time, with the status they fold to."""
    events = await service.tracking(order_id)
    return TrackingHistoryResponse(
        order_id=order_id,
        current_status=fold_status(events, service.vocabulary),
        events=[TrackingEventResponse.model_validate(e) for e in events],
    )
