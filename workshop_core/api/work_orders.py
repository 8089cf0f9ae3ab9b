"""
Work Order API Routes.

1. POST /work-orders/from-appointment/{appointment_id} - Hand an approved appointment to the shop floor
2. GET /work-orders/{id} - Fetch a work order
3. POST /work-orders/{id}/recheck-parts - Re-query inventory for a work order on hold
"""

from uuid import UUID

from fastapi import APIRouter, status

from ..core import AdminDep
from ..models import WorkOrderStatus
from ..schemas import PartsAvailabilitySchema, WorkOrderCreatedResponse, WorkOrderResponse
from ..services import (
    AlreadyExistsError,
    ConflictError,
    DependencyUnavailableError,
    InvalidServiceTypeError,
    NotApprovedError,
    NotFoundError,
    WorkOrderResult,
)
from .dependencies import SynthesizerDep, http_error

router = APIRouter(prefix="/work-orders", tags=["work-orders"])


def build_created_response(result: WorkOrderResult) -> WorkOrderCreatedResponse:
    """Convert a synthesis result to the API response."""
    work_order = result.work_order
    availability = result.parts_availability

    if work_order.status is WorkOrderStatus.READY_TO_START:
        message = f"Work order #{work_order.work_order_number} created and ready to start"
    elif not availability.availability_known:
        message = (
            f"Work order #{work_order.work_order_number} created on hold: "
            "parts availability could not be checked"
        )
    else:
        message = (
            f"Work order #{work_order.work_order_number} created on hold: "
            f"{len(availability.missing_parts)} part(s) short"
        )

    return WorkOrderCreatedResponse(
        work_order=WorkOrderResponse.model_validate(work_order),
        parts_availability=PartsAvailabilitySchema.model_validate(availability.to_dict()),
        message=message,
    )


@router.post(
    "/from-appointment/{appointment_id}",
    response_model=WorkOrderCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a work order from an approved appointment",
    description="""
    Checks required parts, then creates the work order as ready_to_start
    (everything in stock) or on_hold (a part is short, or inventory could
    not be reached).

    At most one work order exists per appointment; a second call returns
    409 with error `work_order_exists`.
    """,
)
async def create_from_appointment(
    appointment_id: UUID,
    current_user: AdminDep,
    synthesizer: SynthesizerDep,
):
    try:
        result = await synthesizer.create_from_appointment(
            appointment_id, created_by=current_user.id
        )
    except NotFoundError as e:
        raise http_error(status.HTTP_404_NOT_FOUND, e)
    except NotApprovedError as e:
        raise http_error(status.HTTP_409_CONFLICT, e)
    except InvalidServiceTypeError as e:
        raise http_error(status.HTTP_422_UNPROCESSABLE_CONTENT, e)
    except AlreadyExistsError as e:
        raise http_error(status.HTTP_409_CONFLICT, e)
    except DependencyUnavailableError as e:
        # Catalog outage; inventory outages are absorbed by the synthesizer
        raise http_error(status.HTTP_503_SERVICE_UNAVAILABLE, e)

    return build_created_response(result)


@router.get(
    "/{work_order_id}",
    response_model=WorkOrderResponse,
    summary="Get a work order",
)
async def get_work_order(
    work_order_id: UUID,
    current_user: AdminDep,
    synthesizer: SynthesizerDep,
):
    try:
        work_order = await synthesizer.get_work_order(work_order_id)
    except NotFoundError as e:
        raise http_error(status.HTTP_404_NOT_FOUND, e)

    return WorkOrderResponse.model_validate(work_order)


@router.post(
    "/{work_order_id}/recheck-parts",
    response_model=WorkOrderResponse,
    summary="Re-check parts for a work order that has not started",
)
async def recheck_parts(
    work_order_id: UUID,
    current_user: AdminDep,
    synthesizer: SynthesizerDep,
):
    try:
        result = await synthesizer.recheck_parts(work_order_id)
    except NotFoundError as e:
        raise http_error(status.HTTP_404_NOT_FOUND, e)
    except ConflictError as e:
        raise http_error(status.HTTP_409_CONFLICT, e)
    except InvalidServiceTypeError as e:
        raise http_error(status.HTTP_422_UNPROCESSABLE_CONTENT, e)
    except DependencyUnavailableError as e:
        raise http_error(status.HTTP_503_SERVICE_UNAVAILABLE, e)

    return WorkOrderResponse.model_validate(result.work_order)
