from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..api.dependencies import get_app_settings, get_db
from ..auth.jwt import get_current_user, require_roles
from ..config import Settings
from ..constants import RW_BOARD_ROLES
from ..models.models import Bill, User
from ..schemas.schemas import (
    BillHousehold,
    BillListResponse,
    BillRead,
    GenerateBillsRequest,
    GenerateBillsResponse,
    ZoneRead,
)
from ..services.dues import build_bill_query, generate_bills, list_bills
from ..services.zones import list_zones

router = APIRouter()

require_board_admin = require_roles(*RW_BOARD_ROLES)


def _serialize_bill(bill: Bill) -> BillRead:
    household = bill.household
    household_payload = None
    if household is not None:
        household_payload = BillHousehold(
            id=household.id,
            house_number=household.house_number,
            street_name=household.street.name if household.street else None,
            sub_zone_number=household.sub_zone.number if household.sub_zone else None,
            zone=household.zone.name if household.zone else None,
            head_of_household=household.head_resident.full_name if household.head_resident else None,
            is_occupied=bool(household.is_occupied),
        )
    return BillRead(
        id=bill.id,
        household_id=bill.household_id,
        period=bill.period,
        amount=bill.amount,
        status=bill.status,
        amount_paid=bill.amount_paid,
        created_at=bill.created_at,
        household=household_payload,
    )


@router.post("/bills:generate", response_model=GenerateBillsResponse)
def generate_bills_endpoint(
    payload: GenerateBillsRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    actor: User = Depends(require_board_admin),
) -> dict:
    result = generate_bills(db, actor, payload.period, settings)
    return result.to_payload(settings.skipped_preview_limit)


@router.get("/bills", response_model=BillListResponse)
def list_bills_endpoint(
    period: Optional[str] = Query(default=None, description="Billing month as YYYY-MM"),
    status: Optional[str] = Query(default=None),
    sub_zone_id: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> BillListResponse:
    query = build_bill_query(user, period, status=status, sub_zone_id=sub_zone_id)
    return BillListResponse(data=[_serialize_bill(bill) for bill in list_bills(db, query)])


@router.get("/zones", response_model=List[ZoneRead])
def list_zones_endpoint(
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
) -> list:
    return list_zones(db)
