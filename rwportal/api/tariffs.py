from typing import List

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..models.models import User
from ..schemas.schemas import TariffCreate, TariffRead, TariffUpdate
from ..services import tariffs as tariff_service
from .dues import require_board_admin

router = APIRouter()


@router.get("/tariffs", response_model=List[TariffRead])
def list_tariffs(
    db: Session = Depends(get_db),
    _: User = Depends(require_board_admin),
) -> List[TariffRead]:
    return tariff_service.serialize_tariffs(db, tariff_service.list_tariffs(db))


@router.post("/tariffs", response_model=TariffRead, status_code=201)
def create_tariff(
    payload: TariffCreate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_board_admin),
) -> TariffRead:
    rule = tariff_service.create_tariff(db, payload, actor)
    return tariff_service.serialize_tariffs(db, [rule])[0]


@router.patch("/tariffs/{tariff_id}", response_model=TariffRead)
def update_tariff(
    tariff_id: int,
    payload: TariffUpdate,
    db: Session = Depends(get_db),
    actor: User = Depends(require_board_admin),
) -> TariffRead:
    rule = tariff_service.update_tariff(db, tariff_id, payload, actor)
    return tariff_service.serialize_tariffs(db, [rule])[0]


@router.delete("/tariffs/{tariff_id}", status_code=204)
def delete_tariff(
    tariff_id: int,
    db: Session = Depends(get_db),
    actor: User = Depends(require_board_admin),
) -> Response:
    tariff_service.delete_tariff(db, tariff_id, actor)
    return Response(status_code=204)
