from datetime import date
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.errors import InvalidInput, NotFound
from ..models.models import TariffRule, User
from ..schemas.schemas import TariffCreate, TariffRead, TariffUpdate
from .audit import audit_log
from .zones import resolve_scope, scope_from_zone_id, scope_label, scope_to_zone_id, zone_names


def _month_start(value: Optional[date]) -> Optional[date]:
    return value.replace(day=1) if value is not None else None


def _snapshot(rule: TariffRule) -> Dict[str, object]:
    return {
        "zone_id": rule.zone_id,
        "occupied_rate": str(rule.occupied_rate),
        "unoccupied_rate": str(rule.unoccupied_rate) if rule.unoccupied_rate is not None else None,
        "effective_start": rule.effective_start.isoformat(),
        "effective_end": rule.effective_end.isoformat() if rule.effective_end else None,
        "note": rule.note,
    }


def serialize_tariff(rule: TariffRule, names: Dict[int, str]) -> TariffRead:
    return TariffRead(
        id=rule.id,
        zone=scope_label(scope_from_zone_id(rule.zone_id), names),
        occupied_rate=rule.occupied_rate,
        unoccupied_rate=rule.unoccupied_rate,
        effective_start=rule.effective_start,
        effective_end=rule.effective_end,
        note=rule.note,
        created_at=rule.created_at,
    )


def list_tariffs(session: Session) -> List[TariffRule]:
    return (
        session.query(TariffRule)
        .order_by(TariffRule.effective_start.desc(), TariffRule.id.desc())
        .all()
    )


def get_tariff(session: Session, tariff_id: int) -> TariffRule:
    rule = session.get(TariffRule, tariff_id)
    if rule is None:
        raise NotFound("Tariff not found")
    return rule


def create_tariff(session: Session, payload: TariffCreate, actor: User) -> TariffRule:
    scope = resolve_scope(session, payload.zone)
    rule = TariffRule(
        zone_id=scope_to_zone_id(scope),
        occupied_rate=payload.occupied_rate,
        unoccupied_rate=payload.unoccupied_rate,
        effective_start=_month_start(payload.effective_start),
        effective_end=_month_start(payload.effective_end),
        note=payload.note,
        created_by_user_id=actor.id,
    )
    session.add(rule)
    session.flush()
    audit_log(
        db_session=session,
        actor_user_id=actor.id,
        action="dues.tariff.create",
        target_entity_type="TariffRule",
        target_entity_id=str(rule.id),
        after=_snapshot(rule),
        commit=False,
    )
    session.commit()
    session.refresh(rule)
    return rule


def update_tariff(session: Session, tariff_id: int, payload: TariffUpdate, actor: User) -> TariffRule:
    rule = get_tariff(session, tariff_id)
    before = _snapshot(rule)
    changes = payload.model_dump(exclude_unset=True)

    if "zone" in changes:
        rule.zone_id = scope_to_zone_id(resolve_scope(session, changes.pop("zone")))
    if "occupied_rate" in changes:
        if changes["occupied_rate"] is None:
            raise InvalidInput("occupied_rate is required")
        rule.occupied_rate = changes.pop("occupied_rate")
    if "effective_start" in changes:
        if changes["effective_start"] is None:
            raise InvalidInput("effective_start is required")
        rule.effective_start = _month_start(changes.pop("effective_start"))
    if "effective_end" in changes:
        rule.effective_end = _month_start(changes.pop("effective_end"))
    for key, value in changes.items():
        setattr(rule, key, value)

    if rule.effective_end is not None and rule.effective_end < rule.effective_start:
        session.rollback()
        raise InvalidInput("effective_end must not precede effective_start")

    session.add(rule)
    session.flush()
    audit_log(
        db_session=session,
        actor_user_id=actor.id,
        action="dues.tariff.update",
        target_entity_type="TariffRule",
        target_entity_id=str(rule.id),
        before=before,
        after=_snapshot(rule),
        commit=False,
    )
    session.commit()
    session.refresh(rule)
    return rule


def delete_tariff(session: Session, tariff_id: int, actor: User) -> None:
    rule = get_tariff(session, tariff_id)
    before = _snapshot(rule)
    session.delete(rule)
    audit_log(
        db_session=session,
        actor_user_id=actor.id,
        action="dues.tariff.delete",
        target_entity_type="TariffRule",
        target_entity_id=str(tariff_id),
        before=before,
        commit=False,
    )
    session.commit()


def serialize_tariffs(session: Session, rules: List[TariffRule]) -> List[TariffRead]:
    names = zone_names(session)
    return [serialize_tariff(rule, names) for rule in rules]
