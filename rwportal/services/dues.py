"""Monthly dues (IPL) billing.

Bill generation reconciles the household roster against the tariff rules in
force for a period and the bills that already exist for it, then inserts the
missing bills in one batch. The ``bills`` table carries a unique constraint
on (household, period); the batch insert ignores rows that hit it, so a run
that races another run for the same period skips those households instead
of failing.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence, Set

from sqlalchemy import insert, or_
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..config import Settings
from ..constants import BILL_STATUS_UNPAID, BILL_STATUSES
from ..core.errors import Forbidden, InvalidInput, PersistenceError, Unauthenticated
from ..models.models import Bill, Household, TariffRule, User, utcnow
from .audit import audit_log
from .zones import NamedZone, ZoneScope, resolve_default_zone_id, scope_from_zone_id, scope_matches

logger = logging.getLogger(__name__)

PERIOD_PATTERN = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


def parse_period(value: Optional[str]) -> date:
    """Parse ``YYYY-MM`` into the canonical first-of-month date."""
    if not isinstance(value, str) or not PERIOD_PATTERN.match(value):
        raise InvalidInput("Invalid period format. Use YYYY-MM")
    year, month = value.split("-")
    return date(int(year), int(month), 1)


def _ensure_decimal(amount: Decimal | float | int) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))


@dataclass(frozen=True)
class RosterEntry:
    household_id: int
    zone_id: Optional[int]
    is_occupied: bool
    address: str
    zone_name: Optional[str] = None


@dataclass(frozen=True)
class ActiveTariff:
    id: int
    scope: ZoneScope
    occupied_rate: Decimal
    unoccupied_rate: Optional[Decimal]
    effective_start: date

    def applies_to(self, zone_id: Optional[int]) -> bool:
        return scope_matches(self.scope, zone_id)

    def rate_for(self, is_occupied: bool) -> Decimal:
        if is_occupied or self.unoccupied_rate is None:
            return self.occupied_rate
        return self.unoccupied_rate


@dataclass(frozen=True)
class StagedBill:
    household_id: int
    address: str
    amount: Decimal


@dataclass
class BillPlan:
    period: date
    total_households: int = 0
    staged: List[StagedBill] = field(default_factory=list)
    skipped: List[RosterEntry] = field(default_factory=list)
    no_tariff: List[RosterEntry] = field(default_factory=list)


def order_tariffs(tariffs: Iterable[ActiveTariff]) -> List[ActiveTariff]:
    """Latest start first; on equal starts a zone-specific rule precedes an all-zones one."""
    return sorted(
        tariffs,
        key=lambda t: (t.effective_start, isinstance(t.scope, NamedZone), t.id),
        reverse=True,
    )


def select_tariff(ordered: Sequence[ActiveTariff], zone_id: Optional[int]) -> Optional[ActiveTariff]:
    for tariff in ordered:
        if tariff.applies_to(zone_id):
            return tariff
    return None


def plan_bills(
    period: date,
    roster: Sequence[RosterEntry],
    tariffs: Iterable[ActiveTariff],
    billed_household_ids: Set[int],
    default_zone_id: Optional[int] = None,
) -> BillPlan:
    ordered = order_tariffs(tariffs)
    plan = BillPlan(period=period, total_households=len(roster))
    for household in roster:
        if household.household_id in billed_household_ids:
            plan.skipped.append(household)
            continue

        zone_id = household.zone_id if household.zone_id is not None else default_zone_id
        tariff = select_tariff(ordered, zone_id)
        if tariff is None:
            plan.no_tariff.append(household)
            continue

        plan.staged.append(
            StagedBill(
                household_id=household.household_id,
                address=household.address,
                amount=tariff.rate_for(household.is_occupied),
            )
        )
    return plan


class DuesRepository:
    """Roster, tariff, and ledger access for bill generation."""

    def __init__(self, session: Session):
        self.session = session

    def load_roster(self) -> List[RosterEntry]:
        households = (
            self.session.query(Household)
            .options(joinedload(Household.street), joinedload(Household.zone))
            .order_by(Household.id.asc())
            .all()
        )
        return [
            RosterEntry(
                household_id=household.id,
                zone_id=household.zone_id,
                is_occupied=bool(household.is_occupied),
                address=household.address,
                zone_name=household.zone.name if household.zone else None,
            )
            for household in households
        ]

    def load_active_tariffs(self, period: date) -> List[ActiveTariff]:
        rules = (
            self.session.query(TariffRule)
            .filter(TariffRule.effective_start <= period)
            .filter(or_(TariffRule.effective_end.is_(None), TariffRule.effective_end >= period))
            .order_by(TariffRule.effective_start.desc(), TariffRule.id.desc())
            .all()
        )
        return [
            ActiveTariff(
                id=rule.id,
                scope=scope_from_zone_id(rule.zone_id),
                occupied_rate=_ensure_decimal(rule.occupied_rate),
                unoccupied_rate=_ensure_decimal(rule.unoccupied_rate) if rule.unoccupied_rate is not None else None,
                effective_start=rule.effective_start,
            )
            for rule in rules
        ]

    def billed_household_ids(self, period: date) -> Set[int]:
        rows = self.session.query(Bill.household_id).filter(Bill.period == period).all()
        return {row[0] for row in rows}

    def insert_bills(self, period: date, staged: Sequence[StagedBill]) -> Set[int]:
        """Insert staged bills in one statement; returns the household ids actually written."""
        if not staged:
            return set()
        created_at = utcnow()
        rows = [
            {
                "household_id": bill.household_id,
                "period": period,
                "amount": bill.amount,
                "status": BILL_STATUS_UNPAID,
                "amount_paid": Decimal("0"),
                "created_at": created_at,
            }
            for bill in staged
        ]
        dialect = self.session.get_bind().dialect.name
        if dialect in ("sqlite", "postgresql"):
            dialect_insert = sqlite.insert if dialect == "sqlite" else postgresql.insert
            stmt = (
                dialect_insert(Bill)
                .values(rows)
                .on_conflict_do_nothing(index_elements=["household_id", "period"])
                .returning(Bill.household_id)
            )
            return {row[0] for row in self.session.execute(stmt)}

        # Other stores surface duplicates as integrity errors.
        self.session.execute(insert(Bill), rows)
        return {bill.household_id for bill in staged}


@dataclass
class GenerationResult:
    period: date
    total_households: int
    inserted: int
    skipped: List[str]
    no_tariff: List[str]

    def to_payload(self, preview_limit: int = 10) -> dict:
        return {
            "success": True,
            "period": self.period.isoformat(),
            "summary": {
                "total_households": self.total_households,
                "inserted": self.inserted,
                "skipped": len(self.skipped),
                "no_tarif": len(self.no_tariff),
            },
            "details": {
                "skipped_list": self.skipped[:preview_limit],
                "no_tarif_list": list(self.no_tariff),
            },
            "message": f"Created {self.inserted} bills for {self.period.strftime('%Y-%m')}",
        }


def _store_message(exc: SQLAlchemyError) -> str:
    return str(getattr(exc, "orig", None) or exc)


def ensure_board_admin(user: Optional[User]) -> User:
    if user is None:
        raise Unauthenticated()
    if not user.is_rw_board:
        raise Forbidden()
    return user


def generate_bills(
    session: Session,
    user: Optional[User],
    period_input: Optional[str],
    settings: Settings,
    repository: Optional[DuesRepository] = None,
) -> GenerationResult:
    period = parse_period(period_input)
    actor = ensure_board_admin(user)
    repo = repository or DuesRepository(session)

    try:
        roster = repo.load_roster()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Failed to fetch households for %s", period)
        raise PersistenceError(f"Failed to fetch households: {_store_message(exc)}") from exc
    try:
        tariffs = repo.load_active_tariffs(period)
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Failed to fetch tariffs for %s", period)
        raise PersistenceError(f"Failed to fetch tariffs: {_store_message(exc)}") from exc
    try:
        billed = repo.billed_household_ids(period)
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Failed to fetch existing bills for %s", period)
        raise PersistenceError(f"Failed to fetch existing bills: {_store_message(exc)}") from exc
    try:
        default_zone_id = resolve_default_zone_id(session, settings.default_zone_name)
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Failed to resolve default zone %r", settings.default_zone_name)
        raise PersistenceError(f"Failed to fetch zones: {_store_message(exc)}") from exc

    plan = plan_bills(period, roster, tariffs, billed, default_zone_id)

    try:
        written = repo.insert_bills(period, plan.staged)
        raced = [bill for bill in plan.staged if bill.household_id not in written]
        result = GenerationResult(
            period=period,
            total_households=plan.total_households,
            inserted=len(written),
            skipped=[entry.address for entry in plan.skipped] + [bill.address for bill in raced],
            no_tariff=[f"{entry.address} ({entry.zone_name or '-'})" for entry in plan.no_tariff],
        )
        audit_log(
            db_session=session,
            actor_user_id=actor.id,
            action="dues.bills.generate",
            target_entity_type="BillPeriod",
            target_entity_id=period.isoformat(),
            after={
                "inserted": result.inserted,
                "skipped": len(result.skipped),
                "no_tarif": len(result.no_tariff),
            },
            commit=False,
        )
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Failed to insert bills for %s", period)
        raise PersistenceError(f"Failed to insert bills: {_store_message(exc)}") from exc

    if raced:
        logger.warning(
            "Skipped %d households for %s already billed by a concurrent run", len(raced), period
        )
    logger.info(
        "Generated dues bills",
        extra={
            "period": period.isoformat(),
            "total_households": result.total_households,
            "inserted": result.inserted,
            "skipped": len(result.skipped),
            "no_tarif": len(result.no_tariff),
        },
    )
    return result


@dataclass(frozen=True)
class BillQuery:
    """Filters for a bill listing, built once per request."""

    period: Optional[date] = None
    status: Optional[str] = None
    household_id: Optional[int] = None
    sub_zone_id: Optional[int] = None
    match_nothing: bool = False


def build_bill_query(
    user: User,
    period_input: Optional[str] = None,
    status: Optional[str] = None,
    sub_zone_id: Optional[int] = None,
) -> BillQuery:
    period = parse_period(period_input) if period_input else None
    if status is not None and status not in BILL_STATUSES:
        raise InvalidInput(f"Invalid status. Use one of: {', '.join(BILL_STATUSES)}")

    if user.is_rw_board:
        return BillQuery(period=period, status=status, sub_zone_id=sub_zone_id)
    if user.is_rt_board:
        if user.sub_zone_id is None:
            return BillQuery(match_nothing=True)
        return BillQuery(period=period, status=status, sub_zone_id=user.sub_zone_id)
    if user.household_id is None:
        return BillQuery(match_nothing=True)
    return BillQuery(period=period, status=status, household_id=user.household_id)


def list_bills(session: Session, query: BillQuery) -> List[Bill]:
    if query.match_nothing:
        return []

    statement = session.query(Bill).options(
        joinedload(Bill.household).joinedload(Household.street),
        joinedload(Bill.household).joinedload(Household.sub_zone),
        joinedload(Bill.household).joinedload(Household.zone),
        joinedload(Bill.household).joinedload(Household.head_resident),
    )
    if query.period is not None:
        statement = statement.filter(Bill.period == query.period)
    if query.status is not None:
        statement = statement.filter(Bill.status == query.status)
    if query.household_id is not None:
        statement = statement.filter(Bill.household_id == query.household_id)
    if query.sub_zone_id is not None:
        statement = statement.join(Household, Bill.household_id == Household.id).filter(
            Household.sub_zone_id == query.sub_zone_id
        )

    try:
        return statement.order_by(Bill.period.desc(), Bill.household_id.asc()).all()
    except SQLAlchemyError as exc:
        logger.exception("Failed to list bills")
        raise PersistenceError(f"Failed to get bills: {_store_message(exc)}") from exc
