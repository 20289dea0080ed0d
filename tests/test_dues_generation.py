import json
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from rwportal.core.errors import Forbidden, InvalidInput, PersistenceError, Unauthenticated
from rwportal.models.models import AuditLog, Bill
from rwportal.services.dues import DuesRepository, generate_bills

PERIOD = date(2024, 3, 1)


@pytest.fixture
def scenario(create_zone, create_household, create_tariff, create_user):
    timur = create_zone("Timur")
    barat = create_zone("Barat")
    households = [
        create_household(zone=timur, occupied=True),
        create_household(zone=timur, occupied=False),
        create_household(zone=barat, occupied=True),
    ]
    create_tariff(zone=timur, occupied_rate="200000", unoccupied_rate="150000", start=date(2024, 1, 1))
    create_tariff(zone=None, occupied_rate="100000", start=date(2023, 1, 1))
    board = create_user(email="ketua@example.com", role="ketua_rw")
    return {"households": households, "board": board, "timur": timur, "barat": barat}


def _bills_by_household(db_session):
    db_session.expire_all()
    return {bill.household_id: bill for bill in db_session.query(Bill).filter(Bill.period == PERIOD).all()}


def test_generates_bills_for_every_household(db_session, settings, scenario):
    h1, h2, h3 = scenario["households"]

    result = generate_bills(db_session, scenario["board"], "2024-03", settings)

    assert result.inserted == 3
    assert result.skipped == []
    assert result.no_tariff == []
    bills = _bills_by_household(db_session)
    assert bills[h1.id].amount == Decimal("200000")
    assert bills[h2.id].amount == Decimal("150000")
    assert bills[h3.id].amount == Decimal("100000")
    for bill in bills.values():
        assert bill.status == "unpaid"
        assert bill.amount_paid == Decimal("0")


def test_second_run_skips_every_household(db_session, settings, scenario):
    generate_bills(db_session, scenario["board"], "2024-03", settings)
    second = generate_bills(db_session, scenario["board"], "2024-03", settings)

    assert second.inserted == 0
    assert len(second.skipped) == 3
    assert db_session.query(Bill).count() == 3


def test_already_billed_household_is_not_billed_again(db_session, settings, scenario):
    h1 = scenario["households"][0]
    db_session.add(Bill(household_id=h1.id, period=PERIOD, amount=Decimal("5000"), status="paid", amount_paid=Decimal("5000")))
    db_session.commit()

    result = generate_bills(db_session, scenario["board"], "2024-03", settings)

    assert result.inserted == 2
    assert result.skipped == ["Jl. Melati No.1"]
    bills = _bills_by_household(db_session)
    assert bills[h1.id].amount == Decimal("5000")
    assert bills[h1.id].status == "paid"


def test_household_without_tariff_is_listed(db_session, settings, create_zone, create_household, create_tariff, create_user):
    timur = create_zone("Timur")
    utara = create_zone("Utara")
    create_household(zone=utara)
    create_tariff(zone=timur, occupied_rate="200000")
    board = create_user(role="bendahara_rw")

    result = generate_bills(db_session, board, "2024-03", settings)

    assert result.inserted == 0
    assert result.no_tariff == ["Jl. Melati No.1 (Utara)"]
    payload = result.to_payload()
    assert payload["summary"]["no_tarif"] == 1
    assert payload["details"]["no_tarif_list"] == ["Jl. Melati No.1 (Utara)"]


def test_household_without_zone_is_billed_with_default_zone(db_session, settings, create_zone, create_household, create_tariff, create_user):
    timur = create_zone("Timur")
    household = create_household(zone=None)
    create_tariff(zone=timur, occupied_rate="175000")
    board = create_user(role="sekretaris_rw")

    result = generate_bills(db_session, board, "2024-03", settings)

    assert result.inserted == 1
    assert _bills_by_household(db_session)[household.id].amount == Decimal("175000")


def test_tariff_window_limits_applicable_rules(db_session, settings, create_zone, create_household, create_tariff, create_user):
    timur = create_zone("Timur")
    household = create_household(zone=timur)
    create_tariff(zone=timur, occupied_rate="90000", start=date(2023, 1, 1), end=date(2024, 2, 1))
    create_tariff(zone=timur, occupied_rate="300000", start=date(2024, 4, 1))
    create_tariff(zone=timur, occupied_rate="120000", start=date(2023, 6, 1), end=date(2024, 3, 1))
    board = create_user()

    generate_bills(db_session, board, "2024-03", settings)

    assert _bills_by_household(db_session)[household.id].amount == Decimal("120000")


def test_bill_claimed_by_concurrent_run_is_counted_as_skipped(db_session, settings, scenario):
    h1 = scenario["households"][0]

    class StaleIndexRepository(DuesRepository):
        def billed_household_ids(self, period):
            # Another run inserts H1 between the existing-bill read and our insert.
            self.session.add(Bill(household_id=h1.id, period=period, amount=Decimal("200000")))
            self.session.flush()
            return set()

    result = generate_bills(
        db_session, scenario["board"], "2024-03", settings, repository=StaleIndexRepository(db_session)
    )

    assert result.inserted == 2
    assert result.skipped == ["Jl. Melati No.1"]
    assert db_session.query(Bill).filter(Bill.household_id == h1.id).count() == 1
    assert db_session.query(Bill).count() == 3


def test_failed_batch_insert_creates_no_bills(db_session, settings, scenario):
    class FailingRepository(DuesRepository):
        def insert_bills(self, period, staged):
            super().insert_bills(period, staged)
            raise OperationalError("INSERT INTO bills", {}, Exception("disk I/O error"))

    with pytest.raises(PersistenceError) as excinfo:
        generate_bills(db_session, scenario["board"], "2024-03", settings, repository=FailingRepository(db_session))

    assert "Failed to insert bills" in str(excinfo.value)
    assert "disk I/O error" in str(excinfo.value)
    assert db_session.query(Bill).count() == 0
    assert db_session.query(AuditLog).count() == 0


def test_failed_roster_read_raises_persistence_error(db_session, settings, scenario):
    class BrokenRoster(DuesRepository):
        def load_roster(self):
            raise OperationalError("SELECT", {}, Exception("connection refused"))

    with pytest.raises(PersistenceError, match="Failed to fetch households"):
        generate_bills(db_session, scenario["board"], "2024-03", settings, repository=BrokenRoster(db_session))


def test_failed_default_zone_lookup_is_reported_as_zone_read(db_session, settings, scenario, monkeypatch):
    def broken_lookup(session, name):
        raise OperationalError("SELECT", {}, Exception("connection reset"))

    monkeypatch.setattr("rwportal.services.dues.resolve_default_zone_id", broken_lookup)

    with pytest.raises(PersistenceError) as excinfo:
        generate_bills(db_session, scenario["board"], "2024-03", settings)

    assert "Failed to fetch zones" in str(excinfo.value)
    assert "existing bills" not in str(excinfo.value)
    assert db_session.query(Bill).count() == 0


class RecordingRepository:
    def __init__(self):
        self.calls = []

    def load_roster(self):
        self.calls.append("load_roster")
        return []

    def load_active_tariffs(self, period):
        self.calls.append("load_active_tariffs")
        return []

    def billed_household_ids(self, period):
        self.calls.append("billed_household_ids")
        return set()

    def insert_bills(self, period, staged):
        self.calls.append("insert_bills")
        return set()


@pytest.mark.parametrize("period", ["2024-13", "2024-3"])
def test_invalid_period_fails_before_any_store_call(db_session, settings, create_user, period):
    repository = RecordingRepository()

    with pytest.raises(InvalidInput):
        generate_bills(db_session, create_user(), period, settings, repository=repository)

    assert repository.calls == []


def test_generation_requires_caller(db_session, settings):
    repository = RecordingRepository()

    with pytest.raises(Unauthenticated):
        generate_bills(db_session, None, "2024-03", settings, repository=repository)
    assert repository.calls == []


@pytest.mark.parametrize("role", ["ketua_rt", "bendahara_rt", "warga"])
def test_generation_requires_board_admin_role(db_session, settings, create_user, role):
    repository = RecordingRepository()

    with pytest.raises(Forbidden):
        generate_bills(db_session, create_user(role=role), "2024-03", settings, repository=repository)
    assert repository.calls == []


def test_generation_is_audited(db_session, settings, scenario):
    generate_bills(db_session, scenario["board"], "2024-03", settings)

    entry = db_session.query(AuditLog).filter(AuditLog.action == "dues.bills.generate").one()
    assert entry.actor_user_id == scenario["board"].id
    assert entry.target_entity_id == "2024-03-01"
    assert json.loads(entry.after) == {"inserted": 3, "skipped": 0, "no_tarif": 0}


def test_summary_preview_is_bounded(db_session, settings, create_zone, create_household, create_tariff, create_user):
    timur = create_zone("Timur")
    for _ in range(12):
        create_household(zone=timur)
    create_tariff(zone=timur, occupied_rate="100000")
    board = create_user()
    generate_bills(db_session, board, "2024-03", settings)

    payload = generate_bills(db_session, board, "2024-03", settings).to_payload(preview_limit=10)

    assert payload["summary"] == {"total_households": 12, "inserted": 0, "skipped": 12, "no_tarif": 0}
    assert len(payload["details"]["skipped_list"]) == 10
    assert payload["period"] == "2024-03-01"
