from datetime import date
from decimal import Decimal

import pytest

from rwportal.core.errors import InvalidInput
from rwportal.services.dues import ActiveTariff, RosterEntry, order_tariffs, parse_period, plan_bills, select_tariff
from rwportal.services.zones import ALL_ZONES, NamedZone

TIMUR = 1
BARAT = 2
PERIOD = date(2024, 3, 1)


def _tariff(tariff_id, scope, occupied, unoccupied=None, start=date(2024, 1, 1)):
    return ActiveTariff(
        id=tariff_id,
        scope=scope,
        occupied_rate=Decimal(occupied),
        unoccupied_rate=Decimal(unoccupied) if unoccupied is not None else None,
        effective_start=start,
    )


def _household(household_id, zone_id, occupied=True):
    return RosterEntry(
        household_id=household_id,
        zone_id=zone_id,
        is_occupied=occupied,
        address=f"Jl. Melati No.{household_id}",
    )


@pytest.mark.parametrize("value", ["2024-13", "2024-3", "2024-00", "24-03", "2024/03", "", None, "2024-03-01"])
def test_parse_period_rejects_malformed_input(value):
    with pytest.raises(InvalidInput):
        parse_period(value)


def test_parse_period_returns_first_day_of_month():
    assert parse_period("2024-03") == date(2024, 3, 1)
    assert parse_period("1999-12") == date(1999, 12, 1)


def test_latest_effective_start_wins():
    older = _tariff(1, NamedZone(TIMUR), "100000", start=date(2024, 1, 1))
    newer = _tariff(2, NamedZone(TIMUR), "125000", start=date(2024, 6, 1))

    selected = select_tariff(order_tariffs([older, newer]), TIMUR)

    assert selected is newer


def test_zone_specific_rule_beats_all_zones_rule_with_same_start():
    wildcard = _tariff(5, ALL_ZONES, "90000", start=date(2024, 1, 1))
    specific = _tariff(3, NamedZone(TIMUR), "110000", start=date(2024, 1, 1))

    ordered = order_tariffs([wildcard, specific])

    assert select_tariff(ordered, TIMUR) is specific
    assert select_tariff(ordered, BARAT) is wildcard


def test_newer_all_zones_rule_beats_older_zone_rule():
    specific = _tariff(1, NamedZone(TIMUR), "110000", start=date(2023, 1, 1))
    wildcard = _tariff(2, ALL_ZONES, "120000", start=date(2024, 1, 1))

    assert select_tariff(order_tariffs([specific, wildcard]), TIMUR) is wildcard


def test_unoccupied_household_falls_back_to_occupied_rate():
    rule = _tariff(1, NamedZone(TIMUR), "250000")
    plan = plan_bills(PERIOD, [_household(1, TIMUR, occupied=False)], [rule], set())

    assert [bill.amount for bill in plan.staged] == [Decimal("250000")]


def test_household_without_matching_tariff_is_reported():
    rule = _tariff(1, NamedZone(TIMUR), "200000")
    plan = plan_bills(PERIOD, [_household(1, BARAT)], [rule], set())

    assert plan.staged == []
    assert [entry.household_id for entry in plan.no_tariff] == [1]


def test_mixed_roster_is_billed_per_zone_and_occupancy():
    roster = [
        _household(1, TIMUR, occupied=True),
        _household(2, TIMUR, occupied=False),
        _household(3, BARAT, occupied=True),
    ]
    tariffs = [
        _tariff(1, NamedZone(TIMUR), "200000", "150000", start=date(2024, 1, 1)),
        _tariff(2, ALL_ZONES, "100000", start=date(2023, 1, 1)),
    ]

    plan = plan_bills(PERIOD, roster, tariffs, set())

    assert {bill.household_id: bill.amount for bill in plan.staged} == {
        1: Decimal("200000"),
        2: Decimal("150000"),
        3: Decimal("100000"),
    }
    assert plan.skipped == []
    assert plan.no_tariff == []
    assert plan.total_households == 3


def test_already_billed_household_is_skipped():
    roster = [_household(1, TIMUR), _household(2, TIMUR, occupied=False), _household(3, BARAT)]
    tariffs = [
        _tariff(1, NamedZone(TIMUR), "200000", "150000", start=date(2024, 1, 1)),
        _tariff(2, ALL_ZONES, "100000", start=date(2023, 1, 1)),
    ]

    plan = plan_bills(PERIOD, roster, tariffs, {1})

    assert [bill.household_id for bill in plan.staged] == [2, 3]
    assert [entry.household_id for entry in plan.skipped] == [1]


def test_household_without_zone_uses_default_zone():
    rule = _tariff(1, NamedZone(TIMUR), "200000")
    roster = [_household(1, None)]

    assert [bill.amount for bill in plan_bills(PERIOD, roster, [rule], set(), default_zone_id=TIMUR).staged] == [
        Decimal("200000")
    ]
    assert plan_bills(PERIOD, roster, [rule], set(), default_zone_id=None).staged == []
