#!/usr/bin/env python
"""
Seed script to populate the database with sample data for local development.

Usage:
    python scripts/seed_data.py --households 6
"""

import argparse
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from rwportal.auth.jwt import create_access_token  # noqa: E402
from rwportal.config import Database, get_settings  # noqa: E402
from rwportal.models.models import Household, Resident, Street, SubZone, TariffRule, User, Zone  # noqa: E402

ZONE_NAMES = ("Timur", "Barat")


def get_or_create_zone(session, name: str) -> Zone:
    zone = session.query(Zone).filter(Zone.name == name).first()
    if not zone:
        zone = Zone(name=name)
        session.add(zone)
        session.flush()
    return zone


def create_board_user(session) -> User:
    admin = session.query(User).filter(User.email == "ketua.rw@example.com").first()
    if admin:
        return admin
    admin = User(email="ketua.rw@example.com", full_name="Ketua RW", role="ketua_rw", is_active=True)
    session.add(admin)
    session.flush()
    return admin


def create_households(session, count: int) -> None:
    sub_zone = session.query(SubZone).filter(SubZone.number == "01").first()
    if not sub_zone:
        sub_zone = SubZone(number="01")
        session.add(sub_zone)
        session.flush()
    street = session.query(Street).filter(Street.name == "Jl. Melati").first()
    if not street:
        street = Street(name="Jl. Melati", sub_zone_id=sub_zone.id)
        session.add(street)
        session.flush()

    zones = [get_or_create_zone(session, name) for name in ZONE_NAMES]
    existing = session.query(Household).filter(Household.street_id == street.id).count()
    for offset in range(max(count, 0)):
        index = existing + offset + 1
        head = Resident(full_name=f"Warga {index}")
        session.add(head)
        session.flush()
        session.add(
            Household(
                street_id=street.id,
                house_number=str(index),
                sub_zone_id=sub_zone.id,
                zone_id=zones[index % len(zones)].id,
                is_occupied=index % 3 != 0,
                head_resident_id=head.id,
            )
        )


def create_default_tariff(session, actor: User) -> None:
    if session.query(TariffRule).count():
        return
    session.add(
        TariffRule(
            zone_id=None,
            occupied_rate=Decimal("150000"),
            unoccupied_rate=Decimal("75000"),
            effective_start=date(date.today().year, 1, 1),
            note="Default IPL rate",
            created_by_user_id=actor.id,
        )
    )


def seed_database(households: int) -> None:
    settings = get_settings()
    database = Database.from_settings(settings)
    database.create_all()
    with database.session() as session:
        admin = create_board_user(session)
        create_households(session, households)
        create_default_tariff(session, admin)
        session.commit()
        token = create_access_token(settings, {"sub": str(admin.id)})
        admin_email = admin.email
    database.dispose()
    print(f"Seed complete. Created {households} households.")
    print(f"Board token for {admin_email}: {token}")


def main():
    parser = argparse.ArgumentParser(description="Seed the RW portal database with sample data.")
    parser.add_argument("--households", type=int, default=6, help="Number of households to create")
    args = parser.parse_args()
    seed_database(args.households)


if __name__ == "__main__":
    main()
