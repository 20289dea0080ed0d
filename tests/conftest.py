import sys
from collections.abc import Callable, Generator
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Optional

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from rwportal.auth.jwt import create_access_token  # noqa: E402
from rwportal.config import Database, Settings  # noqa: E402
from rwportal.main import create_app  # noqa: E402
from rwportal.models.models import (  # noqa: E402
    Household,
    Resident,
    Street,
    SubZone,
    TariffRule,
    User,
    Zone,
)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'test.db'}",
        jwt_secret="test-secret",
        default_zone_name="Timur",
        log_level="WARNING",
    )


@pytest.fixture
def database(settings: Settings) -> Generator[Database, None, None]:
    """Provide a fresh SQLite database for each test."""
    database = Database.from_settings(settings)
    database.create_all()
    try:
        yield database
    finally:
        database.dispose()


@pytest.fixture
def db_session(database: Database) -> Generator[Session, None, None]:
    session = database.session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def app(settings: Settings, database: Database) -> FastAPI:
    return create_app(settings, database)


@pytest.fixture
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    client = TestClient(app)
    try:
        yield client
    finally:
        client.close()


@pytest.fixture
def auth_headers(settings: Settings) -> Callable[[User], dict]:
    def _headers(user: User) -> dict:
        token = create_access_token(settings, {"sub": str(user.id)})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def create_zone(db_session: Session) -> Callable[[str], Zone]:
    def _create(name: str) -> Zone:
        existing = db_session.query(Zone).filter(Zone.name == name).first()
        if existing:
            return existing
        zone = Zone(name=name)
        db_session.add(zone)
        db_session.commit()
        return zone

    return _create


@pytest.fixture
def create_sub_zone(db_session: Session) -> Callable[[str], SubZone]:
    def _create(number: str = "01") -> SubZone:
        existing = db_session.query(SubZone).filter(SubZone.number == number).first()
        if existing:
            return existing
        sub_zone = SubZone(number=number)
        db_session.add(sub_zone)
        db_session.commit()
        return sub_zone

    return _create


@pytest.fixture
def create_household(db_session: Session, create_sub_zone) -> Callable[..., Household]:
    counter = {"value": 0}

    def _create(
        zone: Optional[Zone] = None,
        occupied: bool = True,
        street_name: str = "Jl. Melati",
        sub_zone: Optional[SubZone] = None,
        head_name: Optional[str] = None,
    ) -> Household:
        counter["value"] += 1
        sub_zone = sub_zone or create_sub_zone("01")
        street = db_session.query(Street).filter(Street.name == street_name).first()
        if not street:
            street = Street(name=street_name, sub_zone_id=sub_zone.id)
            db_session.add(street)
            db_session.flush()
        head = Resident(full_name=head_name or f"Warga {counter['value']}")
        db_session.add(head)
        db_session.flush()
        household = Household(
            street_id=street.id,
            house_number=str(counter["value"]),
            sub_zone_id=sub_zone.id,
            zone_id=zone.id if zone else None,
            is_occupied=occupied,
            head_resident_id=head.id,
        )
        db_session.add(household)
        db_session.commit()
        return household

    return _create


@pytest.fixture
def create_user(db_session: Session) -> Callable[..., User]:
    def _create(
        email: str = "user@example.com",
        role: str = "ketua_rw",
        household: Optional[Household] = None,
        sub_zone: Optional[SubZone] = None,
    ) -> User:
        user = User(
            email=email,
            full_name=email.split("@")[0],
            role=role,
            household_id=household.id if household else None,
            sub_zone_id=sub_zone.id if sub_zone else None,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _create


@pytest.fixture
def create_tariff(db_session: Session) -> Callable[..., TariffRule]:
    def _create(
        zone: Optional[Zone] = None,
        occupied_rate: str = "100000",
        unoccupied_rate: Optional[str] = None,
        start: date = date(2024, 1, 1),
        end: Optional[date] = None,
    ) -> TariffRule:
        rule = TariffRule(
            zone_id=zone.id if zone else None,
            occupied_rate=Decimal(occupied_rate),
            unoccupied_rate=Decimal(unoccupied_rate) if unoccupied_rate is not None else None,
            effective_start=start,
            effective_end=end,
        )
        db_session.add(rule)
        db_session.commit()
        return rule

    return _create
