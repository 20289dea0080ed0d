from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship as orm_relationship

from ..config import Base
from ..constants import BILL_STATUS_UNPAID, RT_BOARD_ROLES, RW_BOARD_ROLES


def utcnow():
    return datetime.now(timezone.utc)


class SubZone(Base):
    """An RT: the administrative sub-zone a household and street belong to."""

    __tablename__ = "sub_zones"

    id = Column(Integer, primary_key=True, index=True)
    number = Column(String, unique=True, nullable=False)

    streets = orm_relationship("Street", back_populates="sub_zone")
    households = orm_relationship("Household", back_populates="sub_zone")


class Street(Base):
    __tablename__ = "streets"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    sub_zone_id = Column(Integer, ForeignKey("sub_zones.id"), nullable=True)

    sub_zone = orm_relationship("SubZone", back_populates="streets")
    households = orm_relationship("Household", back_populates="street")


class Zone(Base):
    """Tariff zone (block) lookup table."""

    __tablename__ = "zones"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)

    households = orm_relationship("Household", back_populates="zone")
    tariff_rules = orm_relationship("TariffRule", back_populates="zone")


class Resident(Base):
    __tablename__ = "residents"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)


class Household(Base):
    __tablename__ = "households"
    __table_args__ = (UniqueConstraint("street_id", "house_number", name="uq_households_street_number"),)

    id = Column(Integer, primary_key=True, index=True)
    street_id = Column(Integer, ForeignKey("streets.id"), nullable=False)
    house_number = Column(String, nullable=False)
    sub_zone_id = Column(Integer, ForeignKey("sub_zones.id"), nullable=True, index=True)
    zone_id = Column(Integer, ForeignKey("zones.id"), nullable=True)
    is_occupied = Column(Boolean, default=True, nullable=False)
    head_resident_id = Column(Integer, ForeignKey("residents.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    street = orm_relationship("Street", back_populates="households")
    sub_zone = orm_relationship("SubZone", back_populates="households")
    zone = orm_relationship("Zone", back_populates="households")
    head_resident = orm_relationship("Resident")
    bills = orm_relationship("Bill", back_populates="household", cascade="all, delete-orphan")

    @property
    def address(self) -> str:
        street_name = self.street.name if self.street else ""
        return f"{street_name} No.{self.house_number}"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)
    role = Column(String, nullable=False, default="warga")
    household_id = Column(Integer, ForeignKey("households.id"), nullable=True)
    sub_zone_id = Column(Integer, ForeignKey("sub_zones.id"), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    household = orm_relationship("Household")
    sub_zone = orm_relationship("SubZone")
    audit_logs = orm_relationship("AuditLog", back_populates="actor")

    def has_any_role(self, *role_names: str) -> bool:
        return self.role in set(role_names)

    @property
    def is_rw_board(self) -> bool:
        return self.has_any_role(*RW_BOARD_ROLES)

    @property
    def is_rt_board(self) -> bool:
        return self.has_any_role(*RT_BOARD_ROLES)


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    timestamp = Column(DateTime, default=utcnow, index=True, nullable=False)
    actor_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    action = Column(String, nullable=False)
    target_entity_type = Column(String, nullable=True)
    target_entity_id = Column(String, nullable=True)
    before = Column(Text, nullable=True)
    after = Column(Text, nullable=True)

    actor = orm_relationship("User", back_populates="audit_logs")


class TariffRule(Base):
    __tablename__ = "tariff_rules"
    __table_args__ = (
        CheckConstraint("occupied_rate > 0", name="ck_tariff_rules_occupied_positive"),
        CheckConstraint(
            "effective_end IS NULL OR effective_end >= effective_start",
            name="ck_tariff_rules_window",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    # NULL means the rule applies to all zones.
    zone_id = Column(Integer, ForeignKey("zones.id"), nullable=True)
    occupied_rate = Column(Numeric(14, 2), nullable=False)
    unoccupied_rate = Column(Numeric(14, 2), nullable=True)
    effective_start = Column(Date, nullable=False, index=True)
    effective_end = Column(Date, nullable=True)
    note = Column(Text, nullable=True)
    created_by_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    zone = orm_relationship("Zone", back_populates="tariff_rules")
    created_by = orm_relationship("User")


class Bill(Base):
    __tablename__ = "bills"
    __table_args__ = (UniqueConstraint("household_id", "period", name="uq_bills_household_period"),)

    id = Column(Integer, primary_key=True, index=True)
    household_id = Column(Integer, ForeignKey("households.id", ondelete="CASCADE"), nullable=False, index=True)
    period = Column(Date, nullable=False, index=True)
    amount = Column(Numeric(14, 2), nullable=False)
    status = Column(String, default=BILL_STATUS_UNPAID, nullable=False)
    amount_paid = Column(Numeric(14, 2), default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    household = orm_relationship("Household", back_populates="bills")
