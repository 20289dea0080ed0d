"""Zone scopes for tariff rules.

A tariff either targets one named zone from the ``zones`` lookup table or
applies to every zone. Labels only exist at the HTTP edge; everything behind
it works with zone ids.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Union

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..constants import ALL_ZONES_LITERAL
from ..core.errors import InvalidInput
from ..models.models import Zone


@dataclass(frozen=True)
class NamedZone:
    zone_id: int


@dataclass(frozen=True)
class AllZones:
    pass


ZoneScope = Union[NamedZone, AllZones]

ALL_ZONES = AllZones()


def scope_from_zone_id(zone_id: Optional[int]) -> ZoneScope:
    return ALL_ZONES if zone_id is None else NamedZone(zone_id)


def scope_to_zone_id(scope: ZoneScope) -> Optional[int]:
    return scope.zone_id if isinstance(scope, NamedZone) else None


def scope_matches(scope: ZoneScope, zone_id: Optional[int]) -> bool:
    if isinstance(scope, AllZones):
        return True
    return zone_id is not None and scope.zone_id == zone_id


def list_zones(session: Session) -> List[Zone]:
    return session.query(Zone).order_by(Zone.name.asc()).all()


def find_zone_by_name(session: Session, name: str) -> Optional[Zone]:
    return session.query(Zone).filter(func.lower(Zone.name) == name.strip().lower()).first()


def resolve_scope(session: Session, label: Optional[str]) -> ZoneScope:
    """Turn a zone name or the ``ALL`` literal into a scope."""
    if label is None or not label.strip():
        raise InvalidInput("Zone is required")
    if label.strip().upper() == ALL_ZONES_LITERAL:
        return ALL_ZONES
    zone = find_zone_by_name(session, label)
    if zone is None:
        raise InvalidInput(f"Unknown zone: {label.strip()}")
    return NamedZone(zone.id)


def resolve_default_zone_id(session: Session, default_zone_name: Optional[str]) -> Optional[int]:
    if not default_zone_name:
        return None
    zone = find_zone_by_name(session, default_zone_name)
    return zone.id if zone else None


def zone_names(session: Session) -> Dict[int, str]:
    return {zone.id: zone.name for zone in list_zones(session)}


def scope_label(scope: ZoneScope, names: Dict[int, str]) -> str:
    if isinstance(scope, AllZones):
        return ALL_ZONES_LITERAL
    return names.get(scope.zone_id, str(scope.zone_id))
