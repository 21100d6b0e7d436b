# backend/lunchqueue/services/slots/directory.py
"""
Location directory: which pickup locations exist and are active.

Locations are managed by admin tooling; this module only reads them.
"""

from typing import Protocol, Sequence

from sqlalchemy.orm import sessionmaker

from .grid import Location
from .store import unavailable_on_db_errors


class LocationDirectory(Protocol):
    def list_active_locations(self) -> list[Location]:
        ...

    def get_location(self, location_id: str) -> Location | None:
        ...


class SqlLocationDirectory:
    """Reads the locations table."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def list_active_locations(self) -> list[Location]:
        from ...models.tables import Locations

        with unavailable_on_db_errors(), self.session_factory() as db:
            rows = (
                db.query(Locations)
                .filter(Locations.is_active == 1)
                .order_by(Locations.id)
                .all()
            )
            return [_to_location(row) for row in rows]

    def get_location(self, location_id: str) -> Location | None:
        from ...models.tables import Locations

        with unavailable_on_db_errors(), self.session_factory() as db:
            row = db.get(Locations, location_id)
            return _to_location(row) if row else None


class StaticLocationDirectory:
    """Fixed in-memory list of locations (sandbox mode and tests)."""

    def __init__(self, locations: Sequence[Location]):
        self._locations = {loc.id: loc for loc in locations}

    def list_active_locations(self) -> list[Location]:
        return sorted(
            (loc for loc in self._locations.values() if loc.is_active),
            key=lambda loc: loc.id,
        )

    def get_location(self, location_id: str) -> Location | None:
        return self._locations.get(location_id)


def _to_location(row) -> Location:
    return Location(id=row.id, name=row.name, is_active=bool(row.is_active))
