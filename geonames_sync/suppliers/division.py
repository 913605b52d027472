"""Division supplier: first-order administrative divisions (ADM1)."""

from typing import Any

from sqlalchemy import select

from geonames_sync.database import Country
from geonames_sync.exceptions import ReferentialError
from geonames_sync.features import DIVISION_FEATURE_CODE
from geonames_sync.kinds import EntityKind
from geonames_sync.reader import Record, to_int
from geonames_sync.suppliers.base import BaseSupplier


class DivisionSupplier(BaseSupplier):
    kind = EntityKind.DIVISION

    def __init__(self, session, settings):
        super().__init__(session, settings)
        self.countries: dict[str, int] = {}

    def init(self) -> None:
        self.countries = dict(self.session.execute(select(Country.code, Country.id)).all())

    def should_supply(self, record: Record, geoname_id: int) -> bool:
        return (
            record["feature code"] == DIVISION_FEATURE_CODE
            and self.policy.is_country_allowed(record["country code"])
        )

    def map_update_fields(self, record: Record, geoname_id: int) -> dict[str, Any]:
        return {
            "name": record["asciiname"] or record["name"],
            "code": record["admin1 code"],
            "country_id": self.resolve_country(record["country code"], geoname_id),
            "elevation": to_int(record["elevation"], "elevation"),
            "feature_code": record["feature code"],
            **self.map_geo_fields(record),
        }

    def resolve_country(self, code: str | None, geoname_id: int) -> int:
        try:
            return self.countries[code]
        except KeyError:
            raise ReferentialError(
                f"Division {geoname_id} references country {code!r} which is not stored",
                geoname_id=geoname_id,
            ) from None
