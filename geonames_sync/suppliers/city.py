"""
City supplier.

Only populated places at or above the configured population threshold, in
allowed countries, are stored. The division link is optional: many places have
no first-order division code, or one GeoNames does not list.
"""

from typing import Any, Optional

from sqlalchemy import select

from geonames_sync.database import Country, Division
from geonames_sync.exceptions import ReferentialError
from geonames_sync.features import is_city_feature
from geonames_sync.kinds import EntityKind
from geonames_sync.reader import Record, to_int
from geonames_sync.suppliers.base import BaseSupplier


class CitySupplier(BaseSupplier):
    kind = EntityKind.CITY

    def __init__(self, session, settings):
        super().__init__(session, settings)
        self.countries: dict[str, int] = {}
        self.divisions: dict[tuple[str, str], int] = {}

    def init(self) -> None:
        self.countries = dict(self.session.execute(select(Country.code, Country.id)).all())
        self.divisions = {
            (country_code, division_code): division_id
            for country_code, division_code, division_id in self.session.execute(
                select(Country.code, Division.code, Division.id).join(Country, Division.country_id == Country.id)
            )
        }

    def should_supply(self, record: Record, geoname_id: int) -> bool:
        return (
            is_city_feature(record)
            and self.has_population(record)
            and self.policy.is_country_allowed(record["country code"])
        )

    def has_population(self, record: Record) -> bool:
        """Absent population only passes a threshold of zero."""
        population = to_int(record["population"], "population")
        if population is None:
            return self.policy.population <= 0
        return population >= self.policy.population

    def map_update_fields(self, record: Record, geoname_id: int) -> dict[str, Any]:
        return {
            "name": record["asciiname"] or record["name"],
            "country_id": self.resolve_country(record["country code"], geoname_id),
            "division_id": self.resolve_division(record["country code"], record["admin1 code"]),
            "elevation": to_int(record["elevation"], "elevation"),
            "feature_code": record["feature code"],
            **self.map_geo_fields(record),
        }

    def resolve_country(self, code: str | None, geoname_id: int) -> int:
        try:
            return self.countries[code]
        except KeyError:
            raise ReferentialError(
                f"City {geoname_id} references country {code!r} which is not stored",
                geoname_id=geoname_id,
            ) from None

    def resolve_division(self, country_code: str | None, division_code: str | None) -> Optional[int]:
        return self.divisions.get((country_code, division_code))
