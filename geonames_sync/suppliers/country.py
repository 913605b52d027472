"""
Country supplier.

A country is built from two sources: its row in the main dump and its entry in
countryInfo.txt, merged by geoname id. The countryInfo table must be loaded with
set_country_infos() before supplying; rows absent from it are never stored.
"""

from collections.abc import Iterable
from typing import Any

from loguru import logger
from sqlalchemy import select

from geonames_sync.database import Continent
from geonames_sync.exceptions import ReferentialError
from geonames_sync.kinds import EntityKind
from geonames_sync.reader import Record, geoname_id_of, to_float
from geonames_sync.suppliers.base import BaseSupplier


class CountrySupplier(BaseSupplier):
    kind = EntityKind.COUNTRY

    def __init__(self, session, settings):
        super().__init__(session, settings)
        self.country_infos: dict[int, Record] = {}
        self.continents: dict[str, int] = {}

    def init(self) -> None:
        self.continents = dict(self.session.execute(select(Continent.code, Continent.id)).all())
        if not self.country_infos:
            logger.warning("Country info table is empty, no country will be supplied")

    def set_country_infos(self, records: Iterable[Record]) -> None:
        """Replace the countryInfo table, keyed by geoname id."""
        self.country_infos = {geoname_id_of(record): record for record in records}
        logger.info(f"Loaded {len(self.country_infos)} country info entries")

    def should_supply(self, record: Record, geoname_id: int) -> bool:
        info = self.country_infos.get(geoname_id)
        if info is None:
            return False
        return self.policy.is_country_allowed(info["ISO"])

    def map_update_fields(self, record: Record, geoname_id: int) -> dict[str, Any]:
        return {
            **self.map_country_info_fields(self.country_infos[geoname_id], geoname_id),
            **self.map_country_fields(record),
        }

    def map_country_fields(self, record: Record) -> dict[str, Any]:
        """Fields taken from the main dump row."""
        return {
            "name_official": record["asciiname"] or record["name"],
            "feature_code": record["feature code"],
            **self.map_geo_fields(record),
        }

    def map_country_info_fields(self, info: Record, geoname_id: int) -> dict[str, Any]:
        """Fields taken from countryInfo.txt."""
        return {
            "code": info["ISO"],
            "iso": info["ISO3"],
            "iso_numeric": info["ISO-Numeric"],
            "name": info["Country"],
            "continent_id": self.resolve_continent(info["Continent"], geoname_id),
            "capital": info["Capital"],
            "currency_code": info["CurrencyCode"],
            "currency_name": info["CurrencyName"],
            "tld": info["tld"],
            "phone_code": info["Phone"],
            "postal_code_format": info["Postal Code Format"],
            "postal_code_regex": info["Postal Code Regex"],
            "languages": info["Languages"],
            "neighbours": info["neighbours"],
            "area": to_float(info["Area(in sq km)"], "Area(in sq km)"),
            "fips": info["fips"],
        }

    def resolve_continent(self, code: str | None, geoname_id: int) -> int:
        try:
            return self.continents[code]
        except KeyError:
            raise ReferentialError(
                f"Country {geoname_id} references continent {code!r} which is not stored",
                geoname_id=geoname_id,
            ) from None
