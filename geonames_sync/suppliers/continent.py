"""
Continent supplier.

Continent rows of the dump (feature code CONT) carry no continent code, so the
code is taken from the continentCodes.txt table keyed by geoname id. A copy in the
staging directory takes precedence over the bundled one.
"""

from pathlib import Path
from typing import Any

from loguru import logger

from geonames_sync.features import CONTINENT_FEATURE_CODE
from geonames_sync.kinds import EntityKind
from geonames_sync.reader import (
    CONTINENT_CODES_FILE,
    CONTINENT_CODES_SCHEMA,
    FileReader,
    Record,
    geoname_id_of,
)
from geonames_sync.suppliers.base import BaseSupplier


class ContinentSupplier(BaseSupplier):
    kind = EntityKind.CONTINENT

    def __init__(self, session, settings):
        super().__init__(session, settings)
        self.codes: dict[int, str] = {}

    def init(self) -> None:
        self.codes = {
            geoname_id_of(record): record["code"]
            for record in FileReader(self._codes_file(), CONTINENT_CODES_SCHEMA)
        }
        logger.debug(f"Loaded {len(self.codes)} continent codes")

    def _codes_file(self) -> Path:
        local = self.settings.pipeline.directory / CONTINENT_CODES_FILE.name
        return local if local.exists() else CONTINENT_CODES_FILE

    def should_supply(self, record: Record, geoname_id: int) -> bool:
        return record["feature code"] == CONTINENT_FEATURE_CODE and geoname_id in self.codes

    def map_update_fields(self, record: Record, geoname_id: int) -> dict[str, Any]:
        return {
            "code": self.codes[geoname_id],
            "name": record["asciiname"] or record["name"],
            **self.map_geo_fields(record),
        }
