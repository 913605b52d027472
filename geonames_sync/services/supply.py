"""
Supply orchestration.

SupplyService runs the suppliers of the enabled entity kinds in hierarchy order
for a full load, and exposes the incremental entry points used by the daily
update: add_country_info, modify and delete.
"""

from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Optional

from loguru import logger
from sqlalchemy.orm import Session

from geonames_sync.config import Settings
from geonames_sync.features import classify
from geonames_sync.kinds import EntityKind
from geonames_sync.reader import (
    COUNTRY_INFO_SCHEMA,
    DELETES_SCHEMA,
    GEONAME_SCHEMA,
    FileReader,
    Record,
    geoname_id_of,
)
from geonames_sync.suppliers import SUPPLIERS, BaseSupplier, CountrySupplier, SupplyResult


class SupplyService:
    """Drive the suppliers of the enabled entity kinds."""

    def __init__(
        self,
        session: Session,
        settings: Settings,
        suppliers: Optional[dict[EntityKind, type[BaseSupplier]]] = None,
    ):
        self.session = session
        self.settings = settings
        self.policy = settings.geonames

        registry = {**SUPPLIERS, **(suppliers or {})}
        self.suppliers: dict[EntityKind, BaseSupplier] = {
            kind: registry[kind](session, settings)
            for kind in self.policy.enabled_kinds()
        }

    def supplier(self, kind: EntityKind) -> Optional[BaseSupplier]:
        return self.suppliers.get(kind)

    @property
    def country_info_ids(self) -> set[int]:
        supplier = self.supplier(EntityKind.COUNTRY)
        if isinstance(supplier, CountrySupplier):
            return set(supplier.country_infos)
        return set()

    def supply(self, paths: Iterable[Path], country_info_path: Optional[Path] = None) -> list[SupplyResult]:
        """
        Full load of the main dump.

        Each enabled kind streams every source file once, strictly in hierarchy
        order, so that parents are stored before their children.

        Args:
            paths: Main dump files (allCountries.txt or per-country files)
            country_info_path: countryInfo.txt, required when countries are enabled

        Returns:
            One SupplyResult per enabled kind
        """
        paths = list(paths)

        if EntityKind.COUNTRY in self.suppliers:
            if country_info_path is None:
                raise ValueError("country_info_path is required when countries are enabled")
            self.add_country_info(country_info_path)

        results = []
        for kind, supplier in self.suppliers.items():
            logger.info(f"Supplying {kind.plural} from {len(paths)} file(s)")
            supplier.init()
            results.append(supplier.supply(self._read_all(paths)))

        return results

    def add_country_info(self, path: Path) -> int:
        """(Re)load the countryInfo side table. Writes nothing."""
        supplier = self.supplier(EntityKind.COUNTRY)
        if supplier is None:
            logger.debug("Countries are disabled, skipping country info")
            return 0

        supplier.set_country_infos(FileReader(path, COUNTRY_INFO_SCHEMA))
        return len(supplier.country_infos)

    def modify(self, path: Path) -> list[SupplyResult]:
        """
        Apply the daily modifications feed.

        The feed mixes rows of every kind. It is streamed once per enabled kind in
        hierarchy order; each pass keeps the rows classified to that kind and
        upserts them through the kind's supplier.
        """
        country_info_ids = self.country_info_ids
        reader = FileReader(path, GEONAME_SCHEMA)

        results = []
        for kind, supplier in self.suppliers.items():
            supplier.init()
            records = self._rows_of_kind(reader, kind, country_info_ids)
            results.append(supplier.supply(records))

        return results

    def delete(self, path: Path) -> list[SupplyResult]:
        """
        Apply the daily deletes feed.

        Ids are deleted per enabled kind in reverse hierarchy order
        (city, division, country, continent).
        """
        reader = FileReader(path, DELETES_SCHEMA)

        results = []
        for kind in EntityKind.reversed_hierarchy():
            supplier = self.supplier(kind)
            if supplier is None:
                continue
            results.append(supplier.delete(geoname_id_of(record) for record in reader))

        return results

    @staticmethod
    def _read_all(paths: list[Path]) -> Iterator[Record]:
        for path in paths:
            yield from FileReader(path, GEONAME_SCHEMA)

    @staticmethod
    def _rows_of_kind(reader: FileReader, kind: EntityKind, country_info_ids: set[int]) -> Iterator[Record]:
        for record in reader:
            if classify(record, geoname_id_of(record), country_info_ids) is kind:
                yield record
