"""
Localized names of stored entities.

The update workflow only depends on the TranslationUpdater protocol. The default
implementation applies the daily alternate-names feeds of GeoNames to the
translations table, keyed by alternateNameId.
"""

from collections.abc import Iterator
from datetime import date
from typing import Protocol

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from geonames_sync.config import Settings
from geonames_sync.database import Translation
from geonames_sync.downloader import DownloadService
from geonames_sync.exceptions import StoreError
from geonames_sync.reader import (
    ALTERNATE_NAME_DELETES_SCHEMA,
    ALTERNATE_NAME_SCHEMA,
    FileReader,
    Record,
    to_bool,
    to_int,
)
from geonames_sync.suppliers.base import chunked, utcnow


# isolanguage values that are not languages
PSEUDO_LOCALES = frozenset({"link", "post", "iata", "icao", "faac", "abbr", "wkdt", "fr_1793", "unlc", "tcid"})


class TranslationUpdater(Protocol):
    def update(self, day: date) -> int:
        """Apply the translation changes of a day; returns the number of rows touched."""
        ...


class AlternateNamesUpdater:
    """Apply alternateNamesModifications / alternateNamesDeletes feeds."""

    def __init__(self, session: Session, settings: Settings, download_service: DownloadService):
        self.session = session
        self.settings = settings
        self.policy = settings.geonames
        self.download_service = download_service
        self.batch_size = settings.pipeline.batch_size

    def update(self, day: date) -> int:
        entities = self._load_entities()

        modifications = self.download_service.download_alternate_names_modifications(day)
        written = self._upsert(self._accepted(FileReader(modifications, ALTERNATE_NAME_SCHEMA), entities))

        deletes = self.download_service.download_alternate_names_deletes(day)
        deleted = self._delete(
            to_int(record["alternateNameId"], "alternateNameId")
            for record in FileReader(deletes, ALTERNATE_NAME_DELETES_SCHEMA)
        )

        logger.info(f"Translations updated: {written} written, {deleted} deleted")
        return written + deleted

    def _load_entities(self) -> dict[int, tuple[str, int]]:
        """geoname_id -> (entity type, internal id) across enabled kinds."""
        entities = {}
        for kind in self.policy.enabled_kinds():
            model = kind.model
            for geoname_id, entity_id in self.session.execute(select(model.geoname_id, model.id)):
                entities[geoname_id] = (kind.value, entity_id)
        return entities

    def _accepted(self, records: FileReader, entities: dict[int, tuple[str, int]]) -> Iterator[tuple[Record, str, int]]:
        for record in records:
            locale = record["isolanguage"]
            if locale in PSEUDO_LOCALES or not self.policy.is_locale_allowed(locale):
                continue

            entity = entities.get(to_int(record["geonameid"], "geonameid"))
            if entity is None:
                continue

            yield record, *entity

    def _upsert(self, rows: Iterator[tuple[Record, str, int]]) -> int:
        written = 0
        for chunk in chunked(rows, self.batch_size):
            ids = [to_int(record["alternateNameId"], "alternateNameId") for record, _, _ in chunk]
            existing = {
                translation.alternate_name_id: translation
                for translation in self.session.scalars(
                    select(Translation).where(Translation.alternate_name_id.in_(ids))
                )
            }

            for alternate_name_id, (record, entity_type, entity_id) in zip(ids, chunk):
                fields = {
                    "entity_type": entity_type,
                    "entity_id": entity_id,
                    "geoname_id": to_int(record["geonameid"], "geonameid"),
                    "locale": record["isolanguage"],
                    "name": record["alternate name"],
                    "is_preferred": to_bool(record["isPreferredName"]),
                    "is_short": to_bool(record["isShortName"]),
                    "is_colloquial": to_bool(record["isColloquial"]),
                    "is_historic": to_bool(record["isHistoric"]),
                    "updated_at": utcnow(),
                }
                translation = existing.get(alternate_name_id)
                if translation is None:
                    translation = Translation(alternate_name_id=alternate_name_id, created_at=utcnow())
                    self.session.add(translation)
                    existing[alternate_name_id] = translation
                for key, value in fields.items():
                    setattr(translation, key, value)

            self._commit()
            written += len(chunk)
        return written

    def _delete(self, alternate_name_ids) -> int:
        deleted = 0
        for chunk in chunked(alternate_name_ids, self.batch_size):
            result = self.session.execute(
                delete(Translation).where(Translation.alternate_name_id.in_(chunk)),
                execution_options={"synchronize_session": False},
            )
            deleted += result.rowcount
            self._commit()
        return deleted

    def _commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError(f"Failed to write translations: {e}") from e
