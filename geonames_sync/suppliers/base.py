"""
Base supplier class for GeoNames entity kinds.

A supplier turns a stream of raw records into stored rows of one entity kind:
filter (should_supply), map (map_insert_fields / map_update_fields) and upsert by
geoname_id in batches. Subclasses set `kind` and implement the filter and the
field mapping.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import datetime, timezone
from itertools import islice
from typing import Any

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from geonames_sync.config import Settings
from geonames_sync.database import Base
from geonames_sync.exceptions import StoreError
from geonames_sync.kinds import EntityKind
from geonames_sync.reader import Record, geoname_id_of, to_date, to_float, to_int


def utcnow() -> datetime:
    """Naive UTC timestamp, as stored in DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def chunked(iterable: Iterable, size: int) -> Iterator[list]:
    iterator = iter(iterable)
    while chunk := list(islice(iterator, size)):
        yield chunk


@dataclass
class SupplyResult:
    """Statistics of one supplier run."""
    kind: EntityKind
    processed: int = 0
    skipped: int = 0
    inserted: int = 0
    updated: int = 0
    deleted: int = 0
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def duration_seconds(self) -> float | None:
        """Calculate duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None


class BaseSupplier(ABC):
    """
    Abstract base class for entity suppliers.

    Subclasses must implement:
    - should_supply(): Whether a record belongs to the stored set
    - map_update_fields(): Column values for a record, parents resolved
    """

    # Class attribute to be set by subclasses
    kind: EntityKind = None

    def __init__(self, session: Session, settings: Settings):
        """
        Initialize the supplier.

        Args:
            session: SQLAlchemy session the supplier writes through
            settings: Settings holding the supply policy and batch size
        """
        if self.kind is None:
            raise ValueError("kind must be set in subclass")

        self.session = session
        self.settings = settings
        self.policy = settings.geonames
        self.batch_size = settings.pipeline.batch_size

    @property
    def model(self) -> type[Base]:
        return self.kind.model

    def target_store(self) -> type[Base]:
        """The ORM model (table) this supplier writes to."""
        return self.model

    def init(self) -> None:
        """Load the in-memory lookup tables needed by the field mapping."""
        pass

    @abstractmethod
    def should_supply(self, record: Record, geoname_id: int) -> bool:
        """
        Decide whether a record is stored.

        Args:
            record: Raw record
            geoname_id: External id of the record

        Returns:
            False if the record is filtered out
        """
        pass

    @abstractmethod
    def map_update_fields(self, record: Record, geoname_id: int) -> dict[str, Any]:
        """
        Map a record to column values.

        Every parent reference is resolved here from the pre-loaded lookup tables,
        raising ReferentialError on a miss, so the result holds plain values only.
        """
        pass

    def map_insert_fields(self, record: Record, geoname_id: int) -> dict[str, Any]:
        """Update fields plus the external id and creation metadata."""
        return {
            **self.map_update_fields(record, geoname_id),
            "geoname_id": geoname_id,
            "created_at": utcnow(),
        }

    def map_geo_fields(self, record: Record) -> dict[str, Any]:
        """Columns common to every row of the main dump."""
        return {
            "latitude": to_float(record["latitude"], "latitude"),
            "longitude": to_float(record["longitude"], "longitude"),
            "population": to_int(record["population"], "population"),
            "dem": to_int(record["dem"], "dem"),
            "timezone_id": record["timezone"],
            "modified_at": to_date(record["modification date"], "modification date"),
        }

    def supply(self, records: Iterable[Record]) -> SupplyResult:
        """
        Upsert the accepted records.

        Records are buffered by geoname_id and flushed every batch_size rows and at
        the end of the stream. Any error rolls back the pending batch and is
        re-raised; batches committed before stay committed.

        Args:
            records: Raw records, typically a FileReader

        Returns:
            SupplyResult with statistics
        """
        result = SupplyResult(kind=self.kind, started_at=utcnow())
        batch: dict[int, Record] = {}

        try:
            for record in records:
                geoname_id = geoname_id_of(record)
                result.processed += 1

                if not self.should_supply(record, geoname_id):
                    result.skipped += 1
                    continue

                batch[geoname_id] = record

                if len(batch) >= self.batch_size:
                    self._flush(batch, result)
                    batch = {}

            if batch:
                self._flush(batch, result)

        except Exception as e:
            logger.error(f"Supplying {self.kind.plural} failed: {e}")
            self.session.rollback()
            raise

        finally:
            result.completed_at = utcnow()

        logger.info(
            f"Supplied {self.kind.plural}: {result.inserted} inserted, "
            f"{result.updated} updated, {result.skipped} skipped, "
            f"{result.duration_seconds:.1f}s"
        )
        return result

    def _flush(self, batch: dict[int, Record], result: SupplyResult) -> None:
        model = self.model
        existing = {
            row.geoname_id: row
            for row in self.session.scalars(select(model).where(model.geoname_id.in_(list(batch))))
        }

        # Map everything before touching the session
        rows = []
        for geoname_id, record in batch.items():
            row = existing.get(geoname_id)
            if row is None:
                fields = self.map_insert_fields(record, geoname_id)
            else:
                fields = self.map_update_fields(record, geoname_id)
            fields["updated_at"] = utcnow()
            rows.append((row, fields))

        for row, fields in rows:
            if row is None:
                self.session.add(model(**fields))
                result.inserted += 1
            else:
                for key, value in fields.items():
                    setattr(row, key, value)
                result.updated += 1

        self._commit()
        logger.debug(f"Committed batch of {len(rows)} {self.kind.plural}")

    def delete(self, geoname_ids: Iterable[int]) -> SupplyResult:
        """
        Hard-delete rows by geoname_id, in batches.

        Ids unknown to the store are ignored.
        """
        result = SupplyResult(kind=self.kind, started_at=utcnow())
        model = self.model

        try:
            for chunk in chunked(geoname_ids, self.batch_size):
                result.processed += len(chunk)
                deleted = self.session.execute(
                    delete(model).where(model.geoname_id.in_(chunk)),
                    execution_options={"synchronize_session": False},
                )
                result.deleted += deleted.rowcount
                self._commit()
        except Exception as e:
            logger.error(f"Deleting {self.kind.plural} failed: {e}")
            self.session.rollback()
            raise
        finally:
            result.completed_at = utcnow()

        logger.info(f"Deleted {result.deleted} {self.kind.plural}")
        return result

    def _commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError(f"Failed to write {self.kind.plural}: {e}") from e
