# SPDX-License-Identifier: MIT
"""Pytest configuration and fixtures for the GeoNames supply tests."""

from pathlib import Path
from typing import Callable, Generator

import pytest

from geonames_sync.config import DatabaseSettings, GeonamesSettings, PipelineSettings, Settings
from geonames_sync.database import (
    Translation,
    create_db_engine,
    create_tables,
    make_session_factory,
)
from geonames_sync.kinds import EntityKind
from geonames_sync.reader import COUNTRY_INFO_SCHEMA, GEONAME_SCHEMA
from geonames_sync.services import SupplyService

from samples import COUNTRY_INFO_ROWS, DUMP_ROWS, write_rows


@pytest.fixture
def make_settings(tmp_path: Path) -> Callable[..., Settings]:
    """Build settings on a temporary SQLite database and staging directory."""

    def factory(batch_size: int = 2, **policy) -> Settings:
        return Settings(
            database=DatabaseSettings(database_url=f"sqlite:///{tmp_path / 'geonames.db'}"),
            pipeline=PipelineSettings(
                directory=tmp_path / "data",
                batch_size=batch_size,
                http_max_retries=3,
                http_retry_delay=0,
            ),
            geonames=GeonamesSettings(**{"population": 1000, **policy}),
        )

    return factory


@pytest.fixture
def settings(make_settings) -> Settings:
    return make_settings()


@pytest.fixture
def session(settings: Settings) -> Generator:
    """Session on a database holding every table."""
    engine = create_db_engine(settings.database.url)
    create_tables(engine, [kind.model for kind in EntityKind] + [Translation])
    session = make_session_factory(engine)()

    yield session

    session.close()
    engine.dispose()


@pytest.fixture
def dump_file(tmp_path: Path) -> Path:
    return write_rows(tmp_path / "source" / "allCountries.txt", DUMP_ROWS, GEONAME_SCHEMA.columns)


@pytest.fixture
def country_info_file(tmp_path: Path) -> Path:
    return write_rows(
        tmp_path / "source" / "countryInfo.txt",
        COUNTRY_INFO_ROWS,
        COUNTRY_INFO_SCHEMA.columns,
        header="#ISO\tISO3\tISO-Numeric\tfips\tCountry\tCapital\tArea(in sq km)\tPopulation\tContinent",
    )


@pytest.fixture
def write_dump(tmp_path: Path) -> Callable[[str, list[dict]], Path]:
    """Write main-dump formatted rows to a named file."""

    def writer(name: str, rows: list[dict]) -> Path:
        return write_rows(tmp_path / "source" / name, rows, GEONAME_SCHEMA.columns)

    return writer


@pytest.fixture
def write_deletes(tmp_path: Path) -> Callable[[str, list[int]], Path]:
    def writer(name: str, geoname_ids: list[int]) -> Path:
        rows = [{"geonameid": str(geoname_id), "name": "", "comment": "duplicate"} for geoname_id in geoname_ids]
        return write_rows(tmp_path / "source" / name, rows, ("geonameid", "name", "comment"))

    return writer


@pytest.fixture
def supplied(session, settings: Settings, dump_file: Path, country_info_file: Path):
    """Session on a store holding the full sample hierarchy."""
    SupplyService(session, settings).supply([dump_file], country_info_file)
    return session
