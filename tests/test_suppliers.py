# SPDX-License-Identifier: MIT
"""Tests for the entity suppliers."""

from datetime import date

import pytest

from geonames_sync.database import City, Continent, Country, Division
from geonames_sync.exceptions import ReferentialError
from geonames_sync.reader import COUNTRY_INFO_SCHEMA, GEONAME_SCHEMA, FileReader
from geonames_sync.suppliers import (
    CitySupplier,
    ContinentSupplier,
    CountrySupplier,
    DivisionSupplier,
)

from samples import (
    BORGO_ID,
    EUROPE_ID,
    FRANCE_ID,
    ITALY_ID,
    LATIUM_ID,
    PARIS_ID,
    ROME,
    ROME_ID,
    geoname_row,
    stored,
)


def read(path):
    return FileReader(path, GEONAME_SCHEMA)


def supply_continents(session, settings, dump_file):
    supplier = ContinentSupplier(session, settings)
    supplier.init()
    return supplier.supply(read(dump_file))


def supply_countries(session, settings, dump_file, country_info_file):
    supplier = CountrySupplier(session, settings)
    supplier.set_country_infos(FileReader(country_info_file, COUNTRY_INFO_SCHEMA))
    supplier.init()
    return supplier.supply(read(dump_file))


class TestContinentSupplier:
    """Test continent supply."""

    def test_supplies_continent_rows(self, session, settings, dump_file):
        result = supply_continents(session, settings, dump_file)

        assert result.processed == 9
        assert result.inserted == 1
        assert result.skipped == 8

        europe = stored(session, Continent)[EUROPE_ID]
        assert europe.code == "EU"
        assert europe.name == "Europe"
        assert europe.population == 741000000
        assert europe.modified_at == date(2024, 1, 15)

    def test_staged_codes_take_precedence(self, session, settings, dump_file):
        """A continentCodes.txt in the staging directory replaces the bundled one."""
        directory = settings.pipeline.directory
        directory.mkdir(parents=True)
        (directory / "continentCodes.txt").write_text("XE\tEurope\t6255148\n", encoding="utf-8")

        supply_continents(session, settings, dump_file)

        assert stored(session, Continent)[EUROPE_ID].code == "XE"


class TestCountrySupplier:
    """Test country supply from the dump and countryInfo.txt."""

    def test_merges_dump_row_and_country_info(self, session, settings, dump_file, country_info_file):
        supply_continents(session, settings, dump_file)
        result = supply_countries(session, settings, dump_file, country_info_file)

        # Germany is listed in countryInfo.txt but has no dump row
        assert result.inserted == 2

        italy = stored(session, Country)[ITALY_ID]
        europe = stored(session, Continent)[EUROPE_ID]
        assert italy.code == "IT"
        assert italy.iso == "ITA"
        assert italy.name == "Italy"
        assert italy.name_official == "Italian Republic"
        assert italy.capital == "Rome"
        assert italy.area == 301230.0
        assert italy.feature_code == "PCLI"
        assert italy.continent_id == europe.id

    def test_nothing_supplied_without_country_info(self, session, settings, dump_file):
        supply_continents(session, settings, dump_file)

        supplier = CountrySupplier(session, settings)
        supplier.init()
        result = supplier.supply(read(dump_file))

        assert result.inserted == 0
        assert stored(session, Country) == {}

    def test_allow_list(self, session, make_settings, dump_file, country_info_file):
        settings = make_settings(countries_filter=["FR"])
        supply_continents(session, settings, dump_file)
        supply_countries(session, settings, dump_file, country_info_file)

        assert list(stored(session, Country)) == [FRANCE_ID]

    def test_missing_continent_raises(self, session, settings, dump_file, country_info_file):
        """A country whose continent is not stored should stop the run."""
        with pytest.raises(ReferentialError) as exc_info:
            supply_countries(session, settings, dump_file, country_info_file)

        assert exc_info.value.geoname_id == ITALY_ID
        assert stored(session, Country) == {}


class TestDivisionSupplier:
    """Test division supply."""

    def test_missing_country_raises(self, session, settings, dump_file):
        supplier = DivisionSupplier(session, settings)
        supplier.init()

        with pytest.raises(ReferentialError) as exc_info:
            supplier.supply(read(dump_file))

        assert exc_info.value.geoname_id == LATIUM_ID
        assert stored(session, Division) == {}

    def test_division_fields(self, supplied):
        latium = stored(supplied, Division)[LATIUM_ID]
        italy = stored(supplied, Country)[ITALY_ID]

        assert latium.name == "Latium"
        assert latium.code == "07"
        assert latium.country_id == italy.id
        assert latium.feature_code == "ADM1"


class TestCitySupplier:
    """Test city filtering and parent resolution."""

    def test_population_threshold(self, supplied):
        """Places below the population threshold are not stored."""
        cities = stored(supplied, City)
        assert set(cities) == {ROME_ID, PARIS_ID}

    def test_zero_threshold_keeps_small_places(self, supplied, make_settings, dump_file):
        supplier = CitySupplier(supplied, make_settings(population=0))
        supplier.init()
        result = supplier.supply(read(dump_file))

        assert result.inserted == 1
        assert result.updated == 2
        assert BORGO_ID in stored(supplied, City)

    def test_absent_population(self, supplied, settings, make_settings, write_dump):
        """A place without population only passes a threshold of zero."""
        path = write_dump("hamlet.txt", [geoname_row(3181001, "Hamlet", "P", "PPL", "IT", "07")])

        supplier = CitySupplier(supplied, settings)
        supplier.init()
        assert supplier.supply(read(path)).skipped == 1

        supplier = CitySupplier(supplied, make_settings(population=0))
        supplier.init()
        assert supplier.supply(read(path)).inserted == 1
        assert stored(supplied, City)[3181001].population is None

    def test_parents_resolved(self, supplied):
        rome = stored(supplied, City)[ROME_ID]
        assert rome.country_id == stored(supplied, Country)[ITALY_ID].id
        assert rome.division_id == stored(supplied, Division)[LATIUM_ID].id

    def test_unknown_division_is_optional(self, supplied, settings, write_dump):
        path = write_dump("ostia.txt", [geoname_row(3181002, "Ostia", "P", "PPL", "IT", "99", "85000")])

        supplier = CitySupplier(supplied, settings)
        supplier.init()
        supplier.supply(read(path))

        ostia = stored(supplied, City)[3181002]
        assert ostia.division_id is None
        assert ostia.country_id == stored(supplied, Country)[ITALY_ID].id

    def test_unknown_country_raises(self, supplied, settings, write_dump):
        path = write_dump("nowhere.txt", [geoname_row(3181003, "Nowhere", "P", "PPL", "XX", "", "5000")])

        supplier = CitySupplier(supplied, settings)
        supplier.init()

        with pytest.raises(ReferentialError) as exc_info:
            supplier.supply(read(path))
        assert exc_info.value.geoname_id == 3181003

    def test_committed_batches_survive_a_failure(self, supplied, settings, write_dump):
        """Batches flushed before the failing one stay stored."""
        path = write_dump("cities.txt", [
            geoname_row(3173435, "Milan", "P", "PPLA", "IT", "09", "1236837"),
            geoname_row(2996944, "Lyon", "P", "PPLA2", "FR", "84", "522969"),
            geoname_row(3181003, "Nowhere", "P", "PPL", "XX", "", "5000"),
        ])

        supplier = CitySupplier(supplied, settings)
        supplier.init()
        with pytest.raises(ReferentialError):
            supplier.supply(read(path))

        cities = stored(supplied, City)
        assert 3173435 in cities
        assert 2996944 in cities
        assert 3181003 not in cities

    def test_empty_fields_stay_null(self, supplied):
        rome = stored(supplied, City)[ROME_ID]
        assert rome.elevation is None
        assert rome.dem == 21
        assert rome.timezone_id == "Europe/Rome"
        assert rome.modified_at == date(2024, 1, 15)

    def test_ascii_name_preferred(self, supplied, settings, write_dump):
        path = write_dump("tivoli.txt", [
            geoname_row(3165000, "Tívoli", "P", "PPL", "IT", "07", "56000", asciiname="Tivoli"),
            geoname_row(3165001, "Frascati", "P", "PPL", "IT", "07", "22000", asciiname=""),
        ])

        supplier = CitySupplier(supplied, settings)
        supplier.init()
        supplier.supply(read(path))

        cities = stored(supplied, City)
        assert cities[3165000].name == "Tivoli"
        assert cities[3165001].name == "Frascati"

    def test_last_duplicate_wins(self, supplied, settings, write_dump):
        path = write_dump("duplicates.txt", [ROME, {**ROME, "asciiname": "Roma"}])

        supplier = CitySupplier(supplied, settings)
        supplier.init()
        result = supplier.supply(read(path))

        assert result.updated == 1
        assert stored(supplied, City)[ROME_ID].name == "Roma"

    def test_repeated_supply_is_idempotent(self, supplied, settings, dump_file):
        before = {geoname_id: city.id for geoname_id, city in stored(supplied, City).items()}

        supplier = CitySupplier(supplied, settings)
        supplier.init()
        result = supplier.supply(read(dump_file))

        assert result.inserted == 0
        assert result.updated == 2
        after = {geoname_id: city.id for geoname_id, city in stored(supplied, City).items()}
        assert after == before

    def test_delete(self, supplied, settings):
        """Unknown ids are ignored."""
        result = CitySupplier(supplied, settings).delete([ROME_ID, 999])

        assert result.processed == 2
        assert result.deleted == 1
        assert set(stored(supplied, City)) == {PARIS_ID}
