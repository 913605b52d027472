# SPDX-License-Identifier: MIT
"""Tests for the alternate-names translation updater."""

from datetime import date

import pytest
from sqlalchemy import select

from geonames_sync.database import City, Country, Translation
from geonames_sync.downloader import DownloadService
from geonames_sync.reader import ALTERNATE_NAME_DELETES_SCHEMA, ALTERNATE_NAME_SCHEMA
from geonames_sync.translations import AlternateNamesUpdater

from samples import ITALY_ID, LATIUM_ID, ROME_ID, stored, write_rows


DAY = date(2024, 1, 15)


def alternate_name(alternate_name_id, geoname_id, locale, name, preferred=""):
    return {
        "alternateNameId": str(alternate_name_id),
        "geonameid": str(geoname_id),
        "isolanguage": locale,
        "alternate name": name,
        "isPreferredName": preferred,
    }


MODIFICATIONS = [
    alternate_name(1, ROME_ID, "it", "Roma", preferred="1"),
    alternate_name(2, ROME_ID, "en", "Rome"),
    alternate_name(3, ROME_ID, "link", "https://en.wikipedia.org/wiki/Rome"),
    alternate_name(4, 999, "en", "Nowhere"),
    alternate_name(5, LATIUM_ID, "", "Lazio"),
    alternate_name(6, ITALY_ID, "de", "Italien"),
]


@pytest.fixture
def feeds(tmp_path, mocker):
    """Download service serving the alternate-names feeds from local files."""
    service = mocker.Mock(spec=DownloadService)

    def stage(modifications, deletes=()):
        service.download_alternate_names_modifications.return_value = write_rows(
            tmp_path / "feeds" / "alternateNamesModifications.txt", modifications, ALTERNATE_NAME_SCHEMA.columns
        )
        service.download_alternate_names_deletes.return_value = write_rows(
            tmp_path / "feeds" / "alternateNamesDeletes.txt",
            [{"alternateNameId": str(i), "geonameid": "0"} for i in deletes],
            ALTERNATE_NAME_DELETES_SCHEMA.columns,
        )
        return service

    return stage


def translations(session) -> dict[int, Translation]:
    return {t.alternate_name_id: t for t in session.scalars(select(Translation))}


@pytest.mark.integration
class TestAlternateNamesUpdater:
    """Test applying the alternate-names feeds."""

    def test_writes_names_of_stored_entities(self, supplied, settings, feeds):
        updater = AlternateNamesUpdater(supplied, settings, feeds(MODIFICATIONS))

        assert updater.update(DAY) == 4

        rows = translations(supplied)
        assert set(rows) == {1, 2, 5, 6}

        roma = rows[1]
        assert roma.entity_type == "city"
        assert roma.entity_id == stored(supplied, City)[ROME_ID].id
        assert roma.locale == "it"
        assert roma.name == "Roma"
        assert roma.is_preferred is True
        assert roma.is_historic is False

        assert rows[5].locale is None
        assert rows[6].entity_type == "country"
        assert rows[6].entity_id == stored(supplied, Country)[ITALY_ID].id

    def test_downloads_feeds_of_the_day(self, supplied, settings, feeds):
        service = feeds(MODIFICATIONS)
        AlternateNamesUpdater(supplied, settings, service).update(DAY)

        service.download_alternate_names_modifications.assert_called_once_with(DAY)
        service.download_alternate_names_deletes.assert_called_once_with(DAY)

    def test_language_policy(self, supplied, make_settings, feeds):
        settings = make_settings(languages=["it"], nullable_language=False)

        AlternateNamesUpdater(supplied, settings, feeds(MODIFICATIONS)).update(DAY)

        assert set(translations(supplied)) == {1}

    def test_modified_name_is_updated(self, supplied, settings, feeds):
        AlternateNamesUpdater(supplied, settings, feeds(MODIFICATIONS)).update(DAY)
        AlternateNamesUpdater(supplied, settings, feeds([alternate_name(2, ROME_ID, "en", "Rome, Italy")])).update(DAY)

        rows = translations(supplied)
        assert len(rows) == 4
        assert rows[2].name == "Rome, Italy"

    def test_deletes(self, supplied, settings, feeds):
        AlternateNamesUpdater(supplied, settings, feeds(MODIFICATIONS)).update(DAY)

        touched = AlternateNamesUpdater(supplied, settings, feeds([], deletes=[1, 5, 404])).update(DAY)

        assert touched == 2
        assert set(translations(supplied)) == {2, 6}
