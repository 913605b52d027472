"""
GeoNames feature codes and the classification of mixed-kind rows.

See https://www.geonames.org/export/codes.html for the full list of codes.
"""

from collections.abc import Container
from typing import Optional

from geonames_sync.kinds import EntityKind
from geonames_sync.reader import Record


CONTINENT_FEATURE_CODE = "CONT"

# Independent and dependent political entities
COUNTRY_FEATURE_CODES: frozenset[str] = frozenset({
    "PCL",    # political entity
    "PCLD",   # dependent political entity
    "PCLF",   # freely associated state
    "PCLI",   # independent political entity
    "PCLIX",  # section of independent political entity
    "PCLS",   # semi-independent political entity
    "TERR",   # territory
})

DIVISION_FEATURE_CODE = "ADM1"

CITY_FEATURE_CLASS = "P"

# Populated places, excluding historical (PPLH, PPLCH), abandoned (PPLQ),
# destroyed (PPLW) places and sections of other places (PPLX)
CITY_FEATURE_CODES: frozenset[str] = frozenset({
    "PPL",    # populated place
    "PPLA",   # seat of a first-order administrative division
    "PPLA2",  # seat of a second-order administrative division
    "PPLA3",  # seat of a third-order administrative division
    "PPLA4",  # seat of a fourth-order administrative division
    "PPLA5",  # seat of a fifth-order administrative division
    "PPLC",   # capital of a political entity
    "PPLCD",  # seat of government of a political entity, not the capital
    "PPLF",   # farm village
    "PPLG",   # seat of government of a political entity
    "PPLL",   # populated locality
    "PPLR",   # religious populated place
    "PPLS",   # populated places
    "STLMT",  # israeli settlement
})


def is_city_feature(record: Record) -> bool:
    return (
        record.get("feature class") == CITY_FEATURE_CLASS
        and record.get("feature code") in CITY_FEATURE_CODES
    )


def classify(record: Record, geoname_id: int, country_info_ids: Container[int] = ()) -> Optional[EntityKind]:
    """
    Classify a row of the mixed daily modifications feed.

    A row whose id is listed in countryInfo.txt is a country whatever its feature
    code; otherwise the feature code decides. Rows of untracked kinds (rivers,
    ADM2 divisions, ...) return None.
    """
    if geoname_id in country_info_ids:
        return EntityKind.COUNTRY

    feature_code = record.get("feature code")

    if feature_code == CONTINENT_FEATURE_CODE:
        return EntityKind.CONTINENT
    if feature_code in COUNTRY_FEATURE_CODES:
        return EntityKind.COUNTRY
    if feature_code == DIVISION_FEATURE_CODE:
        return EntityKind.DIVISION
    if is_city_feature(record):
        return EntityKind.CITY
    return None
