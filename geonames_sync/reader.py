"""
Streaming reader for GeoNames tab-delimited files.

A FileReader is a lazy, restartable iterable: each iteration reopens the file and
yields one mapping per data row, keyed by the column names of its Schema.
Comment lines ('#') and blank lines are skipped; empty values become None.
"""

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Optional

from geonames_sync.exceptions import ParseError


Record = dict[str, Optional[str]]


@dataclass(frozen=True)
class Schema:
    """
    Column layout of a source file.

    Rows must have at least `required` columns (all of them by default) and at
    most len(columns); missing trailing columns read as None.
    """
    name: str
    columns: tuple[str, ...]
    required: Optional[int] = None

    @property
    def min_columns(self) -> int:
        return self.required if self.required is not None else len(self.columns)


# allCountries.txt, <ISO>.txt, citiesN.txt and modifications-<date>.txt
GEONAME_SCHEMA = Schema(
    name="geoname",
    columns=(
        "geonameid",
        "name",
        "asciiname",
        "alternatenames",
        "latitude",
        "longitude",
        "feature class",
        "feature code",
        "country code",
        "cc2",
        "admin1 code",
        "admin2 code",
        "admin3 code",
        "admin4 code",
        "population",
        "elevation",
        "dem",
        "timezone",
        "modification date",
    ),
)

COUNTRY_INFO_SCHEMA = Schema(
    name="country info",
    columns=(
        "ISO",
        "ISO3",
        "ISO-Numeric",
        "fips",
        "Country",
        "Capital",
        "Area(in sq km)",
        "Population",
        "Continent",
        "tld",
        "CurrencyCode",
        "CurrencyName",
        "Phone",
        "Postal Code Format",
        "Postal Code Regex",
        "Languages",
        "geonameid",
        "neighbours",
        "EquivalentFipsCode",
    ),
    required=17,
)

DELETES_SCHEMA = Schema(
    name="deletes",
    columns=("geonameid", "name", "comment"),
    required=1,
)

ALTERNATE_NAME_SCHEMA = Schema(
    name="alternate name",
    columns=(
        "alternateNameId",
        "geonameid",
        "isolanguage",
        "alternate name",
        "isPreferredName",
        "isShortName",
        "isColloquial",
        "isHistoric",
        "from",
        "to",
    ),
    required=4,
)

ALTERNATE_NAME_DELETES_SCHEMA = Schema(
    name="alternate name deletes",
    columns=("alternateNameId", "geonameid", "comment"),
    required=2,
)

# Bundled resources/continentCodes.txt
CONTINENT_CODES_SCHEMA = Schema(
    name="continent codes",
    columns=("code", "name", "geonameid"),
)

RESOURCES_DIR = Path(__file__).parent / "resources"
CONTINENT_CODES_FILE = RESOURCES_DIR / "continentCodes.txt"


class FileReader:
    """Lazy sequence of records of a delimited file."""

    COMMENT = "#"

    def __init__(self, path: Path, schema: Schema, delimiter: str = "\t"):
        self.path = Path(path)
        self.schema = schema
        self.delimiter = delimiter

    def __iter__(self) -> Iterator[Record]:
        columns = self.schema.columns

        with open(self.path, "rb") as f:
            for line_number, raw in enumerate(f, start=1):
                try:
                    line = raw.decode("utf-8")
                except UnicodeDecodeError as e:
                    raise ParseError(
                        f"Invalid UTF-8 in {self.schema.name} row: {e.reason}",
                        path=self.path,
                        line=line_number,
                    ) from e

                if line.startswith(self.COMMENT) or not line.strip():
                    continue

                values = line.rstrip("\r\n").split(self.delimiter)

                if not self.schema.min_columns <= len(values) <= len(columns):
                    raise ParseError(
                        f"Expected {self.schema.min_columns}-{len(columns)} {self.schema.name} "
                        f"columns, got {len(values)}",
                        path=self.path,
                        line=line_number,
                    )

                record = {column: None for column in columns}
                for column, value in zip(columns, values):
                    record[column] = value if value != "" else None
                yield record

    def __repr__(self) -> str:
        return f"<FileReader {self.schema.name}: {self.path}>"


# =============================================================================
# Value conversion
# =============================================================================

def to_int(value: Optional[str], column: str = "value") -> Optional[int]:
    """Convert a field to int, keeping None for absent values."""
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        raise ParseError(f"Invalid integer for {column}: {value!r}") from None


def to_float(value: Optional[str], column: str = "value") -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        raise ParseError(f"Invalid number for {column}: {value!r}") from None


def to_date(value: Optional[str], column: str = "value") -> Optional[date]:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ParseError(f"Invalid date for {column}: {value!r}") from None


def to_bool(value: Optional[str]) -> bool:
    """GeoNames flags are '1' or empty."""
    return value == "1"


def geoname_id_of(record: Record) -> int:
    """Extract the external id of a record."""
    geoname_id = to_int(record.get("geonameid"), "geonameid")
    if geoname_id is None:
        raise ParseError("Missing geonameid")
    return geoname_id
