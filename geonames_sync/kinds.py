"""
Entity kinds stored by the pipeline, in hierarchy order.

Iterating EntityKind yields continent, country, division, city: the order in which
kinds must be supplied. Deletion walks the same list reversed.
"""

from enum import Enum

from geonames_sync.database import Base, City, Continent, Country, Division


class EntityKind(str, Enum):
    CONTINENT = "continent"
    COUNTRY = "country"
    DIVISION = "division"
    CITY = "city"

    @property
    def plural(self) -> str:
        """Name of the policy flag and of the table."""
        return _PLURALS[self]

    @property
    def model(self) -> type[Base]:
        return _MODELS[self]

    @property
    def parent(self) -> "EntityKind | None":
        kinds = list(EntityKind)
        index = kinds.index(self)
        return kinds[index - 1] if index else None

    @classmethod
    def hierarchy(cls) -> list["EntityKind"]:
        return list(cls)

    @classmethod
    def reversed_hierarchy(cls) -> list["EntityKind"]:
        return list(reversed(cls))


_PLURALS = {
    EntityKind.CONTINENT: "continents",
    EntityKind.COUNTRY: "countries",
    EntityKind.DIVISION: "divisions",
    EntityKind.CITY: "cities",
}

_MODELS = {
    EntityKind.CONTINENT: Continent,
    EntityKind.COUNTRY: Country,
    EntityKind.DIVISION: Division,
    EntityKind.CITY: City,
}
