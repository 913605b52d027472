"""
Suppliers for the stored entity kinds.

SUPPLIERS is the fixed registry from entity kind to supplier class.
"""

from geonames_sync.kinds import EntityKind
from geonames_sync.suppliers.base import BaseSupplier, SupplyResult
from geonames_sync.suppliers.city import CitySupplier
from geonames_sync.suppliers.continent import ContinentSupplier
from geonames_sync.suppliers.country import CountrySupplier
from geonames_sync.suppliers.division import DivisionSupplier

SUPPLIERS: dict[EntityKind, type[BaseSupplier]] = {
    EntityKind.CONTINENT: ContinentSupplier,
    EntityKind.COUNTRY: CountrySupplier,
    EntityKind.DIVISION: DivisionSupplier,
    EntityKind.CITY: CitySupplier,
}

__all__ = [
    "SUPPLIERS",
    "BaseSupplier",
    "SupplyResult",
    "ContinentSupplier",
    "CountrySupplier",
    "DivisionSupplier",
    "CitySupplier",
]
