"""GeoNames supply pipeline: load the GeoNames dump and apply its daily feeds."""

__version__ = "1.0.0"
