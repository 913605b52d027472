"""
Database models for the GeoNames store.

Uses SQLAlchemy 2.0. Every entity is keyed by an internal integer id and carries
the upstream geoname_id as a unique, indexed external key.
"""

from contextlib import contextmanager
from datetime import date, datetime
from typing import Iterable, Optional, List

from sqlalchemy import (
    create_engine,
    event,
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Engine,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    mapped_column,
    relationship,
    sessionmaker,
)
from sqlalchemy.sql import func


# =============================================================================
# Database Engine and Session
# =============================================================================

def create_db_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine for the given database URL."""
    if url.startswith("sqlite"):
        return create_engine(url, echo=echo)

    return create_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
        pool_recycle=1800,      # Recycle connections every 30 minutes
    )


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    """SQLite ignores foreign keys unless asked per connection."""
    if type(dbapi_connection).__module__.startswith("sqlite3"):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def get_session(session_factory: sessionmaker):
    """Context manager for database sessions."""
    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# =============================================================================
# Base Model
# =============================================================================

class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class TimestampMixin:
    """Local write metadata, distinct from the source's modified_at."""

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())


class GeoMixin:
    """Columns shared by every row of the main GeoNames dump."""

    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    population: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    dem: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    timezone_id: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    modified_at: Mapped[Optional[date]] = mapped_column(Date, nullable=True)


# =============================================================================
# Hierarchy Models
# =============================================================================

class Continent(GeoMixin, TimestampMixin, Base):
    """A continent. Near-static reference data."""
    __tablename__ = "continents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    geoname_id: Mapped[int] = mapped_column(Integer, unique=True, nullable=False, index=True)

    code: Mapped[str] = mapped_column(String(2), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    countries: Mapped[List["Country"]] = relationship("Country", back_populates="continent")

    def __repr__(self) -> str:
        return f"<Continent {self.code}: {self.name}>"


class Country(GeoMixin, TimestampMixin, Base):
    """
    A country, built from the main dump row and its countryInfo.txt entry.
    """
    __tablename__ = "countries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    geoname_id: Mapped[int] = mapped_column(Integer, unique=True, nullable=False, index=True)

    # countryInfo.txt fields
    code: Mapped[str] = mapped_column(String(2), unique=True, nullable=False)
    iso: Mapped[Optional[str]] = mapped_column(String(3), nullable=True)
    iso_numeric: Mapped[Optional[str]] = mapped_column(String(3), nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    name_official: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    capital: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    currency_code: Mapped[Optional[str]] = mapped_column(String(3), nullable=True)
    currency_name: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    tld: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    phone_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    postal_code_format: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    postal_code_regex: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    languages: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    neighbours: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    area: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    fips: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)

    # Main dump fields
    feature_code: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    continent_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("continents.id", ondelete="SET NULL"),
        nullable=True,
    )

    continent: Mapped[Optional["Continent"]] = relationship("Continent", back_populates="countries")

    def __repr__(self) -> str:
        return f"<Country {self.code}: {self.name}>"


class Division(GeoMixin, TimestampMixin, Base):
    """A first-order administrative division (ADM1) of a country."""
    __tablename__ = "divisions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    geoname_id: Mapped[int] = mapped_column(Integer, unique=True, nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)  # admin1 code
    elevation: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    feature_code: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    country_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("countries.id", ondelete="CASCADE"),
        nullable=False,
    )

    __table_args__ = (
        Index("idx_divisions_country_code", "country_id", "code"),
    )

    def __repr__(self) -> str:
        return f"<Division {self.geoname_id}: {self.name}>"


class City(GeoMixin, TimestampMixin, Base):
    """A populated place."""
    __tablename__ = "cities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    geoname_id: Mapped[int] = mapped_column(Integer, unique=True, nullable=False, index=True)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    elevation: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    feature_code: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    country_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("countries.id", ondelete="CASCADE"),
        nullable=False,
    )
    division_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("divisions.id", ondelete="SET NULL"),
        nullable=True,
    )

    __table_args__ = (
        Index("idx_cities_country", "country_id"),
        Index("idx_cities_division", "division_id"),
    )

    def __repr__(self) -> str:
        return f"<City {self.geoname_id}: {self.name}>"


# =============================================================================
# Translations
# =============================================================================

class Translation(TimestampMixin, Base):
    """
    A localized name of a stored entity.

    The entity reference is polymorphic: entity_type holds the EntityKind value
    and entity_id the internal id of the row in that kind's table.
    """
    __tablename__ = "translations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    alternate_name_id: Mapped[int] = mapped_column(Integer, unique=True, nullable=False, index=True)

    entity_type: Mapped[str] = mapped_column(String(20), nullable=False)
    entity_id: Mapped[int] = mapped_column(Integer, nullable=False)
    geoname_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)

    locale: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    name: Mapped[str] = mapped_column(String(400), nullable=False)
    is_preferred: Mapped[bool] = mapped_column(Boolean, default=False)
    is_short: Mapped[bool] = mapped_column(Boolean, default=False)
    is_colloquial: Mapped[bool] = mapped_column(Boolean, default=False)
    is_historic: Mapped[bool] = mapped_column(Boolean, default=False)

    __table_args__ = (
        Index("idx_translations_entity", "entity_type", "entity_id"),
    )

    def __repr__(self) -> str:
        return f"<Translation {self.entity_type}:{self.entity_id} [{self.locale}] {self.name}>"


def create_tables(engine: Engine, models: Iterable[type[Base]]) -> None:
    """Create the tables of the given models only, leaving the others absent."""
    Base.metadata.create_all(engine, tables=[model.__table__ for model in models])
