import uuid

from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import String, Integer, DateTime, Float, Boolean, func


class Base(DeclarativeBase):
    pass


def _uuid() -> str:
    return str(uuid.uuid4())


class GeocodedMixin:
    latitude: Mapped[float] = mapped_column(Float, nullable=True)
    longitude: Mapped[float] = mapped_column(Float, nullable=True)
    coordinates_last_updated: Mapped[DateTime] = mapped_column(DateTime, nullable=True)
    geocoding_failed: Mapped[bool] = mapped_column(Boolean, default=False)
    geocoding_attempts: Mapped[int] = mapped_column(Integer, default=0)


class Hub(GeocodedMixin, Base):
    __tablename__ = "hubs"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(255))
    hub_code: Mapped[str] = mapped_column(String(32), nullable=True)
    city_name: Mapped[str] = mapped_column(String(128), nullable=True)
    country_code: Mapped[str] = mapped_column(String(64), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[DateTime] = mapped_column(DateTime, server_default=func.now())


class Supplier(GeocodedMixin, Base):
    __tablename__ = "suppliers"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(255))
    city: Mapped[str] = mapped_column(String(128), nullable=True, index=True)
    country: Mapped[str] = mapped_column(String(64), nullable=True, index=True)
    created_at: Mapped[DateTime] = mapped_column(DateTime, server_default=func.now())


class Customer(GeocodedMixin, Base):
    __tablename__ = "customers"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(255))
    city: Mapped[str] = mapped_column(String(128), nullable=True, index=True)
    country: Mapped[str] = mapped_column(String(64), nullable=True, index=True)
    created_at: Mapped[DateTime] = mapped_column(DateTime, server_default=func.now())
