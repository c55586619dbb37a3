"""Order, OrderStop and OrderEvent ORM models — multi-stop delivery lifecycle."""

import uuid
from datetime import date, datetime
from decimal import Decimal
from sqlalchemy import (
    String, Integer, Numeric, Date, DateTime, ForeignKey, Text, JSON,
    Enum as PgEnum, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from api.db.database import Base
from api.models.base import utcnow

ORDER_STATUSES = ("NEW", "ACCEPTED", "PICKED_UP", "DELIVERED", "CANCELLED", "RETURNED")
STOP_STATUSES = ("PENDING", "DELIVERED")

# Orders that count against a courier's concurrent-order cap
COURIER_ACTIVE_STATUSES = ("ACCEPTED", "PICKED_UP")


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    shop_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("shops.id"), nullable=False)
    courier_id: Mapped[uuid.UUID | None] = mapped_column(ForeignKey("couriers.id"))

    status: Mapped[str] = mapped_column(
        PgEnum(*ORDER_STATUSES, name="order_status"),
        default="NEW",
    )
    delivery_date: Mapped[date] = mapped_column(Date, nullable=False)
    # Sum of stop prices; kept in sync by recalculate_total()
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    picked_up_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Relationships
    shop = relationship("Shop", lazy="selectin")
    courier = relationship("Courier", lazy="selectin")
    stops = relationship(
        "OrderStop", back_populates="order", lazy="selectin",
        order_by="OrderStop.stop_number", cascade="all, delete-orphan",
    )
    events = relationship(
        "OrderEvent", back_populates="order", lazy="selectin",
        order_by="OrderEvent.id", cascade="all, delete-orphan",
    )

    @property
    def is_multi_stop(self) -> bool:
        return len(self.stops) > 1

    @property
    def route_description(self) -> str:
        return " → ".join(stop.delivery_address for stop in self.stops)

    def recalculate_total(self) -> Decimal:
        self.total_price = sum((Decimal(stop.delivery_price) for stop in self.stops), Decimal(0))
        return self.total_price

    def get_stop(self, stop_number: int) -> "OrderStop | None":
        for stop in self.stops:
            if stop.stop_number == stop_number:
                return stop
        return None


class OrderStop(Base):
    __tablename__ = "order_stops"
    __table_args__ = (UniqueConstraint("order_id", "stop_number", name="uq_order_stop_number"),)

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("orders.id"), nullable=False)
    stop_number: Mapped[int] = mapped_column(Integer, nullable=False)

    recipient_name: Mapped[str] = mapped_column(String(255), nullable=False)
    recipient_phone: Mapped[str] = mapped_column(String(50), nullable=False)
    delivery_address: Mapped[str] = mapped_column(String(500), nullable=False)
    latitude: Mapped[float | None] = mapped_column(Numeric(10, 7))
    longitude: Mapped[float | None] = mapped_column(Numeric(10, 7))
    distance_km: Mapped[float | None] = mapped_column(Numeric(6, 1))
    delivery_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text)

    stop_status: Mapped[str] = mapped_column(
        PgEnum(*STOP_STATUSES, name="stop_status"),
        default="PENDING",
    )
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    # Relationships
    order = relationship("Order", back_populates="stops")

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def coordinates(self) -> tuple[float, float] | None:
        if not self.has_coordinates:
            return None
        return float(self.latitude), float(self.longitude)


class OrderEvent(Base):
    __tablename__ = "order_events"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    order_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("orders.id"), nullable=False)
    from_status: Mapped[str | None] = mapped_column(PgEnum(*ORDER_STATUSES, name="order_status"))
    to_status: Mapped[str] = mapped_column(PgEnum(*ORDER_STATUSES, name="order_status"), nullable=False)
    actor_type: Mapped[str] = mapped_column(String(20), nullable=False)  # SHOP, COURIER, SYSTEM, ADMIN
    actor_id: Mapped[uuid.UUID | None] = mapped_column()
    metadata_json: Mapped[dict | None] = mapped_column("metadata", JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    # Relationships
    order = relationship("Order", back_populates="events")
