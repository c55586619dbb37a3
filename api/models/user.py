"""User ORM model — one row per Telegram account, tagged with a role."""

import uuid
from datetime import datetime
from sqlalchemy import String, BigInteger, DateTime, Enum as PgEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from api.db.database import Base
from api.models.base import utcnow


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    telegram_id: Mapped[int] = mapped_column(BigInteger, unique=True, nullable=False)
    telegram_username: Mapped[str | None] = mapped_column(String(255))
    full_name: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(50))
    role: Mapped[str | None] = mapped_column(PgEnum("SHOP", "COURIER", name="user_role"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationships
    shop = relationship("Shop", back_populates="user", uselist=False, lazy="selectin")
    courier = relationship("Courier", back_populates="user", uselist=False, lazy="selectin")
