from __future__ import annotations

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Date, DateTime, Enum, ForeignKey, Numeric, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from vetclinic.db.base import Base


class StockCategory(str, enum.Enum):
    MEDICATION = "medication"
    VACCINE = "vaccine"
    CONSUMABLE = "consumable"
    EQUIPMENT = "equipment"
    SUPPLEMENT = "supplement"


class StockUnit(str, enum.Enum):
    UNIT = "unit"
    BOX = "box"
    VIAL = "vial"
    BOTTLE = "bottle"
    PACK = "pack"
    KG = "kg"
    G = "g"
    ML = "ml"
    L = "l"


class StockMovementType(str, enum.Enum):
    IN = "in"
    OUT = "out"
    ADJUSTMENT = "adjustment"
    TRANSFER = "transfer"


class StockItem(Base):
    __tablename__ = "stock_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(64), index=True)
    name: Mapped[str] = mapped_column(String(256), index=True)
    category: Mapped[StockCategory] = mapped_column(Enum(StockCategory, name="stock_category"), index=True)
    subcategory: Mapped[str | None] = mapped_column(String(128), nullable=True)
    manufacturer: Mapped[str | None] = mapped_column(String(128), nullable=True)
    batch_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    dosage: Mapped[str | None] = mapped_column(String(64), nullable=True)
    unit: Mapped[StockUnit] = mapped_column(Enum(StockUnit, name="stock_unit"), default=StockUnit.UNIT)
    current_stock: Mapped[int] = mapped_column(default=0)
    minimum_stock: Mapped[int] = mapped_column(default=0)
    purchase_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    selling_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    expiration_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    supplier: Mapped[str | None] = mapped_column(String(256), nullable=True)
    location: Mapped[str | None] = mapped_column(String(256), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    barcode: Mapped[str | None] = mapped_column(String(64), nullable=True)
    sku: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    is_active: Mapped[bool] = mapped_column(default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    movements: Mapped[list["StockMovement"]] = relationship(
        "StockMovement", back_populates="item", cascade="all, delete-orphan"
    )


class StockMovement(Base):
    __tablename__ = "stock_movements"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(64), index=True)
    item_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("stock_items.id", ondelete="CASCADE"), index=True)
    movement_type: Mapped[StockMovementType] = mapped_column(
        Enum(StockMovementType, name="stock_movement_type"), index=True
    )
    quantity: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=0)
    reason: Mapped[str] = mapped_column(String(128))
    reference: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    movement_date: Mapped[date] = mapped_column(Date, index=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    item: Mapped["StockItem"] = relationship("StockItem", back_populates="movements")
