from sqlalchemy import Boolean, CheckConstraint, Column, Date, DateTime, Integer, Numeric, String, Text
from sqlalchemy.sql import func
from ..core.db import Base


class Drug(Base):
    """Inventory row; doubles as the stock-ledger entry sales decrement."""

    __tablename__ = "drugs"
    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_drugs_stock_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # Identity
    name = Column(String(120), nullable=False, index=True)
    generic_name = Column(String(120), nullable=True)
    category = Column(String(60), nullable=False, default="GENERAL")
    description = Column(Text, nullable=True)
    dosage_form = Column(String(40), nullable=True)   # tablet, capsule, syrup, injection ...
    strength = Column(String(60), nullable=True)      # 500mg, 10ml ...
    manufacturer = Column(String(120), nullable=True)
    batch_number = Column(String(100), nullable=True)
    expiry_date = Column(Date, nullable=True)

    # Commercials
    purchase_price = Column(Numeric(12, 2), nullable=False, default=0)
    selling_price = Column(Numeric(12, 2), nullable=False, default=0)

    # Inventory
    stock_quantity = Column(Integer, nullable=False, default=0)
    minimum_stock_level = Column(Integer, nullable=False, default=10)

    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(String(120), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @property
    def is_low_stock(self) -> bool:
        return int(self.stock_quantity or 0) <= int(self.minimum_stock_level or 0)

    def label(self) -> str:
        """Readable label for receipts and pickers."""
        parts = [self.name or ""]
        if self.strength:
            parts.append(self.strength)
        if self.dosage_form:
            parts.append(self.dosage_form)
        return " ".join([p for p in parts if p]).strip()

    def __repr__(self):
        return (
            f"<Drug(name={self.name}, stock={self.stock_quantity}, "
            f"batch={self.batch_number}, expiry={self.expiry_date})>"
        )
