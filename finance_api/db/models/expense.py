"""
Expense records plus their optional receipt and line items.
"""
from sqlalchemy import Column, Integer, String, DateTime, Date, Boolean, Float, ForeignKey, Text, Index
from sqlalchemy.orm import relationship
from finance_api.db.base import Base, utcnow


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)
    description = Column(String(255), nullable=False)
    amount = Column(Float, nullable=False)
    date = Column(Date, nullable=False, index=True)
    recurring = Column(Boolean, default=False, nullable=False)
    origin = Column(String(10), default="manual", nullable=False)  # "manual", "ocr", "ia"
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    category = relationship("Category")
    receipt = relationship("Receipt", uselist=False, back_populates="expense", cascade="all, delete-orphan")
    items = relationship("ExpenseItem", back_populates="expense", cascade="all, delete-orphan",
                         order_by="ExpenseItem.id")

    __table_args__ = (
        Index("idx_expenses_user_date", "user_id", "date"),
    )


class ExpenseItem(Base):
    __tablename__ = "expense_items"

    id = Column(Integer, primary_key=True, index=True)
    expense_id = Column(Integer, ForeignKey("expenses.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    quantity = Column(Float, default=1.0, nullable=False)
    unit_price = Column(Float, default=0.0, nullable=False)
    total_price = Column(Float, default=0.0, nullable=False)
    category_tag = Column(String(60), nullable=True)

    expense = relationship("Expense", back_populates="items")


class Receipt(Base):
    __tablename__ = "receipts"

    id = Column(Integer, primary_key=True, index=True)
    expense_id = Column(Integer, ForeignKey("expenses.id", ondelete="CASCADE"), unique=True, nullable=False)
    file_path = Column(String, nullable=True)
    extracted_text = Column(Text, nullable=True)
    ocr_confidence = Column(Float, nullable=True)  # 0..1
    created_at = Column(DateTime, default=utcnow, nullable=False)

    expense = relationship("Expense", back_populates="receipt")
