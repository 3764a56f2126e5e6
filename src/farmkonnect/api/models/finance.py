from sqlalchemy import Column, String, Numeric, Date, Text, DateTime, ForeignKey, JSON, Uuid
from sqlalchemy.sql import func
import uuid

from farmkonnect.api.core.database import Base


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    farm_id = Column(Uuid, ForeignKey("farms.id", ondelete="CASCADE"), nullable=False, index=True)
    animal_id = Column(Uuid, ForeignKey("animals.id", ondelete="SET NULL"))
    expense_type = Column(String(30), nullable=False, index=True)
    description = Column(String(500), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    quantity = Column(Numeric(12, 2))
    unit_cost = Column(Numeric(14, 2))
    currency = Column(String(3), nullable=False, default="GHS")
    vendor = Column(String(255))
    invoice_number = Column(String(100))
    payment_status = Column(String(20), nullable=False, default="pending", index=True)
    payment_date = Column(Date)
    expense_date = Column(Date, nullable=False, index=True)
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Expense {self.expense_type} {self.amount}>"


class Revenue(Base):
    __tablename__ = "revenue"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    farm_id = Column(Uuid, ForeignKey("farms.id", ondelete="CASCADE"), nullable=False, index=True)
    animal_id = Column(Uuid, ForeignKey("animals.id", ondelete="SET NULL"))
    revenue_type = Column(String(30), nullable=False, index=True)
    description = Column(String(500), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    quantity = Column(Numeric(12, 2))
    unit_price = Column(Numeric(14, 2))
    currency = Column(String(3), nullable=False, default="GHS")
    buyer = Column(String(255))
    invoice_number = Column(String(100))
    payment_status = Column(String(20), nullable=False, default="pending", index=True)
    payment_date = Column(Date)
    revenue_date = Column(Date, nullable=False, index=True)
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Revenue {self.revenue_type} {self.amount}>"


class Budget(Base):
    __tablename__ = "budgets"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    farm_id = Column(Uuid, ForeignKey("farms.id", ondelete="CASCADE"), nullable=False, index=True)
    budget_name = Column(String(255), nullable=False)
    # Expense type the budget covers
    category = Column(String(30), nullable=False)
    allocated_amount = Column(Numeric(14, 2), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(String(20), nullable=False, default="draft")
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Budget {self.budget_name}>"


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    farm_id = Column(Uuid, ForeignKey("farms.id", ondelete="CASCADE"), nullable=False, index=True)
    invoice_number = Column(String(100), nullable=False, unique=True)
    # "revenue" when the farm bills a buyer, "expense" when a vendor bills the farm
    invoice_type = Column(String(20), nullable=False)
    counterparty = Column(String(255), nullable=False)
    # [{"description", "quantity", "unit_price", "amount"}, ...]
    items = Column(JSON, nullable=False)
    total_amount = Column(Numeric(14, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="GHS")
    invoice_date = Column(Date, nullable=False)
    due_date = Column(Date)
    status = Column(String(20), nullable=False, default="draft", index=True)
    paid_at = Column(DateTime(timezone=True))
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Invoice {self.invoice_number} {self.status}>"
