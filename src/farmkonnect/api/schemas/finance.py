from pydantic import BaseModel, Field, model_validator
from typing import Optional, Literal
from datetime import date, datetime
from uuid import UUID
from decimal import Decimal

ExpenseType = Literal[
    "feed", "medication", "labor", "equipment", "utilities", "transport",
    "veterinary", "fertilizer", "seeds", "pesticides", "water", "rent",
    "insurance", "maintenance", "other",
]
RevenueType = Literal[
    "animal_sale", "milk_production", "egg_production", "wool_production",
    "meat_sale", "crop_sale", "produce_sale", "breeding_service", "other",
]
PaymentStatus = Literal["pending", "paid", "partial"]
BudgetStatus = Literal["draft", "approved", "active", "completed"]
InvoiceType = Literal["revenue", "expense"]
InvoiceStatus = Literal["draft", "sent", "paid", "overdue", "cancelled"]


class ExpenseCreate(BaseModel):
    """Schema for recording an expense"""
    farm_id: UUID
    expense_type: ExpenseType
    description: str = Field(..., min_length=1, max_length=500)
    amount: Decimal = Field(..., gt=0, max_digits=14, decimal_places=2)
    expense_date: date
    animal_id: Optional[UUID] = None
    quantity: Optional[Decimal] = Field(None, gt=0)
    unit_cost: Optional[Decimal] = Field(None, ge=0)
    currency: str = Field("GHS", min_length=3, max_length=3)
    vendor: Optional[str] = Field(None, max_length=255)
    invoice_number: Optional[str] = Field(None, max_length=100)
    payment_status: PaymentStatus = "pending"
    payment_date: Optional[date] = None
    notes: Optional[str] = None


class ExpenseUpdate(BaseModel):
    expense_type: Optional[ExpenseType] = None
    description: Optional[str] = Field(None, min_length=1, max_length=500)
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=14, decimal_places=2)
    expense_date: Optional[date] = None
    quantity: Optional[Decimal] = Field(None, gt=0)
    unit_cost: Optional[Decimal] = Field(None, ge=0)
    vendor: Optional[str] = Field(None, max_length=255)
    invoice_number: Optional[str] = Field(None, max_length=100)
    payment_status: Optional[PaymentStatus] = None
    payment_date: Optional[date] = None
    notes: Optional[str] = None


class ExpenseResponse(BaseModel):
    id: UUID
    farm_id: UUID
    animal_id: Optional[UUID]
    expense_type: str
    description: str
    amount: Decimal
    quantity: Optional[Decimal]
    unit_cost: Optional[Decimal]
    currency: str
    vendor: Optional[str]
    invoice_number: Optional[str]
    payment_status: str
    payment_date: Optional[date]
    expense_date: date
    notes: Optional[str]
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class ExpenseList(BaseModel):
    expenses: list[ExpenseResponse]
    total: int
    page: int
    page_size: int


class RevenueCreate(BaseModel):
    """Schema for recording revenue"""
    farm_id: UUID
    revenue_type: RevenueType
    description: str = Field(..., min_length=1, max_length=500)
    amount: Decimal = Field(..., gt=0, max_digits=14, decimal_places=2)
    revenue_date: date
    animal_id: Optional[UUID] = None
    quantity: Optional[Decimal] = Field(None, gt=0)
    unit_price: Optional[Decimal] = Field(None, ge=0)
    currency: str = Field("GHS", min_length=3, max_length=3)
    buyer: Optional[str] = Field(None, max_length=255)
    invoice_number: Optional[str] = Field(None, max_length=100)
    payment_status: PaymentStatus = "pending"
    payment_date: Optional[date] = None
    notes: Optional[str] = None


class RevenueUpdate(BaseModel):
    revenue_type: Optional[RevenueType] = None
    description: Optional[str] = Field(None, min_length=1, max_length=500)
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=14, decimal_places=2)
    revenue_date: Optional[date] = None
    quantity: Optional[Decimal] = Field(None, gt=0)
    unit_price: Optional[Decimal] = Field(None, ge=0)
    buyer: Optional[str] = Field(None, max_length=255)
    invoice_number: Optional[str] = Field(None, max_length=100)
    payment_status: Optional[PaymentStatus] = None
    payment_date: Optional[date] = None
    notes: Optional[str] = None


class RevenueResponse(BaseModel):
    id: UUID
    farm_id: UUID
    animal_id: Optional[UUID]
    revenue_type: str
    description: str
    amount: Decimal
    quantity: Optional[Decimal]
    unit_price: Optional[Decimal]
    currency: str
    buyer: Optional[str]
    invoice_number: Optional[str]
    payment_status: str
    payment_date: Optional[date]
    revenue_date: date
    notes: Optional[str]
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class RevenueList(BaseModel):
    revenue: list[RevenueResponse]
    total: int
    page: int
    page_size: int


class FinancialSummary(BaseModel):
    total_revenue: float
    total_expenses: float
    profit: float
    profit_margin: float


class Breakdown(BaseModel):
    """Totals per expense or revenue type, with each type's share of the total"""
    breakdown: dict[str, float]
    percentages: dict[str, float]
    total: float


class CostPerAnimal(BaseModel):
    total_expenses: float
    total_animals: int
    average_cost_per_animal: float


class BudgetCreate(BaseModel):
    farm_id: UUID
    budget_name: str = Field(..., min_length=1, max_length=255)
    category: ExpenseType
    allocated_amount: Decimal = Field(..., gt=0)
    start_date: date
    end_date: date
    status: BudgetStatus = "draft"
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_period(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date")
        return self


class BudgetResponse(BaseModel):
    id: UUID
    farm_id: UUID
    budget_name: str
    category: str
    allocated_amount: Decimal
    start_date: date
    end_date: date
    status: str
    notes: Optional[str]
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class BudgetVsActual(BaseModel):
    budget_id: UUID
    budget_name: str
    category: str
    allocated: float
    spent: float
    remaining: float
    variance_percent: float


class PaymentStatusTotals(BaseModel):
    count: int
    amount: float


class PaymentTracking(BaseModel):
    pending: PaymentStatusTotals
    paid: PaymentStatusTotals
    partial: PaymentStatusTotals
    total_outstanding: float


class BulkPaymentStatusUpdate(BaseModel):
    ids: list[UUID] = Field(..., min_length=1, max_length=500)
    payment_status: PaymentStatus
    payment_date: Optional[date] = None


class BulkDeleteRequest(BaseModel):
    ids: list[UUID] = Field(..., min_length=1, max_length=500)


class BulkResult(BaseModel):
    success: bool
    count: int


class CostPerHectare(BaseModel):
    total_expenses: float
    total_hectares: Optional[float]
    cost_per_hectare: Optional[float]


class AnimalProfitability(BaseModel):
    animal_id: UUID
    tag_id: str
    species: str
    total_revenue: float
    total_expenses: float
    profit: float
    profit_margin: float
    roi: float


class InvoiceLineCreate(BaseModel):
    description: str = Field(..., min_length=1, max_length=500)
    quantity: Decimal = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)


class InvoiceLine(BaseModel):
    description: str
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal


class InvoiceCreate(BaseModel):
    """Schema for issuing an invoice; the total is computed from the lines"""
    farm_id: UUID
    invoice_number: str = Field(..., min_length=1, max_length=100)
    invoice_type: InvoiceType = "revenue"
    counterparty: str = Field(..., min_length=1, max_length=255)
    items: list[InvoiceLineCreate] = Field(..., min_length=1)
    currency: str = Field("GHS", min_length=3, max_length=3)
    invoice_date: date
    due_date: Optional[date] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_due_date(self):
        if self.due_date and self.due_date < self.invoice_date:
            raise ValueError("due_date cannot be before invoice_date")
        return self


class InvoiceStatusUpdate(BaseModel):
    status: InvoiceStatus


class InvoiceResponse(BaseModel):
    id: UUID
    farm_id: UUID
    invoice_number: str
    invoice_type: str
    counterparty: str
    items: list[InvoiceLine]
    total_amount: Decimal
    currency: str
    invoice_date: date
    due_date: Optional[date]
    status: str
    paid_at: Optional[datetime]
    notes: Optional[str]
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class InvoiceList(BaseModel):
    invoices: list[InvoiceResponse]
    total: int
    page: int
    page_size: int
