from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select, func, and_
from datetime import date, datetime, timezone
from typing import Optional, Literal
from uuid import UUID
import logging

from farmkonnect.api.core.database import get_db
from farmkonnect.api.core.security import get_current_user_id
from farmkonnect.api.core.cache import invalidate_farm_analytics
from farmkonnect.api.models.finance import Expense, Revenue, Budget, Invoice
from farmkonnect.api.models.livestock import Animal
from farmkonnect.api.schemas.finance import (
    ExpenseCreate,
    ExpenseUpdate,
    ExpenseResponse,
    ExpenseList,
    RevenueCreate,
    RevenueUpdate,
    RevenueResponse,
    RevenueList,
    FinancialSummary,
    Breakdown,
    CostPerAnimal,
    CostPerHectare,
    AnimalProfitability,
    BudgetCreate,
    BudgetResponse,
    BudgetVsActual,
    PaymentTracking,
    PaymentStatusTotals,
    BulkPaymentStatusUpdate,
    BulkDeleteRequest,
    BulkResult,
    InvoiceCreate,
    InvoiceStatusUpdate,
    InvoiceResponse,
    InvoiceList,
    InvoiceStatus,
)
from farmkonnect.api.services.audit import record_audit
from farmkonnect.api.services.farms import get_owned_farm, owned_farm_ids
from farmkonnect.api.services.forecasting import summarize, breakdown, cost_per_hectare, animal_profitability
from farmkonnect.api.services.orders import INVOICE_TRANSITIONS, can_transition, line_subtotal, order_total
from farmkonnect.api.config import settings

router = APIRouter()
logger = logging.getLogger(__name__)


def _date_filters(column, start_date: Optional[date], end_date: Optional[date]) -> list:
    filters = []
    if start_date:
        filters.append(column >= start_date)
    if end_date:
        filters.append(column <= end_date)
    return filters


async def _total(db: AsyncSession, column, filters: list) -> float:
    result = await db.execute(
        select(func.coalesce(func.sum(column), 0)).where(and_(*filters))
    )
    return float(result.scalar() or 0)


async def _totals_by(db: AsyncSession, key, column, filters: list) -> dict[str, float]:
    result = await db.execute(
        select(key, func.coalesce(func.sum(column), 0))
        .where(and_(*filters))
        .group_by(key)
    )
    return {row[0]: float(row[1]) for row in result.all()}


async def _get_owned_record(db: AsyncSession, model, record_id: UUID, user_id: str, label: str):
    result = await db.execute(
        select(model).where(
            and_(
                model.id == record_id,
                model.farm_id.in_(owned_farm_ids(user_id))
            )
        )
    )
    record = result.scalar_one_or_none()

    if not record:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{label} not found"
        )

    return record


async def _owned_records(db: AsyncSession, model, ids: list[UUID], user_id: str) -> list:
    result = await db.execute(
        select(model).where(
            and_(
                model.id.in_(ids),
                model.farm_id.in_(owned_farm_ids(user_id))
            )
        )
    )
    return list(result.scalars().all())


async def _check_animal(db: AsyncSession, animal_id: Optional[UUID], farm_id: UUID) -> None:
    """404 unless the animal exists on the given farm"""
    if not animal_id:
        return
    animal = await db.get(Animal, animal_id)
    if not animal or animal.farm_id != farm_id:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Animal not found"
        )


def _snapshot(record, date_field: str, type_field: str) -> dict:
    return {
        "farm_id": str(record.farm_id),
        type_field: getattr(record, type_field),
        "amount": str(record.amount),
        date_field: getattr(record, date_field).isoformat(),
        "payment_status": record.payment_status,
    }


# Expenses

@router.post("/expenses", response_model=ExpenseResponse, status_code=status.HTTP_201_CREATED)
async def create_expense(
    expense_data: ExpenseCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """
    Record an expense against one of the user's farms

    The amount must be positive; zero and negative amounts fail validation.
    """
    await get_owned_farm(db, expense_data.farm_id, user_id)
    await _check_animal(db, expense_data.animal_id, expense_data.farm_id)

    expense = Expense(**expense_data.model_dump())
    db.add(expense)
    await db.commit()
    await db.refresh(expense)

    await invalidate_farm_analytics(expense.farm_id)
    return expense


@router.get("/expenses", response_model=ExpenseList)
async def get_expenses(
    farm_id: UUID,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    expense_type: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """
    List a farm's expenses, newest first

    Filters:
    - expense_type: feed, labor, veterinary, ...
    - start_date / end_date: inclusive expense date range
    """
    await get_owned_farm(db, farm_id, user_id)

    filters = [Expense.farm_id == farm_id] + _date_filters(Expense.expense_date, start_date, end_date)
    if expense_type:
        filters.append(Expense.expense_type == expense_type)

    total_result = await db.execute(
        select(func.count()).select_from(Expense).where(and_(*filters))
    )
    total = total_result.scalar()

    offset = (page - 1) * page_size
    result = await db.execute(
        select(Expense)
        .where(and_(*filters))
        .order_by(Expense.expense_date.desc(), Expense.created_at.desc())
        .offset(offset)
        .limit(page_size)
    )

    return ExpenseList(
        expenses=result.scalars().all(),
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/expenses/breakdown", response_model=Breakdown)
async def get_expense_breakdown(
    farm_id: UUID,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Expense totals per expense type with percentage shares"""
    await get_owned_farm(db, farm_id, user_id)

    filters = [Expense.farm_id == farm_id] + _date_filters(Expense.expense_date, start_date, end_date)
    totals = await _totals_by(db, Expense.expense_type, Expense.amount, filters)

    return breakdown(totals)


@router.put("/expenses/{expense_id}", response_model=ExpenseResponse)
async def update_expense(
    expense_id: UUID,
    expense_data: ExpenseUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    expense = await _get_owned_record(db, Expense, expense_id, user_id, "Expense")

    for field, value in expense_data.model_dump(exclude_unset=True).items():
        if value is None and field in ("expense_type", "description", "amount", "expense_date", "payment_status"):
            continue
        setattr(expense, field, value)

    await db.commit()
    await db.refresh(expense)

    await invalidate_farm_analytics(expense.farm_id)
    return expense


@router.delete("/expenses/{expense_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_expense(
    expense_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    expense = await _get_owned_record(db, Expense, expense_id, user_id, "Expense")
    farm_id = expense.farm_id

    await db.delete(expense)
    await db.commit()

    await invalidate_farm_analytics(farm_id)


@router.post("/expenses/bulk-payment-status", response_model=BulkResult)
async def update_expenses_payment_status(
    body: BulkPaymentStatusUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Set the payment status of several expenses; ids outside the user's farms are ignored"""
    expenses = await _owned_records(db, Expense, body.ids, user_id)
    for expense in expenses:
        expense.payment_status = body.payment_status
        if body.payment_date is not None:
            expense.payment_date = body.payment_date
    await db.commit()

    return BulkResult(success=True, count=len(expenses))


@router.post("/expenses/bulk-delete", response_model=BulkResult)
async def delete_expenses(
    body: BulkDeleteRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Delete several expenses, writing an audit entry for each"""
    expenses = await _owned_records(db, Expense, body.ids, user_id)
    farm_ids = {e.farm_id for e in expenses}

    for expense in expenses:
        record_audit(
            db,
            user_id=UUID(user_id),
            entity_type="expense",
            entity_id=expense.id,
            action="delete",
            old_values=_snapshot(expense, "expense_date", "expense_type"),
            request=request,
        )
        await db.delete(expense)
    await db.commit()

    for farm_id in farm_ids:
        await invalidate_farm_analytics(farm_id)

    logger.info(f"User {user_id} deleted {len(expenses)} expenses")
    return BulkResult(success=True, count=len(expenses))


# Revenue

@router.post("/revenue", response_model=RevenueResponse, status_code=status.HTTP_201_CREATED)
async def create_revenue(
    revenue_data: RevenueCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Record revenue; the amount must be positive"""
    await get_owned_farm(db, revenue_data.farm_id, user_id)
    await _check_animal(db, revenue_data.animal_id, revenue_data.farm_id)

    revenue = Revenue(**revenue_data.model_dump())
    db.add(revenue)
    await db.commit()
    await db.refresh(revenue)

    await invalidate_farm_analytics(revenue.farm_id)
    return revenue


@router.get("/revenue", response_model=RevenueList)
async def get_revenue(
    farm_id: UUID,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    revenue_type: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    await get_owned_farm(db, farm_id, user_id)

    filters = [Revenue.farm_id == farm_id] + _date_filters(Revenue.revenue_date, start_date, end_date)
    if revenue_type:
        filters.append(Revenue.revenue_type == revenue_type)

    total_result = await db.execute(
        select(func.count()).select_from(Revenue).where(and_(*filters))
    )
    total = total_result.scalar()

    offset = (page - 1) * page_size
    result = await db.execute(
        select(Revenue)
        .where(and_(*filters))
        .order_by(Revenue.revenue_date.desc(), Revenue.created_at.desc())
        .offset(offset)
        .limit(page_size)
    )

    return RevenueList(
        revenue=result.scalars().all(),
        total=total,
        page=page,
        page_size=page_size
    )


@router.get("/revenue/breakdown", response_model=Breakdown)
async def get_revenue_breakdown(
    farm_id: UUID,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Revenue totals per revenue type with percentage shares"""
    await get_owned_farm(db, farm_id, user_id)

    filters = [Revenue.farm_id == farm_id] + _date_filters(Revenue.revenue_date, start_date, end_date)
    totals = await _totals_by(db, Revenue.revenue_type, Revenue.amount, filters)

    return breakdown(totals)


@router.put("/revenue/{revenue_id}", response_model=RevenueResponse)
async def update_revenue(
    revenue_id: UUID,
    revenue_data: RevenueUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    revenue = await _get_owned_record(db, Revenue, revenue_id, user_id, "Revenue")

    for field, value in revenue_data.model_dump(exclude_unset=True).items():
        if value is None and field in ("revenue_type", "description", "amount", "revenue_date", "payment_status"):
            continue
        setattr(revenue, field, value)

    await db.commit()
    await db.refresh(revenue)

    await invalidate_farm_analytics(revenue.farm_id)
    return revenue


@router.delete("/revenue/{revenue_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_revenue(
    revenue_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    revenue = await _get_owned_record(db, Revenue, revenue_id, user_id, "Revenue")
    farm_id = revenue.farm_id

    await db.delete(revenue)
    await db.commit()

    await invalidate_farm_analytics(farm_id)


@router.post("/revenue/bulk-payment-status", response_model=BulkResult)
async def update_revenue_payment_status(
    body: BulkPaymentStatusUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    records = await _owned_records(db, Revenue, body.ids, user_id)
    for record in records:
        record.payment_status = body.payment_status
        if body.payment_date is not None:
            record.payment_date = body.payment_date
    await db.commit()

    return BulkResult(success=True, count=len(records))


@router.post("/revenue/bulk-delete", response_model=BulkResult)
async def delete_revenue_records(
    body: BulkDeleteRequest,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    records = await _owned_records(db, Revenue, body.ids, user_id)
    farm_ids = {r.farm_id for r in records}

    for record in records:
        record_audit(
            db,
            user_id=UUID(user_id),
            entity_type="revenue",
            entity_id=record.id,
            action="delete",
            old_values=_snapshot(record, "revenue_date", "revenue_type"),
            request=request,
        )
        await db.delete(record)
    await db.commit()

    for farm_id in farm_ids:
        await invalidate_farm_analytics(farm_id)

    logger.info(f"User {user_id} deleted {len(records)} revenue records")
    return BulkResult(success=True, count=len(records))


# Reports

@router.get("/summary", response_model=FinancialSummary)
async def get_financial_summary(
    farm_ids: list[UUID] = Query(...),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Revenue, expenses, profit and profit margin across one or more farms"""
    for farm_id in farm_ids:
        await get_owned_farm(db, farm_id, user_id)

    total_revenue = await _total(
        db, Revenue.amount,
        [Revenue.farm_id.in_(farm_ids)] + _date_filters(Revenue.revenue_date, start_date, end_date)
    )
    total_expenses = await _total(
        db, Expense.amount,
        [Expense.farm_id.in_(farm_ids)] + _date_filters(Expense.expense_date, start_date, end_date)
    )

    return summarize(total_revenue, total_expenses)


@router.get("/cost-per-animal", response_model=CostPerAnimal)
async def calculate_cost_per_animal(
    farm_id: UUID,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Average spend per active animal on a farm"""
    await get_owned_farm(db, farm_id, user_id)

    total_expenses = await _total(
        db, Expense.amount,
        [Expense.farm_id == farm_id] + _date_filters(Expense.expense_date, start_date, end_date)
    )
    animals_result = await db.execute(
        select(func.count()).select_from(Animal).where(
            and_(Animal.farm_id == farm_id, Animal.status == "active")
        )
    )
    total_animals = animals_result.scalar() or 0

    return CostPerAnimal(
        total_expenses=round(total_expenses, 2),
        total_animals=total_animals,
        average_cost_per_animal=round(total_expenses / total_animals, 2) if total_animals else 0.0
    )


@router.get("/cost-per-hectare", response_model=CostPerHectare)
async def calculate_cost_per_hectare(
    farm_id: UUID,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Spend per hectare of the farm; null when the farm size is not recorded"""
    farm = await get_owned_farm(db, farm_id, user_id)

    total_expenses = await _total(
        db, Expense.amount,
        [Expense.farm_id == farm_id] + _date_filters(Expense.expense_date, start_date, end_date)
    )
    return cost_per_hectare(total_expenses, farm.size_hectares)


@router.get("/profitability-by-animal", response_model=list[AnimalProfitability])
async def get_profitability_by_animal(
    farm_id: UUID,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """
    Revenue, expenses and profit of each animal on the farm, most profitable first

    Only records linked to an animal count.
    """
    await get_owned_farm(db, farm_id, user_id)

    animals = await db.execute(
        select(Animal.id, Animal.tag_id, Animal.species).where(Animal.farm_id == farm_id)
    )
    revenue = await _totals_by(
        db, Revenue.animal_id, Revenue.amount,
        [Revenue.farm_id == farm_id, Revenue.animal_id.is_not(None)]
        + _date_filters(Revenue.revenue_date, start_date, end_date)
    )
    expenses = await _totals_by(
        db, Expense.animal_id, Expense.amount,
        [Expense.farm_id == farm_id, Expense.animal_id.is_not(None)]
        + _date_filters(Expense.expense_date, start_date, end_date)
    )

    return animal_profitability([tuple(row) for row in animals.all()], revenue, expenses)


@router.get("/payment-tracking", response_model=PaymentTracking)
async def get_payment_tracking(
    farm_id: UUID,
    record_type: Literal["expense", "revenue"] = "expense",
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Count and amount per payment status; outstanding is pending plus partial"""
    await get_owned_farm(db, farm_id, user_id)

    model = Expense if record_type == "expense" else Revenue
    result = await db.execute(
        select(model.payment_status, func.count(), func.coalesce(func.sum(model.amount), 0))
        .where(model.farm_id == farm_id)
        .group_by(model.payment_status)
    )
    rows = {row[0]: PaymentStatusTotals(count=row[1], amount=round(float(row[2]), 2)) for row in result.all()}
    empty = PaymentStatusTotals(count=0, amount=0.0)

    pending = rows.get("pending", empty)
    partial = rows.get("partial", empty)
    return PaymentTracking(
        pending=pending,
        paid=rows.get("paid", empty),
        partial=partial,
        total_outstanding=round(pending.amount + partial.amount, 2)
    )


# Budgets

@router.post("/budgets", response_model=BudgetResponse, status_code=status.HTTP_201_CREATED)
async def create_budget(
    budget_data: BudgetCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    await get_owned_farm(db, budget_data.farm_id, user_id)

    budget = Budget(**budget_data.model_dump())
    db.add(budget)
    await db.commit()
    await db.refresh(budget)

    return budget


@router.get("/budgets", response_model=list[BudgetResponse])
async def get_budgets(
    farm_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    await get_owned_farm(db, farm_id, user_id)

    result = await db.execute(
        select(Budget).where(Budget.farm_id == farm_id).order_by(Budget.start_date.desc())
    )
    return result.scalars().all()


@router.get("/budgets/vs-actual", response_model=list[BudgetVsActual])
async def get_budget_vs_actual(
    farm_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """
    Compare each budget with the expenses of its category inside its window

    variance_percent is spent relative to allocated, minus 100: negative
    means under budget.
    """
    await get_owned_farm(db, farm_id, user_id)

    result = await db.execute(
        select(Budget).where(Budget.farm_id == farm_id).order_by(Budget.start_date.desc())
    )

    report = []
    for budget in result.scalars().all():
        spent = await _total(db, Expense.amount, [
            Expense.farm_id == farm_id,
            Expense.expense_type == budget.category,
            Expense.expense_date >= budget.start_date,
            Expense.expense_date <= budget.end_date,
        ])
        allocated = float(budget.allocated_amount)
        report.append(BudgetVsActual(
            budget_id=budget.id,
            budget_name=budget.budget_name,
            category=budget.category,
            allocated=round(allocated, 2),
            spent=round(spent, 2),
            remaining=round(allocated - spent, 2),
            variance_percent=round((spent / allocated * 100) - 100, 1) if allocated else 0.0,
        ))

    return report


# Invoices

@router.post("/invoices", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    invoice_data: InvoiceCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """
    Issue a draft invoice

    Line amounts and the total are computed here, rounded to the cent.
    Invoice numbers are unique.
    """
    await get_owned_farm(db, invoice_data.farm_id, user_id)

    items = [
        {
            "description": line.description,
            "quantity": str(line.quantity),
            "unit_price": str(line.unit_price),
            "amount": str(line_subtotal(line.unit_price, line.quantity)),
        }
        for line in invoice_data.items
    ]
    invoice = Invoice(
        **invoice_data.model_dump(exclude={"items"}),
        items=items,
        total_amount=order_total((line.unit_price, line.quantity) for line in invoice_data.items),
        status="draft",
    )
    db.add(invoice)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Invoice number {invoice_data.invoice_number} is already in use"
        )
    await db.refresh(invoice)

    logger.info(f"User {user_id} issued invoice {invoice.invoice_number}")
    return invoice


@router.get("/invoices", response_model=InvoiceList)
async def get_invoices(
    farm_id: UUID,
    status_filter: Optional[InvoiceStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """List a farm's invoices, newest first, optionally by status"""
    await get_owned_farm(db, farm_id, user_id)

    filters = [Invoice.farm_id == farm_id]
    if status_filter:
        filters.append(Invoice.status == status_filter)

    total_result = await db.execute(
        select(func.count()).select_from(Invoice).where(and_(*filters))
    )
    total = total_result.scalar()

    result = await db.execute(
        select(Invoice)
        .where(and_(*filters))
        .order_by(Invoice.invoice_date.desc(), Invoice.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )

    return InvoiceList(
        invoices=result.scalars().all(),
        total=total,
        page=page,
        page_size=page_size
    )


@router.put("/invoices/{invoice_id}/status", response_model=InvoiceResponse)
async def update_invoice_status(
    invoice_id: UUID,
    body: InvoiceStatusUpdate,
    request: Request,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """
    Move an invoice along draft -> sent -> paid | overdue

    Draft, sent and overdue invoices can be cancelled. Paid and cancelled
    invoices are final.
    """
    invoice = await _get_owned_record(db, Invoice, invoice_id, user_id, "Invoice")

    if not can_transition(invoice.status, body.status, INVOICE_TRANSITIONS):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Cannot change invoice from {invoice.status} to {body.status}"
        )

    record_audit(
        db,
        user_id=UUID(user_id),
        entity_type="invoice",
        entity_id=invoice.id,
        action="update",
        old_values={"status": invoice.status},
        new_values={"status": body.status},
        request=request,
    )
    invoice.status = body.status
    if body.status == "paid":
        invoice.paid_at = datetime.now(timezone.utc)

    await db.commit()
    await db.refresh(invoice)

    return invoice
