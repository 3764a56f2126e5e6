from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, and_
from datetime import date
from typing import Optional, Literal
from uuid import UUID
import logging

from farmkonnect.api.core.database import get_db
from farmkonnect.api.core.security import get_current_user_id
from farmkonnect.api.core.cache import CacheService
from farmkonnect.api.models.finance import Expense, Revenue
from farmkonnect.api.schemas.analytics import (
    EndOfYearForecast,
    TrendResponse,
    CostSavings,
    PurchaseTiming,
    FarmHealthScore,
)
from farmkonnect.api.schemas.finance import ExpenseType
from farmkonnect.api.services.farms import get_owned_farm
from farmkonnect.api.services import forecasting
from farmkonnect.api.config import settings

router = APIRouter()
logger = logging.getLogger(__name__)


async def _expense_rows(db: AsyncSession, farm_id: UUID, start: date, end: date):
    result = await db.execute(
        select(Expense.expense_date, Expense.amount, Expense.expense_type).where(
            and_(
                Expense.farm_id == farm_id,
                Expense.expense_date >= start,
                Expense.expense_date <= end
            )
        )
    )
    return [tuple(row) for row in result.all()]


async def _revenue_rows(db: AsyncSession, farm_id: UUID, start: date, end: date):
    result = await db.execute(
        select(Revenue.revenue_date, Revenue.amount, Revenue.revenue_type).where(
            and_(
                Revenue.farm_id == farm_id,
                Revenue.revenue_date >= start,
                Revenue.revenue_date <= end
            )
        )
    )
    return [tuple(row) for row in result.all()]


def _trend_window(months: int, today: date) -> date:
    """First day of the earliest month in a window of `months` ending today"""
    index = today.year * 12 + today.month - 1 - (months - 1)
    return date(index // 12, index % 12 + 1, 1)


@router.get("/forecast/{farm_id}", response_model=EndOfYearForecast)
async def forecast_end_of_year(
    farm_id: UUID,
    current_month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None, ge=2000, le=2100),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """
    Project the farm's year-end revenue, expenses and profit

    Uses the months of the year up to current_month. Results are cached per
    farm until its expenses or revenue change.
    """
    await get_owned_farm(db, farm_id, user_id)
    today = date.today()
    year = year or today.year
    current_month = current_month or today.month

    cache = CacheService()
    cache_key = f"analytics:{farm_id}:forecast:{year}:{current_month}"
    cached = await cache.get(cache_key)
    if cached:
        logger.info(f"Forecast cache hit for farm {farm_id}")
        return cached

    start, end = date(year, 1, 1), date(year, 12, 31)
    expense_rows = await _expense_rows(db, farm_id, start, end)
    revenue_rows = await _revenue_rows(db, farm_id, start, end)

    forecast = forecasting.forecast_end_of_year(expense_rows, revenue_rows, current_month, year)
    forecast["farm_id"] = str(farm_id)

    await cache.set(cache_key, forecast, ttl=settings.CACHE_TTL_FORECAST)
    return forecast


@router.get("/spending-trend/{farm_id}", response_model=TrendResponse)
async def get_spending_trend(
    farm_id: UUID,
    months: int = Query(6, ge=1, le=12),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Monthly expense totals with a per-type breakdown, oldest month first"""
    await get_owned_farm(db, farm_id, user_id)
    today = date.today()

    cache = CacheService()
    cache_key = f"analytics:{farm_id}:spending:{today.isoformat()}:{months}"
    cached = await cache.get(cache_key)
    if cached:
        return cached

    rows = await _expense_rows(db, farm_id, _trend_window(months, today), today)
    response = {
        "farm_id": str(farm_id),
        "months": months,
        "data": forecasting.monthly_trend(rows, months, today),
    }

    await cache.set(cache_key, response, ttl=settings.CACHE_TTL_TREND)
    return response


@router.get("/revenue-trend/{farm_id}", response_model=TrendResponse)
async def get_revenue_trend(
    farm_id: UUID,
    months: int = Query(6, ge=1, le=12),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Monthly revenue totals with a per-source breakdown, oldest month first"""
    await get_owned_farm(db, farm_id, user_id)
    today = date.today()

    cache = CacheService()
    cache_key = f"analytics:{farm_id}:revenue:{today.isoformat()}:{months}"
    cached = await cache.get(cache_key)
    if cached:
        return cached

    rows = await _revenue_rows(db, farm_id, _trend_window(months, today), today)
    response = {
        "farm_id": str(farm_id),
        "months": months,
        "data": forecasting.monthly_trend(rows, months, today),
    }

    await cache.set(cache_key, response, ttl=settings.CACHE_TTL_TREND)
    return response


@router.get("/cost-savings/{farm_id}", response_model=CostSavings)
async def identify_cost_savings(
    farm_id: UUID,
    months: int = Query(12, ge=1, le=24),
    analysis_depth: Literal["basic", "detailed"] = "basic",
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """
    Expense categories worth renegotiating, largest saving first

    A basic analysis only looks at categories making up at least 10% of the
    spend over the last `months` months.
    """
    await get_owned_farm(db, farm_id, user_id)
    today = date.today()

    cache = CacheService()
    cache_key = f"analytics:{farm_id}:savings:{today.isoformat()}:{months}:{analysis_depth}"
    cached = await cache.get(cache_key)
    if cached:
        return cached

    result = await db.execute(
        select(Expense.expense_type, func.coalesce(func.sum(Expense.amount), 0))
        .where(
            and_(
                Expense.farm_id == farm_id,
                Expense.expense_date >= _trend_window(months, today),
                Expense.expense_date <= today
            )
        )
        .group_by(Expense.expense_type)
    )
    totals = {row[0]: float(row[1]) for row in result.all()}

    response = forecasting.cost_saving_opportunities(totals, months, detailed=analysis_depth == "detailed")
    response.update(farm_id=str(farm_id), months=months, analysis_depth=analysis_depth)

    await cache.set(cache_key, response, ttl=settings.CACHE_TTL_TREND)
    return response


@router.get("/purchase-timing/{farm_id}", response_model=PurchaseTiming)
async def get_optimal_purchase_timing(
    farm_id: UUID,
    category: ExpenseType,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Best months to buy a category, from the unit prices the farm has paid"""
    await get_owned_farm(db, farm_id, user_id)
    today = date.today()

    cache = CacheService()
    cache_key = f"analytics:{farm_id}:timing:{today.isoformat()}:{category}"
    cached = await cache.get(cache_key)
    if cached:
        return cached

    result = await db.execute(
        select(Expense.expense_date, Expense.amount, Expense.quantity).where(
            and_(
                Expense.farm_id == farm_id,
                Expense.expense_type == category
            )
        )
    )
    timing = forecasting.purchase_timing([tuple(row) for row in result.all()], today)
    timing.update(farm_id=str(farm_id), category=category)

    await cache.set(cache_key, timing, ttl=settings.CACHE_TTL_TREND)
    return timing


@router.get("/health-score/{farm_id}", response_model=FarmHealthScore)
async def get_farm_health_score(
    farm_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db)
):
    """Overall 0-100 score from profitability, revenue per hectare and record volume"""
    farm = await get_owned_farm(db, farm_id, user_id)

    expense_total = await db.execute(
        select(func.coalesce(func.sum(Expense.amount), 0)).where(Expense.farm_id == farm_id)
    )
    revenue_total = await db.execute(
        select(func.coalesce(func.sum(Revenue.amount), 0)).where(Revenue.farm_id == farm_id)
    )

    score = forecasting.farm_health_score(
        float(revenue_total.scalar() or 0),
        float(expense_total.scalar() or 0),
        farm.size_hectares,
    )
    score["farm_id"] = str(farm_id)
    return score
