from pydantic import BaseModel
from datetime import date
from typing import Optional, Literal
from uuid import UUID


class EndOfYearForecast(BaseModel):
    """Projected year-end financial position of a farm"""
    farm_id: UUID
    year: int
    current_month: int
    months_with_data: int
    current_revenue: float
    current_expenses: float
    average_monthly_revenue: float
    average_monthly_expenses: float
    revenue_trend: float
    expense_trend: float
    projected_revenue: float
    projected_expenses: float
    projected_total_revenue: float
    projected_total_expenses: float
    projected_profit: float
    projected_profit_margin: float
    confidence: float


class MonthlyTotal(BaseModel):
    month: str
    total: float
    breakdown: dict[str, float]


class TrendResponse(BaseModel):
    farm_id: UUID
    months: int
    data: list[MonthlyTotal]


class SavingOpportunity(BaseModel):
    category: str
    current_spend: float
    share_of_spend: float
    potential_savings: float
    savings_percentage: float
    annual_savings: float
    priority: Literal["high", "medium", "low"]
    recommendation: str


class CostSavings(BaseModel):
    farm_id: UUID
    months: int
    analysis_depth: Literal["basic", "detailed"]
    opportunities_found: int
    opportunities: list[SavingOpportunity]
    total_potential_savings: float


class PurchaseTiming(BaseModel):
    """Cheapest and dearest months to buy one expense category"""
    farm_id: UUID
    category: str
    purchases_analyzed: int
    monthly_average_price: dict[str, float]
    optimal_months: list[str]
    avoid_months: list[str]
    estimated_savings_percent: float
    next_optimal_purchase_date: Optional[date]
    typical_quantity: Optional[float]


class FarmHealthScore(BaseModel):
    farm_id: UUID
    health_score: float
    status: Literal["excellent", "good", "fair", "poor"]
    profitability_score: float
    efficiency_score: float
    data_quality_score: float
    profit_margin: float
    revenue_per_hectare: float
