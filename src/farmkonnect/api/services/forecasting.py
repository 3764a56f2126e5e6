"""
Financial forecasting and scoring for farms

Pure functions over (date, amount, category) rows so the arithmetic can be
tested without a database. Routers load the rows and hand them over.
"""

import calendar
from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

Row = Tuple[date, float, str]


def monthly_totals(rows: Iterable[Row], year: int, through_month: int = 12) -> Dict[int, float]:
    """
    Sum amounts per calendar month of one year

    Args:
        rows: (date, amount, category) tuples
        year: Calendar year to aggregate
        through_month: Last month (1-12) to include

    Returns:
        Mapping of month number to total, only for months with data
    """
    totals: Dict[int, float] = defaultdict(float)
    for day, amount, _ in rows:
        if day.year == year and day.month <= through_month:
            totals[day.month] += float(amount)
    return dict(totals)


def linear_trend(monthly: Dict[int, float]) -> float:
    """Least-squares slope of monthly totals, in currency per month"""
    if len(monthly) < 2:
        return 0.0
    months = sorted(monthly)
    x = np.array(months, dtype=float)
    y = np.array([monthly[m] for m in months], dtype=float)
    slope, _intercept = np.polyfit(x, y, 1)
    return float(slope)


def forecast_end_of_year(
    expense_rows: Iterable[Row],
    revenue_rows: Iterable[Row],
    current_month: int,
    year: int,
) -> dict:
    """
    Project year-end revenue, expenses and profit

    The remaining months are assumed to look like the average month so far
    plus the month-on-month trend.
    """
    if not 1 <= current_month <= 12:
        raise ValueError("current_month must be between 1 and 12")

    expenses = monthly_totals(expense_rows, year, current_month)
    revenue = monthly_totals(revenue_rows, year, current_month)

    months_with_data = len(set(expenses) | set(revenue))
    divisor = months_with_data or 1

    current_expenses = sum(expenses.values())
    current_revenue = sum(revenue.values())
    avg_expenses = current_expenses / divisor
    avg_revenue = current_revenue / divisor
    expense_trend = linear_trend(expenses)
    revenue_trend = linear_trend(revenue)

    remaining_months = 12 - current_month
    projected_expenses = (avg_expenses + expense_trend) * remaining_months
    projected_revenue = (avg_revenue + revenue_trend) * remaining_months

    total_expenses = current_expenses + projected_expenses
    total_revenue = current_revenue + projected_revenue
    profit = total_revenue - total_expenses
    margin = (profit / total_revenue) * 100 if total_revenue > 0 else 0.0

    return {
        "year": year,
        "current_month": current_month,
        "months_with_data": months_with_data,
        "current_revenue": round(current_revenue, 2),
        "current_expenses": round(current_expenses, 2),
        "average_monthly_revenue": round(avg_revenue, 2),
        "average_monthly_expenses": round(avg_expenses, 2),
        "revenue_trend": round(revenue_trend, 2),
        "expense_trend": round(expense_trend, 2),
        "projected_revenue": round(projected_revenue, 2),
        "projected_expenses": round(projected_expenses, 2),
        "projected_total_revenue": round(total_revenue, 2),
        "projected_total_expenses": round(total_expenses, 2),
        "projected_profit": round(profit, 2),
        "projected_profit_margin": round(margin, 1),
        "confidence": round(min(100.0, months_with_data / 12 * 100), 1),
    }


def monthly_trend(rows: Iterable[Row], months: int, today: Optional[date] = None) -> List[dict]:
    """
    Monthly totals with a per-category breakdown

    Only the last `months` calendar months (ending with the month of `today`)
    are kept, oldest first. Months without data are omitted.
    """
    if not 1 <= months <= 12:
        raise ValueError("months must be between 1 and 12")
    today = today or date.today()

    # Index of the earliest month to keep, counted in months since year 0
    last_index = today.year * 12 + today.month - 1
    first_index = last_index - months + 1

    buckets: Dict[str, Dict[str, float]] = defaultdict(lambda: defaultdict(float))
    for day, amount, category in rows:
        index = day.year * 12 + day.month - 1
        if first_index <= index <= last_index:
            buckets[f"{day.year:04d}-{day.month:02d}"][category] += float(amount)

    trend = []
    for month in sorted(buckets):
        breakdown = {k: round(v, 2) for k, v in sorted(buckets[month].items())}
        trend.append({
            "month": month,
            "total": round(sum(buckets[month].values()), 2),
            "breakdown": breakdown,
        })
    return trend


def summarize(total_revenue: float, total_expenses: float) -> dict:
    """Profit and margin for a pair of totals"""
    profit = total_revenue - total_expenses
    margin = (profit / total_revenue) * 100 if total_revenue > 0 else 0.0
    return {
        "total_revenue": round(total_revenue, 2),
        "total_expenses": round(total_expenses, 2),
        "profit": round(profit, 2),
        "profit_margin": round(margin, 2),
    }


def breakdown(totals: Dict[str, float]) -> dict:
    """Per-type totals with each type's percentage of the grand total"""
    total = sum(totals.values())
    return {
        "breakdown": {k: round(v, 2) for k, v in totals.items()},
        "percentages": {
            k: round(v / total * 100, 2) if total > 0 else 0.0
            for k, v in totals.items()
        },
        "total": round(total, 2),
    }


# Fraction of a category's spend assumed recoverable
SAVINGS_RATE = 0.15

SAVINGS_RECOMMENDATIONS = {
    "feed": "Negotiate bulk discounts with feed suppliers",
    "equipment": "Consider equipment leasing instead of purchase",
    "fertilizer": "Buy fertilizer off-season and split orders with neighbouring farms",
    "seeds": "Order seed early and compare certified suppliers",
    "labor": "Schedule seasonal labour around planting and harvest peaks",
    "utilities": "Audit electricity and fuel use for idle equipment",
    "transport": "Combine deliveries and share haulage with other farms",
    "medication": "Use preventive herd health plans to cut treatment costs",
    "veterinary": "Group routine veterinary visits",
    "water": "Check irrigation for leaks and water at cooler hours",
}
DEFAULT_RECOMMENDATION = "Compare quotes from at least three suppliers"


def cost_saving_opportunities(
    totals: Dict[str, float],
    months: int,
    detailed: bool = False,
) -> dict:
    """
    Rank expense categories by how much could be saved on them

    Args:
        totals: Spend per expense type over the analysis window
        months: Length of the window, used to annualize savings
        detailed: Include every category instead of only those making up
            at least 10% of spend

    Returns:
        Opportunities sorted by potential savings, largest first
    """
    if months < 1:
        raise ValueError("months must be positive")

    grand_total = sum(totals.values())
    opportunities = []
    for category, spend in totals.items():
        share = spend / grand_total * 100 if grand_total > 0 else 0.0
        if spend <= 0 or (not detailed and share < 10):
            continue
        savings = spend * SAVINGS_RATE
        if share >= 30:
            priority = "high"
        elif share >= 15:
            priority = "medium"
        else:
            priority = "low"
        opportunities.append({
            "category": category,
            "current_spend": round(spend, 2),
            "share_of_spend": round(share, 1),
            "potential_savings": round(savings, 2),
            "savings_percentage": round(SAVINGS_RATE * 100, 1),
            "annual_savings": round(savings * 12 / months, 2),
            "priority": priority,
            "recommendation": SAVINGS_RECOMMENDATIONS.get(category, DEFAULT_RECOMMENDATION),
        })

    opportunities.sort(key=lambda o: o["potential_savings"], reverse=True)
    return {
        "opportunities_found": len(opportunities),
        "opportunities": opportunities,
        "total_potential_savings": round(sum(o["potential_savings"] for o in opportunities), 2),
    }


def purchase_timing(
    purchases: Iterable[Tuple[date, float, Optional[float]]],
    today: Optional[date] = None,
) -> dict:
    """
    Find the calendar months in which a category has been cheapest

    Each purchase is (date, amount, quantity). The unit price is
    amount / quantity, or the amount itself when no quantity was recorded.
    Months are compared by their average unit price across all years.
    """
    today = today or date.today()

    prices: Dict[int, List[float]] = defaultdict(list)
    quantities = []
    for day, amount, quantity in purchases:
        qty = float(quantity) if quantity else 1.0
        prices[day.month].append(float(amount) / qty)
        quantities.append(qty)

    if not prices:
        return {
            "purchases_analyzed": 0,
            "monthly_average_price": {},
            "optimal_months": [],
            "avoid_months": [],
            "estimated_savings_percent": 0.0,
            "next_optimal_purchase_date": None,
            "typical_quantity": None,
        }

    averages = {month: sum(values) / len(values) for month, values in prices.items()}
    overall = sum(averages.values()) / len(averages)
    ranked = sorted(averages, key=lambda m: (averages[m], m))

    optimal = [m for m in ranked if averages[m] < overall][:4]
    avoid = [m for m in reversed(ranked) if averages[m] > overall][:4]
    if not optimal:
        optimal = ranked[:1]

    cheapest = averages[ranked[0]]
    savings = (overall - cheapest) / overall * 100 if overall > 0 else 0.0

    # First day of the next optimal month, this month excluded
    next_date = None
    for offset in range(1, 13):
        index = today.year * 12 + today.month - 1 + offset
        if index % 12 + 1 in optimal:
            next_date = date(index // 12, index % 12 + 1, 1)
            break

    return {
        "purchases_analyzed": len(quantities),
        "monthly_average_price": {calendar.month_name[m]: round(averages[m], 2) for m in sorted(averages)},
        "optimal_months": [calendar.month_name[m] for m in sorted(optimal)],
        "avoid_months": [calendar.month_name[m] for m in sorted(avoid)],
        "estimated_savings_percent": round(savings, 1),
        "next_optimal_purchase_date": next_date,
        "typical_quantity": round(float(np.median(quantities)), 2),
    }


def farm_health_score(total_revenue: float, total_expenses: float, size_hectares: Optional[float]) -> dict:
    """
    Score a farm from 0 to 100

    Weighted from profitability (50%), revenue per hectare (30%) and the
    volume of recorded transactions (20%). A farm without a recorded size
    is treated as one hectare.
    """
    profit = total_revenue - total_expenses
    margin = (profit / total_revenue) * 100 if total_revenue > 0 else -100.0

    if margin >= 20:
        profitability = 100.0
    elif margin >= 10:
        profitability = 80.0
    elif margin >= 0:
        profitability = 50.0
    elif margin >= -20:
        profitability = 25.0
    else:
        profitability = 0.0

    hectares = float(size_hectares) if size_hectares else 1.0
    revenue_per_hectare = total_revenue / hectares
    efficiency = min(100.0, revenue_per_hectare)
    data_quality = min(100.0, (total_revenue + total_expenses) / 1000)

    score = profitability * 0.5 + efficiency * 0.3 + data_quality * 0.2
    if score >= 80:
        rating = "excellent"
    elif score >= 60:
        rating = "good"
    elif score >= 40:
        rating = "fair"
    else:
        rating = "poor"

    return {
        "health_score": round(score, 1),
        "status": rating,
        "profitability_score": round(profitability, 1),
        "efficiency_score": round(efficiency, 1),
        "data_quality_score": round(data_quality, 1),
        "profit_margin": round(margin, 1),
        "revenue_per_hectare": round(revenue_per_hectare, 2),
    }


def cost_per_hectare(total_expenses: float, size_hectares: Optional[float]) -> dict:
    """Spend per hectare; None when the farm has no recorded size"""
    hectares = float(size_hectares) if size_hectares else None
    return {
        "total_expenses": round(total_expenses, 2),
        "total_hectares": hectares,
        "cost_per_hectare": round(total_expenses / hectares, 2) if hectares else None,
    }


def animal_profitability(
    animals: Iterable[Tuple],
    revenue: Dict,
    expenses: Dict,
) -> List[dict]:
    """
    Profit, margin and return on spend per animal

    Args:
        animals: (animal_id, tag_id, species) tuples
        revenue: Revenue total per animal id
        expenses: Expense total per animal id
    """
    report = []
    for animal_id, tag_id, species in animals:
        earned = float(revenue.get(animal_id, 0))
        spent = float(expenses.get(animal_id, 0))
        profit = earned - spent
        report.append({
            "animal_id": animal_id,
            "tag_id": tag_id,
            "species": species,
            "total_revenue": round(earned, 2),
            "total_expenses": round(spent, 2),
            "profit": round(profit, 2),
            "profit_margin": round(profit / earned * 100, 2) if earned > 0 else 0.0,
            "roi": round(profit / spent * 100, 2) if spent > 0 else 0.0,
        })
    report.sort(key=lambda r: r["profit"], reverse=True)
    return report
