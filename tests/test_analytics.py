"""
Tests for financial forecasting and trend reports
Run with: pytest tests/test_analytics.py -v
"""

import pytest
from fastapi.testclient import TestClient
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock, patch
import uuid

from farmkonnect.api.main import app
from farmkonnect.api.services import forecasting

client = TestClient(app, raise_server_exceptions=False)

EXPENSES = [
    (date(2025, 1, 10), 100, "feed"),
    (date(2025, 2, 10), 150, "feed"),
    (date(2025, 2, 20), 50, "labor"),
    (date(2025, 3, 10), 300, "feed"),
]
REVENUE = [
    (date(2025, 1, 15), 300, "crop_sale"),
    (date(2025, 2, 15), 300, "crop_sale"),
    (date(2025, 3, 15), 300, "milk_production"),
]


class TestForecastArithmetic:
    """Test the end-of-year projection"""

    def test_linear_trend(self):
        assert forecasting.linear_trend({1: 100, 2: 200, 3: 300}) == pytest.approx(100)
        assert forecasting.linear_trend({5: 300, 1: 300}) == pytest.approx(0)

    def test_trend_needs_two_months(self):
        assert forecasting.linear_trend({}) == 0.0
        assert forecasting.linear_trend({4: 500}) == 0.0

    def test_trend_follows_calendar_order(self):
        # Falling spend must give a negative slope regardless of magnitudes
        assert forecasting.linear_trend({1: 300, 2: 200, 3: 100}) == pytest.approx(-100)

    def test_forecast_end_of_year(self):
        result = forecasting.forecast_end_of_year(EXPENSES, REVENUE, current_month=3, year=2025)

        assert result["months_with_data"] == 3
        assert result["current_expenses"] == 600.0
        assert result["current_revenue"] == 900.0
        assert result["average_monthly_expenses"] == 200.0
        assert result["average_monthly_revenue"] == 300.0
        assert result["expense_trend"] == 100.0
        assert result["revenue_trend"] == 0.0
        assert result["projected_expenses"] == 2700.0
        assert result["projected_revenue"] == 2700.0
        assert result["projected_total_expenses"] == 3300.0
        assert result["projected_total_revenue"] == 3600.0
        assert result["projected_profit"] == 300.0
        assert result["projected_profit_margin"] == 8.3
        assert result["confidence"] == 25.0

    def test_forecast_ignores_other_years_and_later_months(self):
        rows = EXPENSES + [(date(2024, 12, 1), 10000, "feed"), (date(2025, 5, 1), 10000, "feed")]
        result = forecasting.forecast_end_of_year(rows, REVENUE, current_month=3, year=2025)
        assert result["current_expenses"] == 600.0

    def test_december_has_nothing_left_to_project(self):
        result = forecasting.forecast_end_of_year(EXPENSES, REVENUE, current_month=12, year=2025)
        assert result["projected_expenses"] == 0.0
        assert result["projected_total_expenses"] == result["current_expenses"]

    def test_forecast_without_data(self):
        result = forecasting.forecast_end_of_year([], [], current_month=6, year=2025)
        assert result["months_with_data"] == 0
        assert result["projected_total_revenue"] == 0.0
        assert result["projected_profit_margin"] == 0.0
        assert result["confidence"] == 0.0

    def test_confidence_is_capped(self):
        rows = [(date(2025, m, 1), 10, "feed") for m in range(1, 13)]
        result = forecasting.forecast_end_of_year(rows, rows, current_month=12, year=2025)
        assert result["confidence"] == 100.0

    @pytest.mark.parametrize("month", [0, 13])
    def test_invalid_month(self, month):
        with pytest.raises(ValueError):
            forecasting.forecast_end_of_year([], [], current_month=month, year=2025)


class TestMonthlyTrend:
    """Test monthly trend aggregation"""

    def test_window_and_breakdown(self):
        trend = forecasting.monthly_trend(EXPENSES, months=2, today=date(2025, 3, 31))

        assert [m["month"] for m in trend] == ["2025-02", "2025-03"]
        assert trend[0]["total"] == 200.0
        assert trend[0]["breakdown"] == {"feed": 150.0, "labor": 50.0}

    def test_window_crosses_year_boundary(self):
        rows = [(date(2024, 11, 5), 10, "feed"), (date(2025, 1, 5), 20, "feed")]
        trend = forecasting.monthly_trend(rows, months=2, today=date(2025, 1, 20))
        assert [m["month"] for m in trend] == ["2025-01"]

        trend = forecasting.monthly_trend(rows, months=3, today=date(2025, 1, 20))
        assert [m["month"] for m in trend] == ["2024-11", "2025-01"]

    def test_summarize_and_breakdown(self):
        assert forecasting.summarize(0, 50)["profit_margin"] == 0.0
        result = forecasting.breakdown({"feed": 1, "labor": 3})
        assert result["percentages"] == {"feed": 25.0, "labor": 75.0}


class TestCostSavings:
    """Test ranking expense categories by potential savings"""

    TOTALS = {"feed": 600, "labor": 300, "water": 60, "seeds": 40}

    def test_basic_skips_small_categories(self):
        result = forecasting.cost_saving_opportunities(self.TOTALS, months=6)

        assert result["opportunities_found"] == 2
        assert [o["category"] for o in result["opportunities"]] == ["feed", "labor"]
        feed = result["opportunities"][0]
        assert feed["potential_savings"] == 90.0
        assert feed["annual_savings"] == 180.0
        assert feed["share_of_spend"] == 60.0
        assert feed["priority"] == "high"
        assert result["total_potential_savings"] == 135.0

    def test_detailed_includes_everything(self):
        result = forecasting.cost_saving_opportunities(self.TOTALS, months=6, detailed=True)

        assert result["opportunities_found"] == 4
        assert result["opportunities"][-1]["category"] == "seeds"
        assert result["opportunities"][-1]["priority"] == "low"
        assert result["total_potential_savings"] == 150.0

    def test_priority_bands(self):
        result = forecasting.cost_saving_opportunities({"feed": 80, "transport": 20}, months=12)
        priorities = {o["category"]: o["priority"] for o in result["opportunities"]}
        assert priorities == {"feed": "high", "transport": "medium"}

    def test_unknown_category_gets_generic_advice(self):
        result = forecasting.cost_saving_opportunities({"rent": 100}, months=12)
        assert result["opportunities"][0]["recommendation"] == forecasting.DEFAULT_RECOMMENDATION

    def test_no_spend(self):
        result = forecasting.cost_saving_opportunities({}, months=12)
        assert result == {"opportunities_found": 0, "opportunities": [], "total_potential_savings": 0.0}


class TestPurchaseTiming:
    """Test picking the cheapest months to buy"""

    PURCHASES = [
        (date(2024, 1, 10), 100, 10),
        (date(2025, 1, 5), 120, 10),
        (date(2024, 6, 10), 200, 10),
        (date(2024, 11, 10), 90, 10),
        (date(2024, 3, 10), 15, None),
    ]

    def test_cheapest_and_dearest_months(self):
        result = forecasting.purchase_timing(self.PURCHASES, today=date(2025, 4, 15))

        assert result["purchases_analyzed"] == 5
        assert result["monthly_average_price"] == {
            "January": 11.0, "March": 15.0, "June": 20.0, "November": 9.0,
        }
        assert result["optimal_months"] == ["January", "November"]
        assert result["avoid_months"] == ["March", "June"]
        assert result["estimated_savings_percent"] == 34.5
        assert result["next_optimal_purchase_date"] == date(2025, 11, 1)
        assert result["typical_quantity"] == 10.0

    def test_next_purchase_rolls_into_next_year(self):
        result = forecasting.purchase_timing(self.PURCHASES, today=date(2025, 12, 2))
        assert result["next_optimal_purchase_date"] == date(2026, 1, 1)

    def test_flat_prices(self):
        purchases = [(date(2024, 2, 1), 50, 5), (date(2024, 8, 1), 10, 1)]
        result = forecasting.purchase_timing(purchases, today=date(2025, 1, 1))

        assert result["optimal_months"] == ["February"]
        assert result["avoid_months"] == []
        assert result["estimated_savings_percent"] == 0.0

    def test_no_purchases(self):
        result = forecasting.purchase_timing([], today=date(2025, 1, 1))
        assert result["purchases_analyzed"] == 0
        assert result["optimal_months"] == []
        assert result["next_optimal_purchase_date"] is None


class TestFarmHealthScore:
    """Test the weighted 0-100 farm score"""

    @pytest.mark.parametrize("revenue,expenses,hectares,score,rating", [
        (1000, 700, 5, 80.3, "excellent"),
        (1000, 880, 10, 70.4, "good"),
        (1000, 950, 20, 40.4, "fair"),
        (0, 500, None, 0.1, "poor"),
    ])
    def test_score_and_status(self, revenue, expenses, hectares, score, rating):
        result = forecasting.farm_health_score(revenue, expenses, hectares)
        assert result["health_score"] == score
        assert result["status"] == rating

    def test_components(self):
        result = forecasting.farm_health_score(1000, 950, 20)
        assert result["profitability_score"] == 50.0
        assert result["efficiency_score"] == 50.0
        assert result["data_quality_score"] == pytest.approx(1.95, abs=0.05)
        assert result["profit_margin"] == 5.0
        assert result["revenue_per_hectare"] == 50.0

    def test_no_revenue_is_a_full_loss(self):
        result = forecasting.farm_health_score(0, 500, None)
        assert result["profit_margin"] == -100.0
        assert result["profitability_score"] == 0.0


class TestPerUnitReports:
    """Test cost per hectare and per-animal profitability"""

    def test_cost_per_hectare(self):
        assert forecasting.cost_per_hectare(1250, Decimal("2.5")) == {
            "total_expenses": 1250.0, "total_hectares": 2.5, "cost_per_hectare": 500.0,
        }

    @pytest.mark.parametrize("hectares", [None, 0])
    def test_cost_per_hectare_without_size(self, hectares):
        assert forecasting.cost_per_hectare(100, hectares)["cost_per_hectare"] is None

    def test_animal_profitability(self):
        cow, goat, kid = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        animals = [(cow, "GH-1", "cattle"), (goat, "GH-2", "goat"), (kid, "GH-3", "goat")]

        report = forecasting.animal_profitability(animals, {cow: 1000}, {cow: 400, goat: 100})

        assert [r["tag_id"] for r in report] == ["GH-1", "GH-3", "GH-2"]
        assert report[0]["profit"] == 600.0
        assert report[0]["profit_margin"] == 60.0
        assert report[0]["roi"] == 150.0
        assert report[1]["roi"] == 0.0
        assert report[2]["profit_margin"] == 0.0
        assert report[2]["roi"] == -100.0


class TestAnalyticsEndpoints:
    """Test the analytics routes against the database"""

    @pytest.fixture
    def farm(self, farmer):
        _, headers = farmer
        farm = client.post("/api/v1/farms/", json={"farm_name": "Forecast Farm"}, headers=headers).json()
        for day, amount, kind in EXPENSES:
            client.post("/api/v1/finance/expenses", json={
                "farm_id": farm["id"], "expense_type": kind, "description": kind,
                "amount": amount, "expense_date": day.isoformat(),
            }, headers=headers)
        for day, amount, kind in REVENUE:
            client.post("/api/v1/finance/revenue", json={
                "farm_id": farm["id"], "revenue_type": kind, "description": kind,
                "amount": amount, "revenue_date": day.isoformat(),
            }, headers=headers)
        return farm

    def test_forecast_endpoint(self, farmer, farm):
        _, headers = farmer
        response = client.get(
            f"/api/v1/analytics/forecast/{farm['id']}?current_month=3&year=2025",
            headers=headers
        )
        assert response.status_code == 200

        data = response.json()
        assert data["farm_id"] == farm["id"]
        assert data["projected_profit"] == 300.0
        assert data["projected_profit_margin"] == 8.3

    def test_forecast_month_validation(self, farmer, farm):
        _, headers = farmer
        response = client.get(f"/api/v1/analytics/forecast/{farm['id']}?current_month=13", headers=headers)
        assert response.status_code == 422

    def test_forecast_other_users_farm(self, farm, make_user):
        _, other_headers = make_user()
        response = client.get(f"/api/v1/analytics/forecast/{farm['id']}?current_month=3", headers=other_headers)
        assert response.status_code == 404

    def test_forecast_served_from_cache(self, farmer, farm):
        _, headers = farmer
        cached = forecasting.forecast_end_of_year([], [], current_month=3, year=2025)
        cached["farm_id"] = farm["id"]

        with patch("farmkonnect.api.routers.analytics.CacheService.get", new=AsyncMock(return_value=cached)):
            response = client.get(
                f"/api/v1/analytics/forecast/{farm['id']}?current_month=3&year=2025",
                headers=headers
            )

        assert response.status_code == 200
        assert response.json()["projected_profit"] == 0.0

    def test_spending_trend_endpoint(self, farmer, farm):
        _, headers = farmer
        response = client.get(f"/api/v1/analytics/spending-trend/{farm['id']}?months=12", headers=headers)
        assert response.status_code == 200
        data = response.json()
        assert data["months"] == 12
        months = [m["month"] for m in data["data"]]
        assert months == sorted(months)

    def test_trend_months_validation(self, farmer, farm):
        _, headers = farmer
        response = client.get(f"/api/v1/analytics/revenue-trend/{farm['id']}?months=0", headers=headers)
        assert response.status_code == 422

    def test_cost_savings_endpoint(self, farmer, farm):
        _, headers = farmer
        today = date.today().isoformat()
        for kind, amount in (("feed", 600), ("labor", 400)):
            client.post("/api/v1/finance/expenses", json={
                "farm_id": farm["id"], "expense_type": kind, "description": kind,
                "amount": amount, "expense_date": today,
            }, headers=headers)

        response = client.get(f"/api/v1/analytics/cost-savings/{farm['id']}?months=1", headers=headers)
        assert response.status_code == 200

        data = response.json()
        assert data["analysis_depth"] == "basic"
        assert [o["category"] for o in data["opportunities"]] == ["feed", "labor"]
        assert data["opportunities"][0]["annual_savings"] == 1080.0
        assert data["total_potential_savings"] == 150.0

    def test_purchase_timing_endpoint(self, farmer, farm):
        _, headers = farmer
        response = client.get(f"/api/v1/analytics/purchase-timing/{farm['id']}?category=feed", headers=headers)
        assert response.status_code == 200

        data = response.json()
        assert data["purchases_analyzed"] == 3
        assert data["optimal_months"] == ["January", "February"]
        assert data["avoid_months"] == ["March"]
        assert data["estimated_savings_percent"] == 45.5

    def test_purchase_timing_unknown_category(self, farmer, farm):
        _, headers = farmer
        response = client.get(f"/api/v1/analytics/purchase-timing/{farm['id']}?category=holiday", headers=headers)
        assert response.status_code == 422

    def test_health_score_endpoint(self, farmer, farm):
        _, headers = farmer
        response = client.get(f"/api/v1/analytics/health-score/{farm['id']}", headers=headers)
        assert response.status_code == 200

        data = response.json()
        assert data["health_score"] == 80.3
        assert data["status"] == "excellent"
        assert data["revenue_per_hectare"] == 900.0

    @pytest.mark.parametrize("path", ["cost-savings", "health-score"])
    def test_other_users_farm_reports(self, farm, make_user, path):
        _, other_headers = make_user()
        response = client.get(f"/api/v1/analytics/{path}/{farm['id']}", headers=other_headers)
        assert response.status_code == 404



if __name__ == "__main__":
    pytest.main([__file__, "-v"])
