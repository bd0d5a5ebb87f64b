"""Tests for dashboards, analytics and admin endpoints."""

import csv
import io
from datetime import date, timedelta

import pytest

from claimease.core.dependencies import (
    get_analytics_service, get_claim_service, get_dashboard_service, get_policy_service
)
from claimease.core.exceptions import ValidationFailedError
from claimease.models.claim import ClaimStatusUpdate
from claimease.models.policy import PolicyCreate
from claimease.services.analytics_service import month_keys
from claimease.services.dashboard_service import tabs_for

from conftest import auth_headers, policy_payload


def expiring_policy(admin, agent, customer, days_left: int):
    start = date.today() + timedelta(days=days_left)
    start = start.replace(year=start.year - 1)
    policy = get_policy_service().create_policy(
        admin, PolicyCreate(**policy_payload(
            customer.user_id, agent_id=agent.user_id, start_date=start.isoformat(), duration=1
        ))
    )
    return get_policy_service().update_status(admin, policy.policy_id, "active")


class TestDashboardTabs:
    """Test role-gated tabs."""

    def test_tabs_per_role(self) -> None:
        """Test each role's tab list."""
        assert tabs_for("admin") == ["overview", "users", "policies", "claims", "payments", "analytics"]
        assert tabs_for("agent") == ["overview", "policies", "claims", "customers"]
        assert tabs_for("customer") == ["overview", "my_policies", "my_claims", "payments"]
        assert tabs_for("guest") == []


class TestDashboardOverview:
    """Test the overview payload."""

    def test_admin_overview(self, admin, submitted_claim) -> None:
        """Test admins get user and payment stats."""
        overview = get_dashboard_service().overview(admin)

        assert overview["role"] == "admin"
        assert {"policies", "claims", "users", "payments"} <= set(overview["stats"])
        assert overview["recent_claims"][0]["claim_id"] == submitted_claim.claim_id

    def test_agent_overview(self, agent, submitted_claim) -> None:
        """Test agents get customer and assignment counts."""
        get_claim_service().update_status(
            agent, submitted_claim.claim_id, ClaimStatusUpdate(status="under_review")
        )
        stats = get_dashboard_service().overview(agent)["stats"]

        assert stats["customers"] == 1
        assert stats["assigned_claims"] == 1
        assert "users" not in stats

    def test_customer_overview_scoped(self, other_customer, submitted_claim) -> None:
        """Test customers only see their own records."""
        overview = get_dashboard_service().overview(other_customer)

        assert overview["recent_claims"] == []
        assert overview["recent_policies"] == []
        assert overview["stats"]["payments"]["total"] == 0


class TestClaimsTrend:
    """Test the daily claim trend."""

    def test_counts_today(self, admin, submitted_claim) -> None:
        """Test today's bucket."""
        service = get_claim_service()
        service.update_status(admin, submitted_claim.claim_id, ClaimStatusUpdate(status="under_review"))
        service.update_status(admin, submitted_claim.claim_id, ClaimStatusUpdate(status="approved"))

        trend = get_dashboard_service().claims_trend(admin, days=7)

        assert len(trend) == 7
        assert trend[-1]["submitted"] == 1
        assert trend[-1]["approved"] == 1
        assert sum(day["rejected"] for day in trend) == 0

    @pytest.mark.parametrize("days", [0, 366])
    def test_days_range(self, admin, days) -> None:
        """Test the window bounds."""
        with pytest.raises(ValidationFailedError):
            get_dashboard_service().claims_trend(admin, days=days)


class TestPolicyExpiryAlerts:
    """Test expiry alerts."""

    def test_urgency(self, admin, agent, customer) -> None:
        """Test alerts are sorted and graded."""
        expiring_policy(admin, agent, customer, 20)
        expiring_policy(admin, agent, customer, 5)
        expiring_policy(admin, agent, customer, 12)

        alerts = get_dashboard_service().policy_expiry_alerts(admin, days_ahead=30)

        assert [a["days_remaining"] for a in alerts] == [5, 12, 20]
        assert [a["urgency"] for a in alerts] == ["high", "medium", "low"]
        assert alerts[0]["customer_name"] == "Customer Tester"

    def test_outside_window(self, admin, agent, customer, active_policy) -> None:
        """Test long-running policies are not flagged."""
        assert get_dashboard_service().policy_expiry_alerts(admin, days_ahead=30) == []

    def test_days_ahead_minimum(self, admin) -> None:
        """Test the lower bound."""
        with pytest.raises(ValidationFailedError):
            get_dashboard_service().policy_expiry_alerts(admin, days_ahead=0)


class TestAnalytics:
    """Test admin reporting."""

    def test_month_keys(self) -> None:
        """Test month labels run oldest first."""
        assert month_keys(3, today=date(2024, 2, 15)) == ["2023-12", "2024-01", "2024-02"]

    def test_dashboard_counts(self, submitted_claim) -> None:
        """Test counts include new records."""
        analytics = get_analytics_service().dashboard("7d")

        assert analytics["users"]["new"] == 3
        assert analytics["policies"]["new"] == 1
        assert analytics["claims"]["new"] == 1

    def test_bad_timeframe(self) -> None:
        """Test unknown timeframes."""
        with pytest.raises(ValidationFailedError):
            get_analytics_service().dashboard("2w")

    def test_export_csv(self, submitted_claim) -> None:
        """Test CSV export of claims."""
        export = get_analytics_service().export("claims", "csv")

        rows = list(csv.DictReader(io.StringIO(export["data"])))
        assert export["count"] == 1
        assert rows[0]["claim_number"] == submitted_claim.claim_number
        assert "status_history" not in rows[0]

    def test_export_users_hides_secrets(self, admin) -> None:
        """Test user exports use the public form."""
        export = get_analytics_service().export("users")

        assert export["format"] == "json"
        assert "password_hash" not in export["data"][0]

    def test_export_type_checked(self) -> None:
        """Test unknown collections."""
        with pytest.raises(ValidationFailedError):
            get_analytics_service().export("secrets")


class TestDashboardApi:
    """Test dashboard, analytics and admin routes."""

    def test_dashboard(self, client, customer) -> None:
        """Test the customer dashboard."""
        response = client.get("/api/dashboard/", headers=auth_headers(customer))

        assert response.status_code == 200
        assert response.json()["dashboard"]["tabs"] == ["overview", "my_policies", "my_claims", "payments"]

    def test_trend_validation(self, client, admin) -> None:
        """Test the days parameter error."""
        response = client.get("/api/dashboard/claims-trend", params={"days": 0}, headers=auth_headers(admin))

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "days"

    def test_analytics_admin_only(self, client, agent, admin) -> None:
        """Test analytics require admin."""
        assert client.get("/api/analytics/dashboard", headers=auth_headers(agent)).status_code == 403

        response = client.get("/api/analytics/revenue", params={"months": 3}, headers=auth_headers(admin))
        assert response.status_code == 200
        assert len(response.json()["analytics"]["monthly"]) == 3

    def test_export_endpoint(self, client, admin) -> None:
        """Test export through the API."""
        response = client.get("/api/analytics/export", params={"type": "users", "format": "csv"},
                              headers=auth_headers(admin))

        body = response.json()
        assert body["success"] is True
        assert "user_id" in body["data"].splitlines()[0].split(",")

    def test_admin_stats(self, client, admin, submitted_claim) -> None:
        """Test system counts."""
        response = client.get("/api/admin/stats", headers=auth_headers(admin))

        body = response.json()
        assert body["users_count"] == 3
        assert body["claims_count"] == 1
        assert body["pending_claims"] == 1

    def test_admin_health_guarded(self, client, customer) -> None:
        """Test detailed health is admin only."""
        assert client.get("/api/admin/health", headers=auth_headers(customer)).status_code == 403
