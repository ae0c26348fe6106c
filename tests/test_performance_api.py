"""
Tests for period scores, trends, director roll-ups, analytics and the dashboard.
"""

from datetime import datetime, timezone

from conftest import auth_headers, make_kpi, make_user
from app.models.review import ReviewItem


def met(kpi):
    return {"kpi_id": kpi.id, "met": True}


def not_met(kpi):
    return {"kpi_id": kpi.id, "met": False, "notes": "Missed target", "plan": "Weekly check-in"}


async def submit(client, reviewer, subject, year, number, items, period_type="monthly"):
    response = await client.post(
        f"/reviews/{subject.id}",
        json={"period_type": period_type, "year": year, "number": number, "items": items},
        headers=auth_headers(reviewer),
    )
    assert response.status_code == 200, response.text
    return response.json()


def this_month():
    now = datetime.now(timezone.utc)
    return now.year, now.month


# =============================================================
# TEST: Period scores
# =============================================================

class TestPeriodScore:

    async def test_weighted_score_for_month(self, client, director, clinician, kpis):
        documentation, outcomes = kpis
        await submit(client, director, clinician, 2024, 3, [met(documentation), not_met(outcomes)])

        response = await client.get(
            f"/performance/{clinician.id}", params={"year": 2024, "number": 3}, headers=auth_headers(director)
        )
        assert response.status_code == 200
        body = response.json()
        assert body["score"] == 33
        assert body["band"] == "Needs Improvement"
        assert body["total_weight"] == 15
        assert body["earned_weight"] == 5
        assert body["has_data"] is True

    async def test_unreviewed_period_is_zero_without_data(self, client, clinician, kpis):
        response = await client.get(
            "/performance/me", params={"year": 2024, "number": 3}, headers=auth_headers(clinician)
        )
        body = response.json()
        assert body["score"] == 0
        assert body["has_data"] is False

    async def test_removed_kpi_keeps_counting_for_past_periods(self, client, admin, director, clinician, kpis):
        documentation, outcomes = kpis
        await submit(client, director, clinician, 2024, 3, [met(documentation), not_met(outcomes)])
        await client.delete(f"/kpis/{outcomes.id}", headers=auth_headers(admin))

        response = await client.get(
            f"/performance/{clinician.id}", params={"year": 2024, "number": 3}, headers=auth_headers(admin)
        )
        assert response.json()["score"] == 33

    async def test_malformed_active_kpi_is_reported(self, client, db, admin, clinician):
        broken = await make_kpi(db, "Broken Weight", 0)
        db.add(ReviewItem(
            clinician_id=clinician.id, kpi_id=broken.id, director_id=admin.id, met_check=True,
            score=0, date=datetime(2024, 3, 5, tzinfo=timezone.utc),
            period_type="monthly", period_year=2024, period_number=3,
        ))
        await db.commit()

        response = await client.get(
            f"/performance/{clinician.id}", params={"year": 2024, "number": 3}, headers=auth_headers(admin)
        )
        assert response.status_code == 500
        assert response.json()["kpi_id"] == broken.id

    async def test_peer_cannot_view_score(self, client, db, clinician):
        peer = await make_user(db, "peer@clinic.org")
        response = await client.get(f"/performance/{clinician.id}", headers=auth_headers(peer))
        assert response.status_code == 403

    async def test_partial_period_arguments(self, client, clinician):
        response = await client.get("/performance/me", params={"year": 2024}, headers=auth_headers(clinician))
        assert response.status_code == 400


# =============================================================
# TEST: Trends
# =============================================================

class TestTrend:

    async def test_trend_over_months(self, client, director, clinician, kpis):
        documentation, outcomes = kpis
        await submit(client, director, clinician, 2024, 3, [met(documentation), met(outcomes)])
        await submit(client, director, clinician, 2024, 4, [met(documentation), not_met(outcomes)])

        response = await client.get(
            f"/performance/{clinician.id}/trend",
            params={"months": 3, "year": 2024, "month": 4},
            headers=auth_headers(clinician),
        )
        assert response.status_code == 200
        body = response.json()
        assert [p["label"] for p in body["points"]] == ["February 2024", "March 2024", "April 2024"]
        assert [p["score"] for p in body["points"]] == [0, 100, 33]
        assert [p["has_data"] for p in body["points"]] == [False, True, True]
        assert body["direction"] == "down"
        assert body["magnitude_delta"] == 67

    async def test_small_change_is_stable(self, client, db, director, clinician):
        kpis = [await make_kpi(db, f"Metric {i}", 1) for i in range(100)]
        await submit(client, director, clinician, 2024, 5, [met(k) for k in kpis[:80]] + [not_met(k) for k in kpis[80:]])
        await submit(client, director, clinician, 2024, 6, [met(k) for k in kpis[:81]] + [not_met(k) for k in kpis[81:]])

        response = await client.get(
            f"/performance/{clinician.id}/trend",
            params={"months": 2, "year": 2024, "month": 6},
            headers=auth_headers(director),
        )
        body = response.json()
        assert [p["score"] for p in body["points"]] == [80, 81]
        assert body["direction"] == "stable"
        assert body["magnitude_delta"] == 0


# =============================================================
# TEST: Director roll-up
# =============================================================

class TestDirectorRollup:

    async def test_rollup_is_mean_of_assigned_clinicians(self, client, db, admin, director, clinician, kpis):
        documentation, outcomes = kpis
        await make_user(db, "quiet@clinic.org", director_id=director.id)
        await submit(client, director, clinician, 2024, 3, [met(documentation), met(outcomes)])

        response = await client.get(
            f"/performance/directors/{director.id}/rollup",
            params={"year": 2024, "number": 3},
            headers=auth_headers(director),
        )
        assert response.status_code == 200
        body = response.json()
        assert body["score"] == 50
        assert body["assignee_count"] == 2
        assert len(body["clinicians"]) == 2

    async def test_director_without_clinicians(self, client, db, admin):
        lonely = await make_user(db, "lonely@clinic.org", role="director")
        response = await client.get(
            f"/performance/directors/{lonely.id}/rollup", headers=auth_headers(admin)
        )
        body = response.json()
        assert body["score"] == 0
        assert body["assignee_count"] == 0
        assert body["clinicians"] == []

    async def test_rollup_of_non_director(self, client, admin, clinician):
        response = await client.get(
            f"/performance/directors/{clinician.id}/rollup", headers=auth_headers(admin)
        )
        assert response.status_code == 400

    async def test_other_director_is_forbidden(self, client, db, director):
        other = await make_user(db, "second.director@clinic.org", role="director")
        response = await client.get(
            f"/performance/directors/{director.id}/rollup", headers=auth_headers(other)
        )
        assert response.status_code == 403


# =============================================================
# TEST: Analytics and dashboard
# =============================================================

class TestAnalytics:

    async def test_monthly_matrix(self, client, admin, director, clinician, kpis):
        documentation, outcomes = kpis
        await submit(client, director, clinician, 2024, 3, [met(documentation), met(outcomes)])

        response = await client.get(
            "/performance/analytics",
            params={"user_ids": [clinician.id], "year": 2024},
            headers=auth_headers(admin),
        )
        assert response.status_code == 200
        body = response.json()
        assert len(body["months"]) == 12
        row = body["rows"][0]
        assert row["user_id"] == clinician.id
        assert row["scores"]["2024-03"] == 100
        assert row["scores"]["2024-04"] == 0

    async def test_director_cannot_run_analytics(self, client, director, clinician):
        response = await client.get(
            "/performance/analytics", params={"user_ids": [clinician.id]}, headers=auth_headers(director)
        )
        assert response.status_code == 403


class TestDashboard:

    async def test_clinician_dashboard(self, client, director, clinician, kpis):
        year, month = this_month()
        await submit(client, director, clinician, year, month, [met(k) for k in kpis])

        response = await client.get("/dashboard", headers=auth_headers(clinician))
        assert response.status_code == 200
        body = response.json()
        assert body["role"] == "clinician"
        assert body["own_score"]["score"] == 100
        assert body["trend"]["points"][-1]["score"] == 100
        assert [(k["title"], k["met"], k["total"], k["percentage"]) for k in body["kpis"]] == [
            ("Clinical Outcomes", 1, 1, 100),
            ("Documentation Compliance", 1, 1, 100),
        ]

    async def test_director_dashboard_highlights(self, client, db, director, clinician, kpis):
        year, month = this_month()
        struggling = await make_user(db, "struggling@clinic.org", director_id=director.id)
        await make_user(db, "unreviewed@clinic.org", director_id=director.id)
        await submit(client, director, clinician, year, month, [met(k) for k in kpis])
        await submit(client, director, struggling, year, month, [not_met(k) for k in kpis])

        response = await client.get("/dashboard", headers=auth_headers(director))
        body = response.json()
        assert body["clinician_count"] == 3
        assert body["average_score"] == 33
        assert [c["id"] for c in body["top_performers"]] == [clinician.id]
        # no-data zeros are not flagged
        assert [c["id"] for c in body["needs_attention"]] == [struggling.id]
        assert body["own_score"] is None

    async def test_admin_dashboard_covers_all_clinicians(self, client, db, admin, clinician):
        await make_user(db, "unassigned@clinic.org")
        response = await client.get("/dashboard", headers=auth_headers(admin))
        assert response.json()["clinician_count"] == 2


# =============================================================
# TEST: Per-KPI met rates
# =============================================================

class TestKpiRates:

    async def test_all_time_rates(self, client, director, clinician, kpis):
        documentation, outcomes = kpis
        await submit(client, director, clinician, 2024, 1, [met(documentation), not_met(outcomes)])
        await submit(client, director, clinician, 2024, 2, [met(documentation), met(outcomes)])
        await submit(client, director, clinician, 2024, 3, [not_met(documentation)])

        response = await client.get(f"/performance/{clinician.id}/kpis", headers=auth_headers(director))
        assert response.status_code == 200
        body = response.json()
        assert body["user_id"] == clinician.id
        assert body["period"] is None
        # heaviest KPI first
        assert [(k["kpi_id"], k["weight"], k["met"], k["total"], k["percentage"]) for k in body["kpis"]] == [
            (outcomes.id, 10, 1, 2, 50),
            (documentation.id, 5, 2, 3, 67),
        ]

    async def test_replaced_review_counts_once(self, client, director, clinician, kpis):
        documentation, _ = kpis
        await submit(client, director, clinician, 2024, 3, [not_met(documentation)])
        await submit(client, director, clinician, 2024, 3, [met(documentation)])

        response = await client.get(f"/performance/{clinician.id}/kpis", headers=auth_headers(clinician))
        by_kpi = {k["kpi_id"]: k for k in response.json()["kpis"]}
        assert (by_kpi[documentation.id]["met"], by_kpi[documentation.id]["total"]) == (1, 1)

    async def test_single_period(self, client, director, clinician, kpis):
        documentation, _ = kpis
        await submit(client, director, clinician, 2024, 2, [not_met(documentation)])
        await submit(client, director, clinician, 2024, 3, [met(documentation)])

        response = await client.get(
            f"/performance/{clinician.id}/kpis",
            params={"year": 2024, "number": 3},
            headers=auth_headers(director),
        )
        body = response.json()
        assert body["period"]["label"] == "March 2024"
        by_kpi = {k["kpi_id"]: k for k in body["kpis"]}
        assert by_kpi[documentation.id]["percentage"] == 100
        assert by_kpi[documentation.id]["total"] == 1

    async def test_weekly_reviews_are_separate(self, client, director, clinician, kpis):
        documentation, _ = kpis
        await submit(client, director, clinician, 2024, 10, [not_met(documentation)], period_type="weekly")
        await submit(client, director, clinician, 2024, 3, [met(documentation)])

        response = await client.get(
            f"/performance/{clinician.id}/kpis", params={"period_type": "weekly"}, headers=auth_headers(director)
        )
        by_kpi = {k["kpi_id"]: k for k in response.json()["kpis"]}
        assert (by_kpi[documentation.id]["met"], by_kpi[documentation.id]["total"]) == (0, 1)

    async def test_removed_kpi_kept_for_history(self, client, admin, director, clinician, kpis):
        documentation, outcomes = kpis
        await submit(client, director, clinician, 2024, 3, [met(outcomes)])
        await client.delete(f"/kpis/{documentation.id}", headers=auth_headers(admin))
        await client.delete(f"/kpis/{outcomes.id}", headers=auth_headers(admin))

        response = await client.get(f"/performance/{clinician.id}/kpis", headers=auth_headers(admin))
        rows = response.json()["kpis"]
        assert [(k["kpi_id"], k["is_removed"]) for k in rows] == [(outcomes.id, True)]

    async def test_peer_is_forbidden(self, client, db, clinician, kpis):
        peer = await make_user(db, "peer@clinic.org")
        response = await client.get(f"/performance/{clinician.id}/kpis", headers=auth_headers(peer))
        assert response.status_code == 403

    async def test_partial_period_arguments(self, client, clinician):
        response = await client.get(
            f"/performance/{clinician.id}/kpis", params={"year": 2024}, headers=auth_headers(clinician)
        )
        assert response.status_code == 400

    async def test_unknown_user(self, client, admin):
        response = await client.get("/performance/999/kpis", headers=auth_headers(admin))
        assert response.status_code == 404
