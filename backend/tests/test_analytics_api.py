"""
Tests for the analytics HTTP endpoints.

The engine configuration comes from the environment set in conftest, which
hides "Departed Partner" from windows starting after 2025-12-31.
"""

from httpx import AsyncClient

from tests.conftest import OpsEntryFactory, TimeEntryFactory

NOW = "2025-10-15T12:00:00"
NAMES = {"u-alice": "Alice Archer", "u-bob": "Bob Barnes", "u-dp": "Departed Partner"}


def _payload(**overrides) -> dict:
    payload = {
        "entries": [
            TimeEntryFactory(date="2025-10-01T09:00:00", billableHours=10),
            OpsEntryFactory(date="2025-10-07T09:00:00", opsHours=4),
            TimeEntryFactory(personId="u-bob", date="2025-10-02T09:00:00", billableHours=12, client="Beta LLC"),
        ],
        "person_names": NAMES,
        "now": NOW,
    }
    payload.update(overrides)
    return payload


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------

class TestReportEndpoint:
    """POST /api/analytics/report"""

    async def test_current_month_report(self, client: AsyncClient):
        response = await client.post("/api/analytics/report", json=_payload())
        assert response.status_code == 200
        data = response.json()
        assert data["period"]["current_month_key"] == "2025-10"
        assert data["period"]["is_current_month_in_progress"] is True
        assert data["entry_count"] == 3
        assert data["firm_totals"]["billable_hours"] == 22
        rollups = {rollup["name"]: rollup for rollup in data["attorney_rollups"]}
        assert rollups["Alice Archer"]["billable_target"] == 47.8
        assert rollups["Alice Archer"]["clients"] == {"Acme Corp": 14}

    async def test_custom_range_with_targets(self, client: AsyncClient):
        payload = _payload(
            entries=[TimeEntryFactory(date="2025-03-04T09:00:00", billableHours=20)],
            targets={"Alice Archer": {"2025-03": {"billableTarget": 100}}},
            period={"preset": "custom", "start": "2025-03-01", "end": "2025-03-17"},
        )
        response = await client.post("/api/analytics/report", json=payload)
        assert response.status_code == 200
        data = response.json()
        assert data["period"]["label"] == "Mar 1 - Mar 17, 2025"
        alice = next(rollup for rollup in data["attorney_rollups"] if rollup["name"] == "Alice Archer")
        assert alice["billable_target"] == 52.4

    async def test_hidden_person_absent_from_lists(self, client: AsyncClient):
        payload = _payload(
            entries=[TimeEntryFactory(personId="u-dp", date="2026-01-12T09:00:00", billableHours=4)],
            period={"preset": "custom", "start": "2026-01-01", "end": "2026-01-31"},
            now="2026-02-10T09:00:00",
        )
        response = await client.post("/api/analytics/report", json=payload)
        assert response.status_code == 200
        data = response.json()
        assert "Departed Partner" not in [rollup["name"] for rollup in data["attorney_rollups"]]
        assert "Departed Partner" not in data["selectable_people"]
        assert data["firm_totals"]["billable_hours"] == 4

    async def test_epoch_dates_accepted(self, client: AsyncClient):
        entry = TimeEntryFactory(date={"seconds": 1741000000, "nanoseconds": 0}, billableHours=2)
        payload = _payload(entries=[entry], period={"preset": "custom", "start": "2025-03-03", "end": "2025-03-03"})
        response = await client.post("/api/analytics/report", json=payload)
        assert response.status_code == 200
        assert response.json()["firm_totals"]["billable_hours"] == 2

    async def test_malformed_entry_skipped(self, client: AsyncClient):
        payload = _payload()
        payload["entries"].append({"billableHours": 3})
        response = await client.post("/api/analytics/report", json=payload)
        assert response.status_code == 200
        assert response.json()["skipped_entry_count"] == 1

    async def test_unknown_preset_rejected(self, client: AsyncClient):
        response = await client.post("/api/analytics/report", json=_payload(period={"preset": "fortnight"}))
        assert response.status_code == 422

    async def test_empty_request(self, client: AsyncClient):
        response = await client.post("/api/analytics/report", json={"now": NOW})
        assert response.status_code == 200
        assert response.json()["is_empty"] is True


# ---------------------------------------------------------------------------
# Person detail
# ---------------------------------------------------------------------------

class TestPersonDetailEndpoint:
    """POST /api/analytics/people/{person_name}"""

    async def test_person_detail(self, client: AsyncClient):
        response = await client.post("/api/analytics/people/Alice Archer", json=_payload())
        assert response.status_code == 200
        data = response.json()
        assert data["person"] == "Alice Archer"
        assert data["is_hidden"] is False
        assert data["rollup"]["total_hours"] == 14
        assert [rollup["name"] for rollup in data["client_rollups"]] == ["Acme Corp"]


# ---------------------------------------------------------------------------
# Client activity
# ---------------------------------------------------------------------------

class TestClientActivityEndpoint:
    """POST /api/analytics/client-activity"""

    async def test_client_activity(self, client: AsyncClient):
        payload = {
            "entries": [
                TimeEntryFactory(date="2025-10-01T09:00:00", billableHours=1),
                TimeEntryFactory(date="2024-01-01T09:00:00", client="Old Client"),
            ],
            "period": "3-months",
            "now": NOW,
        }
        response = await client.post("/api/analytics/client-activity", json=payload)
        assert response.status_code == 200
        assert [rollup["name"] for rollup in response.json()] == ["Acme Corp"]


# ---------------------------------------------------------------------------
# Period
# ---------------------------------------------------------------------------

class TestPeriodEndpoint:
    """POST /api/analytics/period"""

    async def test_last_month(self, client: AsyncClient):
        response = await client.post("/api/analytics/period", json={"period": {"preset": "last-month"}, "now": NOW})
        assert response.status_code == 200
        data = response.json()
        assert data["start_date"] == "2025-09-01T00:00:00"
        assert data["end_date"] == "2025-09-30T23:59:59.999999"
        assert data["label"] == "Last Month (Sep 1 - Sep 30, 2025)"

    async def test_aware_now_uses_reference_timezone(self, client: AsyncClient):
        response = await client.post("/api/analytics/period", json={"now": "2025-10-01T05:00:00Z"})
        assert response.status_code == 200
        assert response.json()["current_month_key"] == "2025-09"
