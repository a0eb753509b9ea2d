"""Tests for the REST API."""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import patch

import pytest

from tempo.api import create_app


@pytest.fixture()
def client(tmp_path: Path):
    with patch("tempo.config._CONFIG_FILE", tmp_path / "config.json"):
        app = create_app(db_path=tmp_path / "api.db")
    app.testing = True
    with app.test_client() as test_client:
        yield test_client


def _task(client, name: str = "Write", **extra) -> dict:
    resp = client.post("/api/tasks", json={"name": name, **extra})
    assert resp.status_code == 201
    return resp.get_json()


def _log(client, task_id: int, start: str, end: str, **extra):
    return client.post(
        "/api/activity-logs",
        json={"taskId": task_id, "startedAt": start, "endedAt": end, **extra},
    )


def _ticking_clock(start: datetime, step: int = 30):
    """A stand-in for periods.now that moves *step* seconds per call."""
    current = [start]

    def tick() -> datetime:
        current[0] += timedelta(seconds=step)
        return current[0]

    return tick


class TestTasksApi:
    def test_create_and_list(self, client) -> None:
        created = _task(client, colorCode="#abcdef", description="chapter 1")
        assert created["id"] == 1
        assert created["colorCode"] == "#ABCDEF"
        assert created["isActive"] is True

        listed = client.get("/api/tasks").get_json()
        assert [t["name"] for t in listed] == ["Write"]

    def test_get_one(self, client) -> None:
        task = _task(client)
        assert client.get(f"/api/tasks/{task['id']}").get_json()["name"] == "Write"

    def test_get_missing(self, client) -> None:
        resp = client.get("/api/tasks/99")
        assert resp.status_code == 404
        assert "not found" in resp.get_json()["message"]

    def test_create_invalid(self, client) -> None:
        resp = client.post("/api/tasks", json={"name": "  "})
        assert resp.status_code == 400
        assert resp.get_json()["message"]

    def test_create_without_body(self, client) -> None:
        assert client.post("/api/tasks", data="nope").status_code == 400

    def test_duplicate_name(self, client) -> None:
        _task(client)
        assert client.post("/api/tasks", json={"name": "Write"}).status_code == 400

    def test_update(self, client) -> None:
        task = _task(client)
        resp = client.put(f"/api/tasks/{task['id']}", json={"isFavorite": True})
        assert resp.status_code == 200
        assert resp.get_json()["isFavorite"] is True

    def test_delete(self, client) -> None:
        task = _task(client)
        assert client.delete(f"/api/tasks/{task['id']}").status_code == 204
        assert client.get("/api/tasks").get_json() == []

    def test_delete_in_use(self, client) -> None:
        task = _task(client)
        client.post("/api/timer/start", json={"taskId": task["id"], "duration": 60})
        assert client.delete(f"/api/tasks/{task['id']}").status_code == 409


class TestTimerApi:
    def test_no_active(self, client) -> None:
        resp = client.get("/api/timer/active")
        assert resp.status_code == 200
        assert resp.get_json() is None

    def test_lifecycle(self, client) -> None:
        clock = _ticking_clock(datetime(2024, 5, 15, 9, 0))
        with patch("tempo.periods.now", side_effect=clock):
            self._run_lifecycle(client)

    def _run_lifecycle(self, client) -> None:
        task = _task(client)
        started = client.post("/api/timer/start", json={"taskId": task["id"], "duration": 1500})
        assert started.status_code == 201
        session = started.get_json()
        assert session["status"] == "RUNNING"
        assert session["remaining"] <= 1500
        assert session["taskName"] == "Write"

        active = client.get("/api/timer/active").get_json()
        assert active["id"] == session["id"]

        paused = client.post(f"/api/timer/{session['id']}/pause")
        assert paused.get_json()["status"] == "PAUSED"
        assert client.post(f"/api/timer/{session['id']}/pause").status_code == 409

        resumed = client.post(f"/api/timer/{session['id']}/resume")
        assert resumed.get_json()["status"] == "RUNNING"

        stopped = client.post(f"/api/timer/{session['id']}/stop")
        assert stopped.status_code == 200
        body = stopped.get_json()
        assert body["status"] == "COMPLETED"
        assert body["endedAt"] is not None

        logs = client.get("/api/activity-logs?date=2024-05-15").get_json()
        assert len(logs) == 1
        assert logs[0]["id"] == body["activityLogId"]
        assert logs[0]["source"] == "TIMER"
        assert logs[0]["durationSeconds"] == body["elapsed"]

    def test_stop_cancelled(self, client) -> None:
        task = _task(client)
        session = client.post(
            "/api/timer/start", json={"taskId": task["id"], "duration": 60}
        ).get_json()
        resp = client.post(f"/api/timer/{session['id']}/stop?completed=false")
        assert resp.get_json()["status"] == "CANCELLED"
        assert client.get("/api/activity-logs").get_json() == []

    def test_stop_bad_flag(self, client) -> None:
        task = _task(client)
        session = client.post(
            "/api/timer/start", json={"taskId": task["id"], "duration": 60}
        ).get_json()
        assert client.post(f"/api/timer/{session['id']}/stop?completed=maybe").status_code == 400

    def test_start_invalid_duration(self, client) -> None:
        task = _task(client)
        resp = client.post("/api/timer/start", json={"taskId": task["id"], "duration": 0})
        assert resp.status_code == 400

    def test_start_unknown_task(self, client) -> None:
        resp = client.post("/api/timer/start", json={"taskId": 9, "duration": 60})
        assert resp.status_code == 404

    def test_second_start_pauses_first(self, client) -> None:
        task = _task(client)
        first = client.post("/api/timer/start", json={"taskId": task["id"], "duration": 60}).get_json()
        second = client.post("/api/timer/start", json={"taskId": task["id"], "duration": 60}).get_json()
        assert client.get("/api/timer/active").get_json()["id"] == second["id"]
        resp = client.post(f"/api/timer/{first['id']}/resume")
        assert resp.status_code == 200
        assert client.get("/api/timer/active").get_json()["id"] == first["id"]

    def test_pause_missing(self, client) -> None:
        assert client.post("/api/timer/77/pause").status_code == 404

    def test_stop_in_same_second_logs_nothing(self, client) -> None:
        task = _task(client)
        with patch("tempo.periods.now", return_value=datetime(2024, 5, 15, 9, 0)):
            session = client.post(
                "/api/timer/start", json={"taskId": task["id"], "duration": 60}
            ).get_json()
            body = client.post(f"/api/timer/{session['id']}/stop").get_json()
        assert body["status"] == "COMPLETED"
        assert body["activityLogId"] is None
        assert client.get("/api/activity-logs?date=2024-05-15").get_json() == []


class TestActivityLogsApi:
    def test_create_and_filter(self, client) -> None:
        task = _task(client)
        resp = _log(client, task["id"], "2024-05-15T09:00:00", "2024-05-15T10:00:00", memo="intro")
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["durationSeconds"] == 3600
        assert body["source"] == "MANUAL"
        assert body["warning"] is None

        on_day = client.get("/api/activity-logs?date=2024-05-15").get_json()
        assert [e["memo"] for e in on_day] == ["intro"]
        assert client.get("/api/activity-logs?date=2024-05-16").get_json() == []
        ranged = client.get("/api/activity-logs?from=2024-05-01&to=2024-05-31").get_json()
        assert len(ranged) == 1

    def test_overlap_warning(self, client) -> None:
        task = _task(client)
        _log(client, task["id"], "2024-05-15T09:00:00", "2024-05-15T10:00:00")
        body = _log(client, task["id"], "2024-05-15T09:30:00", "2024-05-15T10:30:00").get_json()
        assert body["warning"] == "Overlaps with 1 existing record(s)"

    def test_invalid_range(self, client) -> None:
        task = _task(client)
        resp = _log(client, task["id"], "2024-05-15T10:00:00", "2024-05-15T09:00:00")
        assert resp.status_code == 400

    def test_future_end(self, client) -> None:
        task = _task(client)
        resp = _log(client, task["id"], "2099-01-01T09:00:00", "2099-01-01T10:00:00")
        assert resp.status_code == 400

    def test_bad_date_query(self, client) -> None:
        assert client.get("/api/activity-logs?date=15/05/2024").status_code == 400

    def test_update_get_delete(self, client) -> None:
        task = _task(client)
        log_id = _log(client, task["id"], "2024-05-15T09:00:00", "2024-05-15T10:00:00").get_json()["id"]

        resp = client.put(f"/api/activity-logs/{log_id}", json={"endedAt": "2024-05-15T09:30:00"})
        assert resp.get_json()["durationSeconds"] == 1800
        assert client.get(f"/api/activity-logs/{log_id}").get_json()["durationSeconds"] == 1800

        assert client.delete(f"/api/activity-logs/{log_id}").status_code == 204
        assert client.get(f"/api/activity-logs/{log_id}").status_code == 404


class TestStatsApi:
    def test_weekly_stats(self, client) -> None:
        write = _task(client, "Write")
        read = _task(client, "Read")
        _log(client, write["id"], "2024-05-15T09:00:00", "2024-05-15T10:30:00")
        _log(client, read["id"], "2024-05-16T09:00:00", "2024-05-16T09:30:00")

        body = client.get("/api/stats?period=weekly&date=2024-05-15").get_json()
        assert body["from"] == "2024-05-13"
        assert body["to"] == "2024-05-19"
        assert body["totalSeconds"] == 7200
        assert [t["taskName"] for t in body["taskStats"]] == ["Write", "Read"]
        assert body["taskStats"][0]["percentage"] == pytest.approx(75.0)
        assert len(body["dailyTrend"]) == 2

    def test_custom_range(self, client) -> None:
        body = client.get("/api/stats?from=2024-05-01&to=2024-05-03").get_json()
        assert body["from"] == "2024-05-01"
        assert body["to"] == "2024-05-03"

    def test_inverted_range(self, client) -> None:
        assert client.get("/api/stats?from=2024-05-03&to=2024-05-01").status_code == 400

    def test_by_source(self, client) -> None:
        task = _task(client)
        _log(client, task["id"], "2024-05-15T09:00:00", "2024-05-15T10:00:00")
        body = client.get("/api/stats/by-source?from=2024-05-13&to=2024-05-19").get_json()
        assert [s["source"] for s in body["sources"]] == ["TIMER", "MANUAL"]
        assert body["sources"][1]["totalSeconds"] == 3600
        assert body["sources"][1]["percentage"] == pytest.approx(100.0)


class TestProfileApi:
    def test_missing_is_no_content(self, client) -> None:
        assert client.get("/api/profile").status_code == 204

    def test_put_and_get(self, client) -> None:
        resp = client.put("/api/profile", json={"nickname": " Ada "})
        assert resp.status_code == 200
        assert resp.get_json()["nickname"] == "Ada"
        assert client.get("/api/profile").get_json()["nickname"] == "Ada"

    def test_blank(self, client) -> None:
        assert client.put("/api/profile", json={"nickname": ""}).status_code == 400


class TestTimeTreeApi:
    def test_daily(self, client) -> None:
        task = _task(client)
        _log(client, task["id"], "2024-05-15T09:00:00", "2024-05-15T10:00:00")
        body = client.get("/api/timetree/daily?date=2024-05-15").get_json()
        assert body["date"] == "2024-05-15"
        assert len(body["blocks"]) == 1
        assert body["blocks"][0]["activityLogId"] == 1
        assert body["summary"]["totalSeconds"] == 3600

    def test_weekly(self, client) -> None:
        body = client.get("/api/timetree/weekly?date=2024-05-15").get_json()
        assert body["weekStart"] == "2024-05-13"
        assert body["weekEnd"] == "2024-05-19"
        assert len(body["days"]) == 7

    def test_monthly(self, client) -> None:
        body = client.get("/api/timetree/monthly?month=2024-02").get_json()
        assert body["month"] == "2024-02"
        assert len(body["days"]) == 29

    def test_monthly_bad_month(self, client) -> None:
        assert client.get("/api/timetree/monthly?month=2024-13").status_code == 400


class TestRangeQueries:
    @pytest.mark.parametrize(
        "url",
        [
            "/api/activity-logs?from=2024-05-01",
            "/api/activity-logs?to=2024-05-31",
            "/api/stats?from=2024-05-01",
            "/api/stats?to=2024-05-31",
            "/api/stats/by-source?from=2024-05-01",
            "/api/stats/by-source?to=2024-05-31",
        ],
    )
    def test_one_sided_range_rejected(self, client, url: str) -> None:
        resp = client.get(url)
        assert resp.status_code == 400
        assert "together" in resp.get_json()["message"]


class TestErrorsApi:
    def test_oversized_id_is_not_found(self, client) -> None:
        for url in ("/api/tasks/99999999999999999999", "/api/activity-logs/99999999999999999999"):
            resp = client.get(url)
            assert resp.status_code == 404
            assert resp.get_json()["message"]
        assert client.post("/api/timer/99999999999999999999/pause").status_code == 404

    def test_largest_row_id_still_routes(self, client) -> None:
        resp = client.get(f"/api/tasks/{2**63 - 1}")
        assert resp.status_code == 404
        assert "not found" in resp.get_json()["message"]

    def test_oversized_body_id(self, client) -> None:
        resp = client.post("/api/timer/start", json={"taskId": 10**20, "duration": 60})
        assert resp.status_code == 400
        assert resp.is_json

    def test_unknown_route_is_json(self, client) -> None:
        resp = client.get("/api/nope")
        assert resp.status_code == 404
        assert resp.is_json

    def test_wrong_method_is_json(self, client) -> None:
        resp = client.patch("/api/tasks")
        assert resp.status_code == 405
        assert resp.is_json

    def test_unexpected_error_is_json_500(self, client) -> None:
        with patch("tempo.api.tasks.list_tasks", side_effect=RuntimeError("boom")), \
                patch("tempo.api.log.exception") as mock_log:
            resp = client.get("/api/tasks")
        assert resp.status_code == 500
        assert resp.get_json() == {"message": "Internal server error"}
        mock_log.assert_called_once()


class TestCors:
    def test_preflight_allows_dev_origin(self, client) -> None:
        resp = client.options(
            "/api/tasks",
            headers={
                "Origin": "http://localhost:5173",
                "Access-Control-Request-Method": "POST",
            },
        )
        assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"
        assert "POST" in resp.headers["Access-Control-Allow-Methods"]

    def test_simple_request_gets_header(self, client) -> None:
        resp = client.get("/api/tasks", headers={"Origin": "http://localhost"})
        assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost"

    def test_unknown_origin_not_allowed(self, client) -> None:
        resp = client.get("/api/tasks", headers={"Origin": "http://evil.example"})
        assert "Access-Control-Allow-Origin" not in resp.headers

    def test_origins_from_argument(self, tmp_path: Path) -> None:
        app = create_app(db_path=tmp_path / "api.db", cors_origins=["http://app.test"])
        resp = app.test_client().get("/api/tasks", headers={"Origin": "http://app.test"})
        assert resp.headers["Access-Control-Allow-Origin"] == "http://app.test"
