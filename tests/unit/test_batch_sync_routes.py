"""Tests for batch sync API endpoints."""

from unittest.mock import AsyncMock, patch

import pytest

BASE = "/api/v1/batch-sync"


@pytest.fixture
def config_payload():
    return {
        "name": "Route sync",
        "account_ids": ["A", "B", "C"],
        "max_retries": 0,
        "retry_delay_ms": 0,
        "timeout_ms": 0,
        "rate_limit_delay_ms": 0,
    }


@pytest.fixture
def created(client, config_payload):
    response = client.post(f"{BASE}/configs", json=config_payload)
    assert response.status_code == 201
    return response.json()


class TestConfigEndpoints:
    def test_create_and_list(self, client, created):
        response = client.get(f"{BASE}/configs")

        assert response.status_code == 200
        configs = response.json()
        assert [c["id"] for c in configs] == [created["id"]]
        assert created["sync_mode"] == "sequential"
        assert created["priority"] == "medium"
        assert created["sync_history"] == []

    def test_create_rejects_invalid_payload(self, client, config_payload):
        config_payload["max_concurrent_accounts"] = 0

        response = client.post(f"{BASE}/configs", json=config_payload)

        assert response.status_code == 422

    def test_get_unknown_config(self, client):
        response = client.get(f"{BASE}/configs/does-not-exist")

        assert response.status_code == 404

    def test_patch_config(self, client, created):
        response = client.patch(
            f"{BASE}/configs/{created['id']}",
            json={"sync_mode": "adaptive", "max_concurrent_accounts": 8},
        )

        assert response.status_code == 200
        assert response.json()["sync_mode"] == "adaptive"
        assert response.json()["max_concurrent_accounts"] == 8
        assert response.json()["name"] == "Route sync"

    def test_delete_config(self, client, created):
        response = client.delete(f"{BASE}/configs/{created['id']}")

        assert response.status_code == 204
        assert client.get(f"{BASE}/configs/{created['id']}").status_code == 404
        assert client.delete(f"{BASE}/configs/{created['id']}").status_code == 404


class TestExecutionEndpoints:
    def test_execute_returns_result(self, client, created, api_account_client):
        api_account_client.failures = {"B": None}

        response = client.post(f"{BASE}/configs/{created['id']}/execute")

        assert response.status_code == 200
        result = response.json()
        assert result["status"] == "partial"
        assert result["successful_accounts"] == 2
        assert result["failed_accounts"] == 1
        assert [r["account_id"] for r in result["account_results"]] == ["A", "B", "C"]

    def test_execute_with_options(self, client, created, api_account_client):
        response = client.post(
            f"{BASE}/configs/{created['id']}/execute",
            json={"dry_run": True, "account_ids": ["Z"]},
        )

        assert response.status_code == 200
        assert api_account_client.calls == ["Z"]
        assert api_account_client.options[0].dry_run is True

    def test_execute_disabled_conflict(self, client, created):
        client.patch(f"{BASE}/configs/{created['id']}", json={"enabled": False})

        response = client.post(f"{BASE}/configs/{created['id']}/execute")

        assert response.status_code == 409
        assert "disabled" in response.json()["detail"]

    def test_execute_strategy_failure_returns_failed_result(self, client, created, api_engine):
        with patch.object(api_engine.runner, "run", AsyncMock(side_effect=RuntimeError("planner down"))):
            response = client.post(f"{BASE}/configs/{created['id']}/execute")

        assert response.status_code == 200
        assert response.json()["status"] == "failed"
        assert "Strategy failure: planner down" in response.json()["errors"]

    def test_cancel_without_active_run(self, client, created):
        response = client.post(f"{BASE}/configs/{created['id']}/cancel")

        assert response.status_code == 409

    def test_queue_config(self, client, created, api_engine):
        response = client.post(f"{BASE}/configs/{created['id']}/queue", json={"priority": "high"})

        assert response.status_code == 202
        assert response.json()["priority"] == 3

    def test_queue_unknown_config(self, client):
        response = client.post(f"{BASE}/configs/missing/queue")

        assert response.status_code == 404

    def test_running_and_queue_snapshots(self, client):
        assert client.get(f"{BASE}/running").json() == []
        assert client.get(f"{BASE}/queue").status_code == 200


class TestProgressAndStats:
    def test_progress_for_idle_config(self, client, created):
        response = client.get(f"{BASE}/configs/{created['id']}/progress")

        assert response.status_code == 404

    def test_all_progress(self, client):
        response = client.get(f"{BASE}/progress")

        assert response.status_code == 200
        assert response.json() == []

    def test_stats_after_run(self, client, created):
        client.post(f"{BASE}/configs/{created['id']}/execute")

        stats = client.get(f"{BASE}/stats").json()
        config_stats = client.get(f"{BASE}/configs/{created['id']}/stats").json()

        assert stats["total_configs"] == 1
        assert stats["success_rate"] == 100.0
        assert stats["total_accounts_synced"] == 3
        assert config_stats["total_runs"] == 1
        assert config_stats["status_counts"] == {"completed": 1}

    def test_stats_for_unknown_config(self, client):
        assert client.get(f"{BASE}/configs/missing/stats").status_code == 404
