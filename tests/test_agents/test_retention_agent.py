"""
Tests for RetentionAgent

Runs the full check → select → delete pipeline against an in-memory cluster.
"""

import pytest
from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

from index_retention.agents.retention_agent import RetentionAgent
from index_retention.models import CleanupResult, RunOutcome
from index_retention.services.cluster_client import (
    ClusterResponse,
    ClusterTransportError,
)

NOW = datetime(2023, 3, 10, 8, 30, tzinfo=timezone.utc)


class FakeCluster:
    """Answers stats/health/delete requests from an in-memory index set."""

    def __init__(self, indices, used_percent=90.0, failing=(), stats_error=None):
        self.indices = set(indices)
        self.used_percent = used_percent
        self.failing = set(failing)
        self.stats_error = stats_error
        self.calls = []

    async def execute(self, method, path, query=None):
        self.calls.append((method, path))

        if path == "_cluster/stats":
            if self.stats_error:
                raise self.stats_error
            body = {
                "nodes": {
                    "fs": {"free_in_bytes": 100.0 - self.used_percent, "total_in_bytes": 100.0}
                }
            }
            return ClusterResponse(200, "{}", body)

        if path == "_cluster/health":
            return ClusterResponse(200, "{}", {"indices": {i: {} for i in self.indices}})

        if method == "DELETE":
            if path in self.failing:
                return ClusterResponse(500, "{}", {"status": 500})
            self.indices.discard(path)
            return ClusterResponse(200, "{}", {"acknowledged": True})

        return ClusterResponse(404, "{}", {"status": 404})

    @property
    def deletes(self):
        return [path for method, path in self.calls if method == "DELETE"]


@pytest.fixture
def agent_for(settings, cluster_client):
    def _build(fake):
        cluster_client.execute = AsyncMock(side_effect=fake.execute)
        return RetentionAgent(settings, cluster_client)

    return _build


class TestRetentionAgent:
    @pytest.mark.asyncio
    async def test_storage_unavailable_stops(self, agent_for):
        fake = FakeCluster(["cwl-2023.01.01"], stats_error=ClusterTransportError("down"))

        report = await agent_for(fake).run(NOW)

        assert report.outcome == RunOutcome.STORAGE_UNAVAILABLE
        assert report.storage_percent == -1
        assert report.result is None
        assert fake.calls == [("GET", "_cluster/stats")]

    @pytest.mark.asyncio
    async def test_nan_storage_is_unavailable(self, agent_for):
        fake = FakeCluster(["cwl-2023.01.01"], used_percent=float("nan"))

        report = await agent_for(fake).run(NOW)

        assert report.outcome == RunOutcome.STORAGE_UNAVAILABLE
        assert fake.deletes == []
        assert fake.indices == {"cwl-2023.01.01"}

    @pytest.mark.asyncio
    async def test_below_threshold_stops(self, agent_for, caplog):
        fake = FakeCluster(["cwl-2023.01.01"], used_percent=50.0)

        with caplog.at_level("INFO"):
            report = await agent_for(fake).run(NOW)

        assert report.outcome == RunOutcome.BELOW_THRESHOLD
        assert report.storage_percent == pytest.approx(50.0)
        assert fake.calls == [("GET", "_cluster/stats")]
        assert "Storage is fine, no index will be deleted" in caplog.text

    @pytest.mark.asyncio
    async def test_at_threshold_runs_cleanup(self, agent_for):
        fake = FakeCluster(["cwl-2023.01.01"], used_percent=75.0)

        report = await agent_for(fake).run(NOW)

        assert report.outcome == RunOutcome.CLEANED
        assert report.result == CleanupResult(deleted=1, total=1)

    @pytest.mark.asyncio
    async def test_deletes_only_indexes_before_cutoff(self, agent_for):
        fake = FakeCluster(
            [
                "cwl-2023.03.03",
                "cwl-2023.03.02",
                "cwl-2023.02.14",
                "cwl-notadate",
                "other-2020.01.01",
            ]
        )

        report = await agent_for(fake).run(NOW)

        assert fake.deletes == ["cwl-2023.02.14", "cwl-2023.03.02"]
        assert report.result == CleanupResult(deleted=2, total=2)
        assert fake.indices == {"cwl-2023.03.03", "cwl-notadate", "other-2020.01.01"}

    @pytest.mark.asyncio
    async def test_second_run_is_a_no_op(self, agent_for):
        fake = FakeCluster(["cwl-2023.01.01", "cwl-2023.01.02", "cwl-2023.03.09"])
        agent = agent_for(fake)

        first = await agent.run(NOW)
        second = await agent.run(NOW)

        assert first.result == CleanupResult(deleted=2, total=2)
        assert second.result == CleanupResult(deleted=0, total=0)

    @pytest.mark.asyncio
    async def test_partial_failure_continues(self, agent_for, caplog):
        fake = FakeCluster(
            ["cwl-2023.01.01", "cwl-2023.01.02", "cwl-2023.01.03"],
            failing=["cwl-2023.01.02"],
        )

        with caplog.at_level("INFO"):
            report = await agent_for(fake).run(NOW)

        assert fake.deletes == ["cwl-2023.01.01", "cwl-2023.01.02", "cwl-2023.01.03"]
        assert report.result == CleanupResult(deleted=2, total=3)
        assert "2 out of 3 indexes were removed" in caplog.text

    @pytest.mark.asyncio
    async def test_listing_failure_cleans_nothing(self, settings, cluster_client, make_response):
        cluster_client.execute = AsyncMock(
            side_effect=[
                make_response(200, {"nodes": {"fs": {"free_in_bytes": 5, "total_in_bytes": 100}}}),
                ClusterTransportError("timeout"),
            ]
        )

        report = await RetentionAgent(settings, cluster_client).run(NOW)

        assert report.outcome == RunOutcome.CLEANED
        assert report.result == CleanupResult(deleted=0, total=0)

    @pytest.mark.asyncio
    async def test_defaults_to_current_time(self, agent_for):
        fake = FakeCluster(["cwl-2000.01.01"])

        report = await agent_for(fake).run()

        assert report.result == CleanupResult(deleted=1, total=1)

    @pytest.mark.asyncio
    async def test_emits_run_event(self, agent_for):
        fake = FakeCluster(["cwl-2023.01.01"], used_percent=50.0)

        with patch("index_retention.agents.retention_agent.log_retention_run") as mock_log:
            await agent_for(fake).run(NOW)

        mock_log.assert_called_once()
        assert mock_log.call_args.args[0] == "below_threshold"
