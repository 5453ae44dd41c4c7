"""Tests for the soak scenario module."""

from __future__ import annotations

import httpx
import pytest

from loadgen.core.models import LocalMode, Payload, StagingMode
from loadgen.core.thresholds import DEFAULT_THRESHOLDS
from loadgen.scenarios.soak import SOAK_DURATION_SECONDS, build_run_config, run_soak_scenario


class TestBuildRunConfig:
    """Config builder tests."""

    def test_defaults(self):
        config = build_run_config()
        assert config.vus == 1
        assert config.duration_seconds == SOAK_DURATION_SECONDS == 43200
        assert config.iterations is None
        assert config.pause_seconds == 1.0
        assert config.thresholds == DEFAULT_THRESHOLDS
        assert config.thresholds is not DEFAULT_THRESHOLDS
        assert config.abort_on_fail is False

    def test_custom_values(self):
        config = build_run_config(
            vus=4,
            duration_seconds=None,
            iterations=10,
            pause_seconds=0.0,
            thresholds={"errors": ["rate<0.1"]},
            abort_on_fail=True,
        )
        assert config.vus == 4
        assert config.duration_seconds is None
        assert config.iterations == 10
        assert config.thresholds == {"errors": ["rate<0.1"]}
        assert config.abort_on_fail is True

    def test_empty_thresholds_kept(self):
        assert build_run_config(thresholds={}).thresholds == {}


class TestRunSoakScenario:
    """Run the soak scenario as a library at a tiny scale."""

    @pytest.mark.asyncio
    async def test_small_run_against_stub(self, adapter_config, stub_adapter):
        mode = StagingMode(group_count=2, base_url=stub_adapter.base_url)
        result = await run_soak_scenario(
            adapter_config,
            mode,
            run_config=build_run_config(duration_seconds=None, iterations=1, pause_seconds=0.0),
        )
        assert result.request_count == 8
        assert result.error_count == 0
        assert result.thresholds_passed is True
        assert [t["metric"] for t in result.thresholds] == ["http_req_failed", "http_req_duration"]

    @pytest.mark.asyncio
    async def test_generated_stream_payloads_replace_file_payloads(self, adapter_config):
        seen: list[tuple[str, bytes]] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request.url.path, request.content))
            return httpx.Response(200)

        result = await run_soak_scenario(
            adapter_config,
            LocalMode(target_name="bar", url="http://adapter.test/"),
            run_config=build_run_config(duration_seconds=None, iterations=1, pause_seconds=0.0),
            stream_enabled=True,
            stream_payloads=[Payload("generated", "POST", '{"data": {"from": "SOL"}}')],
            transport=httpx.MockTransport(handler),
        )

        assert result.request_count == 2
        assert b'{"data": {"from": "SOL"}}' in [body for _, body in seen]

    @pytest.mark.asyncio
    async def test_thresholds_crossed(self, adapter_config):
        result = await run_soak_scenario(
            adapter_config,
            LocalMode(target_name="foo", url="http://adapter.test/"),
            run_config=build_run_config(duration_seconds=None, iterations=2, pause_seconds=0.0),
            transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        )
        assert result.error_count == 4
        assert result.thresholds_passed is False
