from __future__ import annotations

from typing import Any

from loadgen.core.models import DeploymentMode, LocalMode, RunConfig, RunResult


def build_run_report(
    config: RunConfig,
    result: RunResult,
    *,
    mode: DeploymentMode | None = None,
    stream_enabled: bool = False,
) -> dict[str, Any]:
    config_payload: dict[str, Any] = {
        "vus": config.vus,
        "duration_seconds": config.duration_seconds,
        "iterations": config.iterations,
        "pause_seconds": config.pause_seconds,
        "timeout_seconds": config.timeout_seconds,
        "thresholds": {metric: list(exprs) for metric, exprs in config.thresholds.items()},
        "abort_on_fail": config.abort_on_fail,
        "stream_enabled": stream_enabled,
    }
    if mode is not None:
        config_payload["mode"] = _mode_payload(mode)

    return {
        "config": config_payload,
        "result": {
            "iterations": result.iterations,
            "request_count": result.request_count,
            "error_count": result.error_count,
            "error_rate": result.error_rate,
            "duration_seconds": result.duration_seconds,
            "throughput_rps": result.throughput_rps,
            "aborted": result.aborted,
            "thresholds_passed": result.thresholds_passed,
        },
        "thresholds": list(result.thresholds),
        "metrics": result.metrics_report,
    }


def _mode_payload(mode: DeploymentMode) -> dict[str, Any]:
    if isinstance(mode, LocalMode):
        return {"kind": "local", "target_name": mode.target_name, "url": mode.url}
    return {
        "kind": "staging",
        "group_count": mode.group_count,
        "channel": mode.channel.value,
        "release_tag": mode.release_tag,
        "base_url": mode.base_url,
    }
