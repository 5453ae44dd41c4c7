from __future__ import annotations

import argparse
import asyncio
import json
import os
from pathlib import Path

from loadgen.api.report import build_run_report
from loadgen.core.adapters import load_adapters_file
from loadgen.core.catalog import load_stream_payloads
from loadgen.core.models import Channel, LocalMode
from loadgen.core.router import resolve_deployment_mode
from loadgen.core.thresholds import DEFAULT_THRESHOLDS, parse_threshold_arg
from loadgen.core.timeparse import parse_duration_to_seconds
from loadgen.exceptions import CatalogEntryNotFoundError, LoadgenError
from loadgen.logger import configure_logging, parse_level
from loadgen.logger import session_logger as logger
from loadgen.scenarios.soak import build_run_config, run_soak_scenario

EXIT_OK = 0
EXIT_CONFIG = 2
EXIT_THRESHOLDS = 99

_DEFAULT_ADAPTERS_FILE = Path(__file__).parent / "data" / "adapters.json"


def _env_flag(name: str) -> bool:
    value = os.environ.get(name, "").strip().lower()
    return value not in ("", "0", "false", "no", "off")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="ea-loadgen: synthetic load against external adapters")
    parser.add_argument(
        "--adapters-file",
        type=str,
        default=os.environ.get("LOADGEN_ADAPTERS_FILE", str(_DEFAULT_ADAPTERS_FILE)),
        help="Path to the adapters JSON (roster, http_payloads, ws_payloads)",
    )
    parser.add_argument(
        "--vus",
        type=int,
        default=1,
        help="Concurrent virtual users",
    )
    parser.add_argument(
        "--duration",
        type=str,
        default=None,
        help="Run duration (e.g. 30s, 5m, 1h30m). Optional if --iterations is set.",
    )
    parser.add_argument(
        "--iterations",
        type=int,
        default=None,
        help="Total iterations across all virtual users (optional if --duration is set)",
    )
    parser.add_argument(
        "--pause",
        type=float,
        default=1.0,
        help="Seconds each virtual user sleeps between iterations",
    )
    parser.add_argument(
        "--timeout-seconds",
        type=float,
        default=30.0,
        help="HTTP timeout per request",
    )
    parser.add_argument(
        "--local-adapter",
        type=str,
        default=os.environ.get("LOCAL_ADAPTER_NAME"),
        help="Run in local mode against this single adapter (env LOCAL_ADAPTER_NAME)",
    )
    parser.add_argument(
        "--local-url",
        type=str,
        default=os.environ.get("LOCAL_ADAPTER_URL"),
        help="Override the local adapter URL (default http://host.docker.internal:8080)",
    )
    parser.add_argument(
        "--release-tag",
        type=str,
        default=os.environ.get("QA_RELEASE_TAG"),
        help="Route to ephemeral qa-ea-<adapter>-<tag> releases (env QA_RELEASE_TAG)",
    )
    parser.add_argument(
        "--channel",
        type=str,
        choices=[c.value for c in Channel],
        default=None,
        help="Stage channel; defaults to qa with a release tag, main otherwise",
    )
    parser.add_argument(
        "--stage-host",
        type=str,
        default=os.environ.get("STAGE_HOST"),
        help="Override the stage base URL",
    )
    parser.add_argument(
        "--group-count",
        type=int,
        default=None,
        help="Load test groups in staging mode (defaults to group_count in the adapters file)",
    )
    parser.add_argument(
        "--stream",
        action="store_true",
        default=_env_flag("WS_ENABLED"),
        help="Also send stream payloads to every eligible adapter (env WS_ENABLED)",
    )
    parser.add_argument(
        "--stream-payload-file",
        type=str,
        default=os.environ.get("STREAM_PAYLOAD_FILE"),
        help="Generated stream payload JSON array; with PAYLOAD_GENERATED set defaults to ws.json next to the adapters file",
    )
    parser.add_argument(
        "--threshold",
        action="append",
        default=None,
        metavar="METRIC:EXPR",
        help="Threshold such as 'http_req_failed:rate<0.01' (repeatable; replaces the defaults)",
    )
    parser.add_argument(
        "--abort-on-fail",
        action="store_true",
        help="Stop the run as soon as a threshold is crossed",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Write summary report JSON to this path",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=os.environ.get("LOADGEN_LOG_LEVEL", "INFO"),
        help="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit one JSON object per log line",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        level = parse_level(args.log_level)
    except ValueError as exc:
        parser.error(str(exc))
    configure_logging(level, json_output=args.json_logs)

    duration_seconds = None
    if args.duration is not None:
        try:
            duration_seconds = parse_duration_to_seconds(args.duration)
        except ValueError as exc:
            logger.error(
                "loadgen.invalid_duration",
                provided=args.duration,
                error=str(exc),
            )
            return EXIT_CONFIG

    if args.iterations is None and duration_seconds is None:
        logger.error(
            "loadgen.missing_stop_condition",
            cause="iterations_and_duration_both_missing",
            recovery="Provide --iterations or --duration",
        )
        return EXIT_CONFIG

    if args.vus < 1:
        logger.error("loadgen.invalid_vus", provided=args.vus, recovery="Provide --vus >= 1")
        return EXIT_CONFIG

    try:
        adapter_config = load_adapters_file(args.adapters_file)

        stream_file = args.stream_payload_file
        if not stream_file and _env_flag("PAYLOAD_GENERATED"):
            stream_file = str(Path(args.adapters_file).with_name("ws.json"))
        stream_payloads = load_stream_payloads(stream_file) if stream_file else None

        mode = resolve_deployment_mode(
            local_target=args.local_adapter,
            local_url=args.local_url,
            group_count=args.group_count if args.group_count is not None else adapter_config.group_count,
            release_tag=args.release_tag,
            channel=args.channel,
            stage_host=args.stage_host,
        )
        if isinstance(mode, LocalMode) and mode.target_name not in adapter_config.catalog:
            raise CatalogEntryNotFoundError(mode.target_name)

        if args.threshold is None:
            thresholds = {k: list(v) for k, v in DEFAULT_THRESHOLDS.items()}
        else:
            thresholds = {}
            for raw in args.threshold:
                metric, expr = parse_threshold_arg(raw)
                thresholds.setdefault(metric, []).append(expr)

        run_config = build_run_config(
            vus=args.vus,
            duration_seconds=duration_seconds,
            iterations=args.iterations,
            pause_seconds=args.pause,
            timeout_seconds=args.timeout_seconds,
            thresholds=thresholds,
            abort_on_fail=args.abort_on_fail,
        )

        result = asyncio.run(
            run_soak_scenario(
                adapter_config,
                mode,
                run_config=run_config,
                stream_enabled=args.stream,
                stream_payloads=stream_payloads,
            )
        )
    except LoadgenError as exc:
        logger.error(
            "loadgen.configuration_error",
            code=exc.code,
            error=exc.message,
            details=exc.details,
        )
        return EXIT_CONFIG

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        payload = build_run_report(run_config, result, mode=mode, stream_enabled=args.stream)
        output_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")

        logger.info("loadgen.report_written", path=str(output_path))

    return EXIT_OK if result.thresholds_passed else EXIT_THRESHOLDS


if __name__ == "__main__":
    raise SystemExit(main())
