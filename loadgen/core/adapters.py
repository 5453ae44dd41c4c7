from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loadgen.core.batch import DEFAULT_STREAM_REWRITES
from loadgen.core.catalog import PayloadCatalog, parse_stream_payloads
from loadgen.core.models import Payload
from loadgen.core.roster import TargetRoster
from loadgen.exceptions import ConfigurationError


@dataclass(frozen=True)
class AdapterConfig:
    roster: TargetRoster
    catalog: PayloadCatalog
    group_count: int
    stream_payloads: tuple[Payload, ...] = ()
    stream_rewrites: dict[str, dict[str, Any]] = field(default_factory=dict)


def load_adapters_file(path: str | Path) -> AdapterConfig:
    """Load the adapter roster and payload catalog.

    Expected shape:
      {
        "group_count": 2,
        "adapters": [
          {"name": "coingecko", "seconds_per_call": 1},
          {"name": "tiingo", "seconds_per_call": 5}
        ],
        "http_payloads": {
          "coingecko": [{"name": "btc-usd", "method": "POST", "data": {...}}],
          "tiingo": [{"name": "eod-aapl", "method": "POST", "data": {...}}]
        },
        "ws_payloads": [{"name": "eth-usd", "method": "POST", "data": "{...}"}],
        "stream_rewrites": {"coinapi": {"data.endpoint": "assets"}}
      }

    ``ws_payloads`` and ``stream_rewrites`` are optional; when
    ``stream_rewrites`` is absent the built-in rewrites apply.
    """

    adapters_path = Path(path)
    try:
        data = json.loads(adapters_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ConfigurationError(
            "ADAPTERS_FILE_MISSING",
            f"adapters file not found: {adapters_path}",
            details={"path": str(adapters_path)},
        ) from None
    except json.JSONDecodeError as exc:
        raise ConfigurationError(
            "ADAPTERS_FILE_INVALID",
            f"adapters file is not valid JSON: {exc}",
            details={"path": str(adapters_path)},
        ) from exc

    return parse_adapter_config(data)


def parse_adapter_config(data: Any) -> AdapterConfig:
    if not isinstance(data, dict):
        raise ConfigurationError("ADAPTERS_FILE_INVALID", "adapters file must contain an object")

    group_count = data.get("group_count", 1)
    if isinstance(group_count, bool) or not isinstance(group_count, int) or group_count < 1:
        raise ConfigurationError(
            "INVALID_GROUP_COUNT",
            f"group_count must be an integer >= 1, got {group_count!r}",
        )

    roster = TargetRoster.from_entries(data.get("adapters", []))
    catalog = PayloadCatalog.from_mapping(data.get("http_payloads", {}))

    missing = [target_id for target_id in roster.ids() if target_id not in catalog]
    if missing:
        raise ConfigurationError(
            "CATALOG_INCOMPLETE",
            "adapters without http_payloads entries: " + ", ".join(missing),
            details={"targets": missing},
        )

    stream_payloads = parse_stream_payloads(data.get("ws_payloads", []))

    raw_rewrites = data.get("stream_rewrites")
    if raw_rewrites is None:
        rewrites = {k: dict(v) for k, v in DEFAULT_STREAM_REWRITES.items()}
    elif isinstance(raw_rewrites, dict) and all(isinstance(v, dict) for v in raw_rewrites.values()):
        rewrites = {str(k): dict(v) for k, v in raw_rewrites.items()}
    else:
        raise ConfigurationError(
            "INVALID_STREAM_REWRITES",
            "stream_rewrites must map target ids to {field.path: value} objects",
        )

    return AdapterConfig(
        roster=roster,
        catalog=catalog,
        group_count=group_count,
        stream_payloads=stream_payloads,
        stream_rewrites=rewrites,
    )
