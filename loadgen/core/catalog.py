from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

from loadgen.core.models import HTTP_METHODS, Payload
from loadgen.exceptions import CatalogEntryNotFoundError, ConfigurationError


class PayloadCatalog:
    """Per-target canned payloads, in the order they were configured.

    An empty list is a valid entry: the target then only receives stream
    payloads (when stream mode is on).
    """

    def __init__(self, payloads_by_target: Mapping[str, list[Payload]]) -> None:
        self._by_target: dict[str, tuple[Payload, ...]] = {
            target_id: tuple(payloads) for target_id, payloads in payloads_by_target.items()
        }

    @classmethod
    def from_mapping(cls, raw: Any) -> "PayloadCatalog":
        """Parse ``{"<target>": [{"name", "method", "data"}, ...]}``."""
        if not isinstance(raw, dict):
            raise ConfigurationError("INVALID_CATALOG", "http_payloads must be an object")

        parsed: dict[str, list[Payload]] = {}
        for target_id, entries in raw.items():
            if not isinstance(entries, list):
                raise ConfigurationError(
                    "INVALID_CATALOG",
                    f"http_payloads[{target_id!r}] must be a list",
                    details={"target_id": target_id},
                )
            parsed[str(target_id)] = [
                parse_payload(entry, where=f"http_payloads[{target_id!r}]") for entry in entries
            ]
        return cls(parsed)

    def payloads_for(self, target_id: str) -> tuple[Payload, ...]:
        try:
            return self._by_target[target_id]
        except KeyError:
            raise CatalogEntryNotFoundError(target_id) from None

    def __contains__(self, target_id: object) -> bool:
        return target_id in self._by_target


def parse_payload(raw: Any, *, where: str = "payload") -> Payload:
    """Turn one ``{"name", "method", "data"}`` entry into a ``Payload``."""
    if not isinstance(raw, dict):
        raise ConfigurationError(
            "INVALID_PAYLOAD",
            f"{where}: entry must be an object, got {type(raw).__name__}",
        )

    name = raw.get("name")
    if not isinstance(name, str) or not name:
        raise ConfigurationError(
            "INVALID_PAYLOAD",
            f"{where}: entry is missing a name",
            details={"entry": raw},
        )

    method = str(raw.get("method", "POST")).upper()
    if method not in HTTP_METHODS:
        raise ConfigurationError(
            "INVALID_PAYLOAD",
            f"{where}: payload {name!r} has unsupported method {method!r}",
            details={"payload": name, "method": method},
        )

    return Payload(name=name, method=method, body=raw.get("data"))


def parse_stream_payloads(raw: Any, *, where: str = "ws_payloads") -> tuple[Payload, ...]:
    if not isinstance(raw, list):
        raise ConfigurationError("INVALID_STREAM_PAYLOADS", f"{where} must be a list")
    return tuple(parse_payload(entry, where=where) for entry in raw)


def load_stream_payloads(path: str | Path) -> tuple[Payload, ...]:
    """Read a generated stream-payload file (a JSON array) once.

    The file is produced ahead of the run by the feed tooling and is treated
    as immutable input for the lifetime of the process.
    """

    payload_path = Path(path)
    try:
        data = json.loads(payload_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ConfigurationError(
            "STREAM_PAYLOAD_FILE_MISSING",
            f"stream payload file not found: {payload_path}",
            details={"path": str(payload_path)},
        ) from None
    except json.JSONDecodeError as exc:
        raise ConfigurationError(
            "STREAM_PAYLOAD_FILE_INVALID",
            f"stream payload file is not valid JSON: {exc}",
            details={"path": str(payload_path)},
        ) from exc

    return parse_stream_payloads(data, where=str(payload_path))
