"""Batch builder.

Merges stream payloads (optionally rewritten per target) and catalog payloads
for every resolved (group, target, url) into one flat, read-only mapping of
request descriptors keyed ``Group-<group>-<target>-<payload>``.
"""

from __future__ import annotations

import copy
import json
from types import MappingProxyType
from typing import Any, Iterable, Mapping

from loadgen.core.catalog import PayloadCatalog
from loadgen.core.models import (
    DeploymentMode,
    Group,
    Payload,
    RequestDescriptor,
    Target,
)
from loadgen.core.router import AddressMap, resolve_addresses
from loadgen.exceptions import BatchKeyCollisionError, ConfigurationError
from loadgen.logger import Logger, session_logger

Batch = Mapping[str, RequestDescriptor]

# target id -> {dotted field path: replacement value}
StreamRewrites = Mapping[str, Mapping[str, Any]]

# coinapi serves the generic "data" stream payloads from its assets endpoint.
DEFAULT_STREAM_REWRITES: dict[str, dict[str, Any]] = {
    "coinapi": {"data.endpoint": "assets"},
}


def request_key(group: Group, target_id: str, payload_name: str) -> str:
    return f"Group-{group}-{target_id}-{payload_name}"


def rewrite_body(body: Any, fields: Mapping[str, Any], *, target_id: str = "") -> Any:
    """Return a rewritten copy of ``body`` with each dotted path set.

    String bodies are decoded as JSON first; the result is structured data.
    The input body is never mutated, since stream payloads are shared by all
    targets.
    """

    if isinstance(body, (str, bytes)):
        try:
            doc = json.loads(body)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(
                "STREAM_REWRITE_FAILED",
                f"stream payload body for {target_id!r} is not JSON and cannot be rewritten",
                details={"target_id": target_id, "error": str(exc)},
            ) from exc
    else:
        doc = copy.deepcopy(body)

    for path, value in fields.items():
        parts = path.split(".")
        node = doc
        for part in parts[:-1]:
            if not isinstance(node, dict):
                break
            node = node.setdefault(part, {})
        if not isinstance(node, dict):
            raise ConfigurationError(
                "STREAM_REWRITE_FAILED",
                f"cannot set {path!r} on stream payload for {target_id!r}: parent is not an object",
                details={"target_id": target_id, "path": path},
            )
        node[parts[-1]] = value

    return doc


def build_batch(
    addresses: AddressMap,
    catalog: PayloadCatalog,
    stream_payloads: Iterable[Payload] = (),
    stream_enabled: bool = False,
    rewrites: StreamRewrites | None = None,
) -> Batch:
    """Build the request descriptors for one iteration.

    Stream payloads come first for each target, then its catalog payloads.
    A repeated key is a configuration error rather than an overwrite.
    """

    rewrites = DEFAULT_STREAM_REWRITES if rewrites is None else rewrites
    stream = tuple(stream_payloads) if stream_enabled else ()
    out: dict[str, RequestDescriptor] = {}

    def _emit(group: Group, target_id: str, url: str, payload: Payload, body: Any, source: str) -> None:
        key = request_key(group, target_id, payload.name)
        if key in out:
            raise BatchKeyCollisionError(
                key,
                details={"target_id": target_id, "payload": payload.name, "source": source},
            )
        out[key] = RequestDescriptor(
            key=key,
            group=group,
            target_id=target_id,
            payload_name=payload.name,
            method=payload.method,
            url=url,
            body=body,
        )

    for group, urls in addresses.items():
        for target_id, url in urls.items():
            catalog_payloads = catalog.payloads_for(target_id)

            if stream:
                fields = rewrites.get(target_id)
                for payload in stream:
                    body = rewrite_body(payload.body, fields, target_id=target_id) if fields else payload.body
                    _emit(group, target_id, url, payload, body, "stream")

            for payload in catalog_payloads:
                _emit(group, target_id, url, payload, payload.body, "catalog")

    return MappingProxyType(out)


class BatchBuilder:
    """Builds batches for a fixed mode and payload set, reusing unchanged ones.

    The router output is a pure function of the mode and the eligible
    targets, so a batch built for a given set of eligible ids can be handed
    out again verbatim.
    """

    def __init__(
        self,
        mode: DeploymentMode,
        catalog: PayloadCatalog,
        *,
        stream_payloads: Iterable[Payload] = (),
        stream_enabled: bool = False,
        rewrites: StreamRewrites | None = None,
        logger: Logger | None = None,
    ) -> None:
        self._mode = mode
        self._catalog = catalog
        self._stream_payloads = tuple(stream_payloads)
        self._stream_enabled = stream_enabled
        self._rewrites = rewrites
        self._logger = logger or session_logger
        self._cache: dict[tuple[str, ...], Batch] = {}

    @property
    def mode(self) -> DeploymentMode:
        return self._mode

    def for_targets(self, eligible: Iterable[Target]) -> Batch:
        targets = list(eligible)
        cache_key = tuple(t.id for t in targets)
        batch = self._cache.get(cache_key)
        if batch is not None:
            return batch

        addresses = resolve_addresses(self._mode, targets)
        batch = build_batch(
            addresses,
            self._catalog,
            self._stream_payloads,
            self._stream_enabled,
            self._rewrites,
        )
        self._cache[cache_key] = batch

        self._logger.debug(
            "loadgen.batch_built",
            groups=len(addresses),
            targets=len(targets),
            requests=len(batch),
            stream_enabled=self._stream_enabled,
        )
        return batch
