from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Mapping, Protocol

import httpx

from loadgen.core.batch import Batch
from loadgen.core.models import RequestDescriptor, Response
from loadgen.logger import Logger, session_logger


class BatchExecutor(Protocol):
    async def execute(self, batch: Batch) -> Mapping[str, Response]: ...

    async def aclose(self) -> None: ...


class HttpxBatchExecutor:
    """Dispatches a whole batch concurrently, one request per descriptor.

    No retries: the error rate must reflect what the adapters actually did.
    A request error for one descriptor (timeout, refused connection, an
    undecodable body) is logged and its key is left out of the result, so the
    aggregator scores it as a missing response. Any other exception cancels
    the rest of the batch and propagates to the runner.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = 30.0,
        logger: Logger | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._logger = logger or session_logger
        self._http = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
            headers={"User-Agent": "ea-loadgen/0.1"},
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def execute(self, batch: Batch) -> dict[str, Response]:
        descriptors = list(batch.values())
        tasks = [asyncio.create_task(self._send(d)) for d in descriptors]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            # Nothing may keep using the client once the batch has failed.
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return {d.key: r for d, r in zip(descriptors, results) if r is not None}

    async def _send(self, descriptor: RequestDescriptor) -> Response | None:
        start = time.monotonic()
        try:
            resp = await self._http.request(
                descriptor.method,
                descriptor.url,
                content=_encode_body(descriptor.body),
                headers=dict(descriptor.headers),
            )
        except httpx.RequestError as exc:
            duration_ms = int((time.monotonic() - start) * 1000)
            self._logger.warning(
                "loadgen.request_failed",
                key=descriptor.key,
                url=descriptor.url,
                duration_ms=duration_ms,
                error_type=classify_exception(exc),
                error=str(exc),
            )
            return None

        duration_ms = int((time.monotonic() - start) * 1000)
        return Response(status=resp.status_code, duration_ms=duration_ms)


def _encode_body(body: Any) -> bytes | None:
    if body is None:
        return None
    if isinstance(body, bytes):
        return body
    if isinstance(body, str):
        return body.encode("utf-8")
    return json.dumps(body).encode("utf-8")


def classify_exception(exc: Exception) -> str:
    """Map a network-level exception to a canonical error_type."""
    if isinstance(exc, httpx.TimeoutException):
        return "network_timeout"
    if isinstance(exc, httpx.ConnectError):
        return "network_connect"
    if isinstance(exc, (httpx.RemoteProtocolError, httpx.LocalProtocolError)):
        return "network_protocol"
    if isinstance(exc, httpx.HTTPError):
        return "network_error"
    return type(exc).__name__
