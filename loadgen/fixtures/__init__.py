"""Local stand-ins for external adapters, for development and CI runs."""

from __future__ import annotations

__all__ = ["StubAdapterServer"]

from loadgen.fixtures.stub_adapter_server import StubAdapterServer
