"""Tests for roster and payload catalog loading."""

from __future__ import annotations

import json

import pytest

from loadgen.core.catalog import PayloadCatalog, load_stream_payloads, parse_payload
from loadgen.core.roster import TargetRoster
from loadgen.exceptions import (
    CatalogEntryNotFoundError,
    ConfigurationError,
    InvalidCadenceError,
)


class TestTargetRoster:
    def test_from_entries(self) -> None:
        roster = TargetRoster.from_entries(
            [
                {"name": "foo", "seconds_per_call": 1},
                {"name": "bar", "seconds_per_call": 10},
            ]
        )
        assert roster.ids() == ["foo", "bar"]
        assert [t.cadence for t in roster] == [1, 10]
        assert "foo" in roster
        assert "nope" not in roster
        assert len(roster) == 2

    def test_cadence_defaults_to_one(self) -> None:
        roster = TargetRoster.from_entries([{"name": "foo"}])
        assert roster.targets[0].cadence == 1

    def test_zero_cadence_fails_at_load(self) -> None:
        with pytest.raises(InvalidCadenceError):
            TargetRoster.from_entries([{"name": "foo", "seconds_per_call": 0}])

    def test_string_cadence_fails_at_load(self) -> None:
        with pytest.raises(InvalidCadenceError):
            TargetRoster.from_entries([{"name": "foo", "seconds_per_call": "5"}])

    def test_duplicate_ids_rejected(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            TargetRoster.from_entries([{"name": "foo"}, {"name": "foo"}])
        assert exc_info.value.code == "DUPLICATE_TARGET"

    def test_missing_name_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            TargetRoster.from_entries([{"seconds_per_call": 1}])

    def test_non_list_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            TargetRoster.from_entries({"foo": 1})


class TestPayloadCatalog:
    def test_preserves_order(self) -> None:
        catalog = PayloadCatalog.from_mapping(
            {"foo": [{"name": "b", "data": {}}, {"name": "a", "data": {}}]}
        )
        assert [p.name for p in catalog.payloads_for("foo")] == ["b", "a"]

    def test_method_defaults_to_post_and_is_uppercased(self) -> None:
        assert parse_payload({"name": "x"}).method == "POST"
        assert parse_payload({"name": "x", "method": "get"}).method == "GET"

    def test_unknown_method_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            parse_payload({"name": "x", "method": "FETCH"})

    def test_missing_name_rejected(self) -> None:
        with pytest.raises(ConfigurationError):
            parse_payload({"method": "POST"})

    def test_missing_target_raises(self) -> None:
        catalog = PayloadCatalog.from_mapping({"foo": []})
        with pytest.raises(CatalogEntryNotFoundError) as exc_info:
            catalog.payloads_for("bar")
        assert exc_info.value.target_id == "bar"
        assert isinstance(exc_info.value, ConfigurationError)

    def test_empty_list_is_valid(self) -> None:
        catalog = PayloadCatalog.from_mapping({"foo": []})
        assert catalog.payloads_for("foo") == ()


class TestLoadStreamPayloads:
    def test_reads_json_array(self, tmp_path) -> None:
        path = tmp_path / "ws.json"
        path.write_text(
            json.dumps([{"name": "ws-1", "method": "POST", "data": "{\"data\": {}}"}]),
            encoding="utf-8",
        )
        payloads = load_stream_payloads(path)
        assert len(payloads) == 1
        assert payloads[0].name == "ws-1"
        assert payloads[0].body == "{\"data\": {}}"

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            load_stream_payloads(tmp_path / "nope.json")
        assert exc_info.value.code == "STREAM_PAYLOAD_FILE_MISSING"

    def test_invalid_json(self, tmp_path) -> None:
        path = tmp_path / "ws.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigurationError) as exc_info:
            load_stream_payloads(path)
        assert exc_info.value.code == "STREAM_PAYLOAD_FILE_INVALID"

    def test_not_a_list(self, tmp_path) -> None:
        path = tmp_path / "ws.json"
        path.write_text(json.dumps({"name": "x"}), encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_stream_payloads(path)
