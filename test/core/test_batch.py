"""Tests for batch construction, body rewrites and the batch cache."""

from __future__ import annotations

import json

import pytest

from loadgen.core.batch import BatchBuilder, build_batch, request_key, rewrite_body
from loadgen.core.catalog import PayloadCatalog
from loadgen.core.models import LocalMode, Payload, StagingMode, Target
from loadgen.core.router import resolve_addresses
from loadgen.exceptions import (
    BatchKeyCollisionError,
    CatalogEntryNotFoundError,
    ConfigurationError,
)


def _catalog() -> PayloadCatalog:
    return PayloadCatalog(
        {
            "foo": [Payload("one", "POST", {"a": 1}), Payload("two", "POST", {"a": 2})],
            "bar": [Payload("one", "POST", {"b": 1})],
            "coinapi": [Payload("btc", "POST", {"c": 1})],
        }
    )


STREAM = (
    Payload("ws-eth", "POST", '{"data": {"from": "ETH", "endpoint": "crypto"}}'),
    Payload("ws-btc", "POST", '{"data": {"from": "BTC"}}'),
)


class TestBuildBatch:
    def test_local_mode_catalog_only(self) -> None:
        """Exactly the catalog entries for the local target."""
        addresses = resolve_addresses(LocalMode(target_name="foo"), [])
        batch = build_batch(addresses, _catalog())

        assert list(batch) == ["Group-local-foo-one", "Group-local-foo-two"]
        d = batch["Group-local-foo-one"]
        assert d.url == "http://host.docker.internal:8080"
        assert d.method == "POST"
        assert d.body == {"a": 1}
        assert d.group == "local"
        assert dict(d.headers) == {"Content-Type": "application/json"}

    def test_count_matches_formula(self) -> None:
        mode = StagingMode(group_count=3)
        targets = [Target("foo"), Target("bar")]
        addresses = resolve_addresses(mode, targets)
        catalog = _catalog()

        without_stream = build_batch(addresses, catalog, STREAM, stream_enabled=False)
        with_stream = build_batch(addresses, catalog, STREAM, stream_enabled=True)

        catalog_total = len(catalog.payloads_for("foo")) + len(catalog.payloads_for("bar"))
        assert len(without_stream) == 3 * catalog_total
        assert len(with_stream) == 3 * (catalog_total + 2 * len(STREAM))

    def test_keys_are_unique_and_well_formed(self) -> None:
        addresses = resolve_addresses(StagingMode(group_count=2), [Target("foo"), Target("bar")])
        batch = build_batch(addresses, _catalog(), STREAM, stream_enabled=True)
        for key, d in batch.items():
            assert key == request_key(d.group, d.target_id, d.payload_name)
            assert key == d.key
        assert "Group-0-foo-ws-eth" in batch
        assert "Group-1-bar-one" in batch

    def test_stream_payloads_come_first(self) -> None:
        addresses = resolve_addresses(StagingMode(group_count=1), [Target("bar")])
        batch = build_batch(addresses, _catalog(), STREAM, stream_enabled=True)
        assert list(batch) == ["Group-0-bar-ws-eth", "Group-0-bar-ws-btc", "Group-0-bar-one"]

    def test_stream_body_forwarded_unmodified(self) -> None:
        addresses = resolve_addresses(StagingMode(group_count=1), [Target("bar")])
        batch = build_batch(addresses, _catalog(), STREAM, stream_enabled=True)
        assert batch["Group-0-bar-ws-eth"].body == STREAM[0].body

    def test_stream_body_rewritten_for_coinapi(self) -> None:
        addresses = resolve_addresses(StagingMode(group_count=1), [Target("coinapi"), Target("bar")])
        batch = build_batch(addresses, _catalog(), STREAM, stream_enabled=True)

        body = batch["Group-0-coinapi-ws-eth"].body
        assert body == {"data": {"from": "ETH", "endpoint": "assets"}}
        # Other targets and the shared payload are untouched.
        assert batch["Group-0-bar-ws-eth"].body == STREAM[0].body
        assert json.loads(STREAM[0].body)["data"]["endpoint"] == "crypto"

    def test_custom_rewrites_replace_defaults(self) -> None:
        addresses = resolve_addresses(StagingMode(group_count=1), [Target("coinapi"), Target("foo")])
        batch = build_batch(
            addresses,
            _catalog(),
            STREAM,
            stream_enabled=True,
            rewrites={"foo": {"data.endpoint": "price"}},
        )
        assert batch["Group-0-foo-ws-btc"].body == {"data": {"from": "BTC", "endpoint": "price"}}
        assert batch["Group-0-coinapi-ws-btc"].body == STREAM[1].body

    def test_collision_between_stream_and_catalog(self) -> None:
        catalog = PayloadCatalog({"foo": [Payload("ws-eth", "POST", {})]})
        addresses = resolve_addresses(StagingMode(group_count=1), [Target("foo")])

        with pytest.raises(BatchKeyCollisionError) as exc_info:
            build_batch(addresses, catalog, STREAM, stream_enabled=True)

        err = exc_info.value
        assert err.key == "Group-0-foo-ws-eth"
        assert err.details["source"] == "catalog"
        assert isinstance(err, ConfigurationError)

    def test_no_collision_when_stream_disabled(self) -> None:
        catalog = PayloadCatalog({"foo": [Payload("ws-eth", "POST", {})]})
        addresses = resolve_addresses(StagingMode(group_count=1), [Target("foo")])
        batch = build_batch(addresses, catalog, STREAM, stream_enabled=False)
        assert list(batch) == ["Group-0-foo-ws-eth"]

    def test_duplicate_catalog_names_collide(self) -> None:
        catalog = PayloadCatalog({"foo": [Payload("x", "POST", {}), Payload("x", "POST", {})]})
        addresses = resolve_addresses(StagingMode(group_count=1), [Target("foo")])
        with pytest.raises(BatchKeyCollisionError):
            build_batch(addresses, catalog)

    def test_missing_catalog_entry(self) -> None:
        addresses = resolve_addresses(LocalMode(target_name="ghost"), [])
        with pytest.raises(CatalogEntryNotFoundError):
            build_batch(addresses, _catalog())

    def test_batch_is_read_only(self) -> None:
        addresses = resolve_addresses(LocalMode(target_name="foo"), [])
        batch = build_batch(addresses, _catalog())
        with pytest.raises(TypeError):
            batch["new"] = batch["Group-local-foo-one"]  # type: ignore[index]


class TestRewriteBody:
    def test_string_body_decoded(self) -> None:
        assert rewrite_body('{"data": {}}', {"data.endpoint": "assets"}) == {"data": {"endpoint": "assets"}}

    def test_dict_body_copied(self) -> None:
        original = {"data": {"endpoint": "x"}}
        rewritten = rewrite_body(original, {"data.endpoint": "assets"})
        assert rewritten == {"data": {"endpoint": "assets"}}
        assert original == {"data": {"endpoint": "x"}}

    def test_missing_parents_created(self) -> None:
        assert rewrite_body({}, {"data.endpoint": "assets"}) == {"data": {"endpoint": "assets"}}

    def test_non_json_string_fails(self) -> None:
        with pytest.raises(ConfigurationError):
            rewrite_body("not json", {"data.endpoint": "assets"}, target_id="coinapi")

    def test_non_object_parent_fails(self) -> None:
        with pytest.raises(ConfigurationError):
            rewrite_body({"data": [1, 2]}, {"data.endpoint": "assets"})


class TestBatchBuilder:
    def test_reuses_batch_for_same_targets(self) -> None:
        builder = BatchBuilder(StagingMode(group_count=2), _catalog())
        first = builder.for_targets([Target("foo"), Target("bar")])
        second = builder.for_targets([Target("foo"), Target("bar")])
        assert first is second

    def test_rebuilds_when_targets_change(self) -> None:
        builder = BatchBuilder(StagingMode(group_count=1), _catalog())
        both = builder.for_targets([Target("foo"), Target("bar")])
        only_bar = builder.for_targets([Target("bar")])
        assert both is not only_bar
        assert list(only_bar) == ["Group-0-bar-one"]

    def test_stream_settings_applied(self) -> None:
        builder = BatchBuilder(
            StagingMode(group_count=1),
            _catalog(),
            stream_payloads=STREAM,
            stream_enabled=True,
        )
        batch = builder.for_targets([Target("bar")])
        assert "Group-0-bar-ws-btc" in batch
