"""Target router: (group, target) -> URL.

Local mode exposes exactly one group ("local") pointing at a loopback adapter.
Staging mode fans the eligible targets out over ``group_count`` groups on the
stage cluster; with a release tag each target resolves to its ephemeral
release (``qa-ea-<target>-<tag>``) instead of the long-lived deployment.
"""

from __future__ import annotations

from typing import Iterable

from loadgen.core.models import (
    LOCAL_GROUP,
    Channel,
    DeploymentMode,
    Group,
    LocalMode,
    StagingMode,
    Target,
)
from loadgen.exceptions import ConfigurationError, MissingModeInputsError

STAGE_HOSTS: dict[Channel, str] = {
    Channel.QA: "https://adapters.qa.stage.cldev.sh/",
    Channel.MAIN: "https://adapters.main.stage.cldev.sh/",
}

AddressMap = dict[Group, dict[str, str]]


def ephemeral_name(target_id: str, release_tag: str) -> str:
    """Name an ephemeral release of a target gets in the qa cluster."""
    return f"qa-ea-{target_id}-{release_tag}"


def resolve_deployment_mode(
    *,
    local_target: str | None = None,
    local_url: str | None = None,
    group_count: int | None = None,
    release_tag: str | None = None,
    channel: Channel | str | None = None,
    stage_host: str | None = None,
) -> DeploymentMode:
    """Pick the deployment mode once, at startup.

    A local target name wins over staging inputs. Without a release tag the
    channel defaults to main; with one it defaults to qa.
    """

    local_target = (local_target or "").strip() or None
    release_tag = (release_tag or "").strip() or None

    if local_target:
        if local_url:
            return LocalMode(target_name=local_target, url=local_url)
        return LocalMode(target_name=local_target)

    if group_count is None or group_count < 1:
        raise MissingModeInputsError(
            "cannot resolve deployment mode: no local target and no group count >= 1",
            details={"local_target": local_target, "group_count": group_count},
        )

    if channel is None:
        resolved_channel = Channel.QA if release_tag else Channel.MAIN
    else:
        try:
            resolved_channel = Channel(channel)
        except ValueError:
            raise ConfigurationError(
                "INVALID_CHANNEL",
                f"unknown release channel {channel!r}; use one of: "
                + ", ".join(c.value for c in Channel),
            ) from None

    base_url = None
    if stage_host:
        base_url = stage_host if stage_host.endswith("/") else stage_host + "/"

    return StagingMode(
        group_count=group_count,
        channel=resolved_channel,
        release_tag=release_tag,
        base_url=base_url,
    )


def resolve_addresses(mode: DeploymentMode, eligible: Iterable[Target]) -> AddressMap:
    """Resolve ``{group: {target_id: url}}`` for this iteration.

    In staging mode every group gets the same URL string for a target; the
    group index only partitions the request keys.
    """

    if isinstance(mode, LocalMode):
        return {LOCAL_GROUP: {mode.target_name: mode.url}}

    if isinstance(mode, StagingMode):
        if mode.group_count < 1:
            raise MissingModeInputsError(
                "staging mode needs group_count >= 1",
                details={"group_count": mode.group_count},
            )
        host = mode.base_url or STAGE_HOSTS[mode.channel]
        urls: dict[str, str] = {}
        for target in eligible:
            segment = ephemeral_name(target.id, mode.release_tag) if mode.release_tag else target.id
            urls[target.id] = f"{host}{segment}"
        return {group: dict(urls) for group in range(mode.group_count)}

    raise MissingModeInputsError(
        f"unsupported deployment mode: {type(mode).__name__}",
    )
