"""Reconciliation of declared tunnels against observed live state.

Everything in this module is a pure function of its inputs: no clock reads
apart from an injectable snapshot timestamp, no I/O, no randomness.
"""

from collections.abc import Iterable, Sequence
from datetime import datetime

from .collector.collector import LiveFacts, QueryFailure
from .config import ToolProfile
from .models import (
    AddressFamily,
    CheckState,
    ConfigSnapshot,
    GlobalStatus,
    InterfaceDiagnostic,
    LiveInstance,
    NatDiagnostic,
    ServiceState,
    StatusSnapshot,
    TunnelDefinition,
    TunnelState,
    TunnelStatus,
)
from .parsing import parse_interfaces, parse_nat_rules


def _resolve_state(
    definition: TunnelDefinition,
    global_enabled: bool,
    instance: LiveInstance | None,
    live_known: bool,
) -> TunnelState:
    if not global_enabled:
        return TunnelState.SERVICE_DISABLED
    if not definition.enabled:
        return TunnelState.DISABLED
    if not live_known:
        return TunnelState.UNKNOWN
    if instance is not None and instance.running:
        return TunnelState.RUNNING
    return TunnelState.STOPPED


def reconcile(
    defs: Sequence[TunnelDefinition],
    global_enabled: bool,
    live: Iterable[LiveInstance] | None,
    key_template: str = "{role}.{id}",
) -> list[TunnelStatus]:
    """Compute one status per configured tunnel.

    Precedence is service disabled, then tunnel disabled, then the live state.
    Instances without a matching definition are ignored here.

    Args:
        defs: Tunnel definitions in configuration order
        global_enabled: Service-wide enable switch
        live: Instances reported by the supervisor; None if the query failed
        key_template: How a definition maps onto an instance key

    Returns:
        Statuses in the same order as ``defs``
    """
    live_known = live is not None
    by_key: dict[str, LiveInstance] = {}
    for instance in live or ():
        # A running duplicate wins over a stopped one
        if instance.key not in by_key or instance.running:
            by_key[instance.key] = instance

    statuses = []
    for definition in defs:
        instance = by_key.get(definition.instance_key(key_template))
        state = _resolve_state(definition, global_enabled, instance, live_known)
        statuses.append(
            TunnelStatus(
                id=definition.id,
                alias=definition.display_alias,
                role=definition.role,
                state=state,
                pid=instance.pid if state == TunnelState.RUNNING and instance else None,
                local=definition.local,
                remote=definition.remote,
                tags=dict(definition.tags),
            )
        )
    return statuses


def summarize_service(
    global_enabled: bool, live: Iterable[LiveInstance] | None
) -> GlobalStatus:
    """Derive the service-wide status.

    ``active_instances`` counts every running instance, including ones no
    definition refers to.
    """
    if live is None:
        state = ServiceState.DISABLED if not global_enabled else ServiceState.UNKNOWN
        return GlobalStatus(state=state, enabled=global_enabled)

    active = sum(1 for instance in live if instance.running)
    if not global_enabled:
        state = ServiceState.DISABLED
    elif active:
        state = ServiceState.RUNNING
    else:
        state = ServiceState.STOPPED
    return GlobalStatus(state=state, enabled=global_enabled, active_instances=active)


def diagnose_nat(
    family: AddressFamily, dump: str | QueryFailure, profile: ToolProfile
) -> NatDiagnostic:
    if isinstance(dump, QueryFailure):
        return NatDiagnostic(family=family, state=CheckState.FAILED, error=dump.reason)

    markers = profile.nat_markers_v4 if family == AddressFamily.IPV4 else profile.nat_markers_v6
    rules = parse_nat_rules(
        dump,
        family=family,
        markers=markers,
        rule_tokens=profile.nat_rule_tokens,
        chain_prefix=profile.chain_prefix,
    )
    return NatDiagnostic(
        family=family,
        state=CheckState.OK if rules else CheckState.MISSING,
        rules=tuple(rules),
    )


def diagnose_interfaces(
    listing: str | QueryFailure, profile: ToolProfile
) -> InterfaceDiagnostic:
    if isinstance(listing, QueryFailure):
        return InterfaceDiagnostic(state=CheckState.FAILED, error=listing.reason)

    interfaces = parse_interfaces(listing, profile.interface_pattern)
    return InterfaceDiagnostic(
        state=CheckState.OK if interfaces else CheckState.MISSING,
        interfaces=tuple(interfaces),
    )


def build_snapshot(
    config: ConfigSnapshot,
    facts: LiveFacts,
    profile: ToolProfile,
    collected_at: datetime | None = None,
) -> StatusSnapshot:
    """Join configuration and collected facts into a status snapshot."""
    live = None if isinstance(facts.instances, QueryFailure) else facts.instances

    tunnels = reconcile(config.tunnels, config.global_enabled, live, profile.instance_key)
    nat = tuple(diagnose_nat(family, dump, profile) for family, dump in facts.nat.items())
    interfaces = (
        diagnose_interfaces(facts.interfaces, profile)
        if facts.interfaces is not None
        else None
    )

    return StatusSnapshot(
        global_status=summarize_service(config.global_enabled, live),
        tunnels=tuple(tunnels),
        nat=nat,
        interfaces=interfaces,
        collected_at=collected_at or datetime.now(),
    )


def failed_snapshot(
    reason: str,
    config: ConfigSnapshot | None = None,
    collected_at: datetime | None = None,
) -> StatusSnapshot:
    """Snapshot published when a whole cycle could not complete."""
    global_enabled = config.global_enabled if config is not None else False
    tunnels = reconcile(config.tunnels, global_enabled, None) if config is not None else []
    return StatusSnapshot(
        global_status=GlobalStatus(state=ServiceState.UNKNOWN, enabled=global_enabled),
        tunnels=tuple(tunnels),
        collected_at=collected_at or datetime.now(),
        error=reason,
    )
