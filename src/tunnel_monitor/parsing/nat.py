"""NAT/firewall table dump parsing."""

import re
from collections.abc import Sequence

from ..models import AddressFamily, NatRuleFact, NatRuleKind

# ":udp2rawDwrW_C0 - [0:0]" (iptables-save) or "Chain udp2rawDwrW_C0 (1 references)"
_SAVE_CHAIN = re.compile(r"^:(?P<name>\S+)\s")
_LIST_CHAIN = re.compile(r"^Chain\s+(?P<name>\S+)\s*\(")

_KIND_BY_TOKEN = {
    "MASQUERADE": NatRuleKind.MASQUERADE,
    "DNAT": NatRuleKind.DNAT,
}


def _chain_name(line: str) -> str | None:
    match = _SAVE_CHAIN.match(line) or _LIST_CHAIN.match(line)
    return match.group("name") if match else None


def _named_chains(
    lines: Sequence[str], family: AddressFamily, prefix: str
) -> list[NatRuleFact]:
    facts: list[NatRuleFact] = []
    seen: set[str] = set()
    for line in lines:
        name = _chain_name(line)
        if name is None or not name.startswith(prefix) or name in seen:
            continue
        seen.add(name)
        facts.append(
            NatRuleFact(
                family=family,
                kind=NatRuleKind.NAMED_CHAIN,
                chain=name,
                text=line,
            )
        )
    return facts


def _rule_kind(line: str, rule_tokens: Sequence[str]) -> NatRuleKind | None:
    for token in rule_tokens:
        if token in line:
            return _KIND_BY_TOKEN.get(token, NatRuleKind.MATCH)
    return None


def parse_nat_rules(
    text: str | None,
    family: AddressFamily = AddressFamily.IPV4,
    markers: Sequence[str] = (),
    rule_tokens: Sequence[str] = ("MASQUERADE", "DNAT"),
    chain_prefix: str | None = None,
) -> list[NatRuleFact]:
    """Extract tunnel-related rules from an iptables dump.

    Dedicated chains whose name starts with ``chain_prefix`` are authoritative:
    when any exist, only they are reported. Otherwise each line containing
    both a marker substring and a rule token is reported.

    Args:
        text: Output of ``iptables -L -n -v`` or ``iptables-save``
        family: Address family the dump came from
        markers: Substrings identifying tunnel-related lines
        rule_tokens: Rule targets to look for
        chain_prefix: Name prefix of chains created by the tool itself

    Returns:
        Facts in dump order; empty when nothing matched
    """
    if not text:
        return []

    lines = [line.strip() for line in text.splitlines() if line.strip()]

    if chain_prefix:
        chains = _named_chains(lines, family, chain_prefix)
        if chains:
            return chains

    facts: list[NatRuleFact] = []
    for line in lines:
        if not any(marker in line for marker in markers):
            continue
        kind = _rule_kind(line, rule_tokens)
        if kind is None:
            continue
        facts.append(NatRuleFact(family=family, kind=kind, text=line))
    return facts
