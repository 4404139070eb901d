"""nftables ruleset compiler.

Operator allow-lists are merged with fixed private/loopback ranges. Entries are
deduplicated by exact (trimmed) text; defaults keep their canonical order and
operator additions follow in sorted order, so the same inputs in any order give
the same ruleset. No CIDR subsumption is attempted.
"""

from __future__ import annotations

DEFAULT_DNS_IPV4 = (
    "127.0.0.1",
    "10.0.0.0/8",
    "172.16.0.0/12",
    "192.168.0.0/16",
    "100.64.0.0/10",
)

DEFAULT_DNS_IPV6 = (
    "::1",
    "fd00::/8",
    "fe80::/10",
    "fc00::/8",
)

MONITORING_AGENT_PORT = 10050
ZABBIX_TRAPPER_PORT = 10051
ZABBIX_WEB_PORTS = "{ 80, 443, 3000 }"

INSECURE_SSH_MARKER = "# WARNING: SSH open to any source (insecure)"

_HEADER = """\
#!/usr/sbin/nft -f
flush ruleset

table inet filter {
    chain input {
        type filter hook input priority 0; policy drop;

        ct state established,related accept
        iif lo accept

        ip protocol icmp accept
        ip6 nexthdr icmpv6 accept
"""

_FOOTER = """\

        counter log prefix "[nftables-drop] " drop
    }

    chain forward {
        type filter hook forward priority 0; policy drop;
    }

    chain output {
        type filter hook output priority 0; policy accept;
    }
}
"""

_INDENT = " " * 8


def merge_sources(defaults: tuple[str, ...] | list[str], extra: list[str]) -> list[str]:
    """Defaults first (as given), then unseen operator entries sorted."""
    merged: list[str] = []
    seen: set[str] = set()
    for entry in defaults:
        entry = entry.strip()
        if entry and entry not in seen:
            seen.add(entry)
            merged.append(entry)
    for entry in sorted({e.strip() for e in extra if e.strip()} - seen):
        merged.append(entry)
    return merged


def _family(address: str) -> str:
    return "ip6" if ":" in address else "ip"


def _ssh_ports(ssh_port: int) -> str:
    return "{ 22 }" if ssh_port == 22 else f"{{ 22, {ssh_port} }}"


def ssh_rules(ssh_port: int, allowed_ssh_ips: list[str]) -> list[str]:
    ports = _ssh_ports(ssh_port)
    sources = merge_sources((), allowed_ssh_ips)
    if not sources:
        return [f"{_INDENT}tcp dport {ports} accept  {INSECURE_SSH_MARKER}"]
    return [f"{_INDENT}{_family(ip)} saddr {ip} tcp dport {ports} accept" for ip in sources]


def dns_rules(sources: list[str], family: str) -> list[str]:
    lines = []
    for ip in sources:
        lines.append(f"{_INDENT}{family} saddr {ip} udp dport 53 accept")
        lines.append(f"{_INDENT}{family} saddr {ip} tcp dport 53 accept")
    return lines


def _assemble(*blocks: list[str]) -> str:
    body = "\n\n".join("\n".join(block) for block in blocks if block)
    return f"{_HEADER}\n{body}\n{_FOOTER}"


def compile_dns_ruleset(
    ssh_port: int,
    allowed_ssh_ips: list[str],
    allowed_dns_ipv4: list[str],
    allowed_dns_ipv6: list[str],
) -> str:
    """Ruleset for a DNS resolver: SSH, port 53 per source network, monitoring agent."""
    return _assemble(
        ssh_rules(ssh_port, allowed_ssh_ips),
        dns_rules(merge_sources(DEFAULT_DNS_IPV4, allowed_dns_ipv4), "ip"),
        dns_rules(merge_sources(DEFAULT_DNS_IPV6, allowed_dns_ipv6), "ip6"),
        [f"{_INDENT}tcp dport {MONITORING_AGENT_PORT} accept"],
    )


def compile_zabbix_ruleset(ssh_port: int, allow_all: bool, allowed_ips: list[str]) -> str:
    """Ruleset for a Zabbix server: web front-end / Grafana access policy plus agent ports."""
    if allow_all:
        web = [
            f"{_INDENT}# HTTP/HTTPS/Grafana - open to all",
            f"{_INDENT}tcp dport {ZABBIX_WEB_PORTS} accept",
        ]
    elif allowed_ips:
        web = [f"{_INDENT}# HTTP/HTTPS/Grafana - allowed sources"]
        web += [
            f"{_INDENT}{_family(ip)} saddr {ip} tcp dport {ZABBIX_WEB_PORTS} accept"
            for ip in merge_sources((), allowed_ips)
        ]
    else:
        web = [
            f"{_INDENT}# HTTP/HTTPS/Grafana - localhost only",
            f"{_INDENT}ip saddr 127.0.0.1 tcp dport {ZABBIX_WEB_PORTS} accept",
        ]

    return _assemble(
        [f"{_INDENT}# SSH", f"{_INDENT}tcp dport {_ssh_ports(ssh_port)} accept"],
        web,
        [
            f"{_INDENT}# Zabbix agent / trapper",
            f"{_INDENT}tcp dport {MONITORING_AGENT_PORT} accept",
            f"{_INDENT}tcp dport {ZABBIX_TRAPPER_PORT} accept",
        ],
    )
