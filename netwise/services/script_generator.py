"""Install script generation — renders the Jinja2 templates in netwise/templates.

Generation is pure: the same record, secrets and control URL always give the
same script text. Untrusted values reach the shell only shell-quoted or inside
quoted heredocs whose bodies are checked for delimiter collisions.
"""

from __future__ import annotations

import re
import shlex
from dataclasses import dataclass

import jinja2

from netwise.models import DnsServer, ZabbixServer
from netwise.schemas.common import ServerKind
from netwise.services import firewall

DNS_BASE_PACKAGES = ["rsyslog", "fail2ban", "nftables", "bind9", "dnsutils", "curl", "jq"]
ANYCAST_PACKAGES = ["frr", "frr-pythontools"]


class ScriptGenerationError(Exception):
    """The record cannot be turned into a safe install script."""


@dataclass(frozen=True)
class AgentIdentity:
    """What the agent needs to reach the control plane."""

    kind: ServerKind
    server_id: str
    agent_token: str
    api_url: str
    poll_interval: int = 30


# ── Jinja2 environment & filters ─────────────────────────────────────


def _shell_quote(value: object) -> str:
    return shlex.quote(str(value))


def _heredoc(text: str, delimiter: str) -> str:
    body = text.rstrip("\n")
    if any(line.strip() == delimiter for line in body.splitlines()):
        raise ScriptGenerationError(f"embedded block contains heredoc delimiter {delimiter}")
    return body


def _sql_string(value: str) -> str:
    """Quote a value as a MariaDB string literal."""
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def _hostname(value: str) -> str:
    name = re.sub(r"[^A-Za-z0-9-]+", "-", value).strip("-")
    return name[:63] or "netwise"


_env = jinja2.Environment(
    loader=jinja2.PackageLoader("netwise", "templates"),
    undefined=jinja2.StrictUndefined,
    keep_trailing_newline=True,
    trim_blocks=True,
    lstrip_blocks=True,
    autoescape=False,
)
_env.filters["shell_quote"] = _shell_quote
_env.filters["heredoc"] = _heredoc
_env.filters["sql_string"] = _sql_string


def _render(template_name: str, **context) -> str:
    return _env.get_template(template_name).render(**context)


def _require(server: object, fields: tuple[str, ...]) -> None:
    missing = [f for f in fields if getattr(server, f, None) in (None, "")]
    if missing:
        raise ScriptGenerationError(f"server record is missing required fields: {', '.join(missing)}")


def _check_single_line(label: str, value: str) -> None:
    if any(ord(ch) < 32 or ord(ch) == 127 for ch in value):
        raise ScriptGenerationError(f"{label} must not contain control characters")


# ── Agent ────────────────────────────────────────────────────────────


def agent_section(identity: AgentIdentity) -> str:
    """Bash fragment that writes, enables and starts the agent."""
    if not identity.agent_token or not identity.server_id:
        raise ScriptGenerationError("agent token and server id are required")
    if not identity.api_url.startswith(("http://", "https://")):
        raise ScriptGenerationError(f"control URL must be http(s): {identity.api_url!r}")
    program = _render(
        "agent.j2",
        api_url=identity.api_url.rstrip("/"),
        agent_token=identity.agent_token,
        server_id=identity.server_id,
        kind=identity.kind.value,
        poll_interval=int(identity.poll_interval),
    )
    return _render("agent_install.sh.j2", agent_program=program)


def agent_script(server_name: str, identity: AgentIdentity) -> str:
    """Standalone script that (re)installs only the agent, reusing the existing token."""
    return _render(
        "agent_reinstall.sh.j2", server_name=server_name, agent_section=agent_section(identity)
    )


# ── DNS resolver ─────────────────────────────────────────────────────


def _dns_acl_sources(server: DnsServer) -> list[str]:
    return firewall.merge_sources(
        firewall.DEFAULT_DNS_IPV4, server.allowed_dns_ipv4 or []
    ) + firewall.merge_sources(firewall.DEFAULT_DNS_IPV6, server.allowed_dns_ipv6 or [])


def _dns_ruleset(server: DnsServer) -> str:
    return firewall.compile_dns_ruleset(
        server.ssh_port or 22,
        server.allowed_ssh_ips or [],
        server.allowed_dns_ipv4 or [],
        server.allowed_dns_ipv6 or [],
    )


def anycast_plan(server: DnsServer) -> dict | None:
    """Dummy interfaces and OSPF scope for the configured loopbacks, or None."""
    if not server.has_anycast:
        return None

    interfaces = []
    for index, (v4, v6) in enumerate(
        ((server.loopback_ipv4_1, server.loopback_ipv6_1), (server.loopback_ipv4_2, server.loopback_ipv6_2))
    ):
        if v4 or v6:
            interfaces.append({"name": f"dummy{index}", "ipv4": v4, "ipv6": v6})

    loopbacks_v4 = [i["ipv4"] for i in interfaces if i["ipv4"]]
    ospf6_interfaces = [i["name"] for i in interfaces if i["ipv6"]]
    return {
        "dummy_interfaces": interfaces,
        "loopbacks_v4": loopbacks_v4,
        "ospf6_interfaces": ospf6_interfaces,
    }


def dns_install_script(server: DnsServer, identity: AgentIdentity) -> str:
    _require(server, ("id", "name", "ipv4", "ssh_user"))

    plan = anycast_plan(server)
    packages = DNS_BASE_PACKAGES + (ANYCAST_PACKAGES if plan else [])
    context = {
        "server": server,
        "packages": packages,
        "named_conf": _render("named.conf.j2"),
        "named_options": _render("named.conf.options.j2", acl_sources=_dns_acl_sources(server)),
        "nftables": _dns_ruleset(server),
        "jail_local": _render("jail.local.j2", ssh_port=server.ssh_port or 22),
        "anycast": plan,
        "agent_section": agent_section(identity),
    }
    if plan:
        context["frr_daemons"] = _render(
            "frr_daemons.j2", ospfd=bool(plan["loopbacks_v4"]), ospf6d=bool(plan["ospf6_interfaces"])
        )
        context["loopback_interfaces"] = _render(
            "loopback-anycast.j2", dummy_interfaces=plan["dummy_interfaces"]
        )
        context["frr_conf"] = _render(
            "frr.conf.j2",
            hostname=_hostname(server.name),
            router_id=server.ipv4,
            loopbacks_v4=plan["loopbacks_v4"],
            ospf6_interfaces=plan["ospf6_interfaces"],
        )
    return _render("dns_install.sh.j2", **context)


def dns_firewall_update_command(server: DnsServer) -> str:
    """Agent command that rewrites and reloads the firewall and resolver ACL."""
    return _render(
        "dns_firewall_update.sh.j2",
        nftables=_dns_ruleset(server),
        named_options=_render("named.conf.options.j2", acl_sources=_dns_acl_sources(server)),
    )


# ── Zabbix ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ZabbixSecrets:
    db_password: str
    db_root_password: str


def zabbix_install_script(
    server: ZabbixServer, secrets: ZabbixSecrets, identity: AgentIdentity
) -> str:
    _require(server, ("id", "name", "ipv4", "ssh_user", "zabbix_db_user", "zabbix_version"))
    if not secrets.db_password or not secrets.db_root_password:
        raise ScriptGenerationError("Zabbix database passwords are required")
    if not re.fullmatch(r"[A-Za-z0-9_]{1,32}", server.zabbix_db_user):
        raise ScriptGenerationError(f"invalid Zabbix database user: {server.zabbix_db_user!r}")
    if not re.fullmatch(r"\d+\.\d+", server.zabbix_version):
        raise ScriptGenerationError(f"invalid Zabbix version: {server.zabbix_version!r}")
    _check_single_line("Zabbix database password", secrets.db_password)
    _check_single_line("Zabbix database root password", secrets.db_root_password)

    nftables = None
    if server.enable_firewall:
        nftables = firewall.compile_zabbix_ruleset(
            server.ssh_port or 22, server.firewall_allow_all, server.firewall_allowed_ips or []
        )

    return _render(
        "zabbix_install.sh.j2",
        server=server,
        bootstrap_sql=_render(
            "zabbix_bootstrap.sql.j2",
            root_password=secrets.db_root_password,
            db_user=server.zabbix_db_user,
            db_password=secrets.db_password,
        ),
        server_db_conf=f"DBUser={server.zabbix_db_user}\nDBPassword={secrets.db_password}\n",
        nftables=nftables,
        agent_section=agent_section(identity),
    )
