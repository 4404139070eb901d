"""Shared enums and small request/response schemas."""

from __future__ import annotations

import ipaddress
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class ServerKind(StrEnum):
    DNS = "dns"
    ZABBIX = "zabbix"


class ServerStatus(StrEnum):
    PENDING = "pending"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ERROR = "error"
    DNS_ERROR = "dns_error"  # DNS servers only


# Statuses from which an operator may (re)start an install
INSTALLABLE_STATUSES = (ServerStatus.PENDING, ServerStatus.ERROR, ServerStatus.DNS_ERROR)


class CommandStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"


OUTSTANDING_COMMAND_STATUSES = (CommandStatus.PENDING, CommandStatus.RUNNING)


# ── Address validation helpers ───────────────────────────────────────


def clean_network(value: str, version: int | None = None) -> str:
    """Trim an address/CIDR entry and make sure it parses.

    Networks with host bits set (``10.1.2.3/8``) are rejected: BIND refuses
    them in an ACL. The trimmed string is returned unchanged otherwise; rule
    deduplication is done on that exact text.
    """
    text = value.strip()
    try:
        net = ipaddress.ip_network(text)
    except ValueError:
        raise ValueError(f"invalid address or network (host bits set?): {value!r}") from None
    if version is not None and net.version != version:
        raise ValueError(f"expected an IPv{version} address or network: {value!r}")
    return text


def clean_networks(values: list[str], version: int | None = None) -> list[str]:
    return [clean_network(v, version) for v in values if v.strip()]


def clean_address(value: str | None, version: int) -> str | None:
    if value is None or not value.strip():
        return None
    text = value.strip()
    try:
        addr = ipaddress.ip_address(text)
    except ValueError:
        raise ValueError(f"invalid IPv{version} address: {value!r}") from None
    if addr.version != version:
        raise ValueError(f"invalid IPv{version} address: {value!r}")
    return text


SSH_USER_PATTERN = r"^[a-z_][a-z0-9_.-]{0,31}$"


# ── Actions ──────────────────────────────────────────────────────────


class InstallStarted(BaseModel):
    server_id: str
    status: ServerStatus
    message: str = ""


class CommandRequest(BaseModel):
    command: str = Field(..., min_length=1, max_length=65536)


class CommandOutput(BaseModel):
    output: str


class AgentCommandState(BaseModel):
    pending_command: str | None
    command_status: CommandStatus | None
    command_output: str | None = None
    last_agent_check: datetime | None = None


class ActionResult(BaseModel):
    success: bool
    message: str = ""
    output: str = ""
