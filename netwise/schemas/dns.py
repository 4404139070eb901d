"""DNS server request/response schemas."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from netwise.schemas.common import (
    SSH_USER_PATTERN,
    CommandStatus,
    ServerStatus,
    clean_address,
    clean_networks,
)


class DnsFirewallPolicy(BaseModel):
    allowed_ssh_ips: list[str] = []
    allowed_dns_ipv4: list[str] = []
    allowed_dns_ipv6: list[str] = []

    @field_validator("allowed_ssh_ips")
    @classmethod
    def check_ssh_ips(cls, v: list[str]) -> list[str]:
        return clean_networks(v)

    @field_validator("allowed_dns_ipv4")
    @classmethod
    def check_dns_ipv4(cls, v: list[str]) -> list[str]:
        return clean_networks(v, 4)

    @field_validator("allowed_dns_ipv6")
    @classmethod
    def check_dns_ipv6(cls, v: list[str]) -> list[str]:
        return clean_networks(v, 6)


class DnsServerCreate(DnsFirewallPolicy):
    name: str = Field(..., min_length=1, max_length=128)
    client_name: str | None = Field(None, max_length=128)
    ipv4: str
    ipv6: str | None = None
    ssh_user: str = Field(..., pattern=SSH_USER_PATTERN)
    ssh_password: str = Field(..., min_length=1)  # plaintext — encrypted before storage
    ssh_port: int = Field(22, ge=1, le=65535)
    loopback_ipv4_1: str | None = None
    loopback_ipv4_2: str | None = None
    loopback_ipv6_1: str | None = None
    loopback_ipv6_2: str | None = None

    @field_validator("ipv4", "loopback_ipv4_1", "loopback_ipv4_2")
    @classmethod
    def check_ipv4(cls, v: str | None) -> str | None:
        return clean_address(v, 4)

    @field_validator("ipv6", "loopback_ipv6_1", "loopback_ipv6_2")
    @classmethod
    def check_ipv6(cls, v: str | None) -> str | None:
        return clean_address(v, 6)


class DnsServerUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=128)
    client_name: str | None = None
    ssh_password: str | None = Field(None, min_length=1)
    allowed_ssh_ips: list[str] | None = None
    allowed_dns_ipv4: list[str] | None = None
    allowed_dns_ipv6: list[str] | None = None

    @field_validator("allowed_ssh_ips")
    @classmethod
    def check_ssh_ips(cls, v: list[str] | None) -> list[str] | None:
        return None if v is None else clean_networks(v)

    @field_validator("allowed_dns_ipv4")
    @classmethod
    def check_dns_ipv4(cls, v: list[str] | None) -> list[str] | None:
        return None if v is None else clean_networks(v, 4)

    @field_validator("allowed_dns_ipv6")
    @classmethod
    def check_dns_ipv6(cls, v: list[str] | None) -> list[str] | None:
        return None if v is None else clean_networks(v, 6)


class DnsServerResponse(BaseModel):
    id: str
    name: str
    client_name: str | None
    ipv4: str
    ipv6: str | None
    ssh_user: str
    ssh_port: int
    status: ServerStatus
    allowed_ssh_ips: list[str]
    allowed_dns_ipv4: list[str]
    allowed_dns_ipv6: list[str]
    loopback_ipv4_1: str | None
    loopback_ipv4_2: str | None
    loopback_ipv6_1: str | None
    loopback_ipv6_2: str | None
    installation_log: str
    pending_command: str | None
    command_status: CommandStatus | None
    command_output: str | None
    last_agent_check: datetime | None
    created_at: datetime
    updated_at: datetime
    # ssh password and agent token are NEVER returned

    model_config = {"from_attributes": True}
