"""Zabbix server / proxy request/response schemas."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from netwise.schemas.common import (
    SSH_USER_PATTERN,
    CommandStatus,
    ServerStatus,
    clean_address,
    clean_networks,
)


class ZabbixServerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    client_name: str | None = Field(None, max_length=128)
    ipv4: str
    ipv6: str | None = None
    ssh_user: str = Field(..., pattern=SSH_USER_PATTERN)
    ssh_password: str = Field(..., min_length=1)
    ssh_port: int = Field(22, ge=1, le=65535)

    zabbix_version: str = Field("7.0", pattern=r"^\d+\.\d+$")
    zabbix_db_user: str = Field("zabbix", pattern=r"^[A-Za-z0-9_]{1,32}$")
    zabbix_db_password: str = Field(..., min_length=1)
    zabbix_db_root_password: str = Field(..., min_length=1)
    install_grafana: bool = False

    enable_firewall: bool = False
    firewall_allow_all: bool = False
    firewall_allowed_ips: list[str] = []

    @field_validator("ipv4")
    @classmethod
    def check_ipv4(cls, v: str) -> str | None:
        return clean_address(v, 4)

    @field_validator("ipv6")
    @classmethod
    def check_ipv6(cls, v: str | None) -> str | None:
        return clean_address(v, 6)

    @field_validator("firewall_allowed_ips")
    @classmethod
    def check_allowed_ips(cls, v: list[str]) -> list[str]:
        return clean_networks(v)


class ZabbixServerResponse(BaseModel):
    id: str
    name: str
    client_name: str | None
    ipv4: str
    ipv6: str | None
    ssh_user: str
    ssh_port: int
    status: ServerStatus
    zabbix_version: str
    zabbix_db_user: str
    install_grafana: bool
    enable_firewall: bool
    firewall_allow_all: bool
    firewall_allowed_ips: list[str]
    installation_log: str
    pending_command: str | None
    command_status: CommandStatus | None
    command_output: str | None
    last_agent_check: datetime | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ZabbixProxyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    ipv4: str
    ipv6: str | None = None
    proxy_type: str = Field("active", pattern=r"^(active|passive)$")

    @field_validator("ipv4")
    @classmethod
    def check_ipv4(cls, v: str) -> str | None:
        return clean_address(v, 4)

    @field_validator("ipv6")
    @classmethod
    def check_ipv6(cls, v: str | None) -> str | None:
        return clean_address(v, 6)


class ZabbixProxyResponse(BaseModel):
    id: str
    server_id: str
    name: str
    ipv4: str
    ipv6: str | None
    proxy_type: str
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}
