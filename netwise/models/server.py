"""Columns shared by every managed server table (DNS resolvers, Zabbix servers)."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column


def _new_id() -> str:
    return str(uuid.uuid4())


class ManagedServerMixin:
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(128))
    client_name: Mapped[str | None] = mapped_column(String(128), nullable=True)

    ipv4: Mapped[str] = mapped_column(String(15))
    ipv6: Mapped[str | None] = mapped_column(String(39), nullable=True)

    ssh_user: Mapped[str] = mapped_column(String(64))
    ssh_port: Mapped[int] = mapped_column(Integer, default=22)
    ssh_password_encrypted: Mapped[str] = mapped_column(Text)  # iv:ciphertext

    # pending | installing | installed | error (dns_error on DNS servers)
    status: Mapped[str] = mapped_column(String(32), default="pending")
    installation_log: Mapped[str] = mapped_column(Text, default="")

    # Agent channel
    agent_token_encrypted: Mapped[str] = mapped_column(Text)  # iv:ciphertext, never regenerated
    pending_command: Mapped[str | None] = mapped_column(Text, nullable=True)
    command_status: Mapped[str | None] = mapped_column(String(16), nullable=True)  # pending|running|done|error
    command_output: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_agent_check: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )
