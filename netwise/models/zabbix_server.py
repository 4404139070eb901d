"""Zabbix server and proxy ORM models."""

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from netwise.database import Base
from netwise.models.server import ManagedServerMixin, _new_id


class ZabbixServer(ManagedServerMixin, Base):
    __tablename__ = "zabbix_servers"

    zabbix_version: Mapped[str] = mapped_column(String(8), default="7.0")
    zabbix_db_user: Mapped[str] = mapped_column(String(32), default="zabbix")
    zabbix_db_password_encrypted: Mapped[str] = mapped_column(Text)
    zabbix_db_root_password_encrypted: Mapped[str] = mapped_column(Text)
    install_grafana: Mapped[bool] = mapped_column(Boolean, default=False)

    enable_firewall: Mapped[bool] = mapped_column(Boolean, default=False)
    firewall_allow_all: Mapped[bool] = mapped_column(Boolean, default=False)
    firewall_allowed_ips: Mapped[list[str]] = mapped_column(JSON, default=list)

    proxies: Mapped[list["ZabbixProxy"]] = relationship(
        back_populates="server", cascade="all, delete-orphan", passive_deletes=True
    )


class ZabbixProxy(Base):
    __tablename__ = "zabbix_proxies"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    server_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("zabbix_servers.id", ondelete="CASCADE"), index=True
    )
    name: Mapped[str] = mapped_column(String(128))
    ipv4: Mapped[str] = mapped_column(String(15))
    ipv6: Mapped[str | None] = mapped_column(String(39), nullable=True)
    proxy_type: Mapped[str] = mapped_column(String(16), default="active")  # active | passive
    status: Mapped[str] = mapped_column(String(32), default="pending")
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    server: Mapped[ZabbixServer] = relationship(back_populates="proxies")
