"""Zabbix service — server and proxy records."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from netwise.models import ZabbixProxy, ZabbixServer
from netwise.schemas.common import ServerStatus
from netwise.schemas.zabbix import ZabbixProxyCreate, ZabbixServerCreate
from netwise.utils import crypto

logger = logging.getLogger(__name__)

_SECRET_FIELDS = {"ssh_password", "zabbix_db_password", "zabbix_db_root_password"}


async def list_servers(db: AsyncSession) -> list[ZabbixServer]:
    result = await db.execute(select(ZabbixServer).order_by(ZabbixServer.created_at, ZabbixServer.name))
    return list(result.scalars().all())


async def get_server(db: AsyncSession, server_id: str) -> ZabbixServer | None:
    return await db.get(ZabbixServer, server_id)


async def create_server(db: AsyncSession, data: ZabbixServerCreate) -> ZabbixServer:
    server = ZabbixServer(
        **data.model_dump(exclude=_SECRET_FIELDS),
        ssh_password_encrypted=crypto.encrypt(data.ssh_password),
        zabbix_db_password_encrypted=crypto.encrypt(data.zabbix_db_password),
        zabbix_db_root_password_encrypted=crypto.encrypt(data.zabbix_db_root_password),
        agent_token_encrypted=crypto.encrypt(crypto.generate_agent_token()),
        status=ServerStatus.PENDING.value,
        installation_log="",
    )
    db.add(server)
    await db.commit()
    await db.refresh(server)
    logger.info("Created Zabbix server %s (%s)", server.id, server.ipv4)
    return server


async def delete_server(db: AsyncSession, server_id: str) -> bool:
    """Delete the record and its proxies. The remote host is left as-is."""
    server = await db.get(ZabbixServer, server_id)
    if not server:
        return False
    await db.delete(server)
    await db.commit()
    logger.info("Deleted Zabbix server %s", server_id)
    return True


# ── Proxies ──────────────────────────────────────────────────────────


async def list_proxies(db: AsyncSession, server_id: str) -> list[ZabbixProxy] | None:
    if await db.get(ZabbixServer, server_id) is None:
        return None
    result = await db.execute(
        select(ZabbixProxy).where(ZabbixProxy.server_id == server_id).order_by(ZabbixProxy.created_at)
    )
    return list(result.scalars().all())


async def create_proxy(db: AsyncSession, server_id: str, data: ZabbixProxyCreate) -> ZabbixProxy | None:
    if await db.get(ZabbixServer, server_id) is None:
        return None
    proxy = ZabbixProxy(server_id=server_id, **data.model_dump())
    db.add(proxy)
    await db.commit()
    await db.refresh(proxy)
    return proxy


async def delete_proxy(db: AsyncSession, server_id: str, proxy_id: str) -> bool:
    proxy = await db.get(ZabbixProxy, proxy_id)
    if not proxy or proxy.server_id != server_id:
        return False
    await db.delete(proxy)
    await db.commit()
    return True
