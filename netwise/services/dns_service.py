"""DNS server service — CRUD + firewall policy updates."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from netwise.models import DnsServer
from netwise.schemas.common import AgentCommandState, ServerKind, ServerStatus
from netwise.schemas.dns import DnsFirewallPolicy, DnsServerCreate, DnsServerUpdate
from netwise.services import agent_service, script_generator, server_store
from netwise.utils import crypto

logger = logging.getLogger(__name__)


async def list_servers(db: AsyncSession) -> list[DnsServer]:
    result = await db.execute(select(DnsServer).order_by(DnsServer.created_at, DnsServer.name))
    return list(result.scalars().all())


async def get_server(db: AsyncSession, server_id: str) -> DnsServer | None:
    return await db.get(DnsServer, server_id)


async def create_server(db: AsyncSession, data: DnsServerCreate) -> DnsServer:
    fields = data.model_dump(exclude={"ssh_password"})
    server = DnsServer(
        **fields,
        ssh_password_encrypted=crypto.encrypt(data.ssh_password),
        agent_token_encrypted=crypto.encrypt(crypto.generate_agent_token()),
        status=ServerStatus.PENDING.value,
        installation_log="",
    )
    db.add(server)
    await db.commit()
    await db.refresh(server)
    logger.info("Created DNS server %s (%s)", server.id, server.ipv4)
    return server


async def update_server(db: AsyncSession, server_id: str, data: DnsServerUpdate) -> DnsServer | None:
    """Update descriptive fields and the stored firewall policy.

    The policy change is not pushed to the host; use ``update_firewall`` for that.
    """
    server = await db.get(DnsServer, server_id)
    if not server:
        return None

    changes = data.model_dump(exclude_unset=True)
    password = changes.pop("ssh_password", None)
    if password:
        server.ssh_password_encrypted = crypto.encrypt(password)
    for field, value in changes.items():
        if value is None and field.startswith("allowed_"):
            continue
        setattr(server, field, value)

    await db.commit()
    await db.refresh(server)
    return server


async def delete_server(db: AsyncSession, server_id: str) -> bool:
    server = await db.get(DnsServer, server_id)
    if not server:
        return False
    await db.delete(server)
    await db.commit()
    logger.info("Deleted DNS server %s (remote host left untouched)", server_id)
    return True


async def update_firewall(
    db: AsyncSession, server_id: str, policy: DnsFirewallPolicy
) -> AgentCommandState | None:
    """Store a new allow-list and queue the agent command that applies it."""
    server = await db.get(DnsServer, server_id)
    if not server:
        return None
    if server.status != ServerStatus.INSTALLED.value:
        raise agent_service.CommandConflictError("firewall can only be updated on an installed server")

    server.allowed_ssh_ips = policy.allowed_ssh_ips
    server.allowed_dns_ipv4 = policy.allowed_dns_ipv4
    server.allowed_dns_ipv6 = policy.allowed_dns_ipv6
    command = script_generator.dns_firewall_update_command(server)

    await db.flush()
    if not await server_store.queue_command(db, ServerKind.DNS, server_id, command):
        await db.rollback()
        raise agent_service.CommandConflictError("a command is already pending or running")
    await db.commit()
    logger.info("Queued firewall update for DNS server %s", server_id)
    return agent_service.command_state(await server_store.refresh(db, ServerKind.DNS, server_id))
