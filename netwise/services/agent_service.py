"""Agent service — check-in / result protocol and the operator command queue.

Agents authenticate with (server id, token). Unknown ids and wrong tokens are
indistinguishable to the caller and never touch the record.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from netwise.schemas.agent import AgentCheckIn, AgentCheckInResponse, AgentResult
from netwise.schemas.common import AgentCommandState, ServerKind
from netwise.services import server_store
from netwise.utils import crypto

logger = logging.getLogger(__name__)

# Compared against when the server id is unknown so both failure paths cost the same
_DUMMY_TOKEN = "0" * 64


class AgentAuthError(Exception):
    """Unknown server id or wrong agent token."""


class CommandConflictError(Exception):
    """The command channel is not in a state that allows the operation."""


async def _authenticate(db: AsyncSession, kind: ServerKind, server_id: str, token: str):
    server = await server_store.get_server(db, kind, server_id)
    if server is None:
        crypto.tokens_match(token, _DUMMY_TOKEN)
        raise AgentAuthError("invalid agent credentials")

    try:
        expected = crypto.decrypt(server.agent_token_encrypted)
    except crypto.VaultError as exc:
        logger.error("Agent token of %s server %s cannot be decrypted: %s", kind, server_id, exc)
        raise AgentAuthError("invalid agent credentials") from None

    if not crypto.tokens_match(token, expected):
        logger.warning("Rejected agent check for %s server %s: bad token", kind, server_id)
        raise AgentAuthError("invalid agent credentials")
    return server


async def check_in(db: AsyncSession, payload: AgentCheckIn) -> AgentCheckInResponse:
    """Record the check-in and hand out the pending command, if any."""
    await _authenticate(db, payload.type, payload.server_id, payload.token)

    await server_store.touch_agent_check(db, payload.type, payload.server_id)
    command = await server_store.claim_pending_command(db, payload.type, payload.server_id)
    await db.commit()

    if command is not None:
        logger.info("Dispatched command to %s agent %s", payload.type, payload.server_id)
    return AgentCheckInResponse(command=command)


async def report_result(db: AsyncSession, payload: AgentResult) -> None:
    await _authenticate(db, payload.type, payload.server_id, payload.token)

    stored = await server_store.record_command_result(
        db, payload.type, payload.server_id, payload.output, payload.exit_code
    )
    if not stored:
        raise CommandConflictError("no command is outstanding for this server")
    logger.info(
        "%s agent %s reported exit code %d", payload.type, payload.server_id, payload.exit_code
    )


# ── Operator side ────────────────────────────────────────────────────


def command_state(server) -> AgentCommandState:
    return AgentCommandState(
        pending_command=server.pending_command,
        command_status=server.command_status,
        command_output=server.command_output,
        last_agent_check=server.last_agent_check,
    )


async def queue_command(
    db: AsyncSession, kind: ServerKind, server_id: str, command: str
) -> AgentCommandState | None:
    """Queue a command for the agent. None if the server does not exist."""
    if await server_store.get_server(db, kind, server_id) is None:
        return None

    if not await server_store.queue_command(db, kind, server_id, command):
        await db.rollback()
        raise CommandConflictError("a command is already pending or running")
    await db.commit()
    logger.info("Queued agent command for %s server %s", kind, server_id)
    return command_state(await server_store.refresh(db, kind, server_id))


async def cancel_command(
    db: AsyncSession, kind: ServerKind, server_id: str
) -> AgentCommandState | None:
    if await server_store.get_server(db, kind, server_id) is None:
        return None

    if not await server_store.cancel_command(db, kind, server_id):
        raise CommandConflictError("no command is outstanding for this server")
    logger.info("Cancelled agent command for %s server %s", kind, server_id)
    return command_state(await server_store.refresh(db, kind, server_id))
