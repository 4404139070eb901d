"""Single write path for the mutable server fields (status, log, agent command).

Every mutation is one conditional UPDATE so concurrent install triggers, agent
check-ins and operator actions cannot overwrite each other's changes.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from netwise.models import SERVER_MODELS
from netwise.schemas.common import (
    INSTALLABLE_STATUSES,
    OUTSTANDING_COMMAND_STATUSES,
    CommandStatus,
    ServerKind,
    ServerStatus,
)

_NO_SYNC = {"synchronize_session": False}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def log_line(message: str) -> str:
    return f"[{datetime.now(timezone.utc).isoformat(timespec='seconds')}] {message}\n"


async def get_server(db: AsyncSession, kind: ServerKind, server_id: str):
    return await db.get(SERVER_MODELS[kind], server_id)


async def refresh(db: AsyncSession, kind: ServerKind, server_id: str):
    """Re-read a row, bypassing the identity map."""
    model = SERVER_MODELS[kind]
    result = await db.execute(
        select(model).where(model.id == server_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


# ── Install status & log ─────────────────────────────────────────────


async def begin_install(db: AsyncSession, kind: ServerKind, server_id: str, message: str) -> bool:
    """pending/error → installing, atomically. False if the record is not installable."""
    model = SERVER_MODELS[kind]
    result = await db.execute(
        update(model)
        .where(model.id == server_id, model.status.in_([s.value for s in INSTALLABLE_STATUSES]))
        .values(
            status=ServerStatus.INSTALLING.value,
            installation_log=func.coalesce(model.installation_log, "") + log_line(message),
            updated_at=_utcnow(),
        )
        .execution_options(**_NO_SYNC)
    )
    await db.commit()
    return result.rowcount == 1


async def append_log(db: AsyncSession, kind: ServerKind, server_id: str, text: str) -> None:
    model = SERVER_MODELS[kind]
    await db.execute(
        update(model)
        .where(model.id == server_id)
        .values(installation_log=func.coalesce(model.installation_log, "") + text)
        .execution_options(**_NO_SYNC)
    )
    await db.commit()


async def finish_install(
    db: AsyncSession, kind: ServerKind, server_id: str, status: ServerStatus, text: str
) -> bool:
    """installing → installed/error together with the final log chunk."""
    model = SERVER_MODELS[kind]
    result = await db.execute(
        update(model)
        .where(model.id == server_id, model.status == ServerStatus.INSTALLING.value)
        .values(
            status=status.value,
            installation_log=func.coalesce(model.installation_log, "") + text,
            updated_at=_utcnow(),
        )
        .execution_options(**_NO_SYNC)
    )
    await db.commit()
    return result.rowcount == 1


# ── Agent command channel ────────────────────────────────────────────


def _no_outstanding_command(model):
    return or_(
        model.pending_command.is_(None),
        model.command_status.is_(None),
        model.command_status.not_in([s.value for s in OUTSTANDING_COMMAND_STATUSES]),
    )


async def queue_command(db: AsyncSession, kind: ServerKind, server_id: str, command: str) -> bool:
    """Queue a command unless one is still outstanding. Does not commit."""
    model = SERVER_MODELS[kind]
    result = await db.execute(
        update(model)
        .where(model.id == server_id, _no_outstanding_command(model))
        .values(
            pending_command=command,
            command_status=CommandStatus.PENDING.value,
            command_output=None,
        )
        .execution_options(**_NO_SYNC)
    )
    return result.rowcount == 1


async def cancel_command(db: AsyncSession, kind: ServerKind, server_id: str) -> bool:
    model = SERVER_MODELS[kind]
    result = await db.execute(
        update(model)
        .where(model.id == server_id, model.pending_command.is_not(None))
        .values(pending_command=None, command_status=None)
        .execution_options(**_NO_SYNC)
    )
    await db.commit()
    return result.rowcount == 1


async def touch_agent_check(db: AsyncSession, kind: ServerKind, server_id: str) -> None:
    model = SERVER_MODELS[kind]
    await db.execute(
        update(model)
        .where(model.id == server_id)
        .values(last_agent_check=_utcnow())
        .execution_options(**_NO_SYNC)
    )


async def claim_pending_command(db: AsyncSession, kind: ServerKind, server_id: str) -> str | None:
    """Hand out the pending command exactly once (pending → running)."""
    model = SERVER_MODELS[kind]
    row = (
        await db.execute(
            select(model.pending_command).where(
                model.id == server_id, model.command_status == CommandStatus.PENDING.value
            )
        )
    ).first()
    if row is None or not row.pending_command:
        return None

    result = await db.execute(
        update(model)
        .where(
            model.id == server_id,
            model.command_status == CommandStatus.PENDING.value,
            model.pending_command == row.pending_command,
        )
        .values(command_status=CommandStatus.RUNNING.value)
        .execution_options(**_NO_SYNC)
    )
    return row.pending_command if result.rowcount == 1 else None


async def record_command_result(
    db: AsyncSession, kind: ServerKind, server_id: str, output: str, exit_code: int
) -> bool:
    """Store the agent's result and clear the command. False unless a command was handed out."""
    model = SERVER_MODELS[kind]
    status = CommandStatus.DONE if exit_code == 0 else CommandStatus.ERROR
    result = await db.execute(
        update(model)
        .where(
            model.id == server_id,
            model.pending_command.is_not(None),
            model.command_status == CommandStatus.RUNNING.value,
        )
        .values(command_output=output, command_status=status.value, pending_command=None)
        .execution_options(**_NO_SYNC)
    )
    await db.commit()
    return result.rowcount == 1
