"""Install, SSH command and agent command endpoints shared by both server roles."""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from netwise.database import get_db
from netwise.schemas.common import (
    ActionResult,
    AgentCommandState,
    CommandOutput,
    CommandRequest,
    InstallStarted,
    ServerKind,
)
from netwise.services import agent_service, installer, ssh
from netwise.services.script_generator import ScriptGenerationError
from netwise.utils.crypto import VaultError

_NOT_FOUND = {ServerKind.DNS: "DNS server not found", ServerKind.ZABBIX: "Zabbix server not found"}


def remote_error(exc: Exception) -> HTTPException:
    """Map service-layer failures of a synchronous remote operation to HTTP errors."""
    if isinstance(exc, VaultError):
        return HTTPException(status_code=500, detail=f"Stored credentials are unreadable: {exc}")
    if isinstance(exc, ScriptGenerationError):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, ssh.CommandTimeoutError):
        return HTTPException(status_code=504, detail=str(exc))
    return HTTPException(status_code=502, detail=str(exc))


def build_router(kind: ServerKind) -> APIRouter:
    router = APIRouter()
    not_found = _NOT_FOUND[kind]

    @router.post("/{server_id}/install", response_model=InstallStarted, status_code=202)
    async def start_install(server_id: str, db: AsyncSession = Depends(get_db)):
        try:
            started = await installer.start_install(db, kind, server_id)
        except installer.InstallConflictError as exc:
            raise HTTPException(status_code=409, detail=str(exc))
        if not started:
            raise HTTPException(status_code=404, detail=not_found)
        return started

    @router.post("/{server_id}/command", response_model=CommandOutput)
    async def run_command(server_id: str, req: CommandRequest, db: AsyncSession = Depends(get_db)):
        """Run an ad-hoc command over SSH and return its output."""
        try:
            result = await installer.run_command(db, kind, server_id, req.command)
        except (VaultError, ssh.SSHError) as exc:
            raise remote_error(exc)
        if not result:
            raise HTTPException(status_code=404, detail=not_found)
        return result

    @router.post("/{server_id}/agent/command", response_model=AgentCommandState)
    async def queue_agent_command(
        server_id: str, req: CommandRequest, db: AsyncSession = Depends(get_db)
    ):
        """Queue a command for the agent's next check-in."""
        try:
            state = await agent_service.queue_command(db, kind, server_id, req.command)
        except agent_service.CommandConflictError as exc:
            raise HTTPException(status_code=409, detail=str(exc))
        if not state:
            raise HTTPException(status_code=404, detail=not_found)
        return state

    @router.delete("/{server_id}/agent/command", response_model=AgentCommandState)
    async def cancel_agent_command(server_id: str, db: AsyncSession = Depends(get_db)):
        try:
            state = await agent_service.cancel_command(db, kind, server_id)
        except agent_service.CommandConflictError as exc:
            raise HTTPException(status_code=409, detail=str(exc))
        if not state:
            raise HTTPException(status_code=404, detail=not_found)
        return state

    @router.post("/{server_id}/agent/reinstall", response_model=ActionResult)
    async def reinstall_agent(server_id: str, db: AsyncSession = Depends(get_db)):
        try:
            result = await installer.reinstall_agent(db, kind, server_id)
        except installer.InstallConflictError as exc:
            raise HTTPException(status_code=409, detail=str(exc))
        except (VaultError, ScriptGenerationError, ssh.SSHError) as exc:
            raise remote_error(exc)
        if not result:
            raise HTTPException(status_code=404, detail=not_found)
        return result

    return router
