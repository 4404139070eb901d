"""Installation orchestrator — runs install scripts over SSH in the background.

``start_install`` flips the record to ``installing`` with a compare-and-swap and
returns at once; the SSH work happens in a worker thread under an asyncio task
keyed by (kind, server id). Every outcome ends up in the installation log.
A full install and an agent reinstall never run against the same server at once.
"""

from __future__ import annotations

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from netwise.config import settings
from netwise.database import async_session
from netwise.models import DnsServer, ZabbixServer
from netwise.schemas.common import ActionResult, CommandOutput, InstallStarted, ServerKind, ServerStatus
from netwise.services import script_generator, server_store, ssh
from netwise.utils import crypto

logger = logging.getLogger(__name__)

AGENT_SCRIPT_PATH = "/tmp/netwise-agent-install.sh"

_tasks: dict[tuple[ServerKind, str], asyncio.Task] = {}
# servers whose agent is being reinstalled; a full install must wait for it
_agent_jobs: set[tuple[ServerKind, str]] = set()
_locks: dict[tuple[ServerKind, str], asyncio.Lock] = {}


class InstallConflictError(Exception):
    """The server is not in a state that allows the requested operation."""


def _lock(key: tuple[ServerKind, str]) -> asyncio.Lock:
    return _locks.setdefault(key, asyncio.Lock())


def install_script_path(kind: ServerKind) -> str:
    return f"/tmp/netwise-install-{kind.value}.sh"


def ssh_target(server: DnsServer | ZabbixServer) -> ssh.SSHTarget:
    return ssh.SSHTarget(
        host=server.ipv4,
        port=server.ssh_port or 22,
        username=server.ssh_user,
        password=crypto.decrypt(server.ssh_password_encrypted),
    )


def agent_identity(kind: ServerKind, server: DnsServer | ZabbixServer) -> script_generator.AgentIdentity:
    return script_generator.AgentIdentity(
        kind=kind,
        server_id=server.id,
        agent_token=crypto.decrypt(server.agent_token_encrypted),
        api_url=settings.api_url,
        poll_interval=settings.agent_poll_interval,
    )


def build_install_script(kind: ServerKind, server: DnsServer | ZabbixServer) -> str:
    """Decrypt what the role needs and render its install script."""
    identity = agent_identity(kind, server)
    if kind == ServerKind.DNS:
        return script_generator.dns_install_script(server, identity)
    secrets = script_generator.ZabbixSecrets(
        db_password=crypto.decrypt(server.zabbix_db_password_encrypted),
        db_root_password=crypto.decrypt(server.zabbix_db_root_password_encrypted),
    )
    return script_generator.zabbix_install_script(server, secrets, identity)


def _with_newline(text: str) -> str:
    return text if not text or text.endswith("\n") else text + "\n"


# ── Full installation ────────────────────────────────────────────────


async def start_install(db: AsyncSession, kind: ServerKind, server_id: str) -> InstallStarted | None:
    """Move the record to ``installing`` and schedule the run. None if not found."""
    server = await server_store.get_server(db, kind, server_id)
    if server is None:
        return None

    key = (kind, server_id)
    async with _lock(key):
        if key in _agent_jobs:
            raise InstallConflictError("cannot start installation while the agent is being reinstalled")
        if not await server_store.begin_install(db, kind, server_id, "Installation started"):
            current = await server_store.refresh(db, kind, server_id)
            status = current.status if current is not None else "deleted"
            raise InstallConflictError(f"cannot start installation while server is {status}")

    task = asyncio.create_task(_run_install(kind, server_id), name=f"install-{kind.value}-{server_id}")
    _tasks[key] = task
    task.add_done_callback(lambda t: _forget(key, t))
    logger.info("Installation of %s server %s scheduled", kind, server_id)

    return InstallStarted(
        server_id=server_id,
        status=ServerStatus.INSTALLING,
        message="Installation started",
    )


def _forget(key: tuple[ServerKind, str], task: asyncio.Task) -> None:
    if _tasks.get(key) is task:
        del _tasks[key]
    if not task.cancelled() and task.exception() is not None:
        logger.error("Install task for %s %s crashed: %r", key[0], key[1], task.exception())


async def _run_install(kind: ServerKind, server_id: str) -> None:
    async with async_session() as db:
        try:
            server = await server_store.refresh(db, kind, server_id)
            if server is None:
                logger.warning("%s server %s vanished before installation", kind, server_id)
                return
            script = build_install_script(kind, server)
            target = ssh_target(server)
            logger.info("Running install script on %r", target)
            result = await asyncio.to_thread(
                ssh.run_script,
                target,
                script,
                install_script_path(kind),
                timeout=settings.install_timeout,
                connect_timeout=settings.ssh_connect_timeout,
            )
        except asyncio.CancelledError:
            await server_store.finish_install(
                db, kind, server_id, ServerStatus.ERROR, server_store.log_line("ERROR: installation cancelled")
            )
            raise
        except Exception as exc:
            logger.warning("Installation of %s server %s failed: %s", kind, server_id, exc)
            await server_store.finish_install(
                db, kind, server_id, ServerStatus.ERROR, server_store.log_line(f"ERROR: {exc}")
            )
            return

        output = _with_newline(result.output)
        if result.ok:
            logger.info("Installation of %s server %s succeeded", kind, server_id)
            await server_store.finish_install(
                db,
                kind,
                server_id,
                ServerStatus.INSTALLED,
                output + server_store.log_line("Installation finished successfully"),
            )
        else:
            logger.warning(
                "Install script on %s server %s exited with %d", kind, server_id, result.exit_code
            )
            await server_store.finish_install(
                db,
                kind,
                server_id,
                ServerStatus.ERROR,
                output
                + server_store.log_line(f"ERROR: install script exited with code {result.exit_code}"),
            )


def is_running(kind: ServerKind, server_id: str) -> bool:
    task = _tasks.get((kind, server_id))
    return task is not None and not task.done()


async def wait(kind: ServerKind, server_id: str) -> None:
    """Wait for a scheduled installation to finish (no-op if none)."""
    task = _tasks.get((kind, server_id))
    if task is not None:
        await asyncio.gather(task, return_exceptions=True)


async def shutdown() -> None:
    """Cancel in-flight installations; their records are marked ``error``."""
    _locks.clear()
    tasks = list(_tasks.values())
    if not tasks:
        return
    logger.info("Cancelling %d running installation(s)", len(tasks))
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


# ── Agent reinstall & ad-hoc commands ────────────────────────────────


async def reinstall_agent(db: AsyncSession, kind: ServerKind, server_id: str) -> ActionResult | None:
    """Re-deploy only the agent over SSH, keeping its token."""
    key = (kind, server_id)
    async with _lock(key):
        server = await server_store.refresh(db, kind, server_id)
        if server is None:
            return None
        if server.status == ServerStatus.INSTALLING.value or is_running(kind, server_id):
            raise InstallConflictError("cannot reinstall the agent while an installation is running")
        if key in _agent_jobs:
            raise InstallConflictError("agent reinstall already in progress")
        _agent_jobs.add(key)

    try:
        return await _reinstall_agent(db, kind, server)
    finally:
        _agent_jobs.discard(key)


async def _reinstall_agent(db: AsyncSession, kind: ServerKind, server) -> ActionResult:
    server_id = server.id
    script = script_generator.agent_script(server.name, agent_identity(kind, server))
    target = ssh_target(server)
    await server_store.append_log(db, kind, server_id, server_store.log_line("Agent reinstall started"))

    try:
        result = await asyncio.to_thread(
            ssh.run_script,
            target,
            script,
            AGENT_SCRIPT_PATH,
            timeout=settings.command_timeout,
            connect_timeout=settings.ssh_connect_timeout,
        )
    except ssh.SSHError as exc:
        await server_store.append_log(
            db, kind, server_id, server_store.log_line(f"ERROR: agent reinstall failed: {exc}")
        )
        raise

    if result.ok:
        message = "Agent reinstalled"
        tail = server_store.log_line(message)
    else:
        message = f"Agent reinstall exited with code {result.exit_code}"
        tail = server_store.log_line(f"ERROR: {message}")
    await server_store.append_log(db, kind, server_id, _with_newline(result.output) + tail)
    logger.info("%s on %s server %s", message, kind, server_id)
    return ActionResult(success=result.ok, message=message, output=result.output)


async def run_command(
    db: AsyncSession, kind: ServerKind, server_id: str, command: str
) -> CommandOutput | None:
    server = await server_store.get_server(db, kind, server_id)
    if server is None:
        return None
    target = ssh_target(server)
    logger.info("Running ad-hoc command on %r", target)
    output = await asyncio.to_thread(
        ssh.run_command,
        target,
        command,
        timeout=settings.command_timeout,
        connect_timeout=settings.ssh_connect_timeout,
    )
    return CommandOutput(output=output)
