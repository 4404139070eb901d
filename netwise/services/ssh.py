"""SSH execution — one fresh paramiko client per operation, closed on every path.

Blocking by design; callers on the event loop go through ``asyncio.to_thread``.
"""

from __future__ import annotations

import logging
import shlex
import socket
from dataclasses import dataclass

import paramiko
from paramiko.ssh_exception import NoValidConnectionsError

logger = logging.getLogger(__name__)


class SSHError(Exception):
    """Base class for remote execution failures."""


class SSHTransportError(SSHError):
    """Could not establish or keep the SSH session (auth, refused, unreachable, timeout)."""


class CommandTimeoutError(SSHError):
    """The remote command did not finish within its timeout."""


class RemoteCommandError(SSHError):
    """The remote command ran but exited non-zero."""

    def __init__(self, exit_code: int, output: str):
        self.exit_code = exit_code
        self.output = output
        super().__init__(f"remote command exited with code {exit_code}: {output.strip()[-500:]}")


@dataclass(frozen=True)
class SSHTarget:
    host: str
    port: int
    username: str
    password: str

    def __repr__(self) -> str:
        return f"SSHTarget({self.username}@{self.host}:{self.port})"


@dataclass(frozen=True)
class ScriptResult:
    exit_code: int
    output: str  # combined stdout/stderr

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


def connect(target: SSHTarget, timeout: float) -> paramiko.SSHClient:
    client = paramiko.SSHClient()
    client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
    try:
        client.connect(
            hostname=target.host,
            port=target.port,
            username=target.username,
            password=target.password,
            timeout=timeout,
            banner_timeout=timeout,
            auth_timeout=timeout,
            look_for_keys=False,
            allow_agent=False,
        )
    except paramiko.AuthenticationException:
        client.close()
        raise SSHTransportError(f"authentication failed for {target.username}@{target.host}") from None
    except NoValidConnectionsError as e:
        client.close()
        raise SSHTransportError(f"connection refused by {target.host}:{target.port}: {e}") from None
    except (socket.timeout, TimeoutError):
        client.close()
        raise SSHTransportError(f"connection to {target.host}:{target.port} timed out") from None
    except (paramiko.SSHException, OSError) as e:
        client.close()
        raise SSHTransportError(f"SSH connection to {target.host}:{target.port} failed: {e}") from None
    return client


def _privileged(target: SSHTarget, command: str) -> tuple[str, bool]:
    """Wrap command for root; returns (command, needs password on stdin)."""
    if target.username == "root":
        return command, False
    return f"sudo -S -p '' {command}", True


def _exec(
    client: paramiko.SSHClient, command: str, timeout: float, stdin_data: str | None = None
) -> tuple[int, str]:
    """Run command and return (exit code, stdout and stderr interleaved)."""
    try:
        stdin, stdout, _ = client.exec_command(command, timeout=timeout)
        # merges whatever stderr already buffered as well
        stdout.channel.set_combine_stderr(True)
        if stdin_data is not None:
            stdin.write(stdin_data)
            stdin.flush()
        stdin.channel.shutdown_write()
        out = stdout.read().decode("utf-8", "replace")
        code = stdout.channel.recv_exit_status()
    except (socket.timeout, TimeoutError):
        raise CommandTimeoutError(f"remote command timed out after {timeout:.0f}s") from None
    except paramiko.SSHException as e:
        raise SSHTransportError(f"SSH session failed: {e}") from None
    return code, out


def run_script(
    target: SSHTarget,
    script: str,
    remote_path: str,
    *,
    timeout: float,
    connect_timeout: float = 15.0,
) -> ScriptResult:
    """Upload script to remote_path and run it with root privileges.

    A non-zero exit is returned, not raised: the transport worked, the install did not.
    """
    client = connect(target, connect_timeout)
    try:
        try:
            sftp = client.open_sftp()
            try:
                with sftp.open(remote_path, "w") as f:
                    f.write(script)
                sftp.chmod(remote_path, 0o700)
            finally:
                sftp.close()
        except (paramiko.SSHException, OSError) as e:
            raise SSHTransportError(f"upload of {remote_path} failed: {e}") from None
        logger.info("Uploaded %s to %r (%d bytes)", remote_path, target, len(script))

        command, needs_password = _privileged(target, f"bash {shlex.quote(remote_path)} 2>&1")
        code, output = _exec(
            client, command, timeout, stdin_data=target.password + "\n" if needs_password else None
        )
        logger.info("Script %s on %r finished with exit code %d", remote_path, target, code)
        return ScriptResult(exit_code=code, output=output)
    finally:
        client.close()


def run_command(
    target: SSHTarget,
    command: str,
    *,
    timeout: float,
    connect_timeout: float = 15.0,
    privileged: bool = False,
) -> str:
    """Run one command and return its combined output; a non-zero exit raises RemoteCommandError."""
    client = connect(target, connect_timeout)
    try:
        stdin_data = None
        if privileged:
            command, needs_password = _privileged(target, f"bash -c {shlex.quote(command)}")
            stdin_data = target.password + "\n" if needs_password else None
        code, output = _exec(client, command, timeout, stdin_data=stdin_data)
        if code != 0:
            raise RemoteCommandError(code, output)
        return output
    finally:
        client.close()
