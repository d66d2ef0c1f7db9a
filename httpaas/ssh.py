"""SSH command execution and SFTP upload to managed machines."""

from __future__ import annotations

import logging
import os
import time
from contextlib import closing
from pathlib import Path

import paramiko

log = logging.getLogger(__name__)

SSH_KEY = os.environ.get("HTTPAAS_SSH_KEY") or str(Path.home() / ".ssh" / "cloud_key")
SSH_USER = os.environ.get("HTTPAAS_SSH_USER") or "admin"
_DEFAULT_SUDO_PASSWORD = "placeholder"
SSH_PASSWORD = os.environ.get("HTTPAAS_SSH_PASSWORD", _DEFAULT_SUDO_PASSWORD)

DEFAULT_PORT = 22
CONNECT_TIMEOUT = 10.0
RETRY_DELAY = 5.0

_ESCAPES = {"\\": "\\\\", '"': '\\"', "\a": "\\a", "\b": "\\b", "\f": "\\f",
            "\n": "\\n", "\r": "\\r", "\t": "\\t", "\v": "\\v"}


class SSHError(Exception):
    """Raised when an SSH connection, command or transfer fails."""

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


def connect(host: str, port: int = DEFAULT_PORT) -> paramiko.SSHClient:
    """Open an authenticated SSH connection to host:port using the configured key."""
    client = paramiko.SSHClient()
    client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
    try:
        client.connect(host, port=port, username=SSH_USER, key_filename=SSH_KEY,
                       timeout=CONNECT_TIMEOUT, allow_agent=False, look_for_keys=False)
    except (paramiko.SSHException, OSError, ValueError) as exc:
        client.close()
        raise SSHError(str(exc)) from exc
    return client


def _quote(text: str) -> str:
    def escape(char: str) -> str:
        if char in _ESCAPES:
            return _ESCAPES[char]
        if ord(char) < 0x20 or ord(char) == 0x7F:
            return f"\\x{ord(char):02x}"
        return char

    return '"' + "".join(map(escape, text)) + '"'


def wrap_command(cmd: str) -> str:
    """Wrap a shell command so it runs under sudo with the configured password."""
    return f"echo '{SSH_PASSWORD}' | sudo -S bash -c {_quote(cmd)}"


def _execute(host: str, port: int, cmd: str, context: str) -> tuple[str, int]:
    try:
        client = connect(host, port)
    except SSHError as exc:
        raise SSHError(f"conexión SSH a {context} fallida: {exc}") from exc
    with closing(client):
        try:
            channel = client.get_transport().open_session()
            with closing(channel):
                channel.set_combine_stderr(True)
                channel.exec_command(wrap_command(cmd))
                output = channel.makefile("rb").read()
                status = channel.recv_exit_status()
        except (paramiko.SSHException, OSError, AttributeError) as exc:
            raise SSHError(f"error ejecutando comando en {context}: {exc}") from exc
    return output.decode("utf-8", errors="replace"), status


def run_ssh(host: str, cmd: str, port: int = DEFAULT_PORT) -> None:
    """Run a command with sudo on host:port, raising SSHError if it fails."""
    output, status = _execute(host, port, cmd, f"{host}:{port}")
    if status != 0:
        raise SSHError(
            f"comando fallido en {host}:{port}: {output} — exit status {status}", output
        )
    log.info("[SSH %s:%d] %s", host, port, output)


def run_ssh_output(host: str, cmd: str) -> str:
    """Run a command with sudo on host:22 and return its combined output."""
    output, status = _execute(host, DEFAULT_PORT, cmd, host)
    if status != 0:
        raise SSHError(f"comando fallido en {host}: exit status {status}", output)
    return output


def copy_file(
    host: str, local_path: str | os.PathLike, remote_path: str, port: int = DEFAULT_PORT
) -> None:
    """Upload a local file to remote_path on host:port over SFTP."""
    try:
        client = connect(host, port)
    except SSHError as exc:
        raise SSHError(f"SFTP: conexión a {host}:{port} fallida: {exc}") from exc
    with closing(client):
        try:
            with closing(client.open_sftp()) as sftp:
                sftp.put(os.fspath(local_path), remote_path)
        except (paramiko.SSHException, OSError) as exc:
            raise SSHError(f"SFTP: error copiando archivo: {exc}") from exc


def wait_for_ssh(host: str, max_attempts: int, port: int = DEFAULT_PORT) -> None:
    """Poll host:port until an SSH login succeeds or the attempts run out."""
    for attempt in range(1, max_attempts + 1):
        log.info("[WaitSSH] Intento %d/%d en %s:%d...", attempt, max_attempts, host, port)
        try:
            connect(host, port).close()
        except SSHError:
            time.sleep(RETRY_DELAY)
            continue
        log.info("[WaitSSH] SSH disponible en %s:%d", host, port)
        return
    raise SSHError(f"SSH no disponible en {host}:{port} tras {max_attempts} intentos")