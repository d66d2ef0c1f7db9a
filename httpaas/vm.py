"""VirtualBox machine lifecycle through the VBoxManage command."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path

log = logging.getLogger(__name__)

VBOX_MANAGE = "VBoxManage"
BASE_DISK_ENV = "HTTPAAS_BASE_DISK"
HOSTONLY_ADAPTER = "VirtualBox Host-Only Ethernet Adapter #2"
NS_PORT = 2210


class VBoxError(Exception):
    """Raised when a VBoxManage invocation fails."""

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


def _base_disk() -> str:
    return os.environ.get(BASE_DISK_ENV) or str(
        Path.home() / "VirtualBox VMs" / "ApacheTemplate.vdi"
    )


def _run(args: list[str]) -> tuple[bool, str]:
    try:
        result = subprocess.run(
            args, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, check=False
        )
    except OSError as exc:
        return False, str(exc)
    output = (result.stdout or b"").decode("utf-8", errors="replace")
    return result.returncode == 0, output


def _describe(args: list[str]) -> str:
    return "[" + " ".join(args) + "]"


def create_vm_commands(name: str, ssh_port: int) -> list[list[str]]:
    """Return the VBoxManage invocations that register, configure and boot a VM."""
    return [
        [VBOX_MANAGE, "createvm", "--name", name, "--ostype", "Debian_64", "--register"],
        [
            VBOX_MANAGE, "storagectl", name,
            "--name", "SATA", "--add", "sata", "--controller", "IntelAhci",
        ],
        [
            VBOX_MANAGE, "storageattach", name,
            "--storagectl", "SATA", "--port", "0", "--device", "0",
            "--type", "hdd", "--medium", _base_disk(), "--mtype", "multiattach",
        ],
        [
            VBOX_MANAGE, "modifyvm", name,
            "--memory", "512", "--cpus", "1",
            "--nic1", "nat",
            "--nic2", "hostonly", "--hostonlyadapter2", HOSTONLY_ADAPTER,
        ],
        [VBOX_MANAGE, "modifyvm", name, "--natpf1", f"ssh,tcp,,{ssh_port},,22"],
        [VBOX_MANAGE, "startvm", name, "--type", "headless"],
    ]


def create_vm(name: str, ip: str, ssh_port: int) -> None:
    """Create and boot a VM whose SSH port is forwarded to host port ssh_port.

    The address is applied later over SSH; it is accepted here for symmetry.
    """
    for args in create_vm_commands(name, ssh_port):
        log.info("[CreateVM] Ejecutando: %s", _describe(args))
        ok, output = _run(args)
        if not ok:
            raise VBoxError(f"error en {_describe(args)}: {output}", output)
        log.info("[CreateVM] OK: %s", output)


def remove_nat_adapter(name: str) -> None:
    """Detach the NAT adapter from a configured VM."""
    args = [VBOX_MANAGE, "modifyvm", name, "--nic1", "none"]
    log.info("[RemoveNAT] Quitando adaptador NAT de %s", name)
    ok, output = _run(args)
    if not ok:
        raise VBoxError(f"error quitando NAT: {output}", output)


def delete_vm(name: str) -> None:
    """Power off and unregister a VM, ignoring failures of either step."""
    for args in (
        [VBOX_MANAGE, "controlvm", name, "poweroff"],
        [VBOX_MANAGE, "unregistervm", name, "--delete"],
    ):
        log.info("[DeleteVM] Ejecutando: %s", _describe(args))
        _, output = _run(args)
        log.info("[DeleteVM] Resultado: %s", output)


def start_vm(name: str) -> None:
    """Boot an existing VM headless."""
    log.info("[StartVM] Iniciando VM %s...", name)
    ok, output = _run([VBOX_MANAGE, "startvm", name, "--type", "headless"])
    if not ok:
        log.error("[StartVM] Error: %s", output)
        raise VBoxError(f"Error iniciando VM {name}: {output}", output)
    log.info("[StartVM] VM %s iniciada OK", name)