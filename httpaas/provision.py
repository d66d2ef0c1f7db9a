"""Provisioning, renaming and removal of site instances."""

from __future__ import annotations

import os
import re
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager, suppress

from . import bind, ssh, vm
from .bind import DNSError
from .logs import LogBroadcaster
from .ssh import SSHError
from .state import Instance, InstanceStore
from .vm import VBoxError

FORWARD_HOST = "localhost"
SSH_PORT_BASE = 2200
SSH_WAIT_ATTEMPTS = 24
NETWORK_SETTLE_DELAY = 5.0
REMOTE_ZIP = "/tmp/site.zip"
DOMAIN = "cloud.local"

DEPLOY_COMMAND = (
    "sudo apt-get install -y unzip && "
    "sudo rm -rf /var/www/html/* && "
    f"sudo unzip -o {REMOTE_ZIP} -d /tmp/site_extract/ && "
    "sudo cp -r /tmp/site_extract/*/* /var/www/html/ && "
    "sudo rm -rf /tmp/site_extract && "
    "sudo chown -R www-data:www-data /var/www/html/"
)

_DOTTED = re.compile(r"\s*([+-]?\d+)\.([+-]?\d+)\.([+-]?\d+)\.([+-]?\d+)")


class ProvisionError(Exception):
    """Raised when an instance operation fails; status is the HTTP status to report."""

    def __init__(self, message: str, status: int = 500) -> None:
        super().__init__(message)
        self.status = status


def ssh_port_for_ip(ip: str) -> int:
    """Return the host port forwarded to SSH on the machine with this address."""
    match = _DOTTED.match(ip)
    if match is None:
        return SSH_PORT_BASE
    return SSH_PORT_BASE + int(match.group(4))


def _hosts_edit(hostname: str) -> str:
    return (
        rf"sudo sed -i 's/^127\.0\.1\.1.*/127.0.1.1\t{hostname}.{DOMAIN}\t{hostname}/'"
        " /etc/hosts"
    )


def rename_command(hostname: str) -> str:
    """Return the remote command that sets the machine's hostname."""
    return (
        f"sudo hostnamectl set-hostname {hostname}.{DOMAIN} && "
        f"{_hosts_edit(hostname)}"
    )


def configure_command(hostname: str, ip: str) -> str:
    """Return the remote command that sets hostname and the internal address."""
    interfaces = (
        r"# Loopback\nauto lo\niface lo inet loopback\n\n"
        r"# Red interna cloudnet\nauto enp0s8\niface enp0s8 inet static\n"
        rf"  address {ip}\n  netmask 255.255.255.0"
    )
    return (
        f"{rename_command(hostname)} && "
        f"echo -e '{interfaces}' | sudo tee /etc/network/interfaces && "
        "sudo systemctl restart networking"
    )


@contextmanager
def _reported(
    say: Callable[[str], None],
    log_message: str,
    user_message: str,
    errors: tuple[type[Exception], ...],
) -> Iterator[None]:
    try:
        yield
    except errors as exc:
        say(f"{log_message}: {exc}")
        raise ProvisionError(f"{user_message}: {exc}") from exc


def provision_instance(
    hostname: str,
    zip_path: str | os.PathLike,
    store: InstanceStore,
    broadcaster: LogBroadcaster,
) -> Instance:
    """Create, configure and deploy a machine serving the site in zip_path."""
    if not hostname:
        raise ProvisionError("El nombre de host es obligatorio", 400)
    say = broadcaster.log
    say(f"[Provision] Iniciando para hostname: {hostname}")

    ip = bind.next_ip(store.ips())
    if ip is None:
        raise ProvisionError("No hay IPs disponibles", 500)
    say(f"[Provision] IP asignada: {ip}")

    port = ssh_port_for_ip(ip)
    say(f"[Provision] Puerto SSH NAT: {port}")

    say("[Provision] Creando VM...")
    with _reported(say, "[Provision] Error creando VM", "Error creando VM", (VBoxError,)):
        vm.create_vm(hostname, ip, port)
    say("[Provision] VM creada OK")

    say(f"[Provision] Esperando SSH via NAT en {FORWARD_HOST}:{port}...")
    with _reported(
        say, "[Provision] SSH NAT no disponible", "VM no respondió a SSH", (SSHError,)
    ):
        ssh.wait_for_ssh(FORWARD_HOST, SSH_WAIT_ATTEMPTS, port)
    say("[Provision] SSH NAT disponible")

    say("[Provision] Configurando hostname e IP via NAT...")
    with _reported(
        say, "[Provision] Error configurando VM", "Error configurando VM", (SSHError,)
    ):
        ssh.run_ssh(FORWARD_HOST, configure_command(hostname, ip), port)
    say("[Provision] Hostname e IP configurados")

    say("[Provision] Esperando que la red se estabilice...")
    time.sleep(NETWORK_SETTLE_DELAY)
    say("[Provision] Red estabilizada")

    say("[Provision] Registrando en DNS...")
    with _reported(say, "[Provision] Error DNS", "Error actualizando DNS", (DNSError,)):
        bind.add_record(hostname, ip)
    say("[Provision] DNS OK")

    say("[Provision] Copiando ZIP a la VM...")
    with _reported(
        say, "[Provision] Error copiando ZIP", "Error copiando contenido", (SSHError,)
    ):
        ssh.copy_file(FORWARD_HOST, zip_path, REMOTE_ZIP, port)

    say("[Provision] Desplegando contenido web...")
    with _reported(
        say, "[Provision] Error desplegando", "Error desplegando contenido", (SSHError,)
    ):
        ssh.run_ssh(FORWARD_HOST, DEPLOY_COMMAND, port)

    instance = Instance(hostname=hostname, vm_name=hostname, ip=ip)
    store.add(instance)
    say(f"[Provision] Completado: {hostname} -> {ip}")
    return instance


def rename_instance(
    old_hostname: str,
    new_hostname: str,
    store: InstanceStore,
    broadcaster: LogBroadcaster,
) -> Instance:
    """Give an existing instance a new hostname on the machine and in DNS."""
    if not old_hostname or not new_hostname:
        raise ProvisionError("Hostnames requeridos", 400)
    say = broadcaster.log
    say(f"[Rename] Renombrando {old_hostname} -> {new_hostname}")

    current = store.get(old_hostname)
    if current is None:
        raise ProvisionError("Instancia no encontrada", 404)

    port = ssh_port_for_ip(current.ip)

    say("[Rename] Cambiando hostname en VM...")
    with _reported(
        say, "[Rename] Error cambiando hostname", "Error cambiando hostname", (SSHError,)
    ):
        ssh.run_ssh(FORWARD_HOST, rename_command(new_hostname), port)

    say("[Rename] Actualizando DNS...")
    with _reported(
        say, "[Rename] Error eliminando DNS viejo", "Error eliminando DNS", (DNSError,)
    ):
        bind.remove_record(old_hostname)
    with _reported(
        say, "[Rename] Error agregando DNS nuevo", "Error agregando DNS", (DNSError,)
    ):
        bind.add_record(new_hostname, current.ip)

    try:
        renamed = store.rename(old_hostname, new_hostname)
    except KeyError:
        renamed = Instance(new_hostname, current.vm_name, current.ip)
        store.add(renamed)

    say(f"[Rename] Completado: {old_hostname} -> {new_hostname}")
    return renamed


def delete_instance(
    hostname: str, store: InstanceStore, broadcaster: LogBroadcaster
) -> Instance | None:
    """Forget an instance, drop its DNS records and destroy its machine.

    Failures while cleaning up DNS or the machine are ignored. Returns the
    removed instance, or None when hostname was unknown.
    """
    broadcaster.log(f"[Delete] Eliminando: {hostname}")
    instance = store.pop(hostname)
    if instance is None:
        return None
    with suppress(DNSError):
        bind.remove_record(hostname)
    vm.delete_vm(instance.vm_name)
    broadcaster.log(f"[Delete] Eliminado OK: {hostname}")
    return instance