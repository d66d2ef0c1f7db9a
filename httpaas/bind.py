"""Record management for the BIND zone served by the name server machine."""

from __future__ import annotations

import re
from collections.abc import Iterable

from .ssh import SSHError, run_ssh, run_ssh_output

NS_HOST = "192.168.10.10"
ZONE_FILE = "/etc/bind/db.cloud.local"
BUMP_SERIAL = "sudo /usr/local/bin/bump-serial.sh"
RELOAD_BIND = "sudo systemctl reload bind9"

NETWORK_PREFIX = "192.168.10."
FIRST_HOST = 30
LAST_HOST = 254

_OCTET = re.compile(r"[+-]?[0-9]+")


class DNSError(Exception):
    """Raised when the zone cannot be read or updated."""


def _remove_a(hostname: str) -> str:
    return f"sudo sed -i '/^{hostname} IN A/d' {ZONE_FILE}"


def _remove_cname(hostname: str) -> str:
    return f"sudo sed -i '/^www.{hostname} IN CNAME/d' {ZONE_FILE}"


def add_record_commands(hostname: str, ip: str) -> list[str]:
    """Return the remote commands that (re)register hostname at ip."""
    return [
        f"{_remove_a(hostname)} && {_remove_cname(hostname)}",
        f"echo '{hostname} IN A {ip}' | sudo tee -a {ZONE_FILE}",
        f"echo 'www.{hostname} IN CNAME {hostname}' | sudo tee -a {ZONE_FILE}",
        BUMP_SERIAL,
        RELOAD_BIND,
    ]


def remove_record_commands(hostname: str) -> list[str]:
    """Return the remote commands that drop hostname from the zone."""
    return [_remove_a(hostname), _remove_cname(hostname), BUMP_SERIAL, RELOAD_BIND]


def _apply(commands: list[str], action: str) -> None:
    for command in commands:
        try:
            run_ssh(NS_HOST, command)
        except SSHError as exc:
            raise DNSError(f"DNS {action}: {exc}") from exc


def add_record(hostname: str, ip: str) -> None:
    """Add an A record and a www CNAME for hostname, replacing any existing ones."""
    _apply(add_record_commands(hostname, ip), "AddRecord")


def remove_record(hostname: str) -> None:
    """Remove the A record and www CNAME for hostname."""
    _apply(remove_record_commands(hostname), "RemoveRecord")


def next_ip(addresses: Iterable[str]) -> str | None:
    """Return the lowest free address in the pool, or None when it is exhausted."""
    used = set()
    for address in addresses:
        parts = address.split(".")
        if len(parts) == 4 and _OCTET.fullmatch(parts[3]):
            used.add(int(parts[3]))
    return next(
        (
            f"{NETWORK_PREFIX}{host}"
            for host in range(FIRST_HOST, LAST_HOST + 1)
            if host not in used
        ),
        None,
    )


def read_zone() -> str:
    """Return the current contents of the zone file."""
    try:
        return run_ssh_output(NS_HOST, f"cat {ZONE_FILE}")
    except SSHError as exc:
        raise DNSError(str(exc)) from exc