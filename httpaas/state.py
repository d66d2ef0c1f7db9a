"""In-memory record of the provisioned instances."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Instance:
    """A provisioned virtual machine serving a site."""

    hostname: str
    vm_name: str
    ip: str
    created_at: datetime = field(default_factory=datetime.now)


class InstanceStore:
    """Thread-safe mapping of hostname to Instance."""

    def __init__(self) -> None:
        self._items: dict[str, Instance] = {}
        self._lock = threading.Lock()

    def add(self, instance: Instance) -> None:
        with self._lock:
            self._items[instance.hostname] = instance

    def get(self, hostname: str) -> Instance | None:
        with self._lock:
            return self._items.get(hostname)

    def pop(self, hostname: str) -> Instance | None:
        with self._lock:
            return self._items.pop(hostname, None)

    def instances(self) -> list[Instance]:
        with self._lock:
            return list(self._items.values())

    def ips(self) -> list[str]:
        with self._lock:
            return [instance.ip for instance in self._items.values()]

    def rename(self, old_hostname: str, new_hostname: str) -> Instance:
        """Move an instance to a new hostname; raises KeyError if it is unknown."""
        with self._lock:
            current = self._items.pop(old_hostname)
            renamed = Instance(new_hostname, current.vm_name, current.ip)
            self._items[new_hostname] = renamed
        return renamed