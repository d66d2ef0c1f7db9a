from datetime import datetime

import pytest

from httpaas.state import Instance, InstanceStore


def make(hostname="web", ip="192.168.10.30"):
    return Instance(hostname=hostname, vm_name=hostname, ip=ip)


def test_add_then_get_returns_same_instance():
    store = InstanceStore()
    inst = make()
    store.add(inst)
    assert store.get("web") == inst
    assert "web" in store
    assert len(store) == 1


def test_get_missing_returns_none():
    assert InstanceStore().get("absent") is None


def test_created_at_is_set_automatically():
    before = datetime.now()
    inst = make()
    assert before <= inst.created_at <= datetime.now()


def test_pop_removes_instance():
    store = InstanceStore()
    inst = make()
    store.add(inst)
    assert store.pop("web") == inst
    assert store.get("web") is None
    assert store.pop("web") is None
    assert len(store) == 0


def test_add_replaces_same_hostname():
    store = InstanceStore()
    store.add(make(ip="192.168.10.30"))
    store.add(make(ip="192.168.10.31"))
    assert len(store) == 1
    assert store.get("web").ip == "192.168.10.31"


def test_ips_lists_every_address():
    store = InstanceStore()
    store.add(make("a", "192.168.10.30"))
    store.add(make("b", "192.168.10.31"))
    assert sorted(store.ips()) == ["192.168.10.30", "192.168.10.31"]


def test_instances_is_a_snapshot():
    store = InstanceStore()
    store.add(make("a"))
    snapshot = store.instances()
    store.add(make("b"))
    assert [inst.hostname for inst in snapshot] == ["a"]
    assert {inst.hostname for inst in store.instances()} == {"a", "b"}


def test_rename_keeps_vm_and_address():
    store = InstanceStore()
    store.add(Instance(hostname="old", vm_name="vm-old", ip="192.168.10.40"))
    renamed = store.rename("old", "new")
    assert renamed.hostname == "new"
    assert renamed.vm_name == "vm-old"
    assert renamed.ip == "192.168.10.40"
    assert store.get("old") is None
    assert store.get("new") == renamed


def test_rename_missing_raises_key_error():
    store = InstanceStore()
    with pytest.raises(KeyError):
        store.rename("ghost", "new")
    assert len(store) == 0