"""Shared test fixtures for pvelxc tests."""
import pytest

from pvelxc.core.config import set_settings
from pvelxc.models.guest import GuestRef, PowerState
from pvelxc.services.proxmox.mock import MockGuestApi


@pytest.fixture(autouse=True)
def fresh_settings(monkeypatch):
    """Every test reads settings from its own environment."""
    monkeypatch.delenv("PVE_MOCK", raising=False)
    set_settings(None)
    yield
    set_settings(None)


@pytest.fixture
def api():
    """Empty in-memory API."""
    return MockGuestApi()


@pytest.fixture
def guest_config():
    """Raw config of a typical unprivileged container."""
    return {
        "arch": "amd64",
        "cores": 2,
        "hostname": "web01",
        "memory": 1024,
        "swap": 512,
        "ostype": "debian",
        "rootfs": "local-ext4:101/vm-101-disk-0.raw,size=1G",
        "mp0": "local-ext4:101/vm-101-disk-1.raw,mp=/srv/data,backup=1,size=4G",
        "mp1": "/tank/media,mp=/media,ro=1",
        "net0": "name=eth0,bridge=vmbr0,firewall=1,hwaddr=BC:24:11:2A:7F:01,ip=dhcp,type=veth",
        "unprivileged": 1,
        "tags": "web;prod",
    }


@pytest.fixture
def running_guest(api, guest_config) -> GuestRef:
    """Guest 101 on node pve, running, member of pool 'lab'."""
    return api.add_guest(101, guest_config, state=PowerState.RUNNING, pool="lab")


@pytest.fixture
def stopped_guest(api, guest_config) -> GuestRef:
    return api.add_guest(101, guest_config, state=PowerState.STOPPED, pool="lab")
