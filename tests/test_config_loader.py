"""Tests for loading desired-state files."""
import pytest

from pvelxc.config import GuestFileLoader, load_guest_file
from pvelxc.core.errors import ConfigFileError
from pvelxc.models.guest import GuestRef, PowerState, TriBool
from pvelxc.models.size import GIBIBYTE

GUEST_YAML = """
guest:
  node: pve
  id: 101
allow_restart: true
config:
  name: web01
  state: running
  memory: 2048
  pool: lab
  cpu:
    cores: 2
    limit: 1.5
  boot_mount:
    storage: local-zfs
    size: 8G
    acl: true
  mounts:
    0:
      data:
        storage: local-zfs
        size: 16
        path: /srv/data
    1:
      bind:
        host_path: /tank/media
        guest_path: /media
        read_only: true
  networks:
    0:
      name: eth0
      bridge: vmbr0
      ipv4:
        dhcp: true
    1:
      delete: true
  features:
    unprivileged:
      nesting: true
  tags: [web, prod]
"""


@pytest.fixture
def write_file(tmp_path):
    def _write(content, name="guest.yml"):
        path = tmp_path / name
        path.write_text(content)
        return path
    return _write


class TestGuestFile:

    def test_full_file(self, write_file):
        guest_file = load_guest_file(write_file(GUEST_YAML))
        config = guest_file.to_config()

        assert guest_file.allow_restart is True
        assert guest_file.ref() == GuestRef(node="pve", vmid=101)
        assert config.node == "pve"
        assert config.id == 101
        assert config.state == PowerState.RUNNING
        assert config.cpu.limit == 1.5
        assert config.boot_mount.size_kib == 8 * GIBIBYTE
        assert config.boot_mount.acl == TriBool.TRUE
        assert config.mounts[0].data.size_kib == 16 * GIBIBYTE
        assert config.mounts[1].bind.read_only is True
        assert config.networks[0].ipv4.dhcp is True
        assert config.networks[1].delete is True
        assert config.features.unprivileged.nesting is True
        assert config.features.privileged is None
        assert config.tags == ["web", "prod"]

    def test_omitted_keys_stay_unset(self, write_file):
        config = load_guest_file(write_file("guest: {node: pve, id: 101}\n")).to_config()
        assert config.memory is None
        assert config.boot_mount is None
        assert config.state is None
        assert config.pool is None

    def test_ref_requires_id(self, write_file):
        guest_file = load_guest_file(write_file("guest: {node: pve}\nconfig: {name: fresh}\n"))
        with pytest.raises(ConfigFileError, match="guest.id"):
            guest_file.ref()
        assert guest_file.to_config().id is None


class TestLoadErrors:

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            GuestFileLoader(tmp_path / "nope.yml").load()

    def test_empty_file(self, write_file):
        with pytest.raises(ConfigFileError, match="empty"):
            load_guest_file(write_file(""))

    def test_invalid_yaml(self, write_file):
        with pytest.raises(ConfigFileError, match="invalid YAML"):
            load_guest_file(write_file("guest: [unclosed\n"))

    def test_not_a_mapping(self, write_file):
        with pytest.raises(ConfigFileError, match="mapping"):
            load_guest_file(write_file("- pve\n- 101\n"))

    def test_unknown_key(self, write_file):
        with pytest.raises(ConfigFileError, match="config.memroy"):
            load_guest_file(write_file("guest: {node: pve, id: 101}\nconfig: {memroy: 512}\n"))

    def test_bad_size(self, write_file):
        with pytest.raises(ConfigFileError, match="boot_mount.size"):
            load_guest_file(write_file("guest: {node: pve, id: 101}\nconfig: {boot_mount: {size: lots}}\n"))

    def test_bad_state(self, write_file):
        with pytest.raises(ConfigFileError, match="config.state"):
            load_guest_file(write_file("guest: {node: pve, id: 101}\nconfig: {state: paused}\n"))

    def test_boot_mount_options_subset(self, write_file):
        content = "guest: {node: pve, id: 101}\nconfig: {boot_mount: {options: {no_exec: true}}}\n"
        with pytest.raises(ConfigFileError, match="no_exec"):
            load_guest_file(write_file(content))
