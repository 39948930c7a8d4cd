"""Tests for the in-memory guest API."""
import pytest

from pvelxc.core.errors import RemoteApiError
from pvelxc.models.guest import GuestRef, PowerState
from pvelxc.services.proxmox.api import pending_entries_have_changes
from pvelxc.services.proxmox.mock import MockGuestApi


class TestDigest:

    def test_stale_digest_rejected(self, api, stopped_guest):
        with pytest.raises(RemoteApiError, match="modified"):
            api.update_config(stopped_guest, {"memory": 2048}, digest="0" * 40)
        assert api.configs[101]["memory"] == 1024

    def test_digest_changes_after_write(self, api, stopped_guest):
        before = api.configs[101]["digest"]
        api.update_config(stopped_guest, {"memory": 2048, "delete": "tags"}, digest=before)
        assert api.configs[101]["digest"] != before
        assert "tags" not in api.configs[101]


class TestVolumes:

    def test_move_requires_stopped_guest(self, api, running_guest):
        with pytest.raises(RemoteApiError):
            api.move_mount(running_guest, "rootfs", "local-zfs")

    def test_move_and_resize(self, api, stopped_guest):
        api.move_mount(stopped_guest, "mp0", "local-zfs")
        api.resize_mount(stopped_guest, "mp0", "8G")
        assert api.configs[101]["mp0"] == "local-zfs:101/vm-101-disk-1.raw,mp=/srv/data,backup=1,size=8G"


class TestLifecycle:

    def test_create_allocates_volumes(self, api):
        api.create_guest("pve", {"vmid": 200, "rootfs": "local-zfs:8", "mp0": "local-zfs:0.001,mp=/a",
                                 "ostemplate": "local:vztmpl/x.tar.zst", "pool": "lab"})
        assert api.configs[200]["rootfs"] == "local-zfs:subvol-200-disk-0,size=8G"
        assert api.configs[200]["mp0"] == "local-zfs:subvol-200-disk-1,mp=/a,size=0.001G"
        assert "ostemplate" not in api.configs[200]
        assert api.pools[200] == "lab"
        assert api.read_status(GuestRef("pve", 200)) == PowerState.STOPPED
        call = api.calls_named("create_guest")[0]
        assert call.vmid == 200
        assert call.params["node"] == "pve"
        assert "vmid" not in call.params

    def test_create_existing_id(self, api, stopped_guest):
        with pytest.raises(RemoteApiError, match="already exists"):
            api.create_guest("pve", {"vmid": 101, "rootfs": "local-zfs:8"})

    def test_reboot_clears_pending(self, api, running_guest):
        api.pending[101] = [{"key": "memory", "value": 1024, "pending": 2048}]
        assert api.has_pending_changes(running_guest)
        api.reboot(running_guest)
        assert not api.has_pending_changes(running_guest)

    def test_injected_failure(self, api, running_guest):
        api.fail_on("start")
        with pytest.raises(RemoteApiError):
            api.start(running_guest)
        api.start(running_guest)

    def test_demo_guest(self):
        api = MockGuestApi.with_demo_guest()
        assert api.read_pool(GuestRef("pve", 100)) == "lab"
        assert api.next_id() == 101


class TestPendingEntries:

    def test_values_without_pending_marker(self):
        assert not pending_entries_have_changes([{"key": "memory", "value": 512}])

    def test_pending_value_or_delete(self):
        assert pending_entries_have_changes([{"key": "memory", "value": 512, "pending": 1024}])
        assert pending_entries_have_changes([{"key": "swap", "value": 512, "delete": 1}])
