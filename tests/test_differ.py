"""Tests for the per-domain field differs."""
from pvelxc.core.differ import (
    FieldDelta,
    create_params,
    diff_config,
    diff_cpu,
    diff_description,
    diff_dns,
    diff_features,
    diff_mounts,
    diff_protection,
    diff_tags,
)
from pvelxc.models.cpu import LxcCpu
from pvelxc.models.features import LxcFeatures, UnprivilegedFeatures
from pvelxc.models.guest import GuestDNS, TriBool
from pvelxc.models.lxc import ConfigLXC, LxcCreateOptions, LxcTemplate
from pvelxc.models.mounts import BindMount, BootMount, DataMount, Mount
from pvelxc.models.network import LxcIPv4, LxcNetwork
from pvelxc.services.proxmox.decoder import decode_config


class TestFieldDelta:

    def test_delete_list_comma_joined(self):
        delta = FieldDelta()
        delta.remove("cores")
        delta.remove("description")
        delta.remove("cores")
        delta.set("memory", 512)
        assert delta.to_params() == {"memory": 512, "delete": "cores,description"}

    def test_no_delete_key_without_deletes(self):
        delta = FieldDelta()
        delta.set("swap", 0)
        assert "delete" not in delta.to_params()

    def test_empty(self):
        assert FieldDelta().is_empty()
        assert FieldDelta().to_params() == {}


class TestCpuDiff:

    def test_zero_deletes_instead_of_setting(self):
        delta = diff_cpu(LxcCpu(cores=0), LxcCpu(cores=2))
        assert delta.delete == ["cores"]
        assert delta.params == {}

    def test_changed_value_is_set(self):
        delta = diff_cpu(LxcCpu(cores=4, units=1024), LxcCpu(cores=2, units=1024))
        assert delta.params == {"cores": 4}
        assert delta.delete == []

    def test_zero_without_current_is_noop(self):
        assert diff_cpu(LxcCpu(limit=0), LxcCpu(cores=2)).is_empty()

    def test_whole_limit_sent_as_int(self):
        delta = diff_cpu(LxcCpu(limit=2.0), LxcCpu(limit=1.5))
        assert delta.params == {"cpulimit": 2}
        assert isinstance(delta.params["cpulimit"], int)

    def test_unset_fields_untouched(self):
        assert diff_cpu(LxcCpu(), LxcCpu(cores=2, limit=1, units=100)).is_empty()


class TestFeaturesDiff:

    def current(self):
        return LxcFeatures(unprivileged=UnprivilegedFeatures(
            create_device_nodes=False, fuse=False, keyctl=True, nesting=True))

    def test_add_flag_renders_whole_composite(self):
        desired = LxcFeatures(unprivileged=UnprivilegedFeatures(fuse=True))
        delta = diff_features(desired, self.current())
        assert delta.params == {"features": "fuse=1,keyctl=1,nesting=1"}

    def test_clearing_every_flag_deletes_key(self):
        desired = LxcFeatures(unprivileged=UnprivilegedFeatures(keyctl=False, nesting=False))
        delta = diff_features(desired, self.current())
        assert delta.params == {}
        assert delta.delete == ["features"]

    def test_same_flags_noop(self):
        desired = LxcFeatures(unprivileged=UnprivilegedFeatures(nesting=True))
        assert diff_features(desired, self.current()).is_empty()

    def test_nothing_enabled_without_current(self):
        desired = LxcFeatures(unprivileged=UnprivilegedFeatures(nesting=False))
        assert diff_features(desired, None).is_empty()


class TestScalarDiffs:

    def test_description_empty_deletes(self):
        assert diff_description("", "hello").delete == ["description"]
        assert diff_description("", None).is_empty()
        assert diff_description("new", "old").params == {"description": "new"}

    def test_protection(self):
        assert diff_protection(True, False).params == {"protection": "1"}
        assert diff_protection(False, True).delete == ["protection"]
        assert diff_protection(False, None).is_empty()

    def test_tags_compared_sorted(self):
        assert diff_tags(["prod", "web"], ["web", "prod"]).is_empty()
        assert diff_tags(["web", "db"], ["web"]).params == {"tags": "db;web"}

    def test_dns(self):
        current = GuestDNS(nameservers=["1.1.1.1"], search_domain="lan")
        delta = diff_dns(GuestDNS(nameservers=[], search_domain="home.arpa"), current)
        assert delta.params == {"searchdomain": "home.arpa"}
        assert delta.delete == ["nameserver"]


class TestMountsDiff:

    def test_detach_deletes_slot(self):
        current = {0: Mount(data=DataMount(storage="local", size_kib=1048576, path="/a"))}
        delta = diff_mounts({0: Mount(detach=True)}, current, privileged=False)
        assert delta.delete == ["mp0"]

    def test_storage_and_growth_left_to_planner(self):
        current = {0: Mount(data=DataMount(storage="local", size_kib=1048576, path="/a",
                                           raw_disk="local:vm-101-disk-1"))}
        desired = {0: Mount(data=DataMount(storage="zfs", size_kib=2097152))}
        assert diff_mounts(desired, current, privileged=False).is_empty()

    def test_in_place_option_change(self):
        current = {0: Mount(data=DataMount(storage="local", size_kib=1048576, path="/a",
                                           raw_disk="local:vm-101-disk-1"))}
        desired = {0: Mount(data=DataMount(read_only=True))}
        delta = diff_mounts(desired, current, privileged=False)
        assert delta.params == {"mp0": "local:vm-101-disk-1,size=1G,mp=/a,ro=1"}

    def test_bind_replaces_volume(self):
        current = {0: Mount(data=DataMount(storage="local", size_kib=1048576, path="/a"))}
        desired = {0: Mount(bind=BindMount(host_path="/tank", guest_path="/a"))}
        delta = diff_mounts(desired, current, privileged=False)
        assert delta.params == {"mp0": "/tank,mp=/a"}

    def test_new_slot_is_created(self):
        desired = {2: Mount(data=DataMount(storage="local-zfs", size_kib=8 * 1048576, path="/b", backup=True))}
        delta = diff_mounts(desired, {}, privileged=False)
        assert delta.params == {"mp2": "local-zfs:8,backup=1,mp=/b"}


class TestIdempotence:
    """Desired equal to the live snapshot never produces parameters."""

    def test_decoded_snapshot_against_itself(self, guest_config):
        current = decode_config(dict(guest_config, digest="0" * 40))
        desired = decode_config(dict(guest_config, digest="0" * 40))
        assert diff_config(desired, current).is_empty()

    def test_partial_desired_matching_current(self, guest_config):
        current = decode_config(guest_config)
        desired = ConfigLXC(
            name="web01",
            memory=1024,
            cpu=LxcCpu(cores=2),
            tags=["prod", "web"],
            boot_mount=BootMount(storage="local-ext4", size_kib=1048576),
            networks={0: LxcNetwork(name="eth0", bridge="vmbr0", ipv4=LxcIPv4(dhcp=True))},
        )
        assert diff_config(desired, current).is_empty()


class TestDiffConfig:

    def test_boot_mount_setting_change(self, guest_config):
        current = decode_config(guest_config)
        desired = ConfigLXC(boot_mount=BootMount(acl=TriBool.TRUE))
        delta = diff_config(desired, current)
        assert delta.params == {"rootfs": "local-ext4:101/vm-101-disk-0.raw,acl=1,size=1G"}

    def test_several_domains(self, guest_config):
        current = decode_config(guest_config)
        desired = ConfigLXC(memory=2048, cpu=LxcCpu(cores=0), description="", protection=True)
        delta = diff_config(desired, current)
        assert delta.to_params() == {"memory": 2048, "protection": "1", "delete": "cores"}


class TestCreateParams:

    def test_minimal_container(self):
        desired = ConfigLXC(
            id=120,
            name="db01",
            memory=2048,
            boot_mount=BootMount(storage="local-zfs", size_kib=917504),
            create_options=LxcCreateOptions(
                os_template=LxcTemplate(storage="local", file="debian-12-standard.tar.zst"),
                public_ssh_keys=["ssh-ed25519 AAAA user@host"],
            ),
            cpu=LxcCpu(cores=2, limit=0),
            tags=["db"],
            networks={0: LxcNetwork(name="eth0", bridge="vmbr0", ipv4=LxcIPv4(dhcp=True)),
                      1: LxcNetwork(delete=True)},
        )
        params = create_params(desired)
        assert params == {
            "unprivileged": 1,
            "rootfs": "local-zfs:0.875",
            "cores": 2,
            "ostemplate": "local:vztmpl/debian-12-standard.tar.zst",
            "ssh-public-keys": "ssh-ed25519%20AAAA%20user%40host",
            "vmid": 120,
            "memory": 2048,
            "hostname": "db01",
            "net0": "name=eth0,bridge=vmbr0,ip=dhcp",
            "tags": "db",
        }

    def test_privileged_container_omits_unprivileged_flag(self):
        desired = ConfigLXC(privileged=True, boot_mount=BootMount(storage="local", size_kib=8 * 1048576, quota=True))
        params = create_params(desired)
        assert "unprivileged" not in params
        assert params["rootfs"] == "local:8,quota=1"
