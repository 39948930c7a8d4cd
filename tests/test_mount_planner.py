"""Tests for mount move/resize classification."""
from pvelxc.core.mount_planner import (
    MountMove,
    MountResize,
    plan_boot_mount,
    plan_config_mounts,
    plan_mounts,
)
from pvelxc.models.mounts import BindMount, BootMount, DataMount, Mount

GIB = 1048576


def data_slot(storage, size_kib, **kwargs):
    return {0: Mount(data=DataMount(storage=storage, size_kib=size_kib, **kwargs))}


class TestDataMountClassification:

    def test_storage_change_is_one_move(self):
        plan = plan_mounts(data_slot("B", GIB), data_slot("A", GIB))
        assert plan.moves == [MountMove(volume="mp0", storage="B")]
        assert plan.resizes == []
        assert plan.requires_off_state is True

    def test_growth_is_one_resize(self):
        plan = plan_mounts(data_slot("A", 2 * GIB), data_slot("A", GIB))
        assert plan.moves == []
        assert plan.resizes == [MountResize(volume="mp0", size_kib=2 * GIB)]
        assert plan.requires_off_state is False

    def test_storage_and_growth(self):
        plan = plan_mounts(data_slot("B", 2 * GIB), data_slot("A", GIB))
        assert len(plan.moves) == 1
        assert len(plan.resizes) == 1
        assert plan.requires_off_state is True

    def test_shrink_needs_off_state_only(self):
        plan = plan_mounts(data_slot("A", GIB), data_slot("A", 2 * GIB))
        assert plan.moves == [] and plan.resizes == []
        assert plan.requires_off_state is True

    def test_other_fields_do_not_need_off_state(self):
        desired = {0: Mount(data=DataMount(read_only=True, backup=True))}
        plan = plan_mounts(desired, data_slot("A", GIB))
        assert plan.is_empty()


class TestSlotChanges:

    def test_detach_occupied_slot(self):
        plan = plan_mounts({0: Mount(detach=True)}, data_slot("A", GIB))
        assert plan.requires_off_state is True

    def test_detach_empty_slot_ignored(self):
        assert plan_mounts({3: Mount(detach=True)}, data_slot("A", GIB)).is_empty()

    def test_variant_change(self):
        desired = {0: Mount(bind=BindMount(host_path="/tank", guest_path="/data"))}
        plan = plan_mounts(desired, data_slot("A", GIB))
        assert plan.requires_off_state is True
        assert plan.moves == []

    def test_bind_path_change(self):
        current = {1: Mount(bind=BindMount(host_path="/tank/a", guest_path="/a"))}
        desired = {1: Mount(bind=BindMount(host_path="/tank/b"))}
        assert plan_mounts(desired, current).requires_off_state is True

    def test_bind_read_only_change_in_place(self):
        current = {1: Mount(bind=BindMount(host_path="/tank/a", guest_path="/a"))}
        desired = {1: Mount(bind=BindMount(read_only=True))}
        assert plan_mounts(desired, current).is_empty()

    def test_new_slot_needs_no_planning(self):
        assert plan_mounts(data_slot("A", GIB), {}).is_empty()


class TestBootMount:

    def test_storage_change(self):
        plan = plan_boot_mount(BootMount(storage="local-zfs"), BootMount(storage="local-ext4", size_kib=GIB))
        assert plan.moves == [MountMove(volume="rootfs", storage="local-zfs")]
        assert plan.resizes == []
        assert plan.needs_shutdown

    def test_growth(self):
        plan = plan_boot_mount(BootMount(size_kib=8 * GIB), BootMount(storage="local", size_kib=4 * GIB))
        assert plan.resizes == [MountResize(volume="rootfs", size_kib=8 * GIB)]
        assert not plan.needs_shutdown

    def test_shrink_ignored(self):
        assert plan_boot_mount(BootMount(size_kib=GIB), BootMount(storage="local", size_kib=4 * GIB)).is_empty()

    def test_combined_plan_orders_boot_first(self):
        plan = plan_config_mounts(
            BootMount(storage="B"), BootMount(storage="A", size_kib=GIB),
            data_slot("B", GIB), data_slot("A", GIB),
        )
        assert [move.volume for move in plan.moves] == ["rootfs", "mp0"]
