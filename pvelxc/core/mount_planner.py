"""Classify mount changes into moves, resizes and off-state requirements.

Only storage relocation and size changes are handled here; every other
mount edit is an ordinary parameter change left to the field differ.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from pvelxc.models.mounts import BOOT_MOUNT_ID, BootMount, Mounts, mount_key


@dataclass
class MountMove:
    """Relocate a volume to another storage."""
    volume: str
    storage: str


@dataclass
class MountResize:
    """Grow a volume. Shrinking is never done in place."""
    volume: str
    size_kib: int


@dataclass
class MountPlan:
    moves: List[MountMove] = field(default_factory=list)
    resizes: List[MountResize] = field(default_factory=list)
    requires_off_state: bool = False

    def extend(self, other: "MountPlan") -> "MountPlan":
        self.moves.extend(other.moves)
        self.resizes.extend(other.resizes)
        self.requires_off_state = self.requires_off_state or other.requires_off_state
        return self

    @property
    def needs_shutdown(self) -> bool:
        return self.requires_off_state or bool(self.moves)

    def is_empty(self) -> bool:
        return not self.moves and not self.resizes and not self.requires_off_state


def plan_boot_mount(desired: BootMount, current: BootMount) -> MountPlan:
    plan = MountPlan()
    if desired.size_kib is not None and current.size_kib is not None and desired.size_kib > current.size_kib:
        plan.resizes.append(MountResize(volume=BOOT_MOUNT_ID, size_kib=desired.size_kib))
    if desired.storage is not None and desired.storage != current.storage:
        plan.moves.append(MountMove(volume=BOOT_MOUNT_ID, storage=desired.storage))
        plan.requires_off_state = True
    return plan


def plan_mounts(desired: Mounts, current: Mounts) -> MountPlan:
    """Plan the numbered slots that exist on both sides.

    New slots are plain parameter additions and need no planning.
    """
    plan = MountPlan()
    for slot in sorted(desired):
        mount = desired[slot]
        existing = current.get(slot)
        if existing is None:
            continue
        if mount.detach:
            plan.requires_off_state = True
            continue

        if mount.bind is not None:
            if existing.data is not None:
                plan.requires_off_state = True  # bind replaces a volume
            elif existing.bind is not None and _bind_paths_changed(mount.bind, existing.bind):
                plan.requires_off_state = True
            continue

        if mount.data is None:
            continue
        if existing.bind is not None:
            plan.requires_off_state = True  # volume replaces a bind
            continue
        if existing.data is None:
            continue

        wanted, have = mount.data, existing.data
        if wanted.size_kib is not None and have.size_kib is not None:
            if wanted.size_kib < have.size_kib:
                # recreated through the config update, never moved
                plan.requires_off_state = True
                continue
            if wanted.size_kib > have.size_kib:
                plan.resizes.append(MountResize(volume=mount_key(slot), size_kib=wanted.size_kib))
        if wanted.storage is not None and wanted.storage != have.storage:
            plan.moves.append(MountMove(volume=mount_key(slot), storage=wanted.storage))
            plan.requires_off_state = True
    return plan


def _bind_paths_changed(desired, current) -> bool:
    if desired.host_path is not None and current.host_path is not None and desired.host_path != current.host_path:
        return True
    if desired.guest_path is not None and current.guest_path is not None and desired.guest_path != current.guest_path:
        return True
    return False


def plan_config_mounts(desired_boot: Optional[BootMount], current_boot: Optional[BootMount],
                       desired_mounts: Optional[Mounts], current_mounts: Optional[Mounts]) -> MountPlan:
    """Combined plan: boot volume first, then numbered slots."""
    plan = MountPlan()
    if desired_boot is not None and current_boot is not None:
        plan.extend(plan_boot_mount(desired_boot, current_boot))
    if desired_mounts and current_mounts:
        plan.extend(plan_mounts(desired_mounts, current_mounts))
    return plan
