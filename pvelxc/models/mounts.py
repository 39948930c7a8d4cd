"""Boot mount and numbered mount slots.

Each slot holds either a bind mount (host directory passed through) or
a data mount (volume allocated on a storage). Sizes are kibibytes.
"""
from dataclasses import dataclass, field, fields, is_dataclass, replace
from typing import Dict, Optional, Tuple

from pvelxc.models.guest import TriBool
from pvelxc.models.size import boot_create_size, data_create_size, render_size

MOUNT_SLOTS = 256
MOUNT_PREFIX = "mp"
BOOT_MOUNT_ID = "rootfs"


@dataclass
class BootMountOptions:
    discard: Optional[bool] = None
    lazy_time: Optional[bool] = None
    no_atime: Optional[bool] = None
    no_suid: Optional[bool] = None


@dataclass
class MountOptions:
    discard: Optional[bool] = None
    lazy_time: Optional[bool] = None
    no_atime: Optional[bool] = None
    no_device: Optional[bool] = None
    no_exec: Optional[bool] = None
    no_suid: Optional[bool] = None


@dataclass
class BootMount:
    acl: Optional[TriBool] = None
    options: Optional[BootMountOptions] = None
    quota: Optional[bool] = None  # privileged guests only
    replicate: Optional[bool] = None
    size_kib: Optional[int] = None  # required on create
    storage: Optional[str] = None  # required on create
    raw_disk: str = field(default="", compare=False, repr=False)


@dataclass
class BindMount:
    guest_path: Optional[str] = None
    host_path: Optional[str] = None
    options: Optional[MountOptions] = None
    read_only: Optional[bool] = None
    replicate: Optional[bool] = None


@dataclass
class DataMount:
    acl: Optional[TriBool] = None
    backup: Optional[bool] = None
    options: Optional[MountOptions] = None
    path: Optional[str] = None
    quota: Optional[bool] = None
    read_only: Optional[bool] = None
    replicate: Optional[bool] = None
    size_kib: Optional[int] = None
    storage: Optional[str] = None
    raw_disk: str = field(default="", compare=False, repr=False)


@dataclass
class Mount:
    """One mount slot. ``detach`` removes whatever occupies the slot."""
    bind: Optional[BindMount] = None
    data: Optional[DataMount] = None
    detach: bool = False


Mounts = Dict[int, Mount]


def mount_key(slot: int) -> str:
    return f"{MOUNT_PREFIX}{slot}"


def overlay(desired, base, skip: Tuple[str, ...] = ()):
    """Copy of ``base`` with every field set on ``desired`` applied.

    Nested option records are merged field by field.
    """
    updates = {}
    for f in fields(desired):
        if f.name == "raw_disk" or f.name in skip:
            continue
        value = getattr(desired, f.name)
        if value is None:
            continue
        current = getattr(base, f.name)
        if is_dataclass(value) and current is not None:
            value = overlay(value, current)
        updates[f.name] = value
    return replace(base, **updates)


def _acl_setting(acl: Optional[TriBool]) -> str:
    if acl == TriBool.TRUE:
        return ",acl=1"
    if acl == TriBool.FALSE:
        return ",acl=0"
    return ""


def render_mount_options(options) -> str:
    """';' joined option list in the fixed API order, '' when none are on."""
    tokens = []
    if options.discard:
        tokens.append("discard")
    if options.lazy_time:
        tokens.append("lazytime")
    if options.no_atime:
        tokens.append("noatime")
    if getattr(options, "no_device", None):
        tokens.append("nodev")
    if getattr(options, "no_exec", None):
        tokens.append("noexec")
    if options.no_suid:
        tokens.append("nosuid")
    return ";".join(tokens)


def parse_mount_options(raw: str) -> MountOptions:
    enabled = set(raw.split(";"))
    return MountOptions(
        discard="discard" in enabled,
        lazy_time="lazytime" in enabled,
        no_atime="noatime" in enabled,
        no_device="nodev" in enabled,
        no_exec="noexec" in enabled,
        no_suid="nosuid" in enabled,
    )


def boot_mount_settings(mount: BootMount, privileged: bool) -> str:
    # local-zfs:subvol-101-disk-0 / local-ext4:101/vm-101-disk-0.raw / local-lvm:vm-101-disk-0
    settings = _acl_setting(mount.acl)
    if mount.options is not None:
        options = render_mount_options(mount.options)
        if options:
            settings += ",mountoptions=" + options
    if privileged and mount.quota:
        settings += ",quota=1"
    if mount.replicate is False:
        settings += ",replicate=0"
    return settings


def boot_mount_create_line(mount: BootMount, privileged: bool) -> str:
    line = boot_mount_settings(mount, privileged)
    if mount.storage is not None and mount.size_kib is not None:
        line = f"{mount.storage}:{boot_create_size(mount.size_kib)}{line}"
    return line


def bind_mount_line(mount: BindMount) -> str:
    line = mount.host_path or ""
    if mount.guest_path is not None:
        line += ",mp=" + mount.guest_path
    if mount.options is not None:
        options = render_mount_options(mount.options)
        if options:
            line += ",mountoptions=" + options
    if mount.read_only:
        line += ",ro=1"
    if mount.replicate is False:
        line += ",replicate=0"
    return line


def data_mount_settings(mount: DataMount, privileged: bool) -> str:
    settings = _acl_setting(mount.acl)
    if mount.backup:
        settings += ",backup=1"
    if mount.options is not None:
        options = render_mount_options(mount.options)
        if options:
            settings += ",mountoptions=" + options
    if mount.path is not None:
        settings += ",mp=" + mount.path
    if mount.quota and privileged:
        settings += ",quota=1"
    if mount.read_only:
        settings += ",ro=1"
    if mount.replicate is False:
        settings += ",replicate=0"
    return settings


def data_mount_create_line(mount: DataMount, privileged: bool) -> str:
    line = data_mount_settings(mount, privileged)
    if mount.storage is not None and mount.size_kib is not None:
        line = f"{mount.storage}:{data_create_size(mount.size_kib)}{line}"
    return line


def data_mount_update_line(mount: DataMount, privileged: bool) -> str:
    # local-ext4:100/vm-100-disk-0.raw,size=8G,acl=1,backup=1,mountoptions=...,mp=/mnt,ro=1
    line = data_mount_settings(mount, privileged)
    if mount.size_kib is not None:
        line = ",size=" + render_size(mount.size_kib) + line
    return mount.raw_disk + line
