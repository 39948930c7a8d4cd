"""Field differs: turn (desired, current) pairs into API parameters.

Per field the rule is the same everywhere:

* desired is None             -> leave alone
* desired is the empty value  -> delete the key if current has it
* desired differs from current -> set it
* desired equals current       -> nothing

Composite settings (features, mount lines) are compared on their
rendered form so the differ never sends a value the API already holds.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from pvelxc.core.network_differ import diff_networks, network_create_line
from pvelxc.models.cpu import LxcCpu, cpu_limit_value
from pvelxc.models.features import FeatureVector, LxcFeatures, render_features
from pvelxc.models.guest import GuestDNS, nameservers_to_api, tags_to_api
from pvelxc.models.lxc import (
    KEY_CORES,
    KEY_CPU_LIMIT,
    KEY_CPU_UNITS,
    KEY_DELETE,
    KEY_DESCRIPTION,
    KEY_FEATURES,
    KEY_GUEST_ID,
    KEY_MEMORY,
    KEY_NAME,
    KEY_NAMESERVER,
    KEY_OS_TEMPLATE,
    KEY_PASSWORD,
    KEY_POOL,
    KEY_PROTECTION,
    KEY_ROOTFS,
    KEY_SEARCHDOMAIN,
    KEY_SSH_PUBLIC_KEYS,
    KEY_SWAP,
    KEY_TAGS,
    KEY_UNPRIVILEGED,
    ConfigLXC,
    LxcCreateOptions,
)
from pvelxc.models.mounts import (
    BootMount,
    DataMount,
    Mounts,
    bind_mount_line,
    boot_mount_create_line,
    boot_mount_settings,
    data_mount_create_line,
    data_mount_settings,
    data_mount_update_line,
    mount_key,
    overlay,
)
from pvelxc.models.network import network_key
from pvelxc.models.size import render_size


@dataclass
class FieldDelta:
    """Accumulated ``set`` parameters and keys to delete."""
    params: Dict[str, Any] = field(default_factory=dict)
    delete: List[str] = field(default_factory=list)

    def set(self, key: str, value: Any):
        self.params[key] = value

    def remove(self, key: str):
        if key not in self.delete:
            self.delete.append(key)

    def merge(self, other: "FieldDelta") -> "FieldDelta":
        self.params.update(other.params)
        for key in other.delete:
            self.remove(key)
        return self

    def is_empty(self) -> bool:
        return not self.params and not self.delete

    def to_params(self) -> Dict[str, Any]:
        """Request body without the digest; delete list comma joined."""
        params = dict(self.params)
        if self.delete:
            params[KEY_DELETE] = ",".join(self.delete)
        return params


def _set_or_delete_int(delta: FieldDelta, key: str, desired: Optional[int], current: Optional[int]):
    if desired is None:
        return
    if current is not None:
        if desired == 0:
            delta.remove(key)
        elif desired != current:
            delta.set(key, desired)
    elif desired != 0:
        delta.set(key, desired)


def cpu_create_params(cpu: LxcCpu, delta: FieldDelta):
    if cpu.cores:
        delta.set(KEY_CORES, int(cpu.cores))
    if cpu.limit:
        delta.set(KEY_CPU_LIMIT, cpu_limit_value(cpu.limit))
    if cpu.units:
        delta.set(KEY_CPU_UNITS, int(cpu.units))


def diff_cpu(desired: LxcCpu, current: LxcCpu) -> FieldDelta:
    delta = FieldDelta()
    _set_or_delete_int(delta, KEY_CORES, desired.cores, current.cores)
    limit = cpu_limit_value(desired.limit) if desired.limit is not None else None
    _set_or_delete_int(delta, KEY_CPU_LIMIT, limit, current.limit)
    _set_or_delete_int(delta, KEY_CPU_UNITS, desired.units, current.units)
    return delta


def diff_features(desired: LxcFeatures, current: Optional[LxcFeatures]) -> FieldDelta:
    delta = FieldDelta()
    base = current.overlay(FeatureVector()) if current is not None else FeatureVector()
    wanted = desired.overlay(base)
    if current is not None and wanted == base:
        return delta
    rendered = render_features(wanted)
    if rendered:
        delta.set(KEY_FEATURES, rendered)
    elif current is not None:
        delta.remove(KEY_FEATURES)
    return delta


def dns_create_params(dns: GuestDNS, delta: FieldDelta):
    if dns.nameservers:
        delta.set(KEY_NAMESERVER, nameservers_to_api(dns.nameservers))
    if dns.search_domain:
        delta.set(KEY_SEARCHDOMAIN, dns.search_domain)


def diff_dns(desired: GuestDNS, current: GuestDNS) -> FieldDelta:
    delta = FieldDelta()
    if desired.search_domain is not None:
        if desired.search_domain:
            if desired.search_domain != current.search_domain:
                delta.set(KEY_SEARCHDOMAIN, desired.search_domain)
        elif current.search_domain:
            delta.remove(KEY_SEARCHDOMAIN)
    if desired.nameservers is not None:
        if desired.nameservers:
            rendered = nameservers_to_api(desired.nameservers)
            if rendered != nameservers_to_api(current.nameservers or []):
                delta.set(KEY_NAMESERVER, rendered)
        elif current.nameservers:
            delta.remove(KEY_NAMESERVER)
    return delta


def diff_description(desired: Optional[str], current: Optional[str]) -> FieldDelta:
    delta = FieldDelta()
    if desired is None or desired == current:
        return delta
    if desired == "":
        if current:
            delta.remove(KEY_DESCRIPTION)
    else:
        delta.set(KEY_DESCRIPTION, desired)
    return delta


def diff_protection(desired: Optional[bool], current: Optional[bool]) -> FieldDelta:
    delta = FieldDelta()
    if desired is None or desired == bool(current):
        return delta
    if desired:
        delta.set(KEY_PROTECTION, "1")
    else:
        delta.remove(KEY_PROTECTION)
    return delta


def diff_tags(desired: Optional[List[str]], current: Optional[List[str]]) -> FieldDelta:
    delta = FieldDelta()
    if desired is None:
        return delta
    rendered = tags_to_api(sorted(desired))
    if current is not None and rendered == tags_to_api(sorted(current)):
        return delta
    delta.set(KEY_TAGS, rendered)
    return delta


def diff_scalar(key: str, desired, current) -> FieldDelta:
    """Memory, swap and hostname: set whenever the value differs."""
    delta = FieldDelta()
    if desired is not None and desired != current:
        delta.set(key, desired)
    return delta


def diff_boot_mount(desired: BootMount, current: BootMount, privileged: bool) -> FieldDelta:
    """In-place rootfs edits. Moves and resizes go through the mount planner."""
    delta = FieldDelta()
    used = overlay(desired, current)
    settings = boot_mount_settings(used, privileged)
    if settings == boot_mount_settings(current, privileged):
        return delta
    if used.size_kib is not None:
        settings += ",size=" + render_size(used.size_kib)
    delta.set(KEY_ROOTFS, current.raw_disk + settings)
    return delta


def _diff_data_mount(slot: int, desired: DataMount, current: DataMount, privileged: bool, delta: FieldDelta):
    # storage and size are owned by move/resize, only a shrink rewrites them
    used = overlay(desired, current, skip=("size_kib", "storage"))
    if desired.size_kib is not None and current.size_kib is not None and desired.size_kib < current.size_kib:
        used.size_kib = desired.size_kib
        used.storage = desired.storage if desired.storage is not None else current.storage
        delta.set(mount_key(slot), data_mount_create_line(used, privileged))
        return
    if data_mount_settings(used, privileged) != data_mount_settings(current, privileged):
        delta.set(mount_key(slot), data_mount_update_line(used, privileged))


def mounts_create_params(mounts: Mounts, privileged: bool, delta: FieldDelta):
    for slot in sorted(mounts):
        mount = mounts[slot]
        if mount.detach:
            continue
        if mount.data is not None:
            delta.set(mount_key(slot), data_mount_create_line(mount.data, privileged))
        elif mount.bind is not None:
            delta.set(mount_key(slot), bind_mount_line(mount.bind))


def diff_mounts(desired: Mounts, current: Mounts, privileged: bool) -> FieldDelta:
    delta = FieldDelta()
    for slot in sorted(desired):
        mount = desired[slot]
        existing = current.get(slot)
        if existing is None:
            if not mount.detach:
                mounts_create_params({slot: mount}, privileged, delta)
            continue
        if mount.detach:
            delta.remove(mount_key(slot))
            continue
        if mount.data is not None:
            if existing.data is not None:
                _diff_data_mount(slot, mount.data, existing.data, privileged, delta)
            else:
                delta.set(mount_key(slot), data_mount_create_line(mount.data, privileged))
        elif mount.bind is not None:
            if existing.bind is not None:
                line = bind_mount_line(overlay(mount.bind, existing.bind))
                if line != bind_mount_line(existing.bind):
                    delta.set(mount_key(slot), line)
            else:
                delta.set(mount_key(slot), bind_mount_line(mount.bind))
    return delta


def networks_delta(desired, current) -> FieldDelta:
    delta = FieldDelta()
    for change in diff_networks(desired, current):
        if change.delete:
            delta.remove(change.key)
        else:
            delta.set(change.key, change.line)
    return delta


def diff_config(desired: ConfigLXC, current: ConfigLXC) -> FieldDelta:
    """Every in-place change between ``desired`` and the live snapshot."""
    privileged = current.is_privileged()
    delta = FieldDelta()
    if desired.boot_mount is not None and current.boot_mount is not None:
        delta.merge(diff_boot_mount(desired.boot_mount, current.boot_mount, privileged))
    if desired.cpu is not None:
        if current.cpu is not None:
            delta.merge(diff_cpu(desired.cpu, current.cpu))
        else:
            cpu_create_params(desired.cpu, delta)
    delta.merge(diff_description(desired.description, current.description))
    if desired.dns is not None:
        if current.dns is not None:
            delta.merge(diff_dns(desired.dns, current.dns))
        else:
            dns_create_params(desired.dns, delta)
    if desired.features is not None:
        delta.merge(diff_features(desired.features, current.features))
    delta.merge(diff_scalar(KEY_MEMORY, desired.memory, current.memory))
    delta.merge(diff_scalar(KEY_NAME, desired.name, current.name))
    if desired.mounts:
        if current.mounts:
            delta.merge(diff_mounts(desired.mounts, current.mounts, privileged))
        else:
            mounts_create_params(desired.mounts, privileged, delta)
    if desired.networks:
        delta.merge(networks_delta(desired.networks, current.networks))
    delta.merge(diff_protection(desired.protection, current.protection))
    delta.merge(diff_scalar(KEY_SWAP, desired.swap, current.swap))
    delta.merge(diff_tags(desired.tags, current.tags))
    return delta


def create_options_params(options: LxcCreateOptions, delta: FieldDelta):
    if options.os_template is not None:
        delta.set(KEY_OS_TEMPLATE, str(options.os_template))
    if options.user_password is not None:
        delta.set(KEY_PASSWORD, options.user_password)
    if options.public_ssh_keys:
        delta.set(KEY_SSH_PUBLIC_KEYS, quote("\n".join(options.public_ssh_keys), safe=""))


def create_params(desired: ConfigLXC) -> Dict[str, Any]:
    """Parameters for creating a brand new container."""
    privileged = desired.is_privileged()
    delta = FieldDelta()
    if not privileged:
        delta.set(KEY_UNPRIVILEGED, 1)
    if desired.boot_mount is not None:
        delta.set(KEY_ROOTFS, boot_mount_create_line(desired.boot_mount, privileged))
    if desired.cpu is not None:
        cpu_create_params(desired.cpu, delta)
    if desired.create_options is not None:
        create_options_params(desired.create_options, delta)
    if desired.description:
        delta.set(KEY_DESCRIPTION, desired.description)
    if desired.dns is not None:
        dns_create_params(desired.dns, delta)
    if desired.features is not None:
        rendered = render_features(desired.features.overlay(FeatureVector()))
        if rendered:
            delta.set(KEY_FEATURES, rendered)
    if desired.id is not None:
        delta.set(KEY_GUEST_ID, desired.id)
    if desired.memory is not None:
        delta.set(KEY_MEMORY, desired.memory)
    if desired.name is not None:
        delta.set(KEY_NAME, desired.name)
    if desired.mounts:
        mounts_create_params(desired.mounts, privileged, delta)
    if desired.networks:
        for slot in sorted(desired.networks):
            network = desired.networks[slot]
            if not network.delete:
                delta.set(network_key(slot), network_create_line(network))
    if desired.pool:
        delta.set(KEY_POOL, desired.pool)
    if desired.protection:
        delta.set(KEY_PROTECTION, "1")
    if desired.swap is not None:
        delta.set(KEY_SWAP, desired.swap)
    if desired.tags is not None:
        delta.set(KEY_TAGS, tags_to_api(desired.tags))
    return delta.params
