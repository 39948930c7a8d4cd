"""Local validation of a desired container record.

Without a current snapshot the create rules apply (boot mount and OS
template are mandatory). With one, most fields are optional but cross
field rules still hold. The first violation raises ValidationError;
nothing is sent to the API before validation passes.
"""
import ipaddress
import re
from typing import Dict, List, Optional

from pvelxc.core.errors import ValidationError
from pvelxc.core.logger import get_logger
from pvelxc.models.cpu import CPU_CORES_MAXIMUM, CPU_LIMIT_MAXIMUM, CPU_UNITS_MAXIMUM, CPU_UNITS_MINIMUM, LxcCpu
from pvelxc.models.features import LxcFeatures
from pvelxc.models.guest import (
    GUEST_ID_MAXIMUM,
    GUEST_ID_MINIMUM,
    GUEST_NAME_MAX_LENGTH,
    POOL_NAME_MAX_LENGTH,
    TAG_MAX_LENGTH,
    TriBool,
)
from pvelxc.models.lxc import MEMORY_MINIMUM, ConfigLXC, LxcCreateOptions
from pvelxc.models.mounts import MOUNT_SLOTS, BindMount, BootMount, DataMount, Mount
from pvelxc.models.network import (
    MTU_MAXIMUM,
    MTU_MINIMUM,
    NETWORK_SLOTS,
    RATE_MAXIMUM,
    VLAN_MAXIMUM,
    LxcIPv4,
    LxcIPv6,
    LxcNetwork,
    is_valid_mac,
)
from pvelxc.models.size import MOUNT_SIZE_MINIMUM

logger = get_logger(__name__)

ERR_BOOT_MOUNT_MISSING = "boot mount is required during creation"
ERR_CREATE_OPTIONS_MISSING = "create options are required during creation"
ERR_TEMPLATE_MISSING = "os template is required during creation"
ERR_TEMPLATE_STORAGE = "storage is required"
ERR_TEMPLATE_FILE = "file is required"
ERR_BOOT_STORAGE = "storage must be set during creation"
ERR_BOOT_SIZE = "size must be set during creation"
ERR_BOOT_QUOTA = "quota can only be set for privileged guest"
ERR_MOUNT_EXCLUSIVE = "bindMount and dataMount are mutually exclusive"
ERR_MOUNT_SLOT = f"mount id must be in the range 0-{MOUNT_SLOTS - 1}"
ERR_MOUNT_SIZE = f"mount point size must be greater than {MOUNT_SIZE_MINIMUM - 1}"
ERR_BIND_HOST_REQUIRED = "host path is required for creation"
ERR_BIND_GUEST_REQUIRED = "guest path is required for creation"
ERR_DATA_PATH_REQUIRED = "path is required for creation"
ERR_DATA_SIZE_REQUIRED = "size is required for creation"
ERR_DATA_STORAGE_REQUIRED = "storage is required for creation"
ERR_DATA_QUOTA = "quota can only be set for privileged containers"
ERR_TRIBOOL = "invalid value for TriBool"
ERR_CPU_CORES = f"cpu cores should be in the range 0-{CPU_CORES_MAXIMUM}"
ERR_CPU_LIMIT = f"cpu limit should be in the range 0-{CPU_LIMIT_MAXIMUM}"
ERR_CPU_UNITS_MIN = f"cpu units has a minimum of {CPU_UNITS_MINIMUM}"
ERR_CPU_UNITS_MAX = f"cpu units has a maximum of {CPU_UNITS_MAXIMUM}"
ERR_FEATURES_EXCLUSIVE = "privileged and unprivileged features are mutually exclusive"
ERR_FEATURES_PRIVILEGED = "privileged features can not be set on an unprivileged guest"
ERR_FEATURES_UNPRIVILEGED = "unprivileged features can not be set on a privileged guest"
ERR_GUEST_ID_MIN = f"guestID should be greater than {GUEST_ID_MINIMUM - 1}"
ERR_GUEST_ID_MAX = f"guestID should be less than {GUEST_ID_MAXIMUM + 1}"
ERR_MEMORY = f"memory has a minimum of {MEMORY_MINIMUM}"
ERR_NAME_EMPTY = "name cannot be empty"
ERR_NAME_LENGTH = f"name has a maximum length of {GUEST_NAME_MAX_LENGTH}"
ERR_NAME_START = "name cannot start with a hyphen (-) or dot (.)"
ERR_NAME_END = "name cannot end with a hyphen (-) or dot (.)"
ERR_NAME_INVALID = "name must consist of dot separated labels of letters, digits and hyphens"
ERR_POOL_LENGTH = f"pool name may not be longer than {POOL_NAME_MAX_LENGTH} characters"
ERR_POOL_CHARACTERS = "pool name may only contain the following characters: a-z, A-Z, 0-9, hyphen (-), and underscore (_)"
ERR_TAG_EMPTY = "tag may not be empty"
ERR_TAG_LENGTH = f"tag may only be {TAG_MAX_LENGTH} characters"
ERR_TAG_INVALID = "tag may not start with -. and may only include the following characters: a-z, A-Z, 0-9, -._"
ERR_TAG_DUPLICATE = "duplicate tag found"
ERR_NETWORK_SLOT = f"lxc network id must be between 0 and {NETWORK_SLOTS - 1}"
ERR_NETWORK_BRIDGE = "lxc network bridge is required for creation"
ERR_NETWORK_NAME_REQUIRED = "lxc network name is required for creation"
ERR_NETWORK_NAME_DUPLICATE = "lxc network name must be unique across all networks"
ERR_NETWORK_NAME_SHORT = "lxc network name must be at least 2 characters long"
ERR_NETWORK_NAME_LONG = "lxc network name must be at most 16 characters long"
ERR_NETWORK_NAME_INVALID = r"lxc network name must match regex: ^(?!\.\.)[a-zA-Z0-9_.-]{2,16}$"
ERR_MTU = f"mtu must be in the range {MTU_MINIMUM}-{MTU_MAXIMUM}"
ERR_VLAN = f"vlan tag must be in the range 0-{VLAN_MAXIMUM}"
ERR_RATE = f"network rate must be in the range 0 to {RATE_MAXIMUM}"
ERR_MAC = "mac address is not valid"
ERR_IPV4_EXCLUSIVE = "lxc IPv4 Manual and DHCP are mutually exclusive"
ERR_IPV4_ADDRESS_EXCLUSIVE = "lxc IPv4 Address and DHCP/Manual are mutually exclusive"
ERR_IPV4_GATEWAY_EXCLUSIVE = "lxc IPv4 Gateway and DHCP/Manual are mutually exclusive"
ERR_IPV4_CIDR = "ipv4CIDR is not a valid ipv4 address"
ERR_IPV4_ADDRESS = "ipv4Address is not a valid ipv4 address"
ERR_IPV6_EXCLUSIVE = "lxc IPv6 DHCP/Manual/SLAAC are mutually exclusive"
ERR_IPV6_ADDRESS_EXCLUSIVE = "lxc IPv6 Address and DHCP/SLAAC/Manual are mutually exclusive"
ERR_IPV6_GATEWAY_EXCLUSIVE = "lxc IPv6 Gateway and DHCP/SLAAC/Manual are mutually exclusive"
ERR_IPV6_CIDR = "ipv6CIDR is not a valid ipv6 address"
ERR_IPV6_ADDRESS = "ipv6Address is not a valid ipv6 address"
ERR_NAMESERVER = "nameserver is not a valid ip address"

_GUEST_NAME = re.compile(r"^(?:(?:[a-zA-Z0-9](?:[a-zA-Z0-9\-]*[a-zA-Z0-9])?)\.)*(?:[a-zA-Z0-9](?:[a-zA-Z0-9\-]*[a-zA-Z0-9])?)$")
_POOL_NAME = re.compile(r"^[a-zA-Z0-9\-_]+$")
_TAG = re.compile(r"^[a-zA-Z0-9_][a-zA-Z0-9\-._]*$")
_NETWORK_NAME = re.compile(r"^[a-zA-Z0-9_.-]+$")


class LxcValidator:
    """Validates a desired ConfigLXC for create or update."""

    def validate(self, desired: ConfigLXC, current: Optional[ConfigLXC] = None):
        logger.debug(f"Validating {'create' if current is None else 'update'} of {desired.name or desired.id or 'guest'}")
        if current is None:
            self._validate_create(desired)
        else:
            self._validate_update(desired, current)
        self._validate_common(desired)

    def _validate_create(self, desired: ConfigLXC):
        privileged = desired.is_privileged()
        if desired.boot_mount is None:
            raise ValidationError(ERR_BOOT_MOUNT_MISSING)
        self.check_boot_mount(desired.boot_mount, None, privileged)
        if desired.create_options is None:
            raise ValidationError(ERR_CREATE_OPTIONS_MISSING)
        self.check_create_options(desired.create_options)
        if desired.features is not None:
            self.check_features(desired.features, privileged)
        if desired.mounts is not None:
            self.check_mounts(desired.mounts, None, privileged)
        self.check_networks(desired.networks or {}, None)

    def _validate_update(self, desired: ConfigLXC, current: ConfigLXC):
        privileged = current.is_privileged()
        if desired.boot_mount is not None:
            self.check_boot_mount(desired.boot_mount, current.boot_mount, privileged)
        if desired.features is not None:
            self.check_features(desired.features, privileged)
        if desired.mounts is not None:
            self.check_mounts(desired.mounts, current.mounts, privileged)
        self.check_networks(desired.networks or {}, current.networks or {})

    def _validate_common(self, desired: ConfigLXC):
        if desired.cpu is not None:
            self.check_cpu(desired.cpu)
        if desired.dns is not None and desired.dns.nameservers:
            for nameserver in desired.dns.nameservers:
                if not _is_ip(nameserver, (4, 6)):
                    raise ValidationError(ERR_NAMESERVER)
        if desired.id is not None:
            if desired.id < GUEST_ID_MINIMUM:
                raise ValidationError(ERR_GUEST_ID_MIN)
            if desired.id > GUEST_ID_MAXIMUM:
                raise ValidationError(ERR_GUEST_ID_MAX)
        if desired.memory is not None and desired.memory < MEMORY_MINIMUM:
            raise ValidationError(ERR_MEMORY)
        if desired.name is not None:
            self.check_guest_name(desired.name)
        if desired.pool:
            self.check_pool_name(desired.pool)
        if desired.tags is not None:
            self.check_tags(desired.tags)

    # -- scalar domains -------------------------------------------------

    def check_cpu(self, cpu: LxcCpu):
        if cpu.cores is not None and not 0 <= cpu.cores <= CPU_CORES_MAXIMUM:
            raise ValidationError(ERR_CPU_CORES)
        if cpu.limit is not None and not 0 <= cpu.limit <= CPU_LIMIT_MAXIMUM:
            raise ValidationError(ERR_CPU_LIMIT)
        if cpu.units:
            if cpu.units < CPU_UNITS_MINIMUM:
                raise ValidationError(ERR_CPU_UNITS_MIN)
            if cpu.units > CPU_UNITS_MAXIMUM:
                raise ValidationError(ERR_CPU_UNITS_MAX)

    def check_features(self, features: LxcFeatures, privileged: bool):
        if features.privileged is not None and features.unprivileged is not None:
            raise ValidationError(ERR_FEATURES_EXCLUSIVE)
        if features.privileged is not None and not privileged:
            raise ValidationError(ERR_FEATURES_PRIVILEGED)
        if features.unprivileged is not None and privileged:
            raise ValidationError(ERR_FEATURES_UNPRIVILEGED)

    def check_guest_name(self, name: str):
        if not name:
            raise ValidationError(ERR_NAME_EMPTY)
        if len(name) > GUEST_NAME_MAX_LENGTH:
            raise ValidationError(ERR_NAME_LENGTH)
        if name[0] in "-.":
            raise ValidationError(ERR_NAME_START)
        if name[-1] in "-.":
            raise ValidationError(ERR_NAME_END)
        if not _GUEST_NAME.match(name):
            raise ValidationError(ERR_NAME_INVALID)

    def check_pool_name(self, pool: str):
        if len(pool) > POOL_NAME_MAX_LENGTH:
            raise ValidationError(ERR_POOL_LENGTH)
        if not _POOL_NAME.match(pool):
            raise ValidationError(ERR_POOL_CHARACTERS)

    def check_tags(self, tags: List[str]):
        seen = set()
        for tag in tags:
            if not tag:
                raise ValidationError(ERR_TAG_EMPTY)
            if len(tag) > TAG_MAX_LENGTH:
                raise ValidationError(ERR_TAG_LENGTH)
            if not _TAG.match(tag):
                raise ValidationError(ERR_TAG_INVALID)
            if tag in seen:
                raise ValidationError(ERR_TAG_DUPLICATE)
            seen.add(tag)

    def check_create_options(self, options: LxcCreateOptions):
        if options.os_template is None:
            raise ValidationError(ERR_TEMPLATE_MISSING)
        if not options.os_template.storage:
            raise ValidationError(ERR_TEMPLATE_STORAGE)
        if not options.os_template.file:
            raise ValidationError(ERR_TEMPLATE_FILE)

    # -- mounts ---------------------------------------------------------

    def check_boot_mount(self, mount: BootMount, current: Optional[BootMount], privileged: bool):
        if mount.acl is not None:
            _check_tribool(mount.acl)
        if current is None:
            if mount.storage is None:
                raise ValidationError(ERR_BOOT_STORAGE)
            if mount.size_kib is None:
                raise ValidationError(ERR_BOOT_SIZE)
        if mount.size_kib is not None:
            _check_size(mount.size_kib)
        if mount.quota is not None and not privileged:
            raise ValidationError(ERR_BOOT_QUOTA)

    def check_mounts(self, mounts: Dict[int, Mount], current: Optional[Dict[int, Mount]], privileged: bool):
        for slot in sorted(mounts):
            if not 0 <= slot < MOUNT_SLOTS:
                raise ValidationError(ERR_MOUNT_SLOT)
            mount = mounts[slot]
            if mount.detach:
                continue
            creating = current is None or slot not in current
            self.check_mount(mount, creating, privileged)

    def check_mount(self, mount: Mount, creating: bool, privileged: bool):
        if mount.detach:
            return
        if mount.data is not None and mount.bind is not None:
            raise ValidationError(ERR_MOUNT_EXCLUSIVE)
        if mount.data is not None:
            self._check_data_mount(mount.data, creating, privileged)
        elif mount.bind is not None:
            self._check_bind_mount(mount.bind, creating)

    def _check_bind_mount(self, mount: BindMount, creating: bool):
        if creating:
            if mount.host_path is None:
                raise ValidationError(ERR_BIND_HOST_REQUIRED)
            if mount.guest_path is None:
                raise ValidationError(ERR_BIND_GUEST_REQUIRED)
        if mount.host_path is not None:
            _check_path(mount.host_path, "host path")
        if mount.guest_path is not None:
            _check_path(mount.guest_path, "mount point path")

    def _check_data_mount(self, mount: DataMount, creating: bool, privileged: bool):
        if creating:
            if mount.path is None:
                raise ValidationError(ERR_DATA_PATH_REQUIRED)
            if mount.size_kib is None:
                raise ValidationError(ERR_DATA_SIZE_REQUIRED)
            if mount.storage is None:
                raise ValidationError(ERR_DATA_STORAGE_REQUIRED)
        if mount.acl is not None:
            _check_tribool(mount.acl)
        if mount.quota is not None and not privileged:
            raise ValidationError(ERR_DATA_QUOTA)
        if mount.path is not None:
            _check_path(mount.path, "mount point path")
        if mount.size_kib is not None:
            _check_size(mount.size_kib)

    # -- networks -------------------------------------------------------

    def check_networks(self, networks: Dict[int, LxcNetwork], current: Optional[Dict[int, LxcNetwork]]):
        current = current or {}
        # names must stay unique once desired is applied over current
        merged = {slot: net.name for slot, net in current.items() if net.name is not None}
        for slot, network in networks.items():
            if network.delete:
                merged.pop(slot, None)
            elif network.name is not None:
                merged[slot] = network.name
        names = list(merged.values())
        if len(names) != len(set(names)):
            raise ValidationError(ERR_NETWORK_NAME_DUPLICATE)

        for slot in sorted(networks):
            if not 0 <= slot < NETWORK_SLOTS:
                raise ValidationError(ERR_NETWORK_SLOT)
            network = networks[slot]
            if network.delete:
                continue
            if slot not in current:
                if not network.bridge:
                    raise ValidationError(ERR_NETWORK_BRIDGE)
                if network.name is None:
                    raise ValidationError(ERR_NETWORK_NAME_REQUIRED)
            self.check_network(network)

    def check_network(self, network: LxcNetwork):
        if network.ipv4 is not None:
            _check_ipv4(network.ipv4)
        if network.ipv6 is not None:
            _check_ipv6(network.ipv6)
        if network.mac and not is_valid_mac(network.mac):
            raise ValidationError(ERR_MAC)
        if network.mtu and not MTU_MINIMUM <= network.mtu <= MTU_MAXIMUM:
            raise ValidationError(ERR_MTU)
        if network.name is not None:
            _check_network_name(network.name)
        if network.native_vlan is not None and not 0 <= network.native_vlan <= VLAN_MAXIMUM:
            raise ValidationError(ERR_VLAN)
        if network.rate_kbps is not None and not 0 <= network.rate_kbps <= RATE_MAXIMUM:
            raise ValidationError(ERR_RATE)
        for vlan in network.tagged_vlans or []:
            if not 0 <= vlan <= VLAN_MAXIMUM:
                raise ValidationError(ERR_VLAN)


def _check_tribool(value):
    if value not in (TriBool.FALSE, TriBool.NONE, TriBool.TRUE):
        raise ValidationError(ERR_TRIBOOL)


def _check_size(size_kib: int):
    if size_kib < MOUNT_SIZE_MINIMUM:
        raise ValidationError(ERR_MOUNT_SIZE)


def _check_path(path: str, label: str):
    if not path:
        raise ValidationError(f"{label} must not be empty")
    if not path.startswith("/"):
        raise ValidationError(f"{label} must be absolute")
    if "," in path:
        raise ValidationError(f"{label} must not contain ',' character")


def _check_network_name(name: str):
    if len(name) < 2:
        raise ValidationError(ERR_NETWORK_NAME_SHORT)
    if len(name) > 16:
        raise ValidationError(ERR_NETWORK_NAME_LONG)
    if name == ".." or not _NETWORK_NAME.match(name):
        raise ValidationError(ERR_NETWORK_NAME_INVALID)


def _is_ip(value: str, versions) -> bool:
    try:
        return ipaddress.ip_address(value).version in versions
    except ValueError:
        return False


def _is_cidr(value: str, version: int) -> bool:
    try:
        return ipaddress.ip_interface(value).version == version and "/" in value
    except ValueError:
        return False


def _check_ipv4(ipv4: LxcIPv4):
    exclusive = ipv4.dhcp
    if ipv4.manual:
        if exclusive:
            raise ValidationError(ERR_IPV4_EXCLUSIVE)
        exclusive = True
    if ipv4.address is not None:
        if exclusive:
            raise ValidationError(ERR_IPV4_ADDRESS_EXCLUSIVE)
        if ipv4.address and not _is_cidr(ipv4.address, 4):
            raise ValidationError(ERR_IPV4_CIDR)
    if ipv4.gateway is not None:
        if exclusive:
            raise ValidationError(ERR_IPV4_GATEWAY_EXCLUSIVE)
        if ipv4.gateway and not _is_ip(ipv4.gateway, (4,)):
            raise ValidationError(ERR_IPV4_ADDRESS)


def _check_ipv6(ipv6: LxcIPv6):
    exclusive = ipv6.dhcp
    for flag in (ipv6.manual, ipv6.slaac):
        if flag:
            if exclusive:
                raise ValidationError(ERR_IPV6_EXCLUSIVE)
            exclusive = True
    if ipv6.address is not None:
        if exclusive:
            raise ValidationError(ERR_IPV6_ADDRESS_EXCLUSIVE)
        if ipv6.address and not _is_cidr(ipv6.address, 6):
            raise ValidationError(ERR_IPV6_CIDR)
    if ipv6.gateway is not None:
        if exclusive:
            raise ValidationError(ERR_IPV6_GATEWAY_EXCLUSIVE)
        if ipv6.gateway and not _is_ip(ipv6.gateway, (6,)):
            raise ValidationError(ERR_IPV6_ADDRESS)
