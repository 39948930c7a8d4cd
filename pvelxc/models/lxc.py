"""The container configuration record.

Every field is optional. ``None`` leaves the current value alone; an
empty value ("" / 0 / []) where a field supports it asks for deletion.
When returned from the decoder the record describes the live guest and
most fields are filled in.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from pvelxc.models.cpu import LxcCpu
from pvelxc.models.features import LxcFeatures
from pvelxc.models.guest import Digest, GuestDNS, PowerState
from pvelxc.models.mounts import BootMount, Mounts
from pvelxc.models.network import Networks

KEY_ARCHITECTURE = "arch"
KEY_CORES = "cores"
KEY_CPU_LIMIT = "cpulimit"
KEY_CPU_UNITS = "cpuunits"
KEY_DELETE = "delete"
KEY_DESCRIPTION = "description"
KEY_DIGEST = "digest"
KEY_FEATURES = "features"
KEY_GUEST_ID = "vmid"
KEY_MEMORY = "memory"
KEY_NAME = "hostname"
KEY_NAMESERVER = "nameserver"
KEY_OPERATING_SYSTEM = "ostype"
KEY_OS_TEMPLATE = "ostemplate"
KEY_PASSWORD = "password"
KEY_POOL = "pool"
KEY_PROTECTION = "protection"
KEY_ROOTFS = "rootfs"
KEY_SEARCHDOMAIN = "searchdomain"
KEY_SSH_PUBLIC_KEYS = "ssh-public-keys"
KEY_SWAP = "swap"
KEY_TAGS = "tags"
KEY_UNPRIVILEGED = "unprivileged"

MEMORY_MINIMUM = 16
DEFAULT_PRIVILEGED = False


@dataclass
class LxcTemplate:
    storage: str = ""
    file: str = ""

    def __str__(self) -> str:
        return f"{self.storage}:vztmpl/{self.file.lstrip('/')}"


@dataclass
class LxcCreateOptions:
    """Settings only accepted when the container is created."""
    os_template: Optional[LxcTemplate] = None
    user_password: Optional[str] = None
    public_ssh_keys: List[str] = field(default_factory=list)


@dataclass
class ConfigLXC:
    architecture: str = ""  # read only
    boot_mount: Optional[BootMount] = None
    cpu: Optional[LxcCpu] = None
    create_options: Optional[LxcCreateOptions] = None
    description: Optional[str] = None
    digest: Optional[Digest] = None  # read only
    dns: Optional[GuestDNS] = None
    features: Optional[LxcFeatures] = None
    id: Optional[int] = None  # create only
    memory: Optional[int] = None  # MiB
    mounts: Optional[Mounts] = None
    name: Optional[str] = None
    networks: Optional[Networks] = None
    node: Optional[str] = None  # create only
    operating_system: str = ""  # read only
    pool: Optional[str] = None  # "" removes the guest from its pool
    privileged: Optional[bool] = None  # create only
    protection: Optional[bool] = None
    state: Optional[PowerState] = None
    swap: Optional[int] = None  # MiB
    tags: Optional[List[str]] = None

    def is_privileged(self) -> bool:
        if self.privileged is None:
            return DEFAULT_PRIVILEGED
        return self.privileged
