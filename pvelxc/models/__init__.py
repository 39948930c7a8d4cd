"""Data models for pvelxc."""
from pvelxc.models.cpu import LxcCpu
from pvelxc.models.features import (
    FeatureVector,
    LxcFeatures,
    PrivilegedFeatures,
    UnprivilegedFeatures,
)
from pvelxc.models.guest import Digest, GuestDNS, GuestRef, PowerState, TriBool
from pvelxc.models.lxc import ConfigLXC, LxcCreateOptions, LxcTemplate
from pvelxc.models.mounts import (
    BindMount,
    BootMount,
    BootMountOptions,
    DataMount,
    Mount,
    MountOptions,
)
from pvelxc.models.network import LxcIPv4, LxcIPv6, LxcNetwork

__all__ = [
    'BindMount',
    'BootMount',
    'BootMountOptions',
    'ConfigLXC',
    'DataMount',
    'Digest',
    'FeatureVector',
    'GuestDNS',
    'GuestRef',
    'LxcCpu',
    'LxcCreateOptions',
    'LxcFeatures',
    'LxcIPv4',
    'LxcIPv6',
    'LxcNetwork',
    'LxcTemplate',
    'Mount',
    'MountOptions',
    'PowerState',
    'PrivilegedFeatures',
    'TriBool',
    'UnprivilegedFeatures',
]
