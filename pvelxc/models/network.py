"""Network interfaces of a container (net0 .. net15)."""
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

NETWORK_SLOTS = 16
NETWORK_PREFIX = "net"

MTU_MINIMUM = 576
MTU_MAXIMUM = 65520
VLAN_MAXIMUM = 4095
RATE_MAXIMUM = 10240000  # KB/s * 1000, 0 is unlimited

_MAC_PATTERN = re.compile(r"^[0-9a-fA-F]{2}([:-][0-9a-fA-F]{2}){5}$")


@dataclass
class LxcIPv4:
    address: Optional[str] = None  # CIDR
    gateway: Optional[str] = None
    dhcp: bool = False
    manual: bool = False


@dataclass
class LxcIPv6:
    address: Optional[str] = None  # CIDR
    gateway: Optional[str] = None
    dhcp: bool = False
    slaac: bool = False
    manual: bool = False


@dataclass
class LxcNetwork:
    bridge: Optional[str] = None  # required on create
    connected: Optional[bool] = None
    firewall: Optional[bool] = None
    ipv4: Optional[LxcIPv4] = None
    ipv6: Optional[LxcIPv6] = None
    mac: Optional[str] = None
    mtu: Optional[int] = None  # 0 means inherit from bridge
    name: Optional[str] = None  # required on create
    native_vlan: Optional[int] = None  # 0 means untagged
    rate_kbps: Optional[int] = None  # thousandths of MB/s, 0 is unlimited
    tagged_vlans: Optional[List[int]] = None
    delete: bool = False
    raw_mac: str = field(default="", compare=False, repr=False)


Networks = Dict[int, LxcNetwork]


def network_key(slot: int) -> str:
    return f"{NETWORK_PREFIX}{slot}"


def is_valid_mac(mac: str) -> bool:
    return bool(_MAC_PATTERN.match(mac))


def normalize_mac(mac: str) -> str:
    """Lowercase, colon separated form used for comparisons."""
    return mac.replace("-", ":").lower()


def render_mtu(mtu: int) -> str:
    if mtu < MTU_MINIMUM or mtu > MTU_MAXIMUM:
        return ""
    return str(mtu)


def render_vlans(vlans: List[int]) -> str:
    return ";".join(str(v) for v in sorted(set(vlans)))


def render_rate(rate: int) -> str:
    """Rate setting including its leading comma, '' when unlimited.

    >>> render_rate(45)
    ',rate=0.045'
    >>> render_rate(1500)
    ',rate=1.5'
    """
    if rate == 0:
        return ""
    whole, fraction = divmod(rate, 1000)
    if fraction == 0:
        return f",rate={whole}"
    return f",rate={whole}.{fraction:03d}".rstrip("0")


def parse_rate(raw: str) -> int:
    whole, _, fraction = raw.partition(".")
    if not fraction:
        return 0 if whole == "0" else int(whole) * 1000
    return int(whole + (fraction + "000")[:3])


def parse_vlans(raw: str) -> List[int]:
    return sorted(int(v) for v in raw.split(";") if v)
