"""Per-slot network interface diffing.

The API replaces a whole ``netN`` line on every write, so an update
line is composed from the desired fields with every omitted field taken
from the current interface. The line is only sent when it differs from
what the current interface renders to.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional

from pvelxc.models.network import (
    LxcIPv4,
    LxcIPv6,
    LxcNetwork,
    network_key,
    normalize_mac,
    render_mtu,
    render_rate,
    render_vlans,
)


@dataclass
class NetworkChange:
    """A full ``netN`` line to write, or a request to remove the slot."""
    slot: int
    line: Optional[str] = None
    delete: bool = False

    @property
    def key(self) -> str:
        return network_key(self.slot)


def _render_mac(mac: str, stored: str) -> str:
    # the API treats a case change as a new address and reconnects the interface
    normalized = normalize_mac(mac)
    if stored and normalized == normalize_mac(stored):
        return stored
    return normalized.upper()


def _combine_ipv4(desired: LxcIPv4, current: LxcIPv4) -> LxcIPv4:
    return LxcIPv4(
        address=desired.address if desired.address is not None else current.address,
        gateway=desired.gateway if desired.gateway is not None else current.gateway,
        dhcp=desired.dhcp,
        manual=desired.manual,
    )


def _combine_ipv6(desired: LxcIPv6, current: LxcIPv6) -> LxcIPv6:
    return LxcIPv6(
        address=desired.address if desired.address is not None else current.address,
        gateway=desired.gateway if desired.gateway is not None else current.gateway,
        dhcp=desired.dhcp,
        slaac=desired.slaac,
        manual=desired.manual,
    )


def render_ipv4(ipv4: LxcIPv4) -> str:
    if ipv4.dhcp:
        return ",ip=dhcp"
    if ipv4.manual:
        return ",ip=manual"
    settings = ""
    if ipv4.address:
        settings += ",ip=" + ipv4.address
    if ipv4.gateway:
        settings += ",gw=" + ipv4.gateway
    return settings


def render_ipv6(ipv6: LxcIPv6) -> str:
    if ipv6.dhcp:
        return ",ip6=dhcp"
    if ipv6.slaac:
        return ",ip6=auto"
    if ipv6.manual:
        return ",ip6=manual"
    settings = ""
    if ipv6.address:
        settings += ",ip6=" + ipv6.address
    if ipv6.gateway:
        settings += ",gw6=" + ipv6.gateway
    return settings


def network_create_line(network: LxcNetwork) -> str:
    """Render an interface exactly as given, without any fallback."""
    settings = ""
    if network.name is not None:
        settings += "name=" + network.name
    if network.bridge is not None:
        settings += ",bridge=" + network.bridge
    if network.connected is False:
        settings += ",link_down=1"
    if network.firewall:
        settings += ",firewall=1"
    if network.ipv4 is not None:
        settings += render_ipv4(network.ipv4)
    if network.ipv6 is not None:
        settings += render_ipv6(network.ipv6)
    if network.mac:
        settings += ",hwaddr=" + _render_mac(network.mac, network.raw_mac)
    if network.mtu:
        mtu = render_mtu(network.mtu)
        if mtu:
            settings += ",mtu=" + mtu
    if network.native_vlan:
        settings += f",tag={network.native_vlan}"
    if network.rate_kbps is not None:
        settings += render_rate(network.rate_kbps)
    if network.tagged_vlans:
        settings += ",trunks=" + render_vlans(network.tagged_vlans)
    return settings


def network_update_line(desired: LxcNetwork, current: LxcNetwork) -> str:
    """Compose a complete line from ``desired`` falling back to ``current``."""
    def pick(name):
        value = getattr(desired, name)
        return value if value is not None else getattr(current, name)

    settings = ""
    name = pick("name")
    if name is not None:
        settings += "name=" + name
    bridge = pick("bridge")
    if bridge is not None:
        settings += ",bridge=" + bridge
    if pick("connected") is False:
        settings += ",link_down=1"
    if pick("firewall"):
        settings += ",firewall=1"

    if desired.ipv4 is not None:
        ipv4 = _combine_ipv4(desired.ipv4, current.ipv4) if current.ipv4 is not None else desired.ipv4
        settings += render_ipv4(ipv4)
    elif current.ipv4 is not None:
        settings += render_ipv4(current.ipv4)

    if desired.ipv6 is not None:
        ipv6 = _combine_ipv6(desired.ipv6, current.ipv6) if current.ipv6 is not None else desired.ipv6
        settings += render_ipv6(ipv6)
    elif current.ipv6 is not None:
        settings += render_ipv6(current.ipv6)

    if desired.mac is not None:
        if desired.mac:
            settings += ",hwaddr=" + _render_mac(desired.mac, current.raw_mac)
    elif current.raw_mac:
        settings += ",hwaddr=" + current.raw_mac

    mtu = pick("mtu")
    if mtu:
        rendered = render_mtu(mtu)
        if rendered:
            settings += ",mtu=" + rendered
    native_vlan = pick("native_vlan")
    if native_vlan:
        settings += f",tag={native_vlan}"
    rate = pick("rate_kbps")
    if rate is not None:
        settings += render_rate(rate)
    vlans = pick("tagged_vlans")
    if vlans:
        settings += ",trunks=" + render_vlans(vlans)
    return settings


def diff_network(slot: int, desired: LxcNetwork, current: Optional[LxcNetwork]) -> Optional[NetworkChange]:
    """Work out what to send for one slot, or None when nothing changes."""
    if current is None:
        if desired.delete:
            return None
        return NetworkChange(slot=slot, line=network_create_line(desired))
    if desired.delete:
        return NetworkChange(slot=slot, delete=True)
    line = network_update_line(desired, current)
    if line == network_create_line(current):
        return None
    return NetworkChange(slot=slot, line=line)


def diff_networks(desired: Dict[int, LxcNetwork], current: Optional[Dict[int, LxcNetwork]]) -> List[NetworkChange]:
    current = current or {}
    changes = []
    for slot in sorted(desired):
        change = diff_network(slot, desired[slot], current.get(slot))
        if change is not None:
            changes.append(change)
    return changes
