"""Typed decoding of the raw ``config`` map into a ConfigLXC snapshot."""
import re
from typing import Any, Dict, Optional

from pvelxc.core.errors import DecodeError
from pvelxc.models.cpu import LxcCpu
from pvelxc.models.features import features_from_vector, parse_features
from pvelxc.models.guest import Digest, GuestDNS, GuestRef, PowerState, TriBool, tags_from_api
from pvelxc.models.lxc import (
    KEY_ARCHITECTURE,
    KEY_CORES,
    KEY_CPU_LIMIT,
    KEY_CPU_UNITS,
    KEY_DESCRIPTION,
    KEY_DIGEST,
    KEY_FEATURES,
    KEY_MEMORY,
    KEY_NAME,
    KEY_NAMESERVER,
    KEY_OPERATING_SYSTEM,
    KEY_PROTECTION,
    KEY_ROOTFS,
    KEY_SEARCHDOMAIN,
    KEY_SWAP,
    KEY_TAGS,
    KEY_UNPRIVILEGED,
    ConfigLXC,
)
from pvelxc.models.mounts import (
    MOUNT_SLOTS,
    BindMount,
    BootMount,
    BootMountOptions,
    DataMount,
    Mount,
    mount_key,
    parse_mount_options,
)
from pvelxc.models.network import (
    NETWORK_SLOTS,
    LxcIPv4,
    LxcIPv6,
    LxcNetwork,
    network_key,
    normalize_mac,
    parse_rate,
    parse_vlans,
)
from pvelxc.models.size import parse_size

_DIGEST = re.compile(r"^[0-9a-f]{40}$")


def split_settings(text: str) -> Dict[str, str]:
    """'a=1,b=2,flag' -> {'a': '1', 'b': '2', 'flag': ''}."""
    settings = {}
    for item in text.split(","):
        if not item:
            continue
        key, _, value = item.partition("=")
        settings[key] = value
    return settings


def _string(raw: Dict[str, Any], key: str) -> Optional[str]:
    if key not in raw:
        return None
    value = raw[key]
    if not isinstance(value, str):
        raise DecodeError(key, f"expected a string, got {type(value).__name__}")
    return value


def _number(raw: Dict[str, Any], key: str) -> Optional[float]:
    if key not in raw:
        return None
    value = raw[key]
    if isinstance(value, bool):
        raise DecodeError(key, "expected a number, got bool")
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError as exc:
            raise DecodeError(key, f"expected a number, got {value!r}") from exc
    raise DecodeError(key, f"expected a number, got {type(value).__name__}")


def _integer(raw: Dict[str, Any], key: str) -> Optional[int]:
    value = _number(raw, key)
    if value is None:
        return None
    return int(value)


def _setting_int(key: str, name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise DecodeError(key, f"{name} is not an integer: {value!r}") from exc


def _setting_size(key: str, value: str) -> int:
    try:
        return parse_size(value)
    except ValueError as exc:
        raise DecodeError(key, str(exc)) from exc


def _volume_storage(key: str, line: str) -> str:
    storage, sep, _ = line.partition(":")
    if not sep:
        raise DecodeError(key, f"volume without storage: {line!r}")
    return storage


def _tribool(value: Optional[str]) -> TriBool:
    if value is None:
        return TriBool.NONE
    return TriBool.TRUE if value == "1" else TriBool.FALSE


def decode_boot_mount(line: str, privileged: bool) -> BootMount:
    raw_disk, _, rest = line.partition(",")
    settings = split_settings(rest)
    mount = BootMount(
        acl=_tribool(settings.get("acl")),
        quota=settings.get("quota") == "1" if privileged else None,
        replicate=settings.get("replicate", "1") == "1",
        size_kib=_setting_size(KEY_ROOTFS, settings["size"]) if "size" in settings else 0,
        storage=_volume_storage(KEY_ROOTFS, line),
        raw_disk=raw_disk,
    )
    if "mountoptions" in settings:
        options = parse_mount_options(settings["mountoptions"])
        mount.options = BootMountOptions(
            discard=options.discard,
            lazy_time=options.lazy_time,
            no_atime=options.no_atime,
            no_suid=options.no_suid,
        )
    return mount


def decode_bind_mount(line: str) -> BindMount:
    host_path, _, rest = line.partition(",")
    settings = split_settings(rest)
    mount = BindMount(
        host_path=host_path,
        guest_path=settings.get("mp", ""),
        read_only=settings.get("ro") == "1",
        replicate=settings.get("replicate", "1") == "1",
    )
    if "mountoptions" in settings:
        mount.options = parse_mount_options(settings["mountoptions"])
    return mount


def decode_data_mount(key: str, line: str, privileged: bool) -> DataMount:
    raw_disk, _, rest = line.partition(",")
    settings = split_settings(rest)
    mount = DataMount(
        acl=_tribool(settings.get("acl")),
        backup=settings.get("backup") == "1",
        path=settings.get("mp", ""),
        quota=settings.get("quota") == "1" if privileged else None,
        read_only=settings.get("ro") == "1",
        replicate=settings.get("replicate", "1") == "1",
        size_kib=_setting_size(key, settings["size"]) if "size" in settings else 0,
        storage=_volume_storage(key, line),
        raw_disk=raw_disk,
    )
    if "mountoptions" in settings:
        mount.options = parse_mount_options(settings["mountoptions"])
    return mount


def decode_mounts(raw: Dict[str, Any], privileged: bool) -> Optional[Dict[int, Mount]]:
    mounts = {}
    for slot in range(MOUNT_SLOTS):
        key = mount_key(slot)
        line = _string(raw, key)
        if line is None:
            continue
        if line.startswith("/"):
            mounts[slot] = Mount(bind=decode_bind_mount(line))
        else:
            mounts[slot] = Mount(data=decode_data_mount(key, line, privileged))
    return mounts or None


def decode_network(key: str, line: str) -> LxcNetwork:
    settings = split_settings(line)
    network = LxcNetwork(
        bridge=settings.get("bridge", ""),
        connected=settings.get("link_down") != "1",
        firewall=settings.get("firewall") == "1",
        name=settings.get("name", ""),
    )
    if "hwaddr" in settings:
        network.raw_mac = settings["hwaddr"]
        network.mac = normalize_mac(settings["hwaddr"])

    if "ip" in settings or "gw" in settings:
        ipv4 = LxcIPv4()
        ip = settings.get("ip")
        if ip == "dhcp":
            ipv4.dhcp = True
        elif ip == "manual":
            ipv4.manual = True
        elif ip is not None:
            ipv4.address = ip
        if "gw" in settings:
            ipv4.gateway = settings["gw"]
        network.ipv4 = ipv4

    if "ip6" in settings or "gw6" in settings:
        ipv6 = LxcIPv6()
        ip6 = settings.get("ip6")
        if ip6 == "dhcp":
            ipv6.dhcp = True
        elif ip6 == "auto":
            ipv6.slaac = True
        elif ip6 == "manual":
            ipv6.manual = True
        elif ip6 is not None:
            ipv6.address = ip6
        if "gw6" in settings:
            ipv6.gateway = settings["gw6"]
        network.ipv6 = ipv6

    if "mtu" in settings:
        network.mtu = _setting_int(key, "mtu", settings["mtu"])
    if "tag" in settings:
        network.native_vlan = _setting_int(key, "tag", settings["tag"])
    if "rate" in settings:
        try:
            network.rate_kbps = parse_rate(settings["rate"])
        except ValueError as exc:
            raise DecodeError(key, f"rate is not a number: {settings['rate']!r}") from exc
    if "trunks" in settings:
        try:
            network.tagged_vlans = parse_vlans(settings["trunks"])
        except ValueError as exc:
            raise DecodeError(key, f"trunks is not a vlan list: {settings['trunks']!r}") from exc
    return network


def decode_networks(raw: Dict[str, Any]) -> Dict[int, LxcNetwork]:
    networks = {}
    for slot in range(NETWORK_SLOTS):
        key = network_key(slot)
        line = _string(raw, key)
        if line is not None:
            networks[slot] = decode_network(key, line)
    return networks


def decode_cpu(raw: Dict[str, Any]) -> Optional[LxcCpu]:
    cores = _integer(raw, KEY_CORES)
    limit = _number(raw, KEY_CPU_LIMIT)
    units = _integer(raw, KEY_CPU_UNITS)
    if cores is None and limit is None and units is None:
        return None
    if limit is not None and float(limit).is_integer():
        limit = int(limit)
    return LxcCpu(cores=cores, limit=limit, units=units)


def decode_dns(raw: Dict[str, Any]) -> Optional[GuestDNS]:
    nameserver = _string(raw, KEY_NAMESERVER)
    domain = _string(raw, KEY_SEARCHDOMAIN)
    if nameserver is None and not domain:
        return None
    return GuestDNS(
        nameservers=nameserver.split() if nameserver is not None else [],
        search_domain=domain or "",
    )


def is_privileged(raw: Dict[str, Any]) -> bool:
    # privileged guests do not report the key at all
    unprivileged = _integer(raw, KEY_UNPRIVILEGED)
    if unprivileged is None:
        return True
    return unprivileged == 0


def decode_digest(raw: Dict[str, Any]) -> Optional[Digest]:
    token = _string(raw, KEY_DIGEST)
    if token is None:
        return None
    if not _DIGEST.match(token):
        raise DecodeError(KEY_DIGEST, f"expected 40 hex characters, got {token!r}")
    return Digest(token)


def decode_config(raw: Dict[str, Any], ref: Optional[GuestRef] = None,
                  state: Optional[PowerState] = None, pool: Optional[str] = None) -> ConfigLXC:
    """Build the current snapshot from the raw map returned by the API."""
    privileged = is_privileged(raw)

    boot_line = _string(raw, KEY_ROOTFS)
    features_line = _string(raw, KEY_FEATURES)
    vector = parse_features(features_line) if features_line is not None else None
    tags = _string(raw, KEY_TAGS)

    config = ConfigLXC(
        architecture=_string(raw, KEY_ARCHITECTURE) or "",
        boot_mount=decode_boot_mount(boot_line, privileged) if boot_line is not None else None,
        cpu=decode_cpu(raw),
        description=_string(raw, KEY_DESCRIPTION),
        digest=decode_digest(raw),
        dns=decode_dns(raw),
        features=features_from_vector(vector, privileged) if vector is not None else None,
        memory=_integer(raw, KEY_MEMORY) or 0,
        mounts=decode_mounts(raw, privileged),
        name=_string(raw, KEY_NAME) or "",
        networks=decode_networks(raw),
        operating_system=_string(raw, KEY_OPERATING_SYSTEM) or "",
        privileged=privileged,
        protection=_integer(raw, KEY_PROTECTION) == 1,
        swap=_integer(raw, KEY_SWAP) or 0,
        tags=tags_from_api(tags) if tags is not None else None,
    )
    if ref is not None:
        config.id = ref.vmid
        config.node = ref.node
        if ref.pool:
            config.pool = ref.pool
    if pool:
        config.pool = pool
    if state is not None and state != PowerState.UNKNOWN:
        config.state = state
    return config
