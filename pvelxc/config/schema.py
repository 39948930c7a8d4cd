"""Schema of the desired-state YAML file.

The file mirrors ConfigLXC. Every key is optional: a missing key leaves
the live value alone, an empty value ("" / 0 / []) removes it.

    guest:
      node: pve
      id: 101
    allow_restart: true
    config:
      name: web01
      state: running
      memory: 2048
      cpu: {cores: 2}
      boot_mount: {storage: local-zfs, size: 8G}
      mounts:
        0: {data: {storage: local-zfs, size: 16G, path: /srv/data}}
        1: {bind: {host_path: /tank/media, guest_path: /media, read_only: true}}
      networks:
        0: {name: eth0, bridge: vmbr0, ipv4: {dhcp: true}}
"""
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from pvelxc.core.errors import ConfigFileError
from pvelxc.models.cpu import LxcCpu
from pvelxc.models.features import LxcFeatures, PrivilegedFeatures, UnprivilegedFeatures
from pvelxc.models.guest import GuestDNS, GuestRef, PowerState, TriBool
from pvelxc.models.lxc import ConfigLXC, LxcCreateOptions, LxcTemplate
from pvelxc.models.mounts import BindMount, BootMount, BootMountOptions, DataMount, Mount, MountOptions
from pvelxc.models.network import LxcIPv4, LxcIPv6, LxcNetwork
from pvelxc.models.size import parse_size

SizeValue = Union[str, int, float]


def _size_kib(value: Optional[SizeValue]) -> Optional[int]:
    if value is None:
        return None
    return parse_size(str(value))


def _tribool(value: Optional[bool]) -> Optional[TriBool]:
    if value is None:
        return None
    return TriBool.TRUE if value else TriBool.FALSE


class _Strict(BaseModel):
    model_config = ConfigDict(extra='forbid')


class CpuModel(_Strict):
    cores: Optional[int] = Field(None, ge=0)
    limit: Optional[float] = Field(None, ge=0)
    units: Optional[int] = Field(None, ge=0)

    def to_model(self) -> LxcCpu:
        return LxcCpu(cores=self.cores, limit=self.limit, units=self.units)


class DnsModel(_Strict):
    nameservers: Optional[List[str]] = None
    search_domain: Optional[str] = None

    def to_model(self) -> GuestDNS:
        return GuestDNS(nameservers=self.nameservers, search_domain=self.search_domain)


class PrivilegedFeaturesModel(_Strict):
    create_device_nodes: Optional[bool] = None
    fuse: Optional[bool] = None
    nfs: Optional[bool] = None
    nesting: Optional[bool] = None
    smb: Optional[bool] = None


class UnprivilegedFeaturesModel(_Strict):
    create_device_nodes: Optional[bool] = None
    fuse: Optional[bool] = None
    keyctl: Optional[bool] = None
    nesting: Optional[bool] = None


class FeaturesModel(_Strict):
    privileged: Optional[PrivilegedFeaturesModel] = None
    unprivileged: Optional[UnprivilegedFeaturesModel] = None

    def to_model(self) -> LxcFeatures:
        features = LxcFeatures()
        if self.privileged is not None:
            features.privileged = PrivilegedFeatures(**self.privileged.model_dump())
        if self.unprivileged is not None:
            features.unprivileged = UnprivilegedFeatures(**self.unprivileged.model_dump())
        return features


class MountOptionsModel(_Strict):
    discard: Optional[bool] = None
    lazy_time: Optional[bool] = None
    no_atime: Optional[bool] = None
    no_device: Optional[bool] = None
    no_exec: Optional[bool] = None
    no_suid: Optional[bool] = None

    def to_model(self) -> MountOptions:
        return MountOptions(**self.model_dump())

    def to_boot_model(self) -> BootMountOptions:
        if self.no_device is not None or self.no_exec is not None:
            raise ValueError("no_device and no_exec are not supported on the boot mount")
        return BootMountOptions(discard=self.discard, lazy_time=self.lazy_time,
                                no_atime=self.no_atime, no_suid=self.no_suid)


class BootMountModel(_Strict):
    acl: Optional[bool] = None
    options: Optional[MountOptionsModel] = None
    quota: Optional[bool] = None
    replicate: Optional[bool] = None
    size: Optional[SizeValue] = None
    storage: Optional[str] = None

    @field_validator('size')
    @classmethod
    def validate_size(cls, v):
        """Sizes look like '8G', '512M' or a bare number of GiB."""
        if v is not None:
            parse_size(str(v))
        return v

    def to_model(self) -> BootMount:
        return BootMount(
            acl=_tribool(self.acl),
            options=self.options.to_boot_model() if self.options is not None else None,
            quota=self.quota,
            replicate=self.replicate,
            size_kib=_size_kib(self.size),
            storage=self.storage,
        )


class BindMountModel(_Strict):
    guest_path: Optional[str] = None
    host_path: Optional[str] = None
    options: Optional[MountOptionsModel] = None
    read_only: Optional[bool] = None
    replicate: Optional[bool] = None

    def to_model(self) -> BindMount:
        return BindMount(
            guest_path=self.guest_path,
            host_path=self.host_path,
            options=self.options.to_model() if self.options is not None else None,
            read_only=self.read_only,
            replicate=self.replicate,
        )


class DataMountModel(_Strict):
    acl: Optional[bool] = None
    backup: Optional[bool] = None
    options: Optional[MountOptionsModel] = None
    path: Optional[str] = None
    quota: Optional[bool] = None
    read_only: Optional[bool] = None
    replicate: Optional[bool] = None
    size: Optional[SizeValue] = None
    storage: Optional[str] = None

    @field_validator('size')
    @classmethod
    def validate_size(cls, v):
        if v is not None:
            parse_size(str(v))
        return v

    def to_model(self) -> DataMount:
        return DataMount(
            acl=_tribool(self.acl),
            backup=self.backup,
            options=self.options.to_model() if self.options is not None else None,
            path=self.path,
            quota=self.quota,
            read_only=self.read_only,
            replicate=self.replicate,
            size_kib=_size_kib(self.size),
            storage=self.storage,
        )


class MountModel(_Strict):
    """One mount slot. Bind and data are mutually exclusive; the
    validator reports that, so both are accepted here."""

    bind: Optional[BindMountModel] = None
    data: Optional[DataMountModel] = None
    detach: bool = False

    def to_model(self) -> Mount:
        return Mount(
            bind=self.bind.to_model() if self.bind is not None else None,
            data=self.data.to_model() if self.data is not None else None,
            detach=self.detach,
        )


class IPv4Model(_Strict):
    address: Optional[str] = None
    gateway: Optional[str] = None
    dhcp: bool = False
    manual: bool = False


class IPv6Model(_Strict):
    address: Optional[str] = None
    gateway: Optional[str] = None
    dhcp: bool = False
    slaac: bool = False
    manual: bool = False


class NetworkModel(_Strict):
    bridge: Optional[str] = None
    connected: Optional[bool] = None
    firewall: Optional[bool] = None
    ipv4: Optional[IPv4Model] = None
    ipv6: Optional[IPv6Model] = None
    mac: Optional[str] = None
    mtu: Optional[int] = None
    name: Optional[str] = None
    native_vlan: Optional[int] = None
    rate_kbps: Optional[int] = None
    tagged_vlans: Optional[List[int]] = None
    delete: bool = False

    def to_model(self) -> LxcNetwork:
        data = self.model_dump(exclude={'ipv4', 'ipv6'})
        return LxcNetwork(
            ipv4=LxcIPv4(**self.ipv4.model_dump()) if self.ipv4 is not None else None,
            ipv6=LxcIPv6(**self.ipv6.model_dump()) if self.ipv6 is not None else None,
            **data,
        )


class TemplateModel(_Strict):
    storage: str
    file: str


class CreateOptionsModel(_Strict):
    template: Optional[TemplateModel] = None
    password: Optional[str] = None
    ssh_public_keys: List[str] = Field(default_factory=list)

    def to_model(self) -> LxcCreateOptions:
        template = None
        if self.template is not None:
            template = LxcTemplate(storage=self.template.storage, file=self.template.file)
        return LxcCreateOptions(os_template=template, user_password=self.password,
                                public_ssh_keys=list(self.ssh_public_keys))


class LxcConfigModel(_Strict):
    """The ``config:`` section of a guest file."""

    boot_mount: Optional[BootMountModel] = None
    cpu: Optional[CpuModel] = None
    create: Optional[CreateOptionsModel] = None
    description: Optional[str] = None
    dns: Optional[DnsModel] = None
    features: Optional[FeaturesModel] = None
    memory: Optional[int] = None
    mounts: Optional[Dict[int, MountModel]] = None
    name: Optional[str] = None
    networks: Optional[Dict[int, NetworkModel]] = None
    pool: Optional[str] = None
    privileged: Optional[bool] = None
    protection: Optional[bool] = None
    state: Optional[Literal["running", "stopped"]] = None
    swap: Optional[int] = None
    tags: Optional[List[str]] = None

    def to_config(self) -> ConfigLXC:
        return ConfigLXC(
            boot_mount=self.boot_mount.to_model() if self.boot_mount is not None else None,
            cpu=self.cpu.to_model() if self.cpu is not None else None,
            create_options=self.create.to_model() if self.create is not None else None,
            description=self.description,
            dns=self.dns.to_model() if self.dns is not None else None,
            features=self.features.to_model() if self.features is not None else None,
            memory=self.memory,
            mounts={slot: m.to_model() for slot, m in self.mounts.items()} if self.mounts is not None else None,
            name=self.name,
            networks={slot: n.to_model() for slot, n in self.networks.items()} if self.networks is not None else None,
            pool=self.pool,
            privileged=self.privileged,
            protection=self.protection,
            state=PowerState.parse(self.state) if self.state is not None else None,
            swap=self.swap,
            tags=self.tags,
        )


class GuestTarget(_Strict):
    node: str
    id: Optional[int] = None


class GuestFile(BaseModel):
    """Top level of a desired-state file."""

    model_config = ConfigDict(
        extra='forbid',
        json_schema_extra={
            "example": {
                "guest": {"node": "pve", "id": 101},
                "allow_restart": True,
                "config": {
                    "name": "web01",
                    "state": "running",
                    "memory": 2048,
                    "cpu": {"cores": 2},
                    "boot_mount": {"storage": "local-zfs", "size": "8G"},
                },
            }
        }
    )

    guest: GuestTarget
    allow_restart: bool = False
    config: LxcConfigModel = Field(default_factory=LxcConfigModel)

    @model_validator(mode='after')
    def validate_boot_options(self) -> 'GuestFile':
        """Boot mount options are a subset of mount options."""
        boot = self.config.boot_mount
        if boot is not None and boot.options is not None:
            boot.options.to_boot_model()
        return self

    def ref(self) -> GuestRef:
        if self.guest.id is None:
            raise ConfigFileError("guest.id is required to address an existing guest")
        return GuestRef(node=self.guest.node, vmid=self.guest.id)

    def to_config(self) -> ConfigLXC:
        config = self.config.to_config()
        config.node = self.guest.node
        config.id = self.guest.id
        return config
