"""In-memory GuestApi used by tests and by the CLI in mock mode."""
import hashlib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pvelxc.core.errors import RemoteApiError
from pvelxc.core.logger import get_logger
from pvelxc.models.guest import GuestRef, PowerState
from pvelxc.models.lxc import KEY_DELETE, KEY_DIGEST, KEY_GUEST_ID, KEY_POOL, KEY_ROOTFS
from pvelxc.models.mounts import MOUNT_PREFIX
from pvelxc.services.proxmox.api import GuestApi

logger = get_logger(__name__)

# create-only keys that never show up in the stored configuration
_CREATE_ONLY = ("ostemplate", "password", "ssh-public-keys", KEY_POOL, KEY_GUEST_ID)


@dataclass
class MockCall:
    name: str
    vmid: Optional[int] = None
    params: Dict[str, Any] = field(default_factory=dict)


def compute_digest(config: Dict[str, Any]) -> str:
    body = "\n".join(f"{key}: {config[key]}" for key in sorted(config) if key != KEY_DIGEST)
    return hashlib.sha1(body.encode()).hexdigest()


class MockGuestApi(GuestApi):
    """Keeps guests as raw config maps and records every call made.

    Behaves like the real endpoints where it matters to the reconciler:
    stale digests are rejected, volumes only move while the guest is
    stopped and reboots apply pending values.
    """

    def __init__(self):
        self.configs: Dict[int, Dict[str, Any]] = {}
        self.states: Dict[int, PowerState] = {}
        self.pending: Dict[int, List[Dict[str, Any]]] = {}
        self.pools: Dict[int, str] = {}
        self.calls: List[MockCall] = []
        self.failures: Dict[str, RemoteApiError] = {}
        self._next_id = 100

    # -- test helpers ---------------------------------------------------

    def add_guest(self, vmid: int, config: Dict[str, Any],
                  state: PowerState = PowerState.STOPPED, pool: Optional[str] = None) -> GuestRef:
        stored = dict(config)
        stored[KEY_DIGEST] = compute_digest(stored)
        self.configs[vmid] = stored
        self.states[vmid] = state
        self.pending[vmid] = []
        if pool:
            self.pools[vmid] = pool
        self._next_id = max(self._next_id, vmid + 1)
        return GuestRef(node="pve", vmid=vmid, pool=pool or "")

    def fail_on(self, call_name: str, error: Optional[RemoteApiError] = None):
        """Make the next call named ``call_name`` raise."""
        self.failures[call_name] = error or RemoteApiError(f"{call_name} failed", status_code=500)

    def call_names(self) -> List[str]:
        return [call.name for call in self.calls]

    def calls_named(self, name: str) -> List[MockCall]:
        return [call for call in self.calls if call.name == name]

    @classmethod
    def with_demo_guest(cls) -> "MockGuestApi":
        api = cls()
        api.add_guest(100, {
            "arch": "amd64",
            "cores": 2,
            "hostname": "demo",
            "memory": 1024,
            "swap": 512,
            "ostype": "debian",
            "rootfs": "local-zfs:subvol-100-disk-0,size=8G",
            "mp0": "local-zfs:subvol-100-disk-1,mp=/srv/data,backup=1,size=16G",
            "net0": "name=eth0,bridge=vmbr0,firewall=1,hwaddr=BC:24:11:2A:7F:01,ip=dhcp,type=veth",
            "unprivileged": 1,
            "tags": "demo;mock",
        }, state=PowerState.RUNNING, pool="lab")
        return api

    # -- internals ------------------------------------------------------

    def _record(self, name: str, vmid: Optional[int] = None, **params):
        self.calls.append(MockCall(name=name, vmid=vmid, params=params))
        if name in self.failures:
            raise self.failures.pop(name)

    def _config(self, ref: GuestRef) -> Dict[str, Any]:
        if ref.vmid not in self.configs:
            raise RemoteApiError(f"Configuration file 'nodes/{ref.node}/lxc/{ref.vmid}.conf' does not exist",
                                 status_code=500)
        return self.configs[ref.vmid]

    def _touch(self, vmid: int):
        self.configs[vmid][KEY_DIGEST] = compute_digest(self.configs[vmid])

    def _task(self, ref: GuestRef, action: str) -> str:
        return f"UPID:{ref.node}:mock:{action}:{ref.vmid}:OK"

    # -- GuestApi -------------------------------------------------------

    def read_config(self, ref: GuestRef) -> Dict[str, Any]:
        self._record("read_config", ref.vmid)
        return dict(self._config(ref))

    def read_status(self, ref: GuestRef) -> PowerState:
        self._record("read_status", ref.vmid)
        self._config(ref)
        return self.states[ref.vmid]

    def read_pending(self, ref: GuestRef) -> List[Dict[str, Any]]:
        self._record("read_pending", ref.vmid)
        self._config(ref)
        return list(self.pending[ref.vmid])

    def read_pool(self, ref: GuestRef) -> Optional[str]:
        self._record("read_pool", ref.vmid)
        return self.pools.get(ref.vmid)

    def update_config(self, ref: GuestRef, params: Dict[str, Any], digest: Optional[str] = None):
        self._record("update_config", ref.vmid, digest=digest, **params)
        config = self._config(ref)
        if digest is not None and digest != config[KEY_DIGEST]:
            raise RemoteApiError("detected modified configuration - file changed by other user? Try again.",
                                 status_code=500)
        for key in filter(None, str(params.get(KEY_DELETE, "")).split(",")):
            config.pop(key, None)
        for key, value in params.items():
            if key not in (KEY_DELETE, KEY_DIGEST):
                config[key] = value
        self._touch(ref.vmid)
        logger.debug(f"MOCK: updated {ref} with {params}")

    def move_mount(self, ref: GuestRef, volume: str, storage: str, delete_original: bool = True) -> str:
        self._record("move_mount", ref.vmid, volume=volume, storage=storage, delete=delete_original)
        config = self._config(ref)
        if self.states[ref.vmid] != PowerState.STOPPED:
            raise RemoteApiError("CT is running - unable to move volume", status_code=500)
        line = config[volume]
        _, _, rest = line.partition(":")
        config[volume] = f"{storage}:{rest}"
        self._touch(ref.vmid)
        return self._task(ref, "move_volume")

    def resize_mount(self, ref: GuestRef, volume: str, size: str) -> str:
        self._record("resize_mount", ref.vmid, disk=volume, size=size)
        config = self._config(ref)
        disk, _, rest = config[volume].partition(",")
        settings = [item for item in rest.split(",") if item and not item.startswith("size=")]
        settings.append(f"size={size}")
        config[volume] = ",".join([disk] + settings)
        self._touch(ref.vmid)
        return self._task(ref, "resize")

    def shutdown(self, ref: GuestRef, force: bool = False) -> str:
        self._record("shutdown", ref.vmid, force=force)
        self._config(ref)
        self.states[ref.vmid] = PowerState.STOPPED
        self.pending[ref.vmid] = []
        return self._task(ref, "vzshutdown")

    def start(self, ref: GuestRef) -> str:
        self._record("start", ref.vmid)
        self._config(ref)
        self.states[ref.vmid] = PowerState.RUNNING
        return self._task(ref, "vzstart")

    def reboot(self, ref: GuestRef) -> str:
        self._record("reboot", ref.vmid)
        self._config(ref)
        self.states[ref.vmid] = PowerState.RUNNING
        self.pending[ref.vmid] = []
        return self._task(ref, "vzreboot")

    def next_id(self) -> int:
        self._record("next_id")
        return self._next_id

    def create_guest(self, node: str, params: Dict[str, Any]) -> str:
        vmid = int(params[KEY_GUEST_ID])
        body = {key: value for key, value in params.items() if key != KEY_GUEST_ID}
        self._record("create_guest", vmid, node=node, **body)
        if vmid in self.configs:
            raise RemoteApiError(f"CT {vmid} already exists on node '{node}'", status_code=500)
        config = {key: value for key, value in params.items() if key not in _CREATE_ONLY}
        config[KEY_ROOTFS] = _allocate_volume(params.get(KEY_ROOTFS, ""), vmid, 0)
        disk = 1
        for key in sorted(config):
            if key.startswith(MOUNT_PREFIX) and not str(config[key]).startswith("/"):
                config[key] = _allocate_volume(config[key], vmid, disk)
                disk += 1
        self.add_guest(vmid, config, pool=params.get(KEY_POOL))
        return f"UPID:{node}:mock:vzcreate:{vmid}:OK"

    def add_to_pool(self, pool: str, vmid: int, allow_move: bool = False):
        self._record("add_to_pool", vmid, pool=pool, allow_move=allow_move)
        if vmid in self.pools and self.pools[vmid] != pool and not allow_move:
            raise RemoteApiError(f"VM {vmid} is already a pool member", status_code=500)
        self.pools[vmid] = pool

    def remove_from_pool(self, pool: str, vmid: int):
        self._record("remove_from_pool", vmid, pool=pool)
        if self.pools.get(vmid) == pool:
            del self.pools[vmid]


def _allocate_volume(line: str, vmid: int, disk: int) -> str:
    """Turn 'storage:8,opts' into 'storage:subvol-<id>-disk-<n>,opts,size=8G'."""
    head, _, rest = line.partition(",")
    storage, _, size = head.partition(":")
    settings = [item for item in rest.split(",") if item]
    if size:
        settings.append(f"size={size}G")
    return ",".join([f"{storage}:subvol-{vmid}-disk-{disk}"] + settings)
