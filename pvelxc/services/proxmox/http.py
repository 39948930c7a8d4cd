"""REST implementation of GuestApi on top of requests."""
import time
from typing import Any, Dict, List, Optional

import requests

from pvelxc.core.config import PveSettings, get_settings
from pvelxc.core.errors import RemoteApiError
from pvelxc.core.logger import get_logger
from pvelxc.core.retry import retry
from pvelxc.models.guest import GuestRef, PowerState
from pvelxc.services.proxmox.api import GuestApi
from pvelxc.services.proxmox.mock import MockGuestApi

logger = get_logger(__name__)

TASK_POLL_INTERVAL = 1.0


class ProxmoxHttpApi(GuestApi):
    """Talks to /api2/json with an API token.

    Reads are retried on connection errors and timeouts. Writes are sent
    once; task-backed writes block until the task stopped and raise when
    its exit status is not OK.
    """

    def __init__(self, settings: Optional[PveSettings] = None):
        self.settings = settings or get_settings()
        self.base_url = self.settings.host.rstrip("/") + "/api2/json"
        self.session = requests.Session()
        self.session.verify = self.settings.verify_ssl
        self.session.headers.update({
            "Authorization": f"PVEAPIToken={self.settings.token_id}={self.settings.token_secret}",
        })

    # -- transport ------------------------------------------------------

    def _send(self, method: str, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        url = self.base_url + path
        if method == "GET":
            response = self.session.get(url, params=params, timeout=self.settings.timeout)
        else:
            response = self.session.request(method, url, data=params, timeout=self.settings.timeout)

        if not response.ok:
            raise RemoteApiError(
                f"{method} {path} failed: HTTP {response.status_code} {response.reason}",
                status_code=response.status_code,
                body=response.text,
            )
        return response.json().get("data")

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        fetch = retry(
            max_attempts=self.settings.retry_attempts,
            delay=1.0,
            exceptions=(requests.ConnectionError, requests.Timeout),
        )(self._send)
        try:
            return fetch("GET", path, params)
        except requests.RequestException as e:
            raise RemoteApiError(f"GET {path} failed: {e}") from e

    def _write(self, method: str, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        logger.debug(f"{method} {path} {params or {}}")
        try:
            return self._send(method, path, params)
        except requests.RequestException as e:
            raise RemoteApiError(f"{method} {path} failed: {e}") from e

    def wait_for_task(self, node: str, upid: str) -> str:
        """Poll a task until it stopped and return its UPID."""
        deadline = time.monotonic() + self.settings.task_timeout
        while True:
            status = self._get(f"/nodes/{node}/tasks/{upid}/status") or {}
            if status.get("status") == "stopped":
                exit_status = status.get("exitstatus", "")
                if exit_status != "OK":
                    raise RemoteApiError(f"task {upid} failed: {exit_status}")
                return upid
            if time.monotonic() > deadline:
                raise RemoteApiError(f"task {upid} did not finish within {self.settings.task_timeout}s")
            time.sleep(TASK_POLL_INTERVAL)

    def _task(self, node: str, method: str, path: str, params: Optional[Dict[str, Any]] = None) -> str:
        upid = self._write(method, path, params)
        if not upid:
            return ""
        return self.wait_for_task(node, upid)

    @staticmethod
    def _guest_path(ref: GuestRef) -> str:
        return f"/nodes/{ref.node}/lxc/{ref.vmid}"

    # -- GuestApi -------------------------------------------------------

    def read_config(self, ref: GuestRef) -> Dict[str, Any]:
        return self._get(self._guest_path(ref) + "/config") or {}

    def read_status(self, ref: GuestRef) -> PowerState:
        status = self._get(self._guest_path(ref) + "/status/current") or {}
        return PowerState.parse(status.get("status", ""))

    def read_pending(self, ref: GuestRef) -> List[Dict[str, Any]]:
        return self._get(self._guest_path(ref) + "/pending") or []

    def read_pool(self, ref: GuestRef) -> Optional[str]:
        for resource in self._get("/cluster/resources", {"type": "vm"}) or []:
            if resource.get("vmid") == ref.vmid:
                return resource.get("pool") or None
        return None

    def update_config(self, ref: GuestRef, params: Dict[str, Any], digest: Optional[str] = None):
        body = dict(params)
        if digest:
            body["digest"] = digest
        self._write("PUT", self._guest_path(ref) + "/config", body)

    def move_mount(self, ref: GuestRef, volume: str, storage: str, delete_original: bool = True) -> str:
        params = {"volume": volume, "storage": storage}
        if delete_original:
            params["delete"] = "1"
        return self._task(ref.node, "POST", self._guest_path(ref) + "/move_volume", params)

    def resize_mount(self, ref: GuestRef, volume: str, size: str) -> str:
        return self._task(ref.node, "PUT", self._guest_path(ref) + "/resize", {"disk": volume, "size": size})

    def shutdown(self, ref: GuestRef, force: bool = False) -> str:
        params = {"forceStop": "1"} if force else None
        return self._task(ref.node, "POST", self._guest_path(ref) + "/status/shutdown", params)

    def start(self, ref: GuestRef) -> str:
        return self._task(ref.node, "POST", self._guest_path(ref) + "/status/start")

    def reboot(self, ref: GuestRef) -> str:
        return self._task(ref.node, "POST", self._guest_path(ref) + "/status/reboot")

    def next_id(self) -> int:
        return int(self._get("/cluster/nextid"))

    def create_guest(self, node: str, params: Dict[str, Any]) -> str:
        return self._task(node, "POST", f"/nodes/{node}/lxc", params)

    def add_to_pool(self, pool: str, vmid: int, allow_move: bool = False):
        params = {"vms": str(vmid)}
        if allow_move:
            params["allow-move"] = "1"
        self._write("PUT", f"/pools/{pool}", params)

    def remove_from_pool(self, pool: str, vmid: int):
        self._write("PUT", f"/pools/{pool}", {"vms": str(vmid), "delete": "1"})


def build_api(settings: Optional[PveSettings] = None) -> GuestApi:
    """Pick the HTTP API, or the in-memory one when mock mode is on."""
    settings = settings or get_settings()
    if settings.mock:
        logger.info("MOCK: using in-memory guest API")
        return MockGuestApi.with_demo_guest()
    return ProxmoxHttpApi(settings)
