"""Tests for the REST transport with a patched requests session."""
from unittest.mock import MagicMock

import pytest
import requests

from pvelxc.core.config import PveSettings
from pvelxc.core.errors import RemoteApiError
from pvelxc.models.guest import GuestRef, PowerState
from pvelxc.services.proxmox import http
from pvelxc.services.proxmox.http import ProxmoxHttpApi, build_api
from pvelxc.services.proxmox.mock import MockGuestApi

REF = GuestRef(node="pve", vmid=101)


def response(data=None, status_code=200, reason="OK"):
    resp = MagicMock()
    resp.ok = status_code < 400
    resp.status_code = status_code
    resp.reason = reason
    resp.text = "{}"
    resp.json.return_value = {"data": data}
    return resp


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(http.time, "sleep", lambda seconds: None)
    settings = PveSettings(host="https://pve.example:8006/", token_id="root@pam!ci", token_secret="s3cret")
    api = ProxmoxHttpApi(settings)
    api.session.get = MagicMock()
    api.session.request = MagicMock()
    return api


class TestSession:

    def test_token_header(self, client):
        assert client.session.headers["Authorization"] == "PVEAPIToken=root@pam!ci=s3cret"
        assert client.base_url == "https://pve.example:8006/api2/json"


class TestReads:

    def test_read_status(self, client):
        client.session.get.return_value = response({"status": "running"})
        assert client.read_status(REF) == PowerState.RUNNING
        url = client.session.get.call_args[0][0]
        assert url.endswith("/nodes/pve/lxc/101/status/current")

    def test_read_pool(self, client):
        client.session.get.return_value = response([
            {"vmid": 100, "pool": "other"},
            {"vmid": 101, "pool": "lab"},
        ])
        assert client.read_pool(REF) == "lab"

    def test_read_retried_on_connection_error(self, client):
        client.session.get.side_effect = [requests.ConnectionError("reset"), response({"memory": 512})]
        assert client.read_config(REF) == {"memory": 512}
        assert client.session.get.call_count == 2

    def test_read_gives_up(self, client):
        client.session.get.side_effect = requests.ConnectionError("down")
        with pytest.raises(RemoteApiError, match="down"):
            client.read_config(REF)
        assert client.session.get.call_count == 3

    def test_http_error(self, client):
        client.session.get.return_value = response(status_code=403, reason="Forbidden")
        with pytest.raises(RemoteApiError) as exc:
            client.read_config(REF)
        assert exc.value.status_code == 403
        assert client.session.get.call_count == 1


class TestWrites:

    def test_update_sends_digest(self, client):
        client.session.request.return_value = response(None)
        client.update_config(REF, {"memory": 2048}, digest="ab" * 20)
        method, url = client.session.request.call_args[0]
        assert method == "PUT"
        assert url.endswith("/nodes/pve/lxc/101/config")
        assert client.session.request.call_args[1]["data"] == {"memory": 2048, "digest": "ab" * 20}

    def test_update_conflict_not_retried(self, client):
        client.session.request.return_value = response(status_code=500, reason="detected modified configuration")
        with pytest.raises(RemoteApiError) as exc:
            client.update_config(REF, {"memory": 2048}, digest="ab" * 20)
        assert exc.value.status_code == 500
        assert client.session.request.call_count == 1

    def test_move_waits_for_task(self, client):
        upid = "UPID:pve:0001:move_volume:101:root@pam:"
        client.session.request.return_value = response(upid)
        client.session.get.side_effect = [
            response({"status": "running"}),
            response({"status": "stopped", "exitstatus": "OK"}),
        ]
        assert client.move_mount(REF, "rootfs", "local-zfs") == upid
        assert client.session.request.call_args[1]["data"] == {"volume": "rootfs", "storage": "local-zfs", "delete": "1"}
        assert client.session.get.call_count == 2
        assert client.session.get.call_args[0][0].endswith(f"/nodes/pve/tasks/{upid}/status")

    def test_failed_task(self, client):
        client.session.request.return_value = response("UPID:pve:0002:vzstart:101:root@pam:")
        client.session.get.return_value = response({"status": "stopped", "exitstatus": "startup for container '101' failed"})
        with pytest.raises(RemoteApiError, match="failed"):
            client.start(REF)

    def test_forced_shutdown(self, client):
        client.session.request.return_value = response(None)
        client.shutdown(REF, force=True)
        assert client.session.request.call_args[1]["data"] == {"forceStop": "1"}

    def test_pool_move(self, client):
        client.session.request.return_value = response(None)
        client.add_to_pool("ops", 101, allow_move=True)
        method, url = client.session.request.call_args[0]
        assert url.endswith("/pools/ops")
        assert client.session.request.call_args[1]["data"] == {"vms": "101", "allow-move": "1"}


class TestBuildApi:

    def test_mock_mode(self):
        assert isinstance(build_api(PveSettings(mock=True)), MockGuestApi)

    def test_http_mode(self):
        assert isinstance(build_api(PveSettings()), ProxmoxHttpApi)
