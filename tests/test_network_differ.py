"""Tests for whole-line network interface diffing."""
from pvelxc.core.differ import networks_delta
from pvelxc.core.network_differ import diff_network, diff_networks, network_create_line
from pvelxc.models.network import LxcIPv4, LxcIPv6, LxcNetwork
from pvelxc.services.proxmox.decoder import decode_network


def current_interface(line="name=eth0,bridge=vmbr0,hwaddr=BC:24:11:AA:BB:CC,ip=10.0.0.5/24,gw=10.0.0.1,tag=20"):
    return decode_network("net0", line)


class TestMacCase:

    def test_same_mac_other_case_keeps_stored_casing(self):
        current = current_interface(line="name=eth0,bridge=vmbr0,hwaddr=bc:24:11:aa:bb:cc")
        change = diff_network(0, LxcNetwork(mac="BC:24:11:AA:BB:CC", firewall=True), current)
        assert change.line == "name=eth0,bridge=vmbr0,firewall=1,hwaddr=bc:24:11:aa:bb:cc"

    def test_same_mac_alone_is_no_change(self):
        assert diff_network(0, LxcNetwork(mac="bc:24:11:aa:bb:cc"), current_interface()) is None

    def test_new_mac_is_upper_cased(self):
        change = diff_network(0, LxcNetwork(mac="bc:24:11:00:00:01"), current_interface())
        assert "hwaddr=BC:24:11:00:00:01" in change.line


class TestFullLine:

    def test_omitted_fields_inherited(self):
        change = diff_network(0, LxcNetwork(bridge="vmbr1"), current_interface())
        assert change.line == "name=eth0,bridge=vmbr1,ip=10.0.0.5/24,gw=10.0.0.1,hwaddr=BC:24:11:AA:BB:CC,tag=20"

    def test_switch_to_dhcp_drops_static_address(self):
        change = diff_network(0, LxcNetwork(ipv4=LxcIPv4(dhcp=True)), current_interface())
        assert ",ip=dhcp," in change.line
        assert "gw=" not in change.line

    def test_add_ipv6(self):
        change = diff_network(0, LxcNetwork(ipv6=LxcIPv6(slaac=True)), current_interface())
        assert change.line.endswith("ip6=auto,hwaddr=BC:24:11:AA:BB:CC,tag=20")

    def test_rate_and_trunks(self):
        line = network_create_line(LxcNetwork(name="eth1", bridge="vmbr0", rate_kbps=1500, tagged_vlans=[30, 10, 30]))
        assert line == "name=eth1,bridge=vmbr0,rate=1.5,trunks=10;30"


class TestSlots:

    def test_delete_existing_slot(self):
        change = diff_network(0, LxcNetwork(delete=True), current_interface())
        assert change.delete is True
        assert change.key == "net0"

    def test_delete_absent_slot_is_noop(self):
        assert diff_network(3, LxcNetwork(delete=True), None) is None

    def test_new_slot_uses_create_line(self):
        changes = diff_networks({1: LxcNetwork(name="eth1", bridge="vmbr1", connected=False)}, {0: current_interface()})
        assert len(changes) == 1
        assert changes[0].line == "name=eth1,bridge=vmbr1,link_down=1"

    def test_several_deletes_accumulate(self):
        current = {0: current_interface(), 1: current_interface("name=eth1,bridge=vmbr1")}
        delta = networks_delta({0: LxcNetwork(delete=True), 1: LxcNetwork(delete=True)}, current)
        assert delta.to_params() == {"delete": "net0,net1"}
