import socket
from types import SimpleNamespace

import pytest

from dcompose.UTILS import net_info as net_info_module
from dcompose.UTILS.net_info import NetInfo


class TestHostRoutableIp:
    """Tests for NetInfo.host_routable_ip."""

    def test_longest_prefix_wins(self):
        info = NetInfo("unix:///var/run/docker.sock", ["127.0.0.1", "192.168.1.20", "192.168.99.1"])
        assert info.host_routable_ip("192.168.99.100") == "192.168.99.1"

    def test_first_best_match_wins_ties(self):
        info = NetInfo("unix:///var/run/docker.sock", ["10.0.0.1", "10.0.0.2"])
        assert info.host_routable_ip("10.0.0.9") == "10.0.0.1"

    def test_no_interfaces(self):
        info = NetInfo("unix:///var/run/docker.sock", [])
        assert info.host_routable_ip("10.0.0.9") == ""

    def test_nothing_in_common(self):
        info = NetInfo("unix:///var/run/docker.sock", ["127.0.0.1"])
        assert info.host_routable_ip("8.8.8.8") == ""

    def test_defaults_to_docker_host(self, monkeypatch):
        info = NetInfo("tcp://192.168.99.100:2376", ["127.0.0.1", "192.168.99.1"])
        monkeypatch.setattr(info, "docker_routable_ip", lambda: "192.168.99.100")
        assert info.host_routable_ip() == "192.168.99.1"


class TestDockerRoutableIp:
    """Tests for NetInfo.docker_routable_ip."""

    @pytest.fixture
    def lookups(self, monkeypatch):
        calls = []

        def fake_getaddrinfo(host, port, family, type):
            calls.append((host, port, family, type))
            return [(socket.AF_INET, socket.SOCK_STREAM, 6, "", ("10.1.2.3", port))]

        monkeypatch.setattr(net_info_module.socket, "getaddrinfo", fake_getaddrinfo)
        return calls

    def test_tcp(self, lookups):
        assert NetInfo("tcp://docker.example.com:2375", []).docker_routable_ip() == "10.1.2.3"
        assert lookups == [("docker.example.com", 2375, socket.AF_INET, socket.SOCK_STREAM)]

    def test_default_port(self, lookups):
        NetInfo("https://docker.example.com", []).docker_routable_ip()
        assert lookups[0][:2] == ("docker.example.com", 2376)

    def test_socket_means_localhost(self, lookups):
        NetInfo("unix:///var/run/docker.sock", []).docker_routable_ip()
        assert lookups[0][:2] == ("localhost", 2376)

    def test_unset_means_localhost(self, lookups, monkeypatch):
        monkeypatch.delenv("DOCKER_HOST", raising=False)
        NetInfo(my_ips=[]).docker_routable_ip()
        assert lookups[0][:2] == ("localhost", 2376)

    def test_nothing_resolves(self, monkeypatch):
        monkeypatch.setattr(net_info_module.socket, "getaddrinfo", lambda *args: [])
        assert NetInfo("tcp://nowhere:2376", []).docker_routable_ip() is None

    def test_unresolvable_name(self, monkeypatch):
        def fail(*args):
            raise socket.gaierror(socket.EAI_NONAME, "Name or service not known")

        monkeypatch.setattr(net_info_module.socket, "getaddrinfo", fail)
        assert NetInfo("tcp://no-such-host.invalid:2376", []).docker_routable_ip() is None


def test_ipv4_interfaces(monkeypatch):
    addrs = {
        "lo": [SimpleNamespace(family=socket.AF_INET, address="127.0.0.1"),
               SimpleNamespace(family=socket.AF_INET6, address="::1")],
        "eth0": [SimpleNamespace(family=socket.AF_INET, address="10.0.0.4")],
    }
    monkeypatch.setattr(net_info_module.psutil, "net_if_addrs", lambda: addrs)
    assert NetInfo.ipv4_interfaces() == ["127.0.0.1", "10.0.0.4"]
