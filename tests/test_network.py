"""Tests for sandbox network environment variables."""

import pytest

from sandpit.network import DEFAULT_PROXY_PORT, build_network_env


class TestNetworkEnv:

    def test_no_proxy_means_no_network(self):
        assert build_network_env(None) == {"SANDPIT_NETWORK_MODE": "none"}

    def test_proxy_only(self):
        env = build_network_env({"ip": "172.17.0.1", "port": 8080})
        assert env == {
            "SANDPIT_NETWORK_MODE": "proxy_only",
            "SANDPIT_PROXY_IP": "172.17.0.1",
            "SANDPIT_PROXY_PORT": "8080",
        }

    def test_default_port(self):
        env = build_network_env({"ip": "10.0.0.2"})
        assert env["SANDPIT_PROXY_PORT"] == str(DEFAULT_PROXY_PORT) == "4000"

    def test_ip_required(self):
        with pytest.raises(ValueError, match="ip"):
            build_network_env({"port": 4000})
