"""
Network environment variables for sandboxed containers.

Adapters inject these into the sandbox so in-container tooling knows whether
it has no network at all or may only talk to an egress proxy.
"""

from typing import Any, Dict, Mapping, Optional

DEFAULT_PROXY_PORT = 4000


def build_network_env(proxy: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """
    Build network environment variables from a proxy config.

    Examples:
        build_network_env(None)
        # {"SANDPIT_NETWORK_MODE": "none"}

        build_network_env({"ip": "172.17.0.1", "port": 4000})
        # {"SANDPIT_NETWORK_MODE": "proxy_only",
        #  "SANDPIT_PROXY_IP": "172.17.0.1",
        #  "SANDPIT_PROXY_PORT": "4000"}
    """
    if proxy is None:
        return {"SANDPIT_NETWORK_MODE": "none"}

    if "ip" not in proxy:
        raise ValueError("proxy config requires an 'ip'")

    return {
        "SANDPIT_NETWORK_MODE": "proxy_only",
        "SANDPIT_PROXY_IP": str(proxy["ip"]),
        "SANDPIT_PROXY_PORT": str(proxy.get("port", DEFAULT_PROXY_PORT)),
    }
