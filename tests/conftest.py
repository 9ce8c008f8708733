import sys

import pytest

# Ensure project root is importable (so `import cli` works without installing)
import os as _os
_project_root = _os.path.dirname(_os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from lbsync.control_plane import ConfigurationError, ConnectivityError, RegistrationError  # noqa: E402
from lbsync.loader import parse_config  # noqa: E402

ALWAYS = -1


class FakeControlPlane:
    """In-memory control plane that records every call.

    server_failures: name -> number of failing attempts before success
    (ALWAYS = never succeeds).
    """

    def __init__(self, reachable=True, server_failures=None, fail_algorithm=False, fail_keys=()):
        self.reachable = reachable
        self.server_failures = dict(server_failures or {})
        self.fail_algorithm = fail_algorithm
        self.fail_keys = set(fail_keys)
        self.calls = []
        self.registered = []
        self.closed = False
        self._attempts = {}

    def connect(self, endpoint, credential, timeout_s=10.0):
        self.calls.append(("connect", endpoint))
        if not self.reachable:
            raise ConnectivityError("ping", f"ping failed: cannot reach {endpoint}")
        return self

    def register_server(self, spec, health_check):
        fields = {"name": spec.name, "check": health_check.enabled, **health_check.server_fields()}
        self.calls.append(("register_server", fields))
        n = self._attempts.get(spec.name, 0) + 1
        self._attempts[spec.name] = n
        budget = self.server_failures.get(spec.name, 0)
        if budget == ALWAYS or n <= budget:
            raise RegistrationError(f"add server '{spec.name}'", f"add server '{spec.name}' failed: HTTP 503", 503)
        self.registered.append(spec.name)

    def set_algorithm(self, name):
        self.calls.append(("set_algorithm", name))
        if self.fail_algorithm:
            raise ConfigurationError("set algorithm", "set algorithm failed: HTTP 400", 400)

    def set_key_value(self, key, value):
        self.calls.append(("set_key_value", key, value))
        if key in self.fail_keys:
            raise ConfigurationError(f"set '{key}'", f"set '{key}' failed: HTTP 500", 500)

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def ops(self):
        return [c[0] for c in self.calls]

    def register_calls(self, name=None):
        return [c[1] for c in self.calls if c[0] == "register_server" and (name is None or c[1]["name"] == name)]


@pytest.fixture
def raw_config():
    return {
        "haproxy_endpoint": "http://haproxy.local:5555",
        "api_key": "s3cret",
        "load_balancing_algorithm": "roundrobin",
        "backends": [
            {"name": "web1", "ip": "10.0.0.1", "port": 8080, "weight": 10},
            {"name": "web2", "ip": "10.0.0.2", "port": 8080, "weight": 20},
        ],
        "health_check": {"enabled": True, "interval": 5, "fall": 3, "rise": 2},
        "retry_policy": {"retries": 3, "redispatch": True},
    }


@pytest.fixture
def config(raw_config):
    return parse_config(raw_config)


@pytest.fixture
def fake():
    return FakeControlPlane()
