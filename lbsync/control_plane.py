from __future__ import annotations

import httpx

from .models import HealthCheckPolicy, ServerSpec


class ControlPlaneError(Exception):
    def __init__(self, operation: str, message: str, status_code: int | None = None):
        super().__init__(message)
        self.operation = operation
        self.status_code = status_code


class ConnectivityError(ControlPlaneError):
    pass


class RegistrationError(ControlPlaneError):
    pass


class ConfigurationError(ControlPlaneError):
    pass


def _describe(exc: Exception) -> tuple[str, int | None]:
    if isinstance(exc, httpx.HTTPStatusError):
        body = exc.response.text.strip()[:200]
        msg = f"HTTP {exc.response.status_code}"
        return (f"{msg}: {body}" if body else msg), exc.response.status_code
    return f"{type(exc).__name__}: {exc}", None


class ControlPlaneClient:
    """Single-attempt operations against the proxy's administrative API.

    Nothing here retries; callers decide what to repeat.
    """

    def __init__(self, http: httpx.Client, credential: str, owns_http: bool = False):
        self._http = http
        self._headers = {"X-Api-Key": credential}
        self._owns_http = owns_http

    def _call(self, method: str, path: str, payload: dict | None = None) -> httpx.Response:
        resp = self._http.request(method, path, json=payload, headers=self._headers)
        resp.raise_for_status()
        return resp

    def _attempt(self, err_cls: type[ControlPlaneError], operation: str, method: str, path: str, payload=None):
        try:
            return self._call(method, path, payload)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            msg, status = _describe(e)
            raise err_cls(operation, f"{operation} failed: {msg}", status_code=status) from e

    def ping(self) -> None:
        self._attempt(ConnectivityError, "ping", "GET", "/v1/ping")

    def register_server(self, spec: ServerSpec, health_check: HealthCheckPolicy) -> None:
        payload: dict[str, object] = {
            "name": spec.name,
            "address": spec.address,
            "port": spec.port,
            "weight": spec.weight,
            "check": health_check.enabled,
        }
        payload.update(health_check.server_fields())
        self._attempt(RegistrationError, f"add server '{spec.name}'", "POST", "/v1/servers", payload)

    def set_algorithm(self, name: str) -> None:
        self._attempt(ConfigurationError, "set algorithm", "PUT", "/v1/algorithm", {"algorithm": name})

    def set_key_value(self, key: str, value: str) -> None:
        self._attempt(ConfigurationError, f"set '{key}'", "PUT", "/v1/config", {"key": key, "value": value})

    def close(self) -> None:
        if self._owns_http:
            self._http.close()

    def __enter__(self) -> "ControlPlaneClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


def connect(
    endpoint: str,
    credential: str,
    timeout_s: float = 10.0,
    http: httpx.Client | None = None,
) -> ControlPlaneClient:
    """Build a client and verify the control plane answers a ping.

    Raises ConnectivityError if the probe fails. `http` lets callers supply a
    preconfigured client (its base URL is used as-is).
    """
    owns = http is None
    if http is None:
        try:
            http = httpx.Client(base_url=endpoint, timeout=timeout_s, follow_redirects=False)
        except (ValueError, httpx.InvalidURL) as e:
            raise ConnectivityError("ping", f"Invalid control-plane endpoint '{endpoint}': {e}") from e
    client = ControlPlaneClient(http, credential, owns_http=owns)
    try:
        client.ping()
    except ConnectivityError:
        client.close()
        raise
    return client
