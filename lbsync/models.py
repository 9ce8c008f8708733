from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class ServerSpec(_Frozen):
    name: str = Field(..., description="Backend server name (unique per run, not enforced)")
    address: str = Field(..., alias="ip", description="IP address or hostname")
    port: int = Field(..., ge=1, le=65535)
    weight: int = Field(0, ge=0, description="Relative traffic share")


class HealthCheckPolicy(_Frozen):
    enabled: bool = False
    interval_s: int = Field(0, alias="interval", ge=0, description="Seconds between checks")
    fall: int = Field(0, ge=0, description="Consecutive failures before marking down")
    rise: int = Field(0, ge=0, description="Consecutive successes before marking up")

    def server_fields(self) -> dict[str, object]:
        """Health-check fields for an add-server call.

        Empty when checks are disabled: the fields are omitted, not zeroed.
        """
        if not self.enabled:
            return {}
        return {"inter": f"{self.interval_s}s", "fall": self.fall, "rise": self.rise}


class RetryPolicy(_Frozen):
    retries: int = Field(0, ge=0, description="Proxy dispatch retries per request")
    redispatch: bool = False

    def key_values(self) -> list[tuple[str, str]]:
        return [
            ("retries", str(self.retries)),
            ("option redispatch", "on" if self.redispatch else "off"),
        ]


class DesiredConfiguration(_Frozen):
    endpoint: str = Field(..., alias="haproxy_endpoint", description="Control-plane base URL")
    credential: str = Field(..., alias="api_key", repr=False)
    algorithm: str = Field(..., alias="load_balancing_algorithm", description="Passed through verbatim")
    servers: tuple[ServerSpec, ...] = Field((), alias="backends")
    health_check: HealthCheckPolicy = Field(default_factory=HealthCheckPolicy)
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)
