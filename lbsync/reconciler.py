from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from . import control_plane
from .control_plane import ConfigurationError, ConnectivityError, ControlPlaneClient, RegistrationError
from .events import Event, EventLog, utc_now
from .models import DesiredConfiguration, ServerSpec

MAX_SERVER_REGISTRATION_ATTEMPTS = 3

# Run states, in the only order they can occur.
IDLE = "idle"
CONNECTING = "connecting"
REGISTERING_SERVERS = "registering_servers"
APPLYING_ALGORITHM = "applying_algorithm"
APPLYING_RETRY_POLICY = "applying_retry_policy"
DONE = "done"
ABORTED = "aborted"

# Stage names. A failure in any of them except servers aborts the run.
STAGE_CONNECT = "connect"
STAGE_SERVERS = "servers"  # never fatal
STAGE_ALGORITHM = "algorithm"
STAGE_RETRY_POLICY = "retry_policy"

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_PARTIAL = 3

Connector = Callable[..., ControlPlaneClient]


@dataclass
class ServerOutcome:
    name: str
    ok: bool
    attempts: int
    error: str | None = None


@dataclass
class ReconcileReport:
    state: str = IDLE  # done|aborted once finished
    failed_stage: str | None = None
    error: str | None = None
    servers: list[ServerOutcome] = field(default_factory=list)
    events: list[Event] = field(default_factory=list)
    started_at: str = field(default_factory=utc_now)
    finished_at: str | None = None

    @property
    def ok(self) -> bool:
        return self.state == DONE

    @property
    def failed_servers(self) -> list[ServerOutcome]:
        return [s for s in self.servers if not s.ok]

    @property
    def partial(self) -> bool:
        return self.ok and bool(self.failed_servers)

    def exit_code(self, strict: bool = False) -> int:
        """Process exit status.

        Fatal stages always fail the run. Exhausted server registrations only
        count when `strict` is set.
        """
        if not self.ok:
            return EXIT_FATAL
        if strict and self.failed_servers:
            return EXIT_PARTIAL
        return EXIT_OK

    def to_dict(self) -> dict:
        return {
            "state": self.state,
            "ok": self.ok,
            "failed_stage": self.failed_stage,
            "error": self.error,
            "servers": [
                {"name": s.name, "ok": s.ok, "attempts": s.attempts, "error": s.error} for s in self.servers
            ],
            "events": [e.to_dict() for e in self.events],
            "started_at": self.started_at,
            "finished_at": self.finished_at,
        }


@dataclass(frozen=True)
class PlannedCall:
    stage: str
    operation: str
    args: dict

    def to_dict(self) -> dict:
        return {"stage": self.stage, "operation": self.operation, "args": self.args}


def plan(config: DesiredConfiguration) -> list[PlannedCall]:
    """Calls a run would issue, in order, assuming every call succeeds first time."""
    calls = [PlannedCall(STAGE_CONNECT, "ping", {"endpoint": config.endpoint})]
    for s in config.servers:
        args: dict = {"name": s.name, "address": s.address, "port": s.port, "weight": s.weight}
        args["check"] = config.health_check.enabled
        args.update(config.health_check.server_fields())
        calls.append(PlannedCall(STAGE_SERVERS, "register_server", args))
    calls.append(PlannedCall(STAGE_ALGORITHM, "set_algorithm", {"algorithm": config.algorithm}))
    for key, value in config.retry_policy.key_values():
        calls.append(PlannedCall(STAGE_RETRY_POLICY, "set_key_value", {"key": key, "value": value}))
    return calls


class _Abort(Exception):
    def __init__(self, stage: str, cause: Exception):
        super().__init__(str(cause))
        self.stage = stage
        self.cause = cause


class Reconciler:
    """Applies a desired configuration against the control plane, once.

    Order is fixed: connect, register servers, algorithm, retry policy.
    Connect/algorithm/retry-policy failures abort; server failures do not.
    """

    def __init__(
        self,
        config: DesiredConfiguration,
        connect: Connector = control_plane.connect,
        max_server_attempts: int = MAX_SERVER_REGISTRATION_ATTEMPTS,
        timeout_s: float = 10.0,
    ):
        self.config = config
        self._connect = connect
        self.max_server_attempts = max(1, int(max_server_attempts))
        self.timeout_s = timeout_s
        self.state = IDLE
        self.log = EventLog()

    def run(self) -> ReconcileReport:
        """Run the sequence once. Each call starts from idle with a fresh journal."""
        self.state = IDLE
        self.log = EventLog()
        report = ReconcileReport(events=self.log.events)
        try:
            with self._connect_stage() as client:
                report.servers = self._register_servers(client)
                self._apply_algorithm(client)
                self._apply_retry_policy(client)
            self.state = DONE
            self.log.info(self._summary(report))
        except _Abort as e:
            self.state = ABORTED
            report.failed_stage = e.stage
            report.error = str(e.cause)
            self.log.error(f"Run aborted at stage '{e.stage}': {e.cause}")
        report.state = self.state
        report.finished_at = utc_now()
        return report

    def _connect_stage(self) -> ControlPlaneClient:
        self.state = CONNECTING
        try:
            client = self._connect(self.config.endpoint, self.config.credential, timeout_s=self.timeout_s)
        except ConnectivityError as e:
            raise _Abort(STAGE_CONNECT, e) from e
        self.log.info(f"Connected to control plane at {self.config.endpoint}")
        return client

    def _register_servers(self, client: ControlPlaneClient) -> list[ServerOutcome]:
        self.state = REGISTERING_SERVERS
        return [self._register_one(client, spec) for spec in self.config.servers]

    def _register_one(self, client: ControlPlaneClient, spec: ServerSpec) -> ServerOutcome:
        n = self.max_server_attempts
        last: RegistrationError | None = None
        for attempt in range(1, n + 1):
            try:
                client.register_server(spec, self.config.health_check)
            except RegistrationError as e:
                last = e
                self.log.warn(f"Add failed (attempt {attempt}/{n}): {e}", server=spec.name)
                continue
            self.log.info(f"Added {spec.address}:{spec.port} weight={spec.weight}", server=spec.name)
            return ServerOutcome(name=spec.name, ok=True, attempts=attempt)
        self.log.error(f"Giving up after {n} attempts: {last}", server=spec.name)
        return ServerOutcome(name=spec.name, ok=False, attempts=n, error=str(last))

    def _apply_algorithm(self, client: ControlPlaneClient) -> None:
        self.state = APPLYING_ALGORITHM
        try:
            client.set_algorithm(self.config.algorithm)
        except ConfigurationError as e:
            raise _Abort(STAGE_ALGORITHM, e) from e
        self.log.info(f"Load-balancing algorithm set to [{self.config.algorithm}]")

    def _apply_retry_policy(self, client: ControlPlaneClient) -> None:
        self.state = APPLYING_RETRY_POLICY
        for key, value in self.config.retry_policy.key_values():
            try:
                client.set_key_value(key, value)
            except ConfigurationError as e:
                raise _Abort(STAGE_RETRY_POLICY, e) from e
        rp = self.config.retry_policy
        self.log.info(f"Retry policy set: retries={rp.retries}, redispatch={rp.redispatch}")

    @staticmethod
    def _summary(report: ReconcileReport) -> str:
        failed = len(report.failed_servers)
        total = len(report.servers)
        if failed:
            return f"Reconciled with {failed}/{total} server(s) not registered"
        return f"Reconciled {total} server(s)"
