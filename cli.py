from __future__ import annotations

import argparse
import json
import sys

from lbsync.events import LOG_LEVELS, configure_logging
from lbsync.loader import ConfigLoadError, load_config
from lbsync.reconciler import Reconciler, plan
from lbsync.settings import Settings

EXIT_BAD_CONFIG = 2


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def _summarize(report) -> None:
    for s in report.servers:
        mark = "ok" if s.ok else "FAILED"
        print(f"  server {s.name}: {mark} ({s.attempts} attempt(s))")
    if report.ok:
        print(f"done: {len(report.servers) - len(report.failed_servers)}/{len(report.servers)} servers registered")
    else:
        print(f"aborted at {report.failed_stage}: {report.error}", file=sys.stderr)


def main(argv: list[str] | None = None, connect=None) -> int:
    settings = Settings.from_env()

    p = argparse.ArgumentParser(description="Apply a load-balancer configuration through the proxy's admin API")
    p.add_argument("--log-level", type=str.upper, choices=LOG_LEVELS, default=settings.log_level)
    sub = p.add_subparsers(dest="cmd", required=True)

    s_apply = sub.add_parser("apply", help="Reconcile the proxy with the config file")
    s_apply.add_argument("--config", default=settings.config_path)
    s_apply.add_argument("--timeout", type=float, default=settings.api_timeout_s, help="Per-call timeout (s)")
    s_apply.add_argument("--attempts", type=int, default=settings.server_attempts, help="Attempts per server")
    s_apply.add_argument(
        "--strict",
        action="store_true",
        default=settings.strict,
        help="Exit non-zero when any server could not be registered",
    )
    s_apply.add_argument("--json", action="store_true", help="Print the full run report as JSON")

    s_plan = sub.add_parser("plan", help="Show the calls a run would issue (no network)")
    s_plan.add_argument("--config", default=settings.config_path)

    args = p.parse_args(argv)
    configure_logging(args.log_level)

    try:
        config = load_config(args.config)
    except ConfigLoadError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_BAD_CONFIG

    if args.cmd == "plan":
        _print([c.to_dict() for c in plan(config)])
        return 0

    if args.cmd == "apply":
        kwargs = {"max_server_attempts": args.attempts, "timeout_s": args.timeout}
        if connect is not None:
            kwargs["connect"] = connect
        report = Reconciler(config, **kwargs).run()
        if args.json:
            _print(report.to_dict())
        else:
            _summarize(report)
        return report.exit_code(strict=args.strict)

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
