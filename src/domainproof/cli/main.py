"""domainproof command-line entry point.

Usage::

    domainproof -c /etc/domainproof/config.yaml
    domainproof -c config.yaml --validate-only
    domainproof -c config.yaml serve --dev
    domainproof -c config.yaml db status
    domainproof -c config.yaml challenges poll
    domainproof -c config.yaml challenges show <uuid>
    domainproof -c config.yaml alerts undelivered --limit 20
    python -m domainproof -c config.yaml
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

log = logging.getLogger(__name__)


def _get_version() -> str:
    from domainproof import __version__  # noqa: PLC0415

    return __version__


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="domainproof",
        description="domainproof: custom domain ownership verification service",
    )
    parser.add_argument(
        "-c",
        "--config",
        required=True,
        metavar="PATH",
        help="Path to the configuration file (YAML or JSON).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug output (full tracebacks, verbose logging).",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Validate the configuration file and exit.",
    )
    parser.add_argument(
        "--dev",
        action="store_true",
        default=False,
        help="Use Flask's development server instead of gunicorn.",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command")

    # serve
    serve_parser = subparsers.add_parser("serve", help="Start the HTTP service")
    serve_parser.add_argument("--dev", action="store_true", default=False, dest="dev")

    # db
    db_parser = subparsers.add_parser("db", help="Database management")
    db_sub = db_parser.add_subparsers(dest="db_command")
    db_sub.add_parser("status", help="Check database connectivity and schema")

    # challenges
    ch_parser = subparsers.add_parser("challenges", help="Verification challenges")
    ch_sub = ch_parser.add_subparsers(dest="challenges_command")
    ch_sub.add_parser("poll", help="Run one scheduler tick and exit")
    show = ch_sub.add_parser("show", help="Show a challenge by UUID")
    show.add_argument("challenge_id", help="Challenge UUID")

    # alerts
    alerts_parser = subparsers.add_parser("alerts", help="Operator alerts")
    alerts_sub = alerts_parser.add_subparsers(dest="alerts_command")
    undelivered = alerts_sub.add_parser("undelivered", help="List undelivered alerts")
    undelivered.add_argument("--limit", type=int, default=50)

    return parser


def _print_error(message: str) -> None:
    """Print a user-facing error to stderr."""
    sys.stderr.write(f"domainproof: error: {message}\n")


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Parses arguments, loads config, dispatches."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    config_path = Path(args.config)
    if not config_path.is_file():
        _print_error(f"configuration file not found: {config_path}")
        sys.exit(1)

    # -- bootstrap logging early (basic stderr until config is loaded) ---
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        from domainproof.config import ConfigValidationError, DomainProofConfig  # noqa: PLC0415

        config = DomainProofConfig(config_file=config_path)
    except ConfigValidationError as exc:
        _print_error(str(exc))
        sys.exit(1)
    except Exception as exc:
        if args.debug:
            raise
        _print_error(f"failed to load configuration: {exc}")
        sys.exit(1)

    from domainproof.logging import configure_logging  # noqa: PLC0415

    configure_logging(config.settings.logging)

    if args.validate_only:
        _print_settings_summary(config)
        sys.exit(0)

    command = args.command

    try:
        if command == "db":
            from domainproof.cli.commands.db import run_db  # noqa: PLC0415

            run_db(config, args)
        elif command == "challenges":
            from domainproof.cli.commands.challenges import run_challenges  # noqa: PLC0415

            run_challenges(config, args)
        elif command == "alerts":
            from domainproof.cli.commands.alerts import run_alerts  # noqa: PLC0415

            run_alerts(config, args)
        else:
            # No subcommand means serve
            from domainproof.cli.commands.serve import run_serve  # noqa: PLC0415

            _print_settings_summary(config)
            run_serve(config, args)
    except Exception as exc:
        if args.debug:
            raise
        _print_error(str(exc))
        sys.exit(1)


def _print_settings_summary(config) -> None:
    """Print a short summary of the loaded configuration."""
    s = config.settings
    lines = [
        f"domainproof {_get_version()}",
        f"  config:     {config.data.get('_source', '?')}",
        f"  listen:     {s.server.bind}:{s.server.port} ({s.server.workers} workers)",
        f"  database:   {s.database.user}@{s.database.host}:{s.database.port}/{s.database.database}",
        f"  methods:    {', '.join(s.challenges.enabled)}",
        f"  attempts:   {s.challenges.max_attempts} "
        f"(backoff {s.challenges.backoff_base_seconds}s x{s.challenges.backoff_factor}, "
        f"cap {s.challenges.backoff_max_seconds}s)",
        f"  scheduler:  {'on' if s.scheduler.enabled else 'off'} every {s.scheduler.interval_seconds}s",
        f"  webhooks:   {'signed' if s.webhooks.secret else 'unsigned'}",
        f"  alerts:     {s.alerts.webhook_url or 'log only'}",
    ]
    sys.stdout.write("\n".join(lines) + "\n")
