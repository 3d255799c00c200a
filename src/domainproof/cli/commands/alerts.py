"""Alert subcommands."""

from __future__ import annotations

import json
import sys


def run_alerts(config, args) -> None:
    if getattr(args, "alerts_command", None) != "undelivered":
        sys.stderr.write("usage: domainproof -c CONFIG alerts undelivered [--limit N]\n")
        sys.exit(1)

    from domainproof.api.serializers import serialize_alert  # noqa: PLC0415
    from domainproof.db import init_database  # noqa: PLC0415
    from domainproof.repositories import AlertRepository  # noqa: PLC0415

    db = init_database(config.settings.database)
    alerts = AlertRepository(db).find_undelivered(args.limit)
    sys.stdout.write(json.dumps([serialize_alert(a) for a in alerts], indent=2) + "\n")
