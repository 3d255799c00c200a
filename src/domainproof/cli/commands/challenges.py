"""Challenge subcommands.

Usage::

    domainproof -c config.yaml challenges poll
    domainproof -c config.yaml challenges show <uuid>
"""

from __future__ import annotations

import json
import sys
from uuid import UUID


def run_challenges(config, args) -> None:
    sub = getattr(args, "challenges_command", None)
    if sub is None:
        sys.stderr.write("usage: domainproof -c CONFIG challenges {poll,show}\n")
        sys.exit(1)

    from domainproof.app.context import Container  # noqa: PLC0415
    from domainproof.db import init_database  # noqa: PLC0415

    db = init_database(config.settings.database)
    container = Container(db, config.settings)
    try:
        if sub == "poll":
            _poll(container)
        elif sub == "show":
            _show(container, args.challenge_id)
    finally:
        container.shutdown()


def _poll(container) -> None:
    """Run one scheduler tick and print its summary."""
    summary = container.verification.poll_due_challenges()
    result = {
        "scanned": summary.scanned,
        "processed": summary.processed,
        "outcomes": dict(summary.outcomes),
    }
    sys.stdout.write(json.dumps(result, indent=2) + "\n")


def _show(container, raw_id: str) -> None:
    from domainproof.api.serializers import serialize_challenge  # noqa: PLC0415

    try:
        challenge_id = UUID(raw_id)
    except ValueError:
        sys.stderr.write(f"not a UUID: {raw_id}\n")
        sys.exit(1)

    service = container.verification
    challenge = service.get_challenge(challenge_id)
    body = serialize_challenge(challenge, service.instructions_for(challenge))
    sys.stdout.write(json.dumps(body, indent=2) + "\n")
