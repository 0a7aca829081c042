#!/usr/bin/env python3
"""Run collision detection for all opted-in users, or a single user."""
import argparse
import json
import sys

from memoir.database import check_database_health, get_db_context
from memoir.monitoring import setup_sentry
from memoir.network.jobs import CollisionDetectionJob


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--user", help="Only scan this user id")
    parser.add_argument(
        "--active-only",
        action="store_true",
        help="Only scan users updated in the last 24 hours",
    )
    parser.add_argument(
        "--check-db",
        action="store_true",
        help="Check database connectivity and exit",
    )
    args = parser.parse_args(argv)

    if args.check_db:
        health = check_database_health()
        print(json.dumps(health))
        return 0 if health["status"] == "healthy" else 1

    setup_sentry()
    job = CollisionDetectionJob()

    if args.user:
        with get_db_context() as db:
            found = job.detect_for_user(db, args.user)
        print(json.dumps({"user": args.user, "collisions": found}))
        return 0

    summary = job.run(active_only=args.active_only)
    if summary is None:
        print("Collision detection already running", file=sys.stderr)
        return 1
    print(json.dumps(summary))
    return 0 if summary["failures"] == 0 else 2


if __name__ == "__main__":
    sys.exit(main())
