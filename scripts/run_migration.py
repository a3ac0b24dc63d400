#!/usr/bin/env python3
"""Trigger the relational -> document content migration on a running API.

RUN:  python scripts/run_migration.py [--clear-target]

Environment:
  BASE_URL         API base URL (default http://localhost:8000)
  ADMIN_EMAIL      an account whose email is listed in the API's ADMIN_EMAILS
  ADMIN_PASSWORD   that account's password

Prints the per-entity summary and exits non-zero when the run reported
errors, so the script can gate a deploy step.
"""

from __future__ import annotations

import os
import sys

import httpx

BASE_URL = os.environ.get("BASE_URL", "http://localhost:8000")


def main() -> None:
    email = os.environ.get("ADMIN_EMAIL", "")
    password = os.environ.get("ADMIN_PASSWORD", "")
    if not email or not password:
        print("ADMIN_EMAIL and ADMIN_PASSWORD must be set")
        sys.exit(2)
    clear_target = "--clear-target" in sys.argv[1:]

    # A full migration can take minutes on a large dataset
    with httpx.Client(base_url=BASE_URL, timeout=600) as client:
        resp = client.post("/v1/auth/sign-in", json={"email": email, "password": password})
        if resp.status_code != 200:
            print(f"Sign-in failed: {resp.status_code} {resp.text}")
            sys.exit(1)
        token = resp.json()["access_token"]

        resp = client.post(
            "/admin/migration",
            json={"clear_target": clear_target},
            headers={"Authorization": f"Bearer {token}"},
        )
        if resp.status_code != 200:
            print(f"Migration request failed: {resp.status_code} {resp.text}")
            sys.exit(1)

    summary = resp.json()
    print(summary["message"])
    print()
    print(f"{'entity':<14}{'attempted':>10}{'migrated':>10}{'skipped':>10}{'errors':>8}")
    for entity, detail in summary["details"]["details"].items():
        print(
            f"{entity:<14}{detail['attempted']:>10}{detail['migrated']:>10}"
            f"{detail['skipped']:>10}{len(detail['errors']):>8}"
        )
    for error in summary["details"]["errors"]:
        print(f"  ! {error}")
    for entity, detail in summary["details"]["details"].items():
        for error in detail["errors"]:
            print(f"  ! {entity}: {error}")

    sys.exit(0 if summary["success"] else 1)


if __name__ == "__main__":
    main()
