#!/usr/bin/env python3
"""Seed the approval chain: one admin plus a HOD, HR, GED and employee.

Creates the users (skipping any email that already exists) and prints an
access token for each so the API can be exercised right away.

Usage:
    python scripts/seed_users.py                        # department VAS
    python scripts/seed_users.py --department NOC
    python scripts/seed_users.py --leave-days 30 --no-tokens

Requires DATABASE_URL and JWT_SECRET in .env
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# ── Path setup ────────────────────────────────────────────────────────
SCRIPT_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = SCRIPT_DIR.parent
sys.path.insert(0, str(PROJECT_ROOT))

from dotenv import load_dotenv

load_dotenv(PROJECT_ROOT / ".env")

from leaveflow.auth.security import create_access_token
from leaveflow.common.constants import Department, UserRole
from leaveflow.database import async_session_factory, engine
from leaveflow.leave import models as leave_models  # noqa: F401
from leaveflow.users.service import UserDirectory

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger("seed_users")

# staff_id, first, last, email local part, role, is_hod
SEED_USERS = [
    ("ADM001", "System", "Admin", "admin", UserRole.admin, False),
    ("HOD001", "Head", "OfDepartment", "hod", UserRole.hod, True),
    ("HR001", "Human", "Resources", "hr", UserRole.hr, False),
    ("GED001", "General", "Director", "ged", UserRole.ged, False),
    ("EMP001", "First", "Employee", "employee", UserRole.employee, False),
]


async def seed(department: Department, domain: str, leave_days: int, tokens: bool) -> int:
    created = 0
    async with async_session_factory() as db:
        for staff_id, first, last, local, role, is_hod in SEED_USERS:
            email = f"{local}@{domain}"
            employee = await UserDirectory.find_by_email(db, email)
            if employee is None:
                employee = await UserDirectory.create_employee(
                    db,
                    staff_id=staff_id,
                    first_name=first,
                    last_name=last,
                    email=email,
                    department=department,
                    role=role,
                    is_hod=is_hod,
                    leave_total=leave_days,
                )
                created += 1
            else:
                logger.info("Skipping %s, already exists", email)

            if tokens:
                print(f"  {role.value:<9} {email:<30} {create_access_token(employee)}")
        await db.commit()

    await engine.dispose()
    return created


def main():
    parser = argparse.ArgumentParser(
        description="Seed an admin and one user per approval role"
    )
    parser.add_argument("--department", default=Department.vas.value,
                        choices=[d.value for d in Department],
                        help="Department of the HOD and the employee")
    parser.add_argument("--domain", default="leaveflow.local",
                        help="Email domain of the seeded users")
    parser.add_argument("--leave-days", type=int, default=None,
                        help="Yearly entitlement (defaults to DEFAULT_LEAVE_DAYS)")
    parser.add_argument("--no-tokens", action="store_true",
                        help="Do not print access tokens")
    args = parser.parse_args()

    print(f"\n{'═' * 60}")
    print("  LEAVEFLOW — SEED USERS")
    print(f"{'═' * 60}\n")

    created = asyncio.run(
        seed(Department(args.department), args.domain, args.leave_days, not args.no_tokens)
    )

    print(f"\n  Created {created} user(s).\n")


if __name__ == "__main__":
    main()
