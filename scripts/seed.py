#!/usr/bin/env python3
"""
Seed script: creates the platform super admin and, optionally, a demo tenant with its admin.
Run after migrations: python scripts/seed.py --email owner@example.com --password secret123
"""

import argparse
import asyncio
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from voicedesk.auth.security import hash_password
from voicedesk.database import async_session_maker, engine
from voicedesk.models import SuperAdmin, Tenant, User
from voicedesk.services.tenants import placeholder_sub_account_id
from voicedesk.storage.repositories import get_tenant_by_slug, get_user_by_email

DEMO_SLUG = "demo"
DEMO_ADMIN_EMAIL = "admin@demo.example"
DEMO_ADMIN_PASSWORD = "demo-admin"


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Seed the VoiceDesk database")
    parser.add_argument("--email", default=os.environ.get("SUPER_ADMIN_EMAIL"))
    parser.add_argument("--password", default=os.environ.get("SUPER_ADMIN_PASSWORD"))
    parser.add_argument("--name", default=os.environ.get("SUPER_ADMIN_NAME", "Platform Owner"))
    parser.add_argument(
        "--demo-tenant",
        action="store_true",
        help="Also create a demo tenant on the starter plan",
    )
    parser.add_argument(
        "--sub-account-id",
        default=None,
        help="Existing provider sub-account for the demo tenant",
    )
    return parser.parse_args()


async def seed(args: argparse.Namespace) -> None:
    async with async_session_maker() as session:
        result = await session.execute(select(SuperAdmin).where(SuperAdmin.email == args.email))
        if result.scalar_one_or_none():
            print(f"Super admin {args.email} already exists, skipping.")
        else:
            session.add(
                SuperAdmin(
                    email=args.email,
                    name=args.name,
                    password_hash=hash_password(args.password),
                )
            )
            await session.commit()
            print(f"Created super admin {args.email}")

        if not args.demo_tenant:
            return

        if await get_tenant_by_slug(session, DEMO_SLUG):
            print("Demo tenant already exists, skipping.")
            return
        if await get_user_by_email(session, DEMO_ADMIN_EMAIL):
            print(f"{DEMO_ADMIN_EMAIL} already belongs to another tenant, skipping demo tenant.")
            return

        pending = not args.sub_account_id
        tenant = Tenant(
            name="Demo Tenant",
            slug=DEMO_SLUG,
            bolna_sub_account_id=args.sub_account_id or placeholder_sub_account_id(DEMO_SLUG),
            plan="starter",
            status="active",
            settings={"pending_subaccount": True, "pending_reason": "Seeded"} if pending else {},
        )
        session.add(tenant)
        await session.flush()
        session.add(
            User(
                tenant_id=tenant.id,
                email=DEMO_ADMIN_EMAIL,
                name="Demo Admin",
                password_hash=hash_password(DEMO_ADMIN_PASSWORD),
                role="admin",
                status="active",
            )
        )
        await session.commit()

    print("Seed complete!")
    print(f"Tenant login: POST /api/tenants/{DEMO_SLUG}/login")
    print(f"  email={DEMO_ADMIN_EMAIL} password={DEMO_ADMIN_PASSWORD}")


async def main() -> None:
    args = parse_args()
    if not args.email or not args.password:
        sys.exit("Super admin --email and --password (or SUPER_ADMIN_EMAIL/SUPER_ADMIN_PASSWORD) are required")
    try:
        await seed(args)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
