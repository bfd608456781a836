"""
Idempotent authority seeding.

Run once per deployment, never from request-handling startup:

    python -m civic_eye.scripts.seed_admin
    python -m civic_eye.scripts.seed_admin --email ward5@city.gov --password s3cret --regions 560001,560002
"""
import argparse
import asyncio
import logging
import os
from typing import Iterable, Optional, Tuple

from civic_eye.models.authority_model import AuthorityInDB, AuthorityRole
from civic_eye.services.mongodb_service import MongoAuthorityStore, close_db, get_db
from civic_eye.utils.security import get_password_hash

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_EMAIL = "admin@civiceye.org"
DEFAULT_ADMIN_NAME = "Super Admin"


async def seed_authority(
    store,
    email: str,
    password: str,
    name: Optional[str] = None,
    role: AuthorityRole = AuthorityRole.AUTHORITY,
    regions: Iterable[str] = (),
) -> Tuple[AuthorityInDB, bool]:
    """
    Create the authority unless one with this email already exists.
    Existing accounts are left untouched. Returns (authority, created).
    """
    email = email.lower().strip()
    existing = await store.find_by_email(email)
    if existing:
        logger.info(f"⚠️ Authority {email} already exists, skipping")
        return AuthorityInDB.model_validate(existing), False

    authority = AuthorityInDB(
        email=email,
        name=name,
        role=role,
        assigned_regions=sorted({r.strip().upper() for r in regions if r.strip()}),
        password_hash=get_password_hash(password),
    )
    created = await store.insert_if_absent(authority.to_document())
    if created:
        logger.info(f"✅ Created {role.value} {email} (regions: {authority.assigned_regions})")
    else:
        # lost a race with a concurrent seed
        authority = AuthorityInDB.model_validate(await store.find_by_email(email))
    return authority, created


async def seed_admin(store) -> Tuple[AuthorityInDB, bool]:
    password = os.getenv("ADMIN_PASSWORD")
    if not password:
        raise SystemExit("ADMIN_PASSWORD must be set to seed the admin account")
    return await seed_authority(
        store,
        email=os.getenv("ADMIN_EMAIL", DEFAULT_ADMIN_EMAIL),
        password=password,
        name=os.getenv("ADMIN_NAME", DEFAULT_ADMIN_NAME),
        role=AuthorityRole.ADMIN,
    )


async def main(argv=None):
    parser = argparse.ArgumentParser(description="Seed Civic Eye authorities")
    parser.add_argument("--email", help="seed a regional authority instead of the admin")
    parser.add_argument("--password")
    parser.add_argument("--name")
    parser.add_argument("--regions", default="", help="comma separated region codes")
    args = parser.parse_args(argv)

    store = MongoAuthorityStore(await get_db())
    try:
        if args.email:
            if not args.password:
                parser.error("--password is required with --email")
            await seed_authority(
                store,
                email=args.email,
                password=args.password,
                name=args.name,
                regions=args.regions.split(","),
            )
        else:
            await seed_admin(store)
    finally:
        await close_db()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    asyncio.run(main())
