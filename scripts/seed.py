"""Database seeder: default accounts, categories, a welcome article and site settings."""
import argparse
import asyncio
import time

from sqlalchemy import select

from cms.config import settings
from cms.database import Database
from cms.models import Article, Category, Setting, User
from cms.security import CredentialVerifier
from cms.services.slugs import slugify

USERS = [
    # username, email, password, role
    ("admin", "admin@cms.local", "admin123", "admin"),
    ("editor", "editor@cms.local", "editor123", "editor"),
]

CATEGORIES = [
    ("News", "Latest news and announcements"),
    ("Technology", "Tech articles and tutorials"),
    ("Sports", "Sports coverage"),
    ("General", "Everything else"),
]

SETTINGS = [
    # key, value, type
    ("site_name", "CMS", "text"),
    ("site_description", "A simple content management system", "text"),
    ("articles_per_page", "10", "number"),
    ("maintenance_mode", "false", "boolean"),
]

WELCOME_TITLE = "Welcome to the CMS"
WELCOME_CONTENT = (
    "This is the first article on your new site. Sign in as the admin account "
    "to manage users, categories and settings, or as the editor to write articles."
)


async def seed(database: Database, credentials: CredentialVerifier, reset: bool = False) -> None:
    start = time.perf_counter()

    if reset:
        await database.drop_all()
    await database.create_all()

    async with database.session() as session:
        existing = (await session.execute(select(User.id).limit(1))).first()
        if existing is not None:
            print("Database already seeded; use --reset to start over")
            return

        users = {}
        for username, email, password, role in USERS:
            user = User(
                username=username,
                email=email,
                password_hash=credentials.hash_password(password),
                role=role,
            )
            session.add(user)
            users[role] = user
        await session.flush()
        print(f"  Created {len(users)} users")

        categories = []
        for name, description in CATEGORIES:
            category = Category(name=name, slug=slugify(name), description=description)
            session.add(category)
            categories.append(category)
        await session.flush()
        print(f"  Created {len(categories)} categories")

        session.add(
            Article(
                title=WELCOME_TITLE,
                slug=slugify(WELCOME_TITLE),
                content=WELCOME_CONTENT,
                excerpt="Getting started with the CMS",
                status="draft",
                category_id=categories[-1].id,
                author_id=users["admin"].id,
            )
        )

        for key, value, type_ in SETTINGS:
            session.add(Setting(key=key, value=value, type=type_))

        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    for username, email, password, role in USERS:
        print(f"  {role:<7} {email} / {password}")


async def run(reset: bool) -> None:
    database = Database(settings.DATABASE_URL)
    try:
        await seed(database, CredentialVerifier.from_settings(settings), reset=reset)
    finally:
        await database.dispose()


def main():
    parser = argparse.ArgumentParser(description="Seed the CMS database")
    parser.add_argument("--reset", action="store_true", help="Drop all tables before seeding")
    args = parser.parse_args()
    asyncio.run(run(reset=args.reset))


if __name__ == "__main__":
    main()
