"""Database seeder: categories plus posts created through the service layer."""
import argparse
import asyncio
import random
import time
from datetime import date, timedelta

from blog_api.database import database
from blog_api.schemas import CategoryCreate, PostCreate
from blog_api.services import category_service, post_service
from blog_api.services.media_service import MediaService

CATEGORIES = [
    ("Engineering", "#1e3a8a", "#ffffff"),
    ("Design", "#fde68a", "#000000"),
    ("Product", "#dcfce7", "#14532d"),
    ("Culture", "#fce7f3", "#831843"),
]

TOPICS = ["python", "fastapi", "postgresql", "redis", "docker", "typescript",
          "react", "testing", "performance", "accessibility", "seo", "hiring"]


class _NoUploads:
    """Image host stand-in: the seeder never attaches images."""

    async def upload_image(self, file_data: bytes, folder: str, content_type: str) -> str:
        raise RuntimeError("seeding does not upload images")


async def seed(num_posts: int) -> None:
    print(f"Seeding: {len(CATEGORIES)} categories, {num_posts} posts")
    start = time.perf_counter()

    database.connect()
    await database.drop_tables()
    await database.create_tables()
    media = MediaService(storage=_NoUploads())

    async with database.session() as session:
        await category_service.ensure_uncategorized(session)
        category_ids = []
        for name, background, font in CATEGORIES:
            created = await category_service.create_category(
                session,
                CategoryCreate(name=name, background_color=background, font_color=font),
            )
            category_ids.append(created["id"])
        print(f"  Created {len(category_ids)} categories")

        for i in range(num_posts):
            topic = random.choice(TOPICS)
            await post_service.create_post(
                session,
                PostCreate(
                    title=f"Notes on {topic} #{i % 7}",
                    content=f"Everything we learned about {topic} this quarter. " * 10,
                    author_email=f"writer{i % 5}@example.com",
                    category_id=random.choice(category_ids),
                    meta_description=f"A practical look at {topic}.",
                    seo_keywords=[topic, "blog"],
                    publish_date=date.today() - timedelta(days=random.randint(0, 365)),
                ),
                media,
            )
        await session.commit()

    await database.disconnect()
    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")


def main():
    parser = argparse.ArgumentParser(description="Seed the blog database")
    parser.add_argument("--posts", type=int, default=40, help="Number of posts to create")
    args = parser.parse_args()
    asyncio.run(seed(args.posts))


if __name__ == "__main__":
    main()
