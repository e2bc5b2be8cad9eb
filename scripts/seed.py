"""Database seeder: users, articles, comments and duplicate-laden categories.

Every category name is inserted more than once so that
``POST /api/v1/categories/merge`` has real work to do.
"""
import argparse
import asyncio
import random
import time

from sqlalchemy import select

from app.database import engine, async_session, Base
from app.models import User, Article, Category, Comment

CATEGORY_NAMES = ["python", "fastapi", "postgresql", "redis", "docker", "testing",
                  "performance", "security", "devops", "rest-api"]


async def seed(small: bool = False, duplicates: int = 2):
    num_users = 10 if small else 50
    num_articles = 100 if small else 5000
    max_comments = 2 if small else 5

    print(f"Seeding: {num_users} users, {num_articles} articles, "
          f"{len(CATEGORY_NAMES) * duplicates} categories ({duplicates} per name)")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        categories = []
        for _ in range(duplicates):
            for name in CATEGORY_NAMES:
                category = Category(name=name)
                session.add(category)
                categories.append(category)
        await session.flush()
        print(f"  Created {len(categories)} categories")

        users = []
        for i in range(num_users):
            user = User(
                username=f"user_{i:04d}",
                email=f"user_{i:04d}@example.com",
                display_name=f"User {i}",
            )
            session.add(user)
            users.append(user)
        await session.flush()
        print(f"  Created {len(users)} users")

        batch_size = 500
        for batch_start in range(0, num_articles, batch_size):
            batch_end = min(batch_start + batch_size, num_articles)
            for i in range(batch_start, batch_end):
                article = Article(
                    title=f"Article {i}",
                    slug=f"article-{i}",
                    content=f"This is the full content of article {i}. " * 10,
                    upvotes=random.randint(0, 50),
                    author_id=random.choice(users).id,
                )
                article.categories = random.sample(categories, k=random.randint(1, 3))
                session.add(article)
            await session.flush()
            print(f"  Batch {batch_start}-{batch_end}: articles created")

        article_ids = (await session.execute(select(Article.id))).scalars().all()
        total_comments = 0
        for article_id in article_ids:
            for _ in range(random.randint(0, max_comments)):
                session.add(Comment(
                    content="Great article!",
                    author_name=random.choice(users).username,
                    article_id=article_id,
                ))
                total_comments += 1
        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s ({total_comments} comments)")


def main():
    parser = argparse.ArgumentParser(description="Seed the blog database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (100 articles)")
    parser.add_argument("--duplicates", type=int, default=2, help="Categories created per name")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small, duplicates=args.duplicates))


if __name__ == "__main__":
    main()
