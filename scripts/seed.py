"""Seed the blog database with an admin, users, categories, posts, comments and likes."""
import argparse
import asyncio
import random
import time

from blog_api.database import Base, async_session, engine
from blog_api.models import Category, Comment, Like, Post, PostStatus, Tag, User, UserRole
from blog_api.security import hash_password

CATEGORIES = ["일상", "docker", "python", "database", "frontend"]
TAGS = ["fastapi", "sqlalchemy", "postgresql", "redis", "docker", "testing",
        "performance", "security", "devops", "typescript"]


async def seed(small: bool = False, admin_email: str = "admin@example.com",
               admin_password: str = "admin-password"):
    num_users = 5 if small else 30
    num_posts = 50 if small else 2000
    max_comments = 2 if small else 5

    print(f"Seeding: {num_users} users, {num_posts} posts")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        admin = User(
            username="admin",
            email=admin_email,
            nickname="admin",
            hashed_password=hash_password(admin_password),
            role=UserRole.ADMIN,
        )
        session.add(admin)

        users = [admin]
        user_password_hash = hash_password("password123")
        for i in range(num_users):
            user = User(
                username=f"user_{i:03d}",
                email=f"user_{i:03d}@example.com",
                nickname=f"user{i:03d}",
                description=f"Test user number {i}.",
                hashed_password=user_password_hash,
            )
            session.add(user)
            users.append(user)

        categories = [Category(name=name) for name in CATEGORIES]
        tags = [Tag(name=name) for name in TAGS]
        session.add_all(categories + tags)
        await session.flush()
        print(f"  Created {len(users)} users, {len(categories)} categories, {len(tags)} tags")

        posts = []
        for i in range(num_posts):
            category = random.choice(categories) if random.random() > 0.1 else None
            post = Post(
                title=f"Post {i}: notes on {random.choice(TAGS)}",
                description=f"Short summary of post {i}.",
                content=f"<p>Body of post {i}.</p>" * 10,
                # ~80% public
                status=PostStatus.PUBLIC if random.random() > 0.2 else PostStatus.PRIVATE,
                user_id=random.choice(users).id,
                category_id=category.id if category else None,
                tags=random.sample(tags, k=random.randint(0, 3)),
            )
            session.add(post)
            posts.append(post)
        await session.flush()

        total_comments = total_likes = 0
        for post in posts:
            if post.status != PostStatus.PUBLIC:
                continue
            for _ in range(random.randint(0, max_comments)):
                root = Comment(content="Nice post!", post_id=post.id, user_id=random.choice(users).id)
                session.add(root)
                await session.flush()
                reply = Comment(
                    content="Thanks!", post_id=post.id, user_id=post.user_id, parent_id=root.id
                )
                session.add(reply)
                total_comments += 2
            for user in random.sample(users, k=random.randint(0, len(users) // 2)):
                session.add(Like(post_id=post.id, user_id=user.id))
                total_likes += 1
        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Posts: {num_posts}")
    print(f"  Comments: {total_comments}")
    print(f"  Likes: {total_likes}")
    print(f"  Admin login: {admin_email}")


def main():
    parser = argparse.ArgumentParser(description="Seed the blog database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (50 posts)")
    parser.add_argument("--admin-email", default="admin@example.com")
    parser.add_argument("--admin-password", default="admin-password")
    args = parser.parse_args()
    asyncio.run(seed(args.small, args.admin_email, args.admin_password))


if __name__ == "__main__":
    main()
