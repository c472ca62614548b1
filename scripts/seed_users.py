"""Seed the demo student accounts (password ``demo123``) into the users table.

Usage: python -m scripts.seed_users [--reset]

Without ``--reset`` the script is idempotent: accounts whose email already
exists are left untouched.
"""
import argparse
import asyncio
import sys
sys.path.insert(0, ".")

from sqlalchemy import delete, select

from app.database import async_session_factory, engine
from app.models.chat import Chat, Message
from app.models.request import ConnectionRequest
from app.models.user import User
from app.services.identity_service import IdentityService, normalise_email

DEMO_PASSWORD = "demo123"

DEMO_USERS = [
    {
        "name": "Gitanjali A",
        "email": "gitanjali@pesu.ac.in",
        "bio": (
            "Frontend enthusiast passionate about creating beautiful user interfaces. "
            "Looking to expand my skills into backend development."
        ),
        "offered_skills": ["React.js", "UI/UX Design", "Frontend Development", "Tailwind CSS", "Figma"],
        "desired_skills": ["Node.js", "MongoDB", "Backend Development", "REST APIs"],
        "is_admin": False,
        "verified": True,
    },
    {
        "name": "Harsimran Kaur",
        "email": "harsimran@pesu.ac.in",
        "bio": (
            "Backend developer with experience in building scalable APIs. "
            "Eager to learn modern frontend frameworks."
        ),
        "offered_skills": ["Node.js", "Express.js", "MongoDB", "REST APIs", "JWT Authentication"],
        "desired_skills": ["React.js", "UI/UX Design", "Frontend Development"],
        "is_admin": False,
        "verified": True,
    },
    {
        "name": "Navya Suresh",
        "email": "navya@pesu.ac.in",
        "bio": (
            "Data science student with strong Python skills. "
            "Exploring web development to build ML-powered applications."
        ),
        "offered_skills": ["Python", "Data Science", "Machine Learning", "Pandas", "NumPy"],
        "desired_skills": ["Web Development", "React.js", "JavaScript", "Full Stack Development"],
        "is_admin": True,
        "verified": True,
    },
    {
        "name": "Rahul Sharma",
        "email": "rahul@pesu.ac.in",
        "bio": "Mobile app developer interested in learning web technologies.",
        "offered_skills": ["Flutter", "Dart", "Mobile Development", "Firebase"],
        "desired_skills": ["React.js", "Next.js", "Web Development"],
        "is_admin": False,
        "verified": True,
    },
    {
        "name": "Priya Patel",
        "email": "priya@pesu.ac.in",
        "bio": "DevOps enthusiast learning about cloud infrastructure and CI/CD.",
        "offered_skills": ["Docker", "Kubernetes", "AWS", "CI/CD"],
        "desired_skills": ["Backend Development", "Node.js", "Microservices"],
        "is_admin": False,
        "verified": False,
    },
    {
        "name": "Arjun Kumar",
        "email": "arjun@pesu.ac.in",
        "bio": "Full stack developer with a passion for teaching and mentoring.",
        "offered_skills": ["JavaScript", "TypeScript", "React.js", "Node.js", "PostgreSQL"],
        "desired_skills": ["Go", "Rust", "System Programming"],
        "is_admin": False,
        "verified": True,
    },
    {
        "name": "Sneha Reddy",
        "email": "sneha@pesu.ac.in",
        "bio": "Cybersecurity student learning about secure coding practices.",
        "offered_skills": ["Cybersecurity", "Ethical Hacking", "Network Security"],
        "desired_skills": ["Web Development", "Secure Coding", "Backend Development"],
        "is_admin": False,
        "verified": True,
    },
    {
        "name": "Vikram Singh",
        "email": "vikram@pesu.ac.in",
        "bio": "Blockchain enthusiast exploring decentralized applications.",
        "offered_skills": ["Blockchain", "Solidity", "Smart Contracts", "Web3.js"],
        "desired_skills": ["React.js", "Frontend Development", "Full Stack Development"],
        "is_admin": False,
        "verified": False,
    },
]


async def reset(session) -> None:
    # Children first so the script also works without ON DELETE CASCADE.
    for model in (Message, Chat, ConnectionRequest, User):
        await session.execute(delete(model))
    print("  Cleared users, requests, chats and messages.")


async def seed(reset_first: bool = False) -> None:
    service = IdentityService()
    async with async_session_factory() as session:
        if reset_first:
            await reset(session)

        for data in DEMO_USERS:
            existing = await session.execute(
                select(User.id).where(User.email == normalise_email(data["email"]))
            )
            if existing.scalar_one_or_none() is not None:
                print(f"  {data['email']} already exists, skipping.")
                continue

            await service.register(session, password=DEMO_PASSWORD, **data)
            flags = []
            if data["is_admin"]:
                flags.append("admin")
            if data["verified"]:
                flags.append("verified")
            print(f"  Seeded {data['name']} <{data['email']}> {' '.join(flags)}".rstrip())

        await session.commit()
    await engine.dispose()
    print(f"Done seeding users. All passwords are: {DEMO_PASSWORD}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed SkillSwap demo users")
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Delete all users, requests, chats and messages before seeding",
    )
    args = parser.parse_args()
    asyncio.run(seed(reset_first=args.reset))


if __name__ == "__main__":
    main()
