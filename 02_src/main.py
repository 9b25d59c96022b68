"""Main entry point for the chat dev server."""

import asyncio
import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from chatsync.logging_config import setup_logging
from devserver import DevStorage, create_dev_app

DEMO_USERS = [
    (1, "Alice", "alice-token", "alice@example.com"),
    (2, "Bob", "bob-token", "bob@example.com"),
]


async def seed_demo_users(storage: DevStorage) -> None:
    """Create two users that can chat with each other."""
    if not storage.initialized:
        await storage.init()
    for user_id, name, token, email in DEMO_USERS:
        await storage.save_user(user_id, name, token, email=email)


def main():
    """Run the dev server."""
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")
    setup_logging()

    api_host = os.getenv("API_HOST", "localhost")
    api_port = int(os.getenv("API_PORT", "8000"))

    storage = DevStorage(os.getenv("DATABASE_URL"))

    async def seed() -> None:
        await seed_demo_users(storage)
        await storage.close()

    # aiosqlite connections belong to the loop that opened them; the app
    # reopens storage in its lifespan.
    asyncio.run(seed())

    app = create_dev_app(storage)

    uvicorn.run(
        app,
        host=api_host,
        port=api_port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
