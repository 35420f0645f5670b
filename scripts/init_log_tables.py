import asyncio
import sys

from tierlog.config import get_settings
from tierlog.db import create_engine
from tierlog.pipeline import SqlLogSink


async def init_tables():
    settings = get_settings()
    print(f"Connecting to log database: {settings.database.safe_url}")

    sink = SqlLogSink(create_engine(settings.database), environment=settings.env)
    if not await sink.test_connection():
        raise RuntimeError("log database is not reachable")

    print("Creating http_logs and app_logs (existing tables are left untouched)...")
    await sink.create_tables()
    await sink.disconnect()
    print("Log tables ready.")


if __name__ == "__main__":
    try:
        asyncio.run(init_tables())
    except Exception as e:
        print(f"Error creating log tables: {e}")
        sys.exit(1)
