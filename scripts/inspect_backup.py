"""Print the newest warn/error entries kept in the Redis backup list."""

import argparse
import asyncio
import sys

from tierlog.config import get_settings
from tierlog.pipeline import RedisLogBuffer


async def inspect_backup(count: int):
    settings = get_settings()
    buffer = RedisLogBuffer(settings.redis)
    try:
        pending = await buffer.get_log_count()
        entries = await buffer.get_backup_logs(count)
    finally:
        await buffer.disconnect()

    print(f"{settings.redis.queue_key}: {pending} entries waiting for the sink")
    print(f"{settings.redis.backup_key}: showing {len(entries)} newest entries")
    for entry in entries:
        error = entry.metadata.error
        name = f" [{error.name}]" if error and error.name else ""
        print(f"{entry.timestamp.isoformat()} {entry.level.value.upper():5} {entry.hostname}:{entry.pid}{name} {entry.message}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("-n", "--count", type=int, default=20, help="number of entries to show")
    args = parser.parse_args()
    try:
        asyncio.run(inspect_backup(args.count))
    except Exception as e:
        print(f"Error reading backup list: {e}")
        sys.exit(1)
