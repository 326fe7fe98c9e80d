"""
Complete influx_writer example: declare a measurement, then write a batch
"""
import asyncio
import os
from datetime import datetime, timezone

from influx_writer import BatchClient, Point, WriteError, field, measurement, tag, timestamp
from influx_writer.logging_config import setup_logging

# Configuration
URL = os.getenv("INFLUX_URL", "http://localhost:8086")
DATABASE = os.getenv("INFLUX_DATABASE", "my_database")


# The default measurement name is the class name; rename overrides it.
@measurement(rename="my_measure")
class MyMeasure:
    # Tags must be str
    region: str = tag()
    # Fields may be int, float, str or bool; rename works here too
    count: int = field(rename="amount")
    # At most one timestamp, datetime or int
    when: datetime = timestamp()
    # Attributes without a directive are not sent
    other: int = 0


async def main():
    setup_logging(level="DEBUG")

    now = datetime.now(timezone.utc)
    batch = [
        MyMeasure(region="us-east", count=3, when=now),
        MyMeasure(region="us-west", count=20, when=now, other=1),
    ]

    async with BatchClient(URL, DATABASE) as db:
        print(f"Using database: {DATABASE}")
        print("=" * 60)
        print("Request body:")
        for line in db.encode(batch):
            print(f"  {line}")
        print("=" * 60)

        try:
            result = await db.add_data(batch)
            print(f"✓ Successfully wrote {result.line_count} measurements (HTTP {result.status})")
        except WriteError as e:
            print(f"✗ Write failed: {e}")
            return 1

        # Hand-built points work anywhere a measurement does
        point = Point("cpu").tag("host", "server01").field("usage_idle", 95.0).field("cores", 8)
        await db.add_data(point)
        print("✓ Wrote hand-built point")

    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
