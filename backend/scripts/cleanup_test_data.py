"""
Remove rows left behind by interrupted repository test runs.

Usage: TEST_DATABASE_URL=... python scripts/cleanup_test_data.py
"""
import asyncio
import os
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine
from dotenv import load_dotenv

load_dotenv()

TEST_TENANT_PATTERN = "test-tenant-%"


async def cleanup():
    database_url = os.environ.get("TEST_DATABASE_URL") or os.environ.get("DATABASE_URL")
    if not database_url:
        print("TEST_DATABASE_URL / DATABASE_URL not found")
        return

    # Use the same engine settings as the app for compatibility
    engine = create_async_engine(
        database_url,
        echo=True,
        connect_args={"statement_cache_size": 0, "prepared_statement_cache_size": 0}
    )

    delete_queries = [
        # Messages first in case the cascade was dropped by a manual migration
        "DELETE FROM messages WHERE tenant_id LIKE :pattern",
        "DELETE FROM contacts WHERE tenant_id LIKE :pattern",
    ]

    async with engine.begin() as conn:
        for query in delete_queries:
            result = await conn.execute(text(query), {"pattern": TEST_TENANT_PATTERN})
            print(f"Executed: {query} | Rows affected: {result.rowcount}")

    await engine.dispose()
    print("Cleanup complete!")


if __name__ == "__main__":
    asyncio.run(cleanup())
