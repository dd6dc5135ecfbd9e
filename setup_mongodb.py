"""
MongoDB Setup Script
Checks the connection and creates the collections' indexes.
"""
import asyncio
from deckslayer.repositories import db_manager
from deckslayer.repositories.connection import INDEXES
from deckslayer.config import settings

COLLECTIONS = list(INDEXES)


async def setup_mongodb():
    """Initialize the DeckSlayer database with indexes."""
    print("🔄 Connecting to MongoDB...")
    print(f"   Database: {settings.mongodb_database}")
    print()

    try:
        await db_manager.connect()
        await db_manager.client.admin.command("ping")
        print("✅ Connection successful!")
        print()

        db = db_manager.database

        existing_collections = await db.list_collection_names()
        print(f"📦 Existing collections: {existing_collections or 'None'}")
        print()

        print("🔨 Creating indexes...")
        await db_manager.create_indexes()
        print("✅ Indexes created successfully!")
        print()

        print("📊 Verifying indexes:")
        total = 0
        for name in COLLECTIONS:
            indexes = await db[name].index_information()
            expected = {options["name"] for _, options in INDEXES[name]}
            missing = expected - set(indexes)
            total += len(indexes)
            print(f"   {name}: {len(indexes)} indexes")
            for idx_name in indexes:
                print(f"      - {idx_name}")
            if missing:
                print(f"      ⚠️  missing: {', '.join(sorted(missing))}")

        print()
        print("🎉 MongoDB setup complete!")
        print(f"   ✅ Collections: {', '.join(COLLECTIONS)}")
        print(f"   ✅ Indexes: {total} total")
        print()

    except Exception as e:
        print(f"❌ Error: {e}")
        print()
        print("💡 Troubleshooting:")
        print("   1. Check MONGODB_URI in your .env")
        print("   2. Verify your IP is allowed by the cluster's network access rules")
        print("   3. Ensure the cluster is running (not paused)")
        raise

    finally:
        await db_manager.disconnect()
        print("👋 Disconnected from MongoDB")


if __name__ == "__main__":
    asyncio.run(setup_mongodb())
