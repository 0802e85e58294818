#!/usr/bin/env python3
"""
Create the MongoDB indexes the rota queries rely on
"""
import asyncio
import os
from dotenv import load_dotenv
from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError
from rota.db import ACTIVITY_LOGS, NOTIFICATIONS, SHIFTS, TIME_OFF, USERS

INDEXES = {
    # range reads, draft counts and scoped publish
    SHIFTS: [
        ([("companyId", ASCENDING), ("startTime", ASCENDING)], "company_start"),
        ([("companyId", ASCENDING), ("status", ASCENDING), ("startTime", ASCENDING)], "company_status_start"),
        ([("companyId", ASCENDING), ("bids", ASCENDING)], "company_bids"),
    ],
    TIME_OFF: [
        ([("companyId", ASCENDING), ("status", ASCENDING), ("createdAt", DESCENDING)], "company_status_created"),
        ([("userId", ASCENDING), ("createdAt", DESCENDING)], "user_created"),
    ],
    USERS: [
        ([("currentCompanyId", ASCENDING), ("role", ASCENDING)], "company_role"),
    ],
    NOTIFICATIONS: [
        ([("userId", ASCENDING), ("createdAt", DESCENDING)], "user_created"),
    ],
    ACTIVITY_LOGS: [
        ([("companyId", ASCENDING), ("timestamp", DESCENDING)], "company_timestamp"),
    ],
}


async def init_collections():
    mongodb_uri = os.getenv("MONGODB_URI", "mongodb://localhost:27017/rota")
    client = AsyncIOMotorClient(mongodb_uri)
    db = client.get_default_database()

    print(f"Creating rota indexes in '{db.name}'...")
    for collection, indexes in INDEXES.items():
        for keys, name in indexes:
            try:
                await db[collection].create_index(keys, name=name)
                print(f"  {collection}.{name}: ok")
            except PyMongoError as e:
                print(f"  {collection}.{name}: {e}")

    client.close()
    print("Done")


if __name__ == "__main__":
    load_dotenv()
    asyncio.run(init_collections())
