# backend/app/db/mongo.py
from motor.motor_asyncio import AsyncIOMotorClient
from app.core.config import settings

client: AsyncIOMotorClient | None = None
db = None

async def connect_to_mongo():
    global client, db
    client = AsyncIOMotorClient(settings.MONGO_URI)
    db = client[settings.MONGO_DB_NAME]
    print(f"MongoDB Connected! (db={settings.MONGO_DB_NAME})")

async def close_mongo_connection():
    global client, db
    if client:
        client.close()
        client = None
        db = None
        print("MongoDB Connection Closed!")

def get_db():
    """
    connect_to_mongo() 이후에만 사용 가능합니다.
    """
    if db is None:
        raise RuntimeError("MongoDB is not connected")
    return db
