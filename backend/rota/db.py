import os
from motor.motor_asyncio import AsyncIOMotorClient
from rota.services.store import DocumentStore, MemoryStore, MongoStore

# Store setup
client = None
store = None

# Collection names
SHIFTS = "schedule_shifts"
USERS = "users"
COMPANIES = "companies"
LOCATIONS = "locations"
TIME_OFF = "time_off_requests"
NOTIFICATIONS = "notifications"
ACTIVITY_LOGS = "activity_logs"


def init_db(app=None):
    global client, store
    backend = os.getenv("ROTA_STORE", "mongo").lower()
    if backend == "memory":
        store = MemoryStore()
    else:
        MONGODB_URI = os.getenv("MONGODB_URI", "mongodb://localhost:27017/rota")
        client = AsyncIOMotorClient(MONGODB_URI)
        store = MongoStore(client.get_default_database())
    if app is not None:
        app.state.db = store
    return store


def get_db() -> DocumentStore:
    return store
