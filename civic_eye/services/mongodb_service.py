import asyncio
import logging
from typing import Optional, List, Dict, Any, Tuple

import motor.motor_asyncio
import gridfs
from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from civic_eye.core.config import get_mongodb_config
from civic_eye.core.exceptions import NotFoundError, PersistenceError

logger = logging.getLogger(__name__)

REPORTS_COLLECTION = "reports"
AUTHORITIES_COLLECTION = "authorities"

RETRY_DELAY_SECONDS = 2.0

# Global database connection
client: Optional[motor.motor_asyncio.AsyncIOMotorClient] = None
db = None
fs = None

# Concurrent first requests share one initialisation
_init_lock = asyncio.Lock()


async def init_db(max_retries: int = 3) -> bool:
    """Initialize database connection, GridFS and indexes. Never raises; the app can start without a DB."""
    async with _init_lock:
        if db is not None and fs is not None:
            return True
        return await _connect(max_retries)


async def _connect(max_retries: int) -> bool:
    global client, db, fs

    mongo_uri, db_name = get_mongodb_config()
    logger.info(f"🔧 MongoDB URI configured: {mongo_uri.split('://')[0]}://***")
    logger.info(f"📊 Database name: {db_name}")

    if client is not None:
        client.close()
    client = motor.motor_asyncio.AsyncIOMotorClient(
        mongo_uri,
        serverSelectionTimeoutMS=15000,
        connectTimeoutMS=30000,
        socketTimeoutMS=45000,
        maxPoolSize=20,
        retryWrites=True,
        tz_aware=True,
    )

    retry_delay = RETRY_DELAY_SECONDS
    for attempt in range(1, max_retries + 1):
        try:
            logger.info(f"🔄 Connection attempt {attempt}/{max_retries}...")
            await asyncio.wait_for(client.admin.command('ping'), timeout=10.0)
            db = client[db_name]
            fs = motor.motor_asyncio.AsyncIOMotorGridFSBucket(db)
            logger.info(f"✅ MongoDB connected successfully: {db_name}")
            break
        except (asyncio.TimeoutError, PyMongoError) as e:
            logger.warning(f"⚠️ Connection attempt {attempt} failed: {str(e)}")
            if attempt < max_retries:
                logger.info(f"⏳ Waiting {retry_delay:.1f}s before retry...")
                await asyncio.sleep(retry_delay)
                retry_delay *= 2
    else:
        logger.error("❌ All MongoDB connection attempts failed")
        logger.warning("⚠️ Application starting without MongoDB connection")
        client.close()
        client = None
        return False

    try:
        await create_indexes(db)
    except PyMongoError as e:
        logger.warning(f"⚠️ Index creation encountered an issue: {str(e)}")
    return True


async def create_indexes(database) -> None:
    """Indexes backing tracking lookups, region-scoped listing and authority login."""
    reports = database[REPORTS_COLLECTION]
    authorities = database[AUTHORITIES_COLLECTION]

    await reports.create_index([("tracking_code", 1)], name="tracking_code_unique", unique=True)
    await reports.create_index([("region_code", 1)], name="region_code")
    await reports.create_index([("created_at", -1)], name="created_at_desc")
    await reports.create_index(
        [("region_code", 1), ("resolution_state", 1), ("created_at", -1)],
        name="region_resolution_created",
    )

    await authorities.create_index([("email", 1)], name="email_unique", unique=True)
    await authorities.create_index([("assigned_regions", 1)], name="assigned_regions")

    logger.info("✅ Core MongoDB indexes created/verified")


async def close_db():
    """Close database connection"""
    global client, db, fs
    if client:
        client.close()
        logger.info("🔒 MongoDB connection closed")
    client = None
    db = None
    fs = None


async def get_db():
    """Get the async database connection."""
    if db is None:
        await init_db()
    if db is None:
        raise PersistenceError("Database connection could not be established")
    return db


async def get_fs():
    """Get the async GridFS instance."""
    if fs is None:
        await init_db()
    if fs is None:
        raise PersistenceError("GridFS could not be initialized")
    return fs


class MongoReportStore:
    """Report documents in MongoDB, photos in GridFS."""

    def __init__(self, database, bucket):
        self.collection = database[REPORTS_COLLECTION]
        self.fs = bucket

    async def save_image(self, filename: str, content: bytes, metadata: Dict[str, Any]) -> str:
        try:
            image_id = await self.fs.upload_from_stream(filename=filename, source=content, metadata=metadata)
        except PyMongoError as e:
            logger.error(f"Failed to upload image {filename}: {str(e)}", exc_info=True)
            raise PersistenceError("Failed to store image")
        logger.debug(f"Image uploaded successfully with ID: {image_id}")
        return str(image_id)

    async def load_image(self, image_id: Optional[str]) -> bytes:
        if not image_id:
            raise NotFoundError("Image file not found")
        try:
            gridout = await self.fs.open_download_stream(ObjectId(image_id))
            return await gridout.read()
        except (gridfs.errors.NoFile, InvalidId):
            logger.error(f"Image {image_id} not found in GridFS")
            raise NotFoundError("Image file not found")
        except PyMongoError as e:
            logger.error(f"Failed to read image {image_id}: {str(e)}", exc_info=True)
            raise PersistenceError("Failed to read image")

    async def delete_image(self, image_id: str) -> None:
        try:
            await self.fs.delete(ObjectId(image_id))
            logger.info(f"Cleaned up orphaned image {image_id}")
        except (gridfs.errors.NoFile, InvalidId):
            logger.warning(f"Image {image_id} already absent")
        except PyMongoError as e:
            logger.error(f"Failed to clean up image {image_id}: {str(e)}", exc_info=True)

    async def insert_report(self, document: Dict[str, Any]) -> None:
        try:
            await self.collection.insert_one(document)
        except DuplicateKeyError:
            raise
        except PyMongoError as e:
            logger.error(f"Failed to insert report {document.get('_id')}: {str(e)}", exc_info=True)
            raise PersistenceError("Failed to save report")

    async def find_report(self, report_id: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.collection.find_one({"_id": report_id})
        except PyMongoError as e:
            logger.error(f"Failed to retrieve report {report_id}: {str(e)}", exc_info=True)
            raise PersistenceError("Failed to fetch report")

    async def find_by_tracking_code(self, tracking_code: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.collection.find_one({"tracking_code": tracking_code})
        except PyMongoError as e:
            logger.error(f"Failed to retrieve report {tracking_code}: {str(e)}", exc_info=True)
            raise PersistenceError("Failed to fetch complaint")

    async def find_reports(self, query: Dict[str, Any], skip: int, limit: int) -> Tuple[List[Dict[str, Any]], int]:
        try:
            cursor = self.collection.find(query).sort("created_at", -1).skip(skip).limit(limit)
            documents = await cursor.to_list(length=limit)
            total = await self.collection.count_documents(query)
            return documents, total
        except PyMongoError as e:
            logger.error(f"Failed to list reports for {query}: {str(e)}", exc_info=True)
            raise PersistenceError("Failed to fetch reports")

    async def update_report(self, report_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Apply all fields in a single $set and return the updated document."""
        try:
            return await self.collection.find_one_and_update(
                {"_id": report_id},
                {"$set": fields},
                return_document=ReturnDocument.AFTER,
            )
        except PyMongoError as e:
            logger.error(f"Failed to update report {report_id}: {str(e)}", exc_info=True)
            raise PersistenceError("Failed to update report")


class MongoAuthorityStore:
    def __init__(self, database):
        self.collection = database[AUTHORITIES_COLLECTION]

    async def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.collection.find_one({"email": email.lower().strip()})
        except PyMongoError as e:
            logger.error(f"Failed to look up authority {email}: {str(e)}", exc_info=True)
            raise PersistenceError("Database connection failed")

    async def find_by_id(self, authority_id: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.collection.find_one({"_id": authority_id})
        except PyMongoError as e:
            logger.error(f"Failed to look up authority {authority_id}: {str(e)}", exc_info=True)
            raise PersistenceError("Database connection failed")

    async def insert_if_absent(self, document: Dict[str, Any]) -> bool:
        """Insert unless an authority with the same email exists. Returns True when inserted."""
        try:
            result = await self.collection.update_one(
                {"email": document["email"]},
                {"$setOnInsert": {k: v for k, v in document.items() if k != "email"}},
                upsert=True,
            )
        except PyMongoError as e:
            logger.error(f"Failed to seed authority {document.get('email')}: {str(e)}", exc_info=True)
            raise PersistenceError("Failed to save authority")
        return result.upserted_id is not None

    async def record_login(self, authority_id: str, when) -> None:
        try:
            await self.collection.update_one({"_id": authority_id}, {"$set": {"last_login": when}})
        except PyMongoError as e:
            logger.warning(f"Failed to record login for {authority_id}: {str(e)}")
