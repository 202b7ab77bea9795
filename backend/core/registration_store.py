"""
MongoDB-backed persistence for registrations.

A ``RegistrationStore`` is owned by the application: it is built once from
settings, opened on startup, handed to request handlers through a dependency
and closed on shutdown.
"""
import logging
import math
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from core.config import Settings
from core.exceptions import BadRequestError, ConflictError, NotFoundError
from database import (
    AUDIT_COLLECTION,
    REGISTRATIONS_COLLECTION,
    close_async_client,
    create_async_client,
    ensure_audit_indexes,
    ensure_registration_indexes,
    ping_database,
)
from models.registration import RegistrationStatus, RegistrationType

logger = logging.getLogger(__name__)

EXACT_MATCH_FILTERS = ("registrationType", "status", "sponsorshipTier", "ventureStage", "fundingNeeds")
SEARCH_FIELDS = ("fullName", "email", "organization", "phone", "location")
STATUS_VALUES = [status.value for status in RegistrationStatus]
OBJECT_ID_PATTERN = re.compile(r"^[0-9a-fA-F]{24}$")
DATE_ONLY_PATTERN = re.compile(r"^\d{4}(?:-?(?P<month>\d{2})(?:-?(?P<day>\d{2}))?)?$")


def parse_object_id(registration_id: str) -> ObjectId:
    """Parse a registration id; malformed ids are a client error, not a miss"""
    if not isinstance(registration_id, str) or not OBJECT_ID_PATTERN.match(registration_id):
        raise BadRequestError("Invalid registration ID")
    try:
        return ObjectId(registration_id)
    except (InvalidId, TypeError):
        raise BadRequestError("Invalid registration ID")


def parse_positive_int(value: Any, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number >= 1 else default


def parse_query_date(value: str, field: str, end_of_day: bool = False) -> datetime:
    """Parse an ISO date/datetime into a naive UTC datetime"""
    try:
        parsed = date_parser.isoparse(value)
    except (ValueError, OverflowError):
        raise BadRequestError(f"Invalid {field}: expected an ISO date such as 2025-01-31")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    # a date-only upper bound covers the whole day, month or year it names
    date_only = DATE_ONLY_PATTERN.match(value.strip())
    if end_of_day and date_only:
        if date_only.group("day"):
            span = relativedelta(days=1)
        elif date_only.group("month"):
            span = relativedelta(months=1)
        else:
            span = relativedelta(years=1)
        parsed = parsed + span - timedelta(microseconds=1)
    return parsed


def build_list_filter(filters: Dict[str, Any]) -> Dict[str, Any]:
    """Translate list query parameters into a MongoDB filter"""
    query: Dict[str, Any] = {}

    for field in EXACT_MATCH_FILTERS:
        value = filters.get(field)
        if value:
            query[field] = value

    start_date = filters.get("startDate")
    end_date = filters.get("endDate")
    if start_date or end_date:
        date_range = {}
        if start_date:
            date_range["$gte"] = parse_query_date(start_date, "startDate")
        if end_date:
            date_range["$lte"] = parse_query_date(end_date, "endDate", end_of_day=True)
        query["submissionDate"] = date_range

    search = filters.get("search")
    if search:
        pattern = re.escape(search)
        query["$or"] = [
            {field: {"$regex": pattern, "$options": "i"}}
            for field in SEARCH_FIELDS
        ]

    return query


class RegistrationStore:
    """Registration persistence over a motor collection"""

    def __init__(
        self,
        collection: AsyncIOMotorCollection,
        audit_collection: Optional[AsyncIOMotorCollection] = None,
        client: Optional[AsyncIOMotorClient] = None,
        default_page_size: int = 10,
        max_page_size: int = 100,
        recent_days: int = 7,
    ):
        self.collection = collection
        self.audit_collection = audit_collection
        self.client = client
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size
        self.recent_days = recent_days
        self._opened = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "RegistrationStore":
        client = create_async_client(settings)
        database = client[settings.MONGODB_DB_NAME]
        return cls(
            database[REGISTRATIONS_COLLECTION],
            audit_collection=database[AUDIT_COLLECTION] if settings.ENABLE_AUDIT_LOGGING else None,
            client=client,
            default_page_size=settings.DEFAULT_PAGE_SIZE,
            max_page_size=settings.MAX_PAGE_SIZE,
            recent_days=settings.RECENT_REGISTRATION_DAYS,
        )

    # ============================================
    # LIFECYCLE
    # ============================================

    async def open(self):
        """Ping the server and create indexes; the unique index is what settles concurrent creates"""
        if self._opened:
            return
        ping = await self.ping()
        if ping["connection_status"] == "failed":
            raise ConnectionError(f"Cannot reach MongoDB: {ping.get('error')}")
        await ensure_registration_indexes(self.collection)
        if self.audit_collection is not None:
            await ensure_audit_indexes(self.audit_collection)
        self._opened = True
        logger.info("✅ Registration store opened")

    async def close(self):
        if self.client is not None:
            close_async_client(self.client)
        self._opened = False
        logger.info("✅ Registration store closed")

    async def ping(self) -> Dict[str, Any]:
        if self.client is None:
            return {"connection_status": "unmanaged"}
        return await ping_database(self.client)

    # ============================================
    # OPERATIONS
    # ============================================

    async def create(self, payload: Dict[str, Any], ip_address: str = None, user_agent: str = None) -> Dict[str, Any]:
        """Insert a validated registration; raise ConflictError on a duplicate pair"""
        existing = await self.collection.find_one(
            {"email": payload["email"], "registrationType": payload["registrationType"]},
            {"_id": 1, "submissionDate": 1},
        )
        if existing:
            raise self._conflict(payload, existing)

        now = datetime.utcnow()
        document = dict(payload)
        document.update({
            "submissionDate": now,
            "ipAddress": ip_address,
            "userAgent": user_agent,
            "status": RegistrationStatus.PENDING.value,
            "createdAt": now,
            "updatedAt": now,
        })

        try:
            result = await self.collection.insert_one(document)
        except DuplicateKeyError:
            # lost the race against a concurrent create for the same pair
            existing = await self.collection.find_one(
                {"email": payload["email"], "registrationType": payload["registrationType"]},
                {"_id": 1, "submissionDate": 1},
            )
            raise self._conflict(payload, existing)

        logger.info(f"📝 Registration created: {result.inserted_id} ({payload['registrationType']})")
        return {
            "id": str(result.inserted_id),
            "registrationType": payload["registrationType"],
            "submissionDate": now,
        }

    @staticmethod
    def _conflict(payload: Dict[str, Any], existing: Optional[Dict[str, Any]]) -> ConflictError:
        logger.info(f"Duplicate registration for {payload['email']} ({payload['registrationType']})")
        message = f"A registration with this email already exists for {payload['registrationType']} type"
        if not existing:
            return ConflictError(message)
        return ConflictError(
            message,
            existing_id=str(existing["_id"]),
            submission_date=existing.get("submissionDate"),
        )

    async def list(self, filters: Optional[Dict[str, Any]] = None, page: Any = 1, limit: Any = None) -> Tuple[List[Dict[str, Any]], Dict[str, Any]]:
        """Return one page of matching registrations plus pagination metadata"""
        page = parse_positive_int(page, 1)
        limit = min(parse_positive_int(limit, self.default_page_size), self.max_page_size)
        query = build_list_filter(filters or {})

        total = await self.collection.count_documents(query)
        skip = (page - 1) * limit
        if skip >= total:
            # past the last page; also keeps skip within int64 for huge page numbers
            registrations = []
        else:
            cursor = (
                self.collection.find(query)
                .sort("submissionDate", DESCENDING)
                .skip(skip)
                .limit(limit)
            )
            registrations = await cursor.to_list(length=limit)

        total_pages = math.ceil(total / limit)
        pagination = {
            "currentPage": page,
            "totalPages": total_pages,
            "totalRecords": total,
            "hasNextPage": page < total_pages,
            "hasPrevPage": page > 1,
            "limit": limit,
        }
        return registrations, pagination

    async def get_by_id(self, registration_id: str) -> Dict[str, Any]:
        object_id = parse_object_id(registration_id)
        registration = await self.collection.find_one({"_id": object_id})
        if not registration:
            raise NotFoundError("Registration not found")
        return registration

    async def update_status(self, registration_id: str, status: str) -> Dict[str, Any]:
        """Overwrite status; any of the four values may follow any other"""
        if status not in STATUS_VALUES:
            raise BadRequestError("Invalid status. Allowed values: " + ", ".join(STATUS_VALUES))
        object_id = parse_object_id(registration_id)

        registration = await self.collection.find_one_and_update(
            {"_id": object_id},
            {"$set": {"status": status, "updatedAt": datetime.utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        if not registration:
            raise NotFoundError("Registration not found")
        logger.info(f"Registration {registration_id} status set to {status}")
        return registration

    async def delete(self, registration_id: str) -> Dict[str, Any]:
        """Permanently remove a registration"""
        object_id = parse_object_id(registration_id)
        registration = await self.collection.find_one_and_delete({"_id": object_id})
        if not registration:
            raise NotFoundError("Registration not found")
        logger.info(f"🗑️ Registration {registration_id} permanently deleted")
        return registration

    async def _group_counts(self, registration_type: RegistrationType, field: str) -> List[Dict[str, Any]]:
        pipeline = [
            {"$match": {"registrationType": registration_type.value}},
            {"$group": {"_id": f"${field}", "count": {"$sum": 1}}},
            {"$sort": {"count": -1, "_id": 1}},
        ]
        cursor = self.collection.aggregate(pipeline)
        return await cursor.to_list(length=None)

    async def aggregate_stats(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Overview counts, per-type group-bys and the trailing-window count"""
        now = now or datetime.utcnow()

        overview = {
            "totalRegistrations": 0,
            "attendees": 0,
            "anchorPartners": 0,
            "seriesVentures": 0,
            "pendingReviews": 0,
            "approvedRegistrations": 0,
        }
        type_keys = {
            RegistrationType.ATTEND.value: "attendees",
            RegistrationType.ANCHOR_PARTNER.value: "anchorPartners",
            RegistrationType.SERIES_VENTURE.value: "seriesVentures",
        }
        status_keys = {
            RegistrationStatus.PENDING.value: "pendingReviews",
            RegistrationStatus.APPROVED.value: "approvedRegistrations",
        }

        cursor = self.collection.aggregate([
            {"$group": {
                "_id": {"registrationType": "$registrationType", "status": "$status"},
                "count": {"$sum": 1},
            }}
        ])
        async for bucket in cursor:
            count = bucket["count"]
            overview["totalRegistrations"] += count
            type_key = type_keys.get(bucket["_id"].get("registrationType"))
            if type_key:
                overview[type_key] += count
            status_key = status_keys.get(bucket["_id"].get("status"))
            if status_key:
                overview[status_key] += count

        recent_since = now - timedelta(days=self.recent_days)
        recent_count = await self.collection.count_documents({"submissionDate": {"$gte": recent_since}})

        return {
            "overview": overview,
            "sponsorshipTiers": await self._group_counts(RegistrationType.ANCHOR_PARTNER, "sponsorshipTier"),
            "ventureStages": await self._group_counts(RegistrationType.SERIES_VENTURE, "ventureStage"),
            "fundingNeeds": await self._group_counts(RegistrationType.SERIES_VENTURE, "fundingNeeds"),
            "recentRegistrations": recent_count,
        }
