# routes/registrations.py - registration intake and administration
import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request, status

from core.dependencies import get_settings, get_store, rate_limit
from core.exceptions import BadRequestError, InternalError, RegistrationAPIError
from core.registration_store import RegistrationStore
from core.registration_validator import validate_registration, validate_status
from core.responses import success_response
from core.security import get_client_ip, get_user_agent, sanitize_input
from models.registration import serialize_registration

logger = logging.getLogger(__name__)
router = APIRouter()


# ===== HELPERS =====

async def read_json_body(request: Request) -> Any:
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise BadRequestError("Invalid JSON in request body")


def internal_error(request: Request, message: str, e: Exception) -> InternalError:
    logger.error(f"{message}: {e}", exc_info=True)
    detail = str(e) if get_settings(request).is_development() else None
    return InternalError(message, detail=detail)


async def log_activity(
    store: RegistrationStore,
    action: str,
    entity_id: str,
    user_action: str,
    request: Request,
    before_data: dict = None,
    after_data: dict = None,
):
    """Append an audit entry; failures are logged and never fail the request"""
    if store.audit_collection is None:
        return
    try:
        log_entry = {
            "timestamp": datetime.utcnow(),
            "action": action,
            "entity_type": "registration",
            "entity_id": entity_id,
            "user_action": user_action,
            "before_data": before_data or {},
            "after_data": after_data or {},
            "request_info": {
                "ip": get_client_ip(request),
                "user_agent": get_user_agent(request),
                "method": request.method,
                "path": str(request.url.path),
            },
        }
        await store.audit_collection.insert_one(log_entry)
        logger.info(f"📝 AUDIT: {action} - {user_action}")
    except Exception as e:
        logger.error(f"Audit logging failed: {e}")


# ===== ROUTES =====

@router.post("", dependencies=[Depends(rate_limit("registration"))])
async def create_registration(request: Request, store: RegistrationStore = Depends(get_store)):
    """Create a new registration"""
    try:
        raw = sanitize_input(await read_json_body(request))
        payload = validate_registration(raw)
        created = await store.create(
            payload,
            ip_address=get_client_ip(request),
            user_agent=get_user_agent(request),
        )
        return success_response(
            data=created,
            message="Registration submitted successfully",
            status_code=status.HTTP_201_CREATED,
        )
    except RegistrationAPIError:
        raise
    except Exception as e:
        raise internal_error(request, "Internal server error. Please try again later.", e)


@router.get("", dependencies=[Depends(rate_limit("retrieval"))])
async def list_registrations(
    request: Request,
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    registrationType: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    sponsorshipTier: Optional[str] = Query(None),
    ventureStage: Optional[str] = Query(None),
    fundingNeeds: Optional[str] = Query(None),
    startDate: Optional[str] = Query(None),
    endDate: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    store: RegistrationStore = Depends(get_store),
):
    """Get all registrations with filtering and pagination"""
    try:
        filters: Dict[str, Any] = sanitize_input({
            "registrationType": registrationType,
            "status": status,
            "sponsorshipTier": sponsorshipTier,
            "ventureStage": ventureStage,
            "fundingNeeds": fundingNeeds,
            "startDate": startDate,
            "endDate": endDate,
            "search": search,
        })
        registrations, pagination = await store.list(filters, page=page, limit=limit)
        return success_response(
            data=[serialize_registration(doc) for doc in registrations],
            pagination=pagination,
        )
    except RegistrationAPIError:
        raise
    except Exception as e:
        raise internal_error(request, "Failed to fetch registrations", e)


@router.get("/stats", dependencies=[Depends(rate_limit("retrieval"))])
async def get_registration_stats(request: Request, store: RegistrationStore = Depends(get_store)):
    """Get registration statistics"""
    try:
        stats = await store.aggregate_stats()
        return success_response(data=stats)
    except RegistrationAPIError:
        raise
    except Exception as e:
        raise internal_error(request, "Failed to fetch registration statistics", e)


@router.get("/{registration_id}", dependencies=[Depends(rate_limit("retrieval"))])
async def get_registration(registration_id: str, request: Request, store: RegistrationStore = Depends(get_store)):
    """Get a single registration by ID"""
    try:
        registration = await store.get_by_id(registration_id)
        return success_response(data=serialize_registration(registration))
    except RegistrationAPIError:
        raise
    except Exception as e:
        raise internal_error(request, "Failed to fetch registration", e)


@router.put("/{registration_id}/status")
async def update_registration_status(registration_id: str, request: Request, store: RegistrationStore = Depends(get_store)):
    """Update registration status"""
    try:
        new_status = validate_status(sanitize_input(await read_json_body(request)))
        before = await store.get_by_id(registration_id)
        registration = await store.update_status(registration_id, new_status)

        await log_activity(
            store,
            action="status_update",
            entity_id=registration_id,
            user_action=f"Status changed from {before.get('status')} to {new_status}",
            request=request,
            before_data={"status": before.get("status")},
            after_data={"status": new_status},
        )
        return success_response(
            data=serialize_registration(registration),
            message="Registration status updated successfully",
        )
    except RegistrationAPIError:
        raise
    except Exception as e:
        raise internal_error(request, "Failed to update registration status", e)


@router.delete("/{registration_id}")
async def delete_registration(registration_id: str, request: Request, store: RegistrationStore = Depends(get_store)):
    """Delete a registration (permanent)"""
    try:
        registration = await store.delete(registration_id)
        deleted = {
            "id": str(registration["_id"]),
            "email": registration["email"],
            "registrationType": registration["registrationType"],
        }

        await log_activity(
            store,
            action="delete",
            entity_id=registration_id,
            user_action=f"Deleted registration for {registration['email']}",
            request=request,
            before_data=serialize_registration(registration),
        )
        return success_response(
            data=deleted,
            message="Registration permanently deleted successfully",
        )
    except RegistrationAPIError:
        raise
    except Exception as e:
        raise internal_error(request, "Failed to delete registration", e)
