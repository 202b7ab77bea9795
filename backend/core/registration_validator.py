"""
Conditional validation for registration submissions.

``validate_registration`` turns a raw (already sanitized) submission into the
flat document that gets stored. The registration type decides which optional
field group is required and which groups are blanked out; both decisions come
from the lookup tables below. Every field error is collected before anything
is rejected.
"""
import logging
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ValidationError

from core.exceptions import RequestValidationFailed
from models.registration import (
    AnchorPartnerFields,
    RegistrationBase,
    RegistrationType,
    SeriesVentureFields,
    StatusUpdate,
    TEAM_SIZE_MAX,
)

logger = logging.getLogger(__name__)


ANCHOR_PARTNER_FIELDS = ("sponsorshipTier", "participationType")
SERIES_VENTURE_FIELDS = (
    "ventureStage",
    "location",
    "teamSize",
    "projectDescription",
    "fundingNeeds",
    "guidedLabsInterest",
)
OPTIONAL_FIELD_GROUPS = {
    RegistrationType.ANCHOR_PARTNER: ANCHOR_PARTNER_FIELDS,
    RegistrationType.SERIES_VENTURE: SERIES_VENTURE_FIELDS,
}

# registration type -> model of the group it requires (None: no group)
REQUIRED_FIELD_GROUPS: Dict[RegistrationType, Optional[Type[BaseModel]]] = {
    RegistrationType.ANCHOR_PARTNER: AnchorPartnerFields,
    RegistrationType.SERIES_VENTURE: SeriesVentureFields,
    RegistrationType.ATTEND: None,
}

# registration type -> fields that are always stored empty
CLEARED_FIELDS: Dict[RegistrationType, tuple] = {
    registration_type: tuple(
        field
        for group_type, fields in OPTIONAL_FIELD_GROUPS.items()
        if group_type != registration_type
        for field in fields
    )
    for registration_type in RegistrationType
}

EMPTY_FIELD_VALUES: Dict[str, Any] = {"teamSize": None}

FIELD_MESSAGES = {
    "fullName": "Full name must be between 2 and 100 characters",
    "email": "Please provide a valid email address",
    "phone": "Please provide a valid phone number",
    "organization": "Organization name is too long",
    "registrationType": "Registration type must be: anchor-partner, series-venture, or attend",
    "sponsorshipTier": "Invalid sponsorship tier",
    "participationType": "Invalid participation type",
    "ventureStage": "Invalid venture stage",
    "location": "Location must be at most 200 characters",
    "teamSize": f"Team size must be a whole number between 1 and {TEAM_SIZE_MAX}",
    "projectDescription": "Project description must be between 100 and 500 characters",
    "fundingNeeds": "Invalid funding needs",
    "guidedLabsInterest": "Guided labs interest must be between 50 and 500 characters",
    "status": "Status must be: pending, reviewed, approved, or rejected",
}

REQUIRED_MESSAGES = {
    "fullName": "Full name is required",
    "email": "Email address is required",
    "phone": "Phone number is required",
    "sponsorshipTier": "Sponsorship tier is required for anchor partners",
    "participationType": "Participation type is required for anchor partners",
    "ventureStage": "Venture stage is required for series ventures",
    "location": "Location is required for series ventures",
    "teamSize": "Team size is required for series ventures",
    "projectDescription": "Project description is required for series ventures",
    "fundingNeeds": "Funding needs are required for series ventures",
    "guidedLabsInterest": "Guided labs interest is required for series ventures",
    "status": "Status is required",
}


def empty_value(field: str) -> Any:
    return EMPTY_FIELD_VALUES.get(field, "")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _format_errors(exc: ValidationError) -> List[Dict[str, Any]]:
    """Flatten pydantic errors into {field, message, value} entries"""
    formatted = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ())) or "body"
        ctx = error.get("ctx") or {}
        if error.get("type") == "missing":
            message = REQUIRED_MESSAGES.get(field, f"{field} is required")
        elif "error" in ctx:
            # raised by one of our own field validators
            message = str(ctx["error"])
        else:
            message = FIELD_MESSAGES.get(field, error.get("msg", "Invalid value"))
        value = error.get("input")
        formatted.append({
            "field": field,
            "message": message,
            "value": value if not isinstance(value, dict) else None,
        })
    return formatted


def _validate_model(model: Type[BaseModel], data: Dict[str, Any], errors: List[Dict[str, Any]]) -> Optional[BaseModel]:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        errors.extend(_format_errors(e))
        return None


def resolve_registration_type(raw: Dict[str, Any]) -> Optional[RegistrationType]:
    value = raw.get("registrationType")
    if _is_blank(value):
        return RegistrationType.ATTEND
    try:
        return RegistrationType(str(value).strip())
    except ValueError:
        return None


def validate_registration(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate a raw submission and return the normalized registration document.

    Raises RequestValidationFailed carrying every field error found.
    """
    if not isinstance(raw, dict):
        raise RequestValidationFailed(
            [{"field": "body", "message": "Request body must be a JSON object", "value": None}]
        )

    # blank values count as missing so required checks report them as such
    data = {key: value for key, value in raw.items() if not _is_blank(value)}
    errors: List[Dict[str, Any]] = []

    base = _validate_model(RegistrationBase, data, errors)
    registration_type = resolve_registration_type(raw)

    group = None
    group_model = REQUIRED_FIELD_GROUPS.get(registration_type) if registration_type is not None else None
    if group_model is not None:
        group_fields = OPTIONAL_FIELD_GROUPS[registration_type]
        group_data = {field: data[field] for field in group_fields if field in data}
        group = _validate_model(group_model, group_data, errors)

    if errors:
        logger.info(f"Registration rejected with {len(errors)} validation error(s)")
        raise RequestValidationFailed(errors)

    document = base.model_dump(mode="json")
    if group is not None:
        document.update(group.model_dump(mode="json"))
    for field in CLEARED_FIELDS[registration_type]:
        document[field] = empty_value(field)

    return document


def validate_status(raw: Any) -> str:
    """Validate a status update body and return the new status value"""
    data = raw if isinstance(raw, dict) else {}
    if _is_blank(data.get("status")):
        data = {}
    errors: List[Dict[str, Any]] = []
    update = _validate_model(StatusUpdate, data, errors)
    if errors:
        raise RequestValidationFailed(errors)
    return update.status.value
