# backend/models/registration.py
from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, Dict, Any
from datetime import datetime
from bson import ObjectId
from enum import Enum
import re


class RegistrationType(str, Enum):
    ANCHOR_PARTNER = "anchor-partner"
    SERIES_VENTURE = "series-venture"
    ATTEND = "attend"


class SponsorshipTier(str, Enum):
    TIER1 = "tier1"
    TIER2 = "tier2"
    COMMUNITY = "community"
    DEMODAY = "demoday"


class ParticipationType(str, Enum):
    SPONSOR = "sponsor"
    SPEAKER = "speaker"
    EXHIBITOR = "exhibitor"
    MULTIPLE = "multiple"


class VentureStage(str, Enum):
    IDEA = "idea"
    PROTOTYPE = "prototype"
    PILOT = "pilot"
    EARLY_REVENUE = "early-revenue"
    SCALING = "scaling"


class FundingNeeds(str, Enum):
    UNDER_5M = "under-5m"
    FROM_5M_TO_10M = "5m-10m"
    FROM_10M_TO_25M = "10m-25m"
    FROM_25M_TO_50M = "25m-50m"
    OVER_50M = "over-50m"


class RegistrationStatus(str, Enum):
    PENDING = "pending"
    REVIEWED = "reviewed"
    APPROVED = "approved"
    REJECTED = "rejected"


REGISTRATION_TYPE_LABELS = {
    RegistrationType.ANCHOR_PARTNER.value: "Anchor Partner",
    RegistrationType.SERIES_VENTURE.value: "Series Venture",
    RegistrationType.ATTEND.value: "Attendee",
}

SPONSORSHIP_TIER_DESCRIPTIONS = {
    SponsorshipTier.TIER1.value: "Anchor Partner Tier 1 (₦40m+ / $26.6k+)",
    SponsorshipTier.TIER2.value: "Anchor Partner Tier 2 (₦25m-40m / $16.6k-26.6k)",
    SponsorshipTier.COMMUNITY.value: "Community Sponsor (₦10m-25m / $6.6k-16.6k)",
    SponsorshipTier.DEMODAY.value: "Demo Day Sponsor (₦5m-10m / $3k-6.6k)",
}

FULL_NAME_PATTERN = re.compile(r"^[a-zA-Z\s\-'.]+$")
PHONE_PATTERN = re.compile(r"^\+?[0-9\s\-().]+$")
EMAIL_MAX_LENGTH = 150
TEAM_SIZE_MAX = 100000


# ===== INPUT MODELS =====

class RegistrationBase(BaseModel):
    """Fields every registration carries regardless of type"""
    fullName: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    phone: str = Field(..., max_length=20)
    organization: str = Field(default="", max_length=200)
    registrationType: RegistrationType = Field(default=RegistrationType.ATTEND)

    class Config:
        str_strip_whitespace = True

    @field_validator('fullName')
    @classmethod
    def validate_full_name(cls, v: str) -> str:
        if not FULL_NAME_PATTERN.match(v):
            raise ValueError("Full name can only contain letters, spaces, hyphens, apostrophes, and periods")
        return v

    @field_validator('email')
    @classmethod
    def normalize_email(cls, v: str) -> str:
        v = v.lower().strip()
        if len(v) > EMAIL_MAX_LENGTH:
            raise ValueError("Email address is too long")
        return v

    @field_validator('phone')
    @classmethod
    def validate_phone(cls, v: str) -> str:
        digits = sum(1 for c in v if c.isdigit())
        if not PHONE_PATTERN.match(v) or not 7 <= digits <= 15:
            raise ValueError("Please provide a valid phone number")
        return v


class AnchorPartnerFields(BaseModel):
    """Required when registrationType is anchor-partner"""
    sponsorshipTier: SponsorshipTier
    participationType: ParticipationType


class SeriesVentureFields(BaseModel):
    """Required when registrationType is series-venture"""
    ventureStage: VentureStage
    location: str = Field(..., max_length=200)
    teamSize: int = Field(..., gt=0, le=TEAM_SIZE_MAX)
    projectDescription: str = Field(..., min_length=100, max_length=500)
    fundingNeeds: FundingNeeds
    guidedLabsInterest: str = Field(..., min_length=50, max_length=500)

    class Config:
        str_strip_whitespace = True

    @field_validator('teamSize', mode='before')
    @classmethod
    def reject_boolean_team_size(cls, v):
        # bool is an int subclass; true would otherwise be stored as 1
        if isinstance(v, bool):
            raise ValueError(f"Team size must be a whole number between 1 and {TEAM_SIZE_MAX}")
        return v


class StatusUpdate(BaseModel):
    status: RegistrationStatus


# ===== OUTPUT MODEL =====

class RegistrationOut(BaseModel):
    """Output model for registration documents"""
    id: str = Field(alias="_id")
    fullName: str
    email: str
    phone: str
    organization: str = ""
    registrationType: str
    registrationTypeFormatted: str = ""
    sponsorshipTier: str = ""
    sponsorshipTierDescription: str = ""
    participationType: str = ""
    ventureStage: str = ""
    location: str = ""
    teamSize: Optional[int] = None
    projectDescription: str = ""
    fundingNeeds: str = ""
    guidedLabsInterest: str = ""
    submissionDate: datetime
    ipAddress: Optional[str] = None
    userAgent: Optional[str] = None
    status: str
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    class Config:
        populate_by_name = True


def serialize_registration(document: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a stored registration into its JSON-ready API shape"""
    doc = dict(document)
    if isinstance(doc.get("_id"), ObjectId):
        doc["_id"] = str(doc["_id"])
    registration_type = doc.get("registrationType", "")
    doc["registrationTypeFormatted"] = REGISTRATION_TYPE_LABELS.get(registration_type, registration_type)
    doc["sponsorshipTierDescription"] = SPONSORSHIP_TIER_DESCRIPTIONS.get(doc.get("sponsorshipTier") or "", "")
    return RegistrationOut(**doc).model_dump(mode="json")
