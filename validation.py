"""
Input validation for resource and donation submissions.

Free-text fields are length-checked on the raw input and then sanitized, so
a stored value may be shorter than the submitted one.
"""

import re
from datetime import date
from typing import Annotated, List, Literal, Optional, Union
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from schemas import LanguageCode, LevelCode, MaterialCategoryCode, RequestCategory, SessionType

ALLOWED_URL_DOMAINS = [
    "youtube.com",
    "youtu.be",
    "drive.google.com",
    "docs.google.com",
    "dropbox.com",
    "mega.nz",
    "mediafire.com",
    "onedrive.live.com",
    "1drv.ms",
    "github.com",
    "githubusercontent.com",
    "notion.so",
    "notion.site",
    "canva.com",
    "slideshare.net",
    "scribd.com",
    "archive.org",
    "zoom.us",
    "meet.google.com",
    "teams.microsoft.com",
]

MAX_TEXT_LENGTH = 2000
MAX_URL_LENGTH = 500
RESOURCE_TAG = "resourceType"

_TAG_RE = re.compile(r"<[^>]*>")
_JS_PROTOCOL_RE = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER_RE = re.compile(r"on\w+\s*=", re.IGNORECASE)
_TIME_RE = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9](:[0-5][0-9])?$")
_PHONE_RE = re.compile(r"^(?:\+94|0)?7[0-9]{8}$")
_WHITESPACE_RE = re.compile(r"\s")


# -------------------------
# Sanitization & checks
# -------------------------
def sanitize_input(text: str) -> str:
    text = _TAG_RE.sub("", text.strip())
    text = _JS_PROTOCOL_RE.sub("", text)
    text = _EVENT_HANDLER_RE.sub("", text)
    return text[:MAX_TEXT_LENGTH]


def sanitize_url(url: str) -> str:
    return url.strip()[:MAX_URL_LENGTH]


def is_valid_resource_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if parsed.scheme not in ("http", "https"):
        return False
    hostname = (parsed.hostname or "").lower()
    return any(hostname == domain or hostname.endswith("." + domain) for domain in ALLOWED_URL_DOMAINS)


def is_valid_time_format(value: str) -> bool:
    return bool(_TIME_RE.match(value))


def is_valid_phone_number(phone: str) -> bool:
    """Sri Lankan mobile numbers: 07XXXXXXXX, +947XXXXXXXX or 7XXXXXXXX."""
    return bool(_PHONE_RE.match(_WHITESPACE_RE.sub("", phone)))


def _check_length(value: str, minimum: int, maximum: int, too_short: str, too_long: str) -> str:
    if len(value) < minimum:
        raise ValueError(too_short)
    if len(value) > maximum:
        raise ValueError(too_long)
    return sanitize_input(value)


# -------------------------
# Resource submissions
# -------------------------
class ResourceSubmission(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    description: str
    url: str
    level: LevelCode
    subject: str
    language: LanguageCode
    stream: List[str]
    is_anonymous: bool = Field(False, alias="isAnonymous")

    @field_validator("title")
    @classmethod
    def check_title(cls, v: str) -> str:
        return _check_length(v, 3, 200, "Title must be at least 3 characters",
                             "Title must be less than 200 characters")

    @field_validator("description")
    @classmethod
    def check_description(cls, v: str) -> str:
        return _check_length(v, 10, 2000, "Description must be at least 10 characters",
                             "Description must be less than 2000 characters")

    @field_validator("url")
    @classmethod
    def check_url(cls, v: str) -> str:
        parsed = urlparse(v)
        if not (parsed.scheme and parsed.netloc):
            raise ValueError("Invalid URL format")
        if len(v) > MAX_URL_LENGTH:
            raise ValueError("URL too long")
        if not is_valid_resource_url(v):
            raise ValueError("URL must be from an allowed domain (YouTube, Google Drive, Dropbox, etc.)")
        return sanitize_url(v)

    @field_validator("subject")
    @classmethod
    def check_subject(cls, v: str) -> str:
        return _check_length(v, 1, 100, "Subject is required", "Subject name too long")

    @field_validator("stream")
    @classmethod
    def check_stream(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("At least one stream is required")
        return v


class MaterialSubmission(ResourceSubmission):
    resource_type: Literal["material"] = Field(alias="resourceType")
    category: MaterialCategoryCode


class SessionSubmission(ResourceSubmission):
    resource_type: Literal["session"] = Field(alias="resourceType")
    session_type: SessionType = Field(alias="sessionType")
    session_date: Optional[str] = Field(None, alias="sessionDate")
    start_time: Optional[str] = Field(None, alias="startTime")
    end_time: Optional[str] = Field(None, alias="endTime")

    @field_validator("session_date")
    @classmethod
    def check_session_date(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        try:
            return date.fromisoformat(v.strip()).isoformat()
        except ValueError:
            raise ValueError("Invalid session date format")


ResourceInput = Annotated[
    Union[MaterialSubmission, SessionSubmission],
    Field(discriminator="resource_type"),
]
resource_adapter = TypeAdapter(ResourceInput)


# -------------------------
# Donation requests
# -------------------------
class DonationRequestSubmission(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    address: str
    district: str
    grade: str
    school: str
    phone_number: str = Field(alias="phoneNumber")
    category: RequestCategory
    description: str

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        return _check_length(v, 2, 100, "Name must be at least 2 characters", "Name too long")

    @field_validator("address")
    @classmethod
    def check_address(cls, v: str) -> str:
        return _check_length(v, 10, 500, "Please provide a complete address", "Address too long")

    @field_validator("district")
    @classmethod
    def check_district(cls, v: str) -> str:
        return _check_length(v, 2, 50, "District is required", "District name too long")

    @field_validator("grade")
    @classmethod
    def check_grade(cls, v: str) -> str:
        return _check_length(v, 1, 20, "Grade is required", "Grade too long")

    @field_validator("school")
    @classmethod
    def check_school(cls, v: str) -> str:
        return _check_length(v, 3, 200, "School name must be at least 3 characters", "School name too long")

    @field_validator("phone_number")
    @classmethod
    def check_phone(cls, v: str) -> str:
        if not is_valid_phone_number(v):
            raise ValueError("Please enter a valid Sri Lankan phone number")
        return v

    @field_validator("description")
    @classmethod
    def check_description(cls, v: str) -> str:
        return _check_length(v, 10, 1000, "Description must be at least 10 characters", "Description too long")


# -------------------------
# Error formatting
# -------------------------
def format_errors(exc) -> List[dict]:
    """
    Flatten pydantic or FastAPI request errors into [{field, message}] using
    the submitted field names.
    """
    details = []
    for err in exc.errors():
        loc = list(err.get("loc", ()))
        if loc and loc[0] in ("body", "query", "path", "header"):
            loc = loc[1:]
        if not loc and err.get("type") in ("union_tag_not_found", "union_tag_invalid"):
            details.append({"field": RESOURCE_TAG, "message": "Invalid discriminator value. Expected 'material' | 'session'"})
            continue
        # discriminated unions prefix the location with the tag value
        if len(loc) > 1 and loc[0] in ("material", "session"):
            loc = loc[1:]
        if err.get("type") == "value_error":
            message = str(err.get("ctx", {}).get("error", err["msg"]))
        else:
            message = err["msg"]
        details.append({"field": ".".join(str(p) for p in loc), "message": message})
    return details
