"""
Database Schemas for EduShare

Each Pydantic model represents a document in a MongoDB collection. Resource
and lookup collections use plural snake_case names; donation requests keep
their camelCase field names.

Collections:
- Material ("materials")
- Session ("sessions")
- Level, Stream, Language, MaterialCategory, Subject (lookup tables)
- Contributor ("contributor")
- DonationRequest ("donationRequests")
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

LevelCode = Literal["AL", "OL"]
LanguageCode = Literal["Sinhala", "Tamil", "English"]
MaterialCategoryCode = Literal["Past Paper", "Note", "Textbook", "Model Paper"]
SessionType = Literal["Live", "Recording"]
ApprovalStatus = Literal["pending", "approved", "rejected"]
RequestCategory = Literal["Books", "Clothes", "Stationery", "Electronics", "Other"]
RequestStatus = Literal["pending", "in_progress", "fulfilled"]

RESOURCE_COLLECTIONS = {"material": "materials", "session": "sessions"}


class Resource(BaseModel):
    """Fields shared by materials and sessions."""
    title: str = Field(..., description="Resource title")
    description: str = Field(..., description="What the resource covers")
    url: str = Field(..., description="Link to an allow-listed host")
    level: LevelCode = Field(..., description="Exam level: A/L or O/L")
    stream: List[str] = Field(default_factory=list, description="Streams the subject belongs to")
    subject: str = Field(..., description="Subject code")
    language: LanguageCode = Field(..., description="Medium of instruction")

    # Ownership and moderation
    contributor_id: Optional[str] = Field(None, description="Contributor id, null when anonymous")
    contributor_name: Optional[str] = Field(None, description="Denormalized contributor name")
    is_anonymous: bool = Field(False, description="Submitted anonymously or without login")
    status: ApprovalStatus = Field("pending", description="Moderation status")
    approved_at: Optional[datetime] = Field(None, description="When an admin moderated it")
    approved_by: Optional[str] = Field(None, description="Admin id who moderated it")


class Material(Resource):
    """
    Static educational resources: past papers, notes, textbooks.
    Collection name: "materials"
    """
    category: MaterialCategoryCode = Field(..., description="Kind of material")


class Session(Resource):
    """
    Live or recorded classes.
    Collection name: "sessions"
    """
    session_type: SessionType = Field(..., description="Live or Recording")
    session_date: Optional[str] = Field(None, description="YYYY-MM-DD, live sessions only")
    start_time: Optional[str] = Field(None, description="HH:MM, live sessions only")
    end_time: Optional[str] = Field(None, description="HH:MM, live sessions only")


# -------------------------
# Lookup tables
# -------------------------
class Lookup(BaseModel):
    code: str
    name: str
    is_active: bool = True
    display_order: int = 0


class Level(Lookup):
    """Collection name: "levels" """


class Stream(Lookup):
    """Collection name: "streams" """
    level_code: str


class Language(Lookup):
    """Collection name: "languages" """


class MaterialCategory(Lookup):
    """Collection name: "material_categories" """


class Subject(Lookup):
    """
    One row per subject/stream pair, so a subject taught in several streams
    appears several times.
    Collection name: "subjects"
    """
    stream_code: str
    level_code: str


# -------------------------
# Users and donations
# -------------------------
class Contributor(BaseModel):
    """
    Registered users who submit resources.
    Collection name: "contributor"
    """
    name: str = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Login email")
    password_hash: str = Field(..., description="Password hash (sha256)")
    api_key: str = Field(..., description="Bearer token")


class DonationRequest(BaseModel):
    """
    Requests from students for donated goods.
    Collection name: "donationRequests"
    """
    model_config = ConfigDict(populate_by_name=True)

    name: str
    address: str
    district: str
    grade: str
    school: str
    phone_number: str = Field(..., alias="phoneNumber")
    category: RequestCategory
    description: str
    status: RequestStatus = "pending"
    submitted_from_ip: str = Field("unknown", alias="submittedFromIp", description="For abuse tracking")
