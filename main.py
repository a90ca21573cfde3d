import hashlib
import os
import secrets
from datetime import date, datetime, timezone
from typing import Any, List, Optional

from bson.objectid import ObjectId
from fastapi import Body, Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr, ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

import database
from database import create_document, get_db, get_documents, utcnow
from logging_utils import get_logger
from lookups import build_config, fetch_lookups, seed_lookups
from rate_limit import client_ip, donation_limiter, resource_limiter
from schemas import RESOURCE_COLLECTIONS, Contributor, DonationRequest, Material, RequestCategory, Session
from validation import (
    DonationRequestSubmission,
    MaterialSubmission,
    format_errors,
    is_valid_time_format,
    resource_adapter,
)

logger = get_logger("api")
resources_logger = get_logger("resources")
donations_logger = get_logger("donations")
config_logger = get_logger("config")

app = FastAPI(title="EduShare API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

MAX_PAGE_SIZE = 50
HONEYPOT_FIELDS = ("website", "email_confirm")
INVALID_TYPE_MESSAGE = 'Invalid resource type. Must be "material" or "session"'


# -------------------------
# Error responses
# -------------------------
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    content = exc.detail if isinstance(exc.detail, dict) else {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    if any(err.get("type") == "json_invalid" for err in exc.errors()):
        return JSONResponse(status_code=400, content={"error": "Invalid JSON in request body"})
    return JSONResponse(
        status_code=400,
        content={"error": "Validation failed", "details": format_errors(exc)},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unexpected error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "An unexpected error occurred"})


# -------------------------
# Helpers
# -------------------------
def sha256_hash(text: str) -> str:
    return hashlib.sha256(text.encode()).hexdigest()


def serialize_doc(doc):
    if not doc:
        return doc
    doc["id"] = str(doc.pop("_id"))
    # Convert datetimes
    for k, v in list(doc.items()):
        if isinstance(v, datetime):
            if v.tzinfo is None:
                v = v.replace(tzinfo=timezone.utc)
            doc[k] = v.astimezone(timezone.utc).isoformat()
    return doc


def parse_object_id(id_str: str) -> ObjectId:
    if not ObjectId.is_valid(id_str):
        raise HTTPException(status_code=400, detail="Invalid resource ID format")
    return ObjectId(id_str)


def collection_for(resource_type: Optional[str], message: str = INVALID_TYPE_MESSAGE) -> str:
    if resource_type not in RESOURCE_COLLECTIONS:
        raise HTTPException(status_code=400, detail=message)
    return RESOURCE_COLLECTIONS[resource_type]


def is_honeypot_tripped(body: Any) -> bool:
    return isinstance(body, dict) and any(body.get(field) for field in HONEYPOT_FIELDS)


def validation_failed(exc: ValidationError) -> HTTPException:
    return HTTPException(status_code=400, detail={"error": "Validation failed", "details": format_errors(exc)})


# -------------------------
# Auth
# -------------------------
class AuthUser(BaseModel):
    id: str
    email: str
    name: Optional[str] = None
    is_admin: bool = False


def admin_emails() -> List[str]:
    return [e.strip().lower() for e in os.getenv("ADMIN_EMAILS", "").split(",") if e.strip()]


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_optional_user(authorization: Optional[str] = Header(None)) -> Optional[AuthUser]:
    """Resolve the caller from a bearer token; unknown tokens count as anonymous."""
    token = bearer_token(authorization)
    if not token:
        return None
    contributor = get_db()["contributor"].find_one({"api_key": token})
    if not contributor:
        return None
    email = contributor.get("email", "")
    return AuthUser(
        id=str(contributor["_id"]),
        email=email,
        name=contributor.get("name"),
        is_admin=email.lower() in admin_emails(),
    )


def get_current_user(user: Optional[AuthUser] = Depends(get_optional_user)) -> AuthUser:
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized. Please log in.")
    return user


def require_admin(user: AuthUser = Depends(get_current_user)) -> AuthUser:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def submission_status(user: Optional[AuthUser], is_anonymous: bool) -> str:
    """Trusted (logged in, named) submissions go live immediately; the rest wait for review."""
    return "approved" if user is not None and not is_anonymous else "pending"


@app.get("/")
def read_root():
    return {"message": "EduShare API running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": None,
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        db = database.db
        if db is not None:
            response["database"] = "✅ Available"
            response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
            response["database_name"] = getattr(db, "name", None) or "❌ Not Set"
            response["connection_status"] = "Connected"
            try:
                collections = db.list_collection_names()
                response["collections"] = collections[:10]
                response["database"] = "✅ Connected & Working"
            except Exception as e:
                response["database"] = f"⚠️ Connected but error: {str(e)[:80]}"
        else:
            response["database"] = "⚠️ Available but not initialized"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response


# Auth endpoints
class SignupRequest(BaseModel):
    name: str
    email: EmailStr
    password: str


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


def _auth_response(contributor_id: str, contributor: dict) -> dict:
    return {
        "token": contributor["api_key"],
        "id": contributor_id,
        "name": contributor.get("name"),
        "email": contributor.get("email"),
        "is_admin": contributor.get("email", "").lower() in admin_emails(),
    }


@app.post("/auth/signup")
def signup(payload: SignupRequest):
    db = get_db()
    if db["contributor"].find_one({"email": payload.email}):
        raise HTTPException(status_code=400, detail="Email already registered")
    contributor = Contributor(
        name=payload.name,
        email=payload.email,
        password_hash=sha256_hash(payload.password),
        api_key=secrets.token_hex(16),
    )
    contributor_id = create_document("contributor", contributor)
    return _auth_response(contributor_id, contributor.model_dump())


@app.post("/auth/login")
def login(payload: LoginRequest):
    contributor = get_db()["contributor"].find_one({"email": payload.email})
    if not contributor or contributor.get("password_hash") != sha256_hash(payload.password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return _auth_response(str(contributor["_id"]), contributor)


# -------------------------
# Config
# -------------------------
@app.get("/config")
def get_config():
    try:
        tables = fetch_lookups(get_db())
    except Exception:
        config_logger.exception("Error fetching lookup data")
        raise HTTPException(status_code=500, detail="Failed to fetch configuration")
    return build_config(
        tables["levels"],
        tables["streams"],
        tables["languages"],
        tables["material_categories"],
        tables["subjects"],
    )


@app.post("/config/seed")
def seed_config(admin: AuthUser = Depends(require_admin)):
    created = seed_lookups(get_db())
    return {"created": created}


# -------------------------
# Resources
# -------------------------
@app.get("/resources")
def list_resources(
    resource_type: Optional[str] = Query(None, alias="type"),
    level: Optional[str] = None,
    stream: Optional[str] = None,
    subject: Optional[str] = None,
    language: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
):
    limit = min(limit, MAX_PAGE_SIZE)
    collection = "sessions" if resource_type == "session" else "materials"

    q: dict = {"status": "approved"}
    if level:
        q["level"] = level
    if stream:
        # array contains
        q["stream"] = stream
    if subject:
        q["subject"] = subject
    if language:
        q["language"] = language

    db = get_db()
    total = db[collection].count_documents(q)
    cursor = (
        db[collection]
        .find(q)
        .sort([("created_at", -1), ("_id", -1)])
        .skip((page - 1) * limit)
        .limit(limit)
    )
    data = [serialize_doc(d) for d in cursor]

    return {
        "data": data,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "totalPages": -(-total // limit),
        },
    }


def _check_live_session(payload) -> None:
    # session_date is already a normalized YYYY-MM-DD string
    if payload.session_date and date.fromisoformat(payload.session_date) < date.today():
        raise HTTPException(status_code=400, detail="Live session date must be in the future")
    if payload.start_time and not is_valid_time_format(payload.start_time):
        raise HTTPException(status_code=400, detail="Invalid start time format")
    if payload.end_time and not is_valid_time_format(payload.end_time):
        raise HTTPException(status_code=400, detail="Invalid end time format")


@app.post("/resources")
def create_resource(
    request: Request,
    body: Any = Body(None),
    user: Optional[AuthUser] = Depends(get_optional_user),
):
    ip = client_ip(request)
    if not resource_limiter.allow(ip):
        raise HTTPException(status_code=429, detail="Too many requests. Please try again later.")

    if is_honeypot_tripped(body):
        resources_logger.info("Honeypot tripped from %s", ip)
        return {"success": True, "id": "fake-id"}

    try:
        payload = resource_adapter.validate_python(body)
    except ValidationError as e:
        raise validation_failed(e)

    db = get_db()
    # Soft check: unknown subjects are logged, not rejected
    if not db["subjects"].find_one({"code": payload.subject, "level_code": payload.level}):
        resources_logger.warning("Subject %r not found for level %s", payload.subject, payload.level)

    status = submission_status(user, payload.is_anonymous)
    contributor = user if status == "approved" else None
    base = dict(
        title=payload.title,
        description=payload.description,
        url=payload.url,
        level=payload.level,
        stream=payload.stream,
        subject=payload.subject,
        language=payload.language,
        contributor_id=contributor.id if contributor else None,
        contributor_name=(contributor.name or contributor.email) if contributor else None,
        is_anonymous=payload.is_anonymous or user is None,
        status=status,
    )

    if isinstance(payload, MaterialSubmission):
        collection = "materials"
        doc = Material(**base, category=payload.category)
    else:
        collection = "sessions"
        is_live = payload.session_type == "Live"
        if is_live:
            _check_live_session(payload)
        doc = Session(
            **base,
            session_type=payload.session_type,
            session_date=payload.session_date if is_live else None,
            start_time=payload.start_time if is_live else None,
            end_time=payload.end_time if is_live else None,
        )

    try:
        resource_id = create_document(collection, doc)
    except Exception:
        resources_logger.exception("Database insert error")
        raise HTTPException(status_code=500, detail="Failed to save resource. Please try again.")

    resources_logger.info("Stored %s %s with status %s", collection, resource_id, status)
    return {
        "success": True,
        "id": resource_id,
        "status": status,
        "message": "Resource added successfully!" if status == "approved" else "Resource submitted for review.",
    }


@app.get("/resources/{resource_id}")
def get_resource(
    resource_id: str,
    resource_type: Optional[str] = Query(None, alias="type"),
):
    oid = parse_object_id(resource_id)
    collection = collection_for(resource_type, "Invalid resource type")

    doc = get_db()[collection].find_one({"_id": oid, "status": "approved"})
    if not doc:
        raise HTTPException(status_code=404, detail="Resource not found")
    return {"data": serialize_doc(doc)}


@app.delete("/resources/{resource_id}")
def delete_resource(
    resource_id: str,
    resource_type: Optional[str] = Query(None, alias="type"),
    user: Optional[AuthUser] = Depends(get_optional_user),
):
    oid = parse_object_id(resource_id)
    collection = collection_for(resource_type)
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized. Please log in.")

    db = get_db()
    resource = db[collection].find_one({"_id": oid}, {"contributor_id": 1})
    if not resource:
        raise HTTPException(status_code=404, detail="Resource not found")
    if resource.get("contributor_id") != user.id and not user.is_admin:
        raise HTTPException(status_code=403, detail="You can only delete your own resources")

    db[collection].delete_one({"_id": oid})
    resources_logger.info("Deleted %s %s by %s", collection, resource_id, user.id)
    return {"success": True, "message": "Resource deleted successfully"}


# -------------------------
# Contributor dashboard
# -------------------------
@app.get("/me/resources")
def my_resources(user: AuthUser = Depends(get_current_user)):
    docs = []
    for resource_type, collection in RESOURCE_COLLECTIONS.items():
        for d in get_documents(collection, {"contributor_id": user.id}):
            d["resource_type"] = resource_type
            docs.append(d)
    docs.sort(key=lambda d: (d["created_at"], d["_id"]), reverse=True)
    return {"data": [serialize_doc(d) for d in docs]}


@app.get("/me/stats")
def my_stats(user: AuthUser = Depends(get_current_user)):
    db = get_db()

    def count(collection: str, status: Optional[str] = None) -> int:
        q = {"contributor_id": user.id}
        if status:
            q["status"] = status
        return db[collection].count_documents(q)

    return {
        "materials": count("materials"),
        "sessions": count("sessions"),
        "pending": count("materials", "pending") + count("sessions", "pending"),
        "approved": count("materials", "approved") + count("sessions", "approved"),
    }


# -------------------------
# Moderation
# -------------------------
@app.get("/admin/pending")
def list_pending(admin: AuthUser = Depends(require_admin)):
    items = []
    counts = {}
    for resource_type, collection in RESOURCE_COLLECTIONS.items():
        docs = get_documents(collection, {"status": "pending"}, sort=[("created_at", 1), ("_id", 1)])
        counts[collection] = len(docs)
        for d in docs:
            d["resource_type"] = resource_type
            items.append(d)
    items.sort(key=lambda d: (d["created_at"], d["_id"]))
    return {
        "data": [serialize_doc(d) for d in items],
        "counts": {"total": len(items), **counts},
    }


def _moderate(resource_id: str, resource_type: Optional[str], new_status: str, admin: AuthUser) -> dict:
    oid = parse_object_id(resource_id)
    collection = collection_for(resource_type)
    db = get_db()

    now = utcnow()
    # only a pending row can move, so a second decision matches nothing
    result = db[collection].update_one(
        {"_id": oid, "status": "pending"},
        {"$set": {"status": new_status, "approved_at": now, "approved_by": admin.id, "updated_at": now}},
    )
    if result.matched_count == 0:
        if db[collection].find_one({"_id": oid}, {"_id": 1}) is None:
            raise HTTPException(status_code=404, detail="Resource not found")
        raise HTTPException(status_code=409, detail="Resource has already been reviewed")

    resources_logger.info("%s %s marked %s by %s", collection, resource_id, new_status, admin.id)
    return {"success": True, "id": resource_id, "status": new_status}


@app.post("/admin/resources/{resource_id}/approve")
def approve_resource(
    resource_id: str,
    resource_type: Optional[str] = Query(None, alias="type"),
    admin: AuthUser = Depends(require_admin),
):
    return _moderate(resource_id, resource_type, "approved", admin)


@app.post("/admin/resources/{resource_id}/reject")
def reject_resource(
    resource_id: str,
    resource_type: Optional[str] = Query(None, alias="type"),
    admin: AuthUser = Depends(require_admin),
):
    return _moderate(resource_id, resource_type, "rejected", admin)


# -------------------------
# Donation requests
# -------------------------
@app.post("/donation-request")
def create_donation_request(request: Request, body: Any = Body(None)):
    ip = client_ip(request)
    if donation_limiter.is_limited(ip):
        raise HTTPException(status_code=429, detail="Too many submissions. Please try again later.")

    if is_honeypot_tripped(body):
        donations_logger.info("Honeypot tripped from %s", ip)
        return {"success": True}

    try:
        payload = DonationRequestSubmission.model_validate(body)
    except ValidationError as e:
        raise validation_failed(e)

    donation = DonationRequest(**payload.model_dump(), submitted_from_ip=ip)
    try:
        request_id = create_document("donationRequests", donation, timestamp_fields=("createdAt", "updatedAt"))
    except Exception:
        donations_logger.exception("Error processing donation request")
        raise HTTPException(status_code=500, detail="Failed to submit request. Please try again.")

    donation_limiter.record(ip)
    return {"success": True, "id": request_id, "message": "Request submitted successfully!"}


@app.get("/donation-requests")
def list_donation_requests(
    category: Optional[RequestCategory] = None,
    district: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
):
    q: dict = {}
    if category:
        q["category"] = category
    if district:
        q["district"] = district
    docs = get_documents("donationRequests", q, limit=limit, sort=[("createdAt", -1), ("_id", -1)])
    for d in docs:
        d.pop("submittedFromIp", None)
    return {"data": [serialize_doc(d) for d in docs]}


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
