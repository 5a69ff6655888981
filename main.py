import logging
import sys
import threading
import time
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Callable, Optional

import uvicorn
from bson.errors import InvalidId
from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import Settings
from database import (
    ConstraintViolation,
    NotFound,
    connect,
    create_document,
    ensure_indexes,
    find_document,
    get_db,
    get_documents,
    parse_object_id,
    serialize_document,
    update_document,
)
from schemas import (
    BookingRequest,
    CrowdData,
    CrowdDataRequest,
    DarshanBooking,
    EmergencyAlert,
    GeoPoint,
    LoginRequest,
    MessageResponse,
    PanicAlertRequest,
    RegisterRequest,
    Temple,
    TempleStatus,
    TokenResponse,
    User,
)
from security import InvalidToken, TokenIssuer, hash_password, verify_password

logger = logging.getLogger(__name__)

SERVER_ERROR = "Server error"


# -----------------------------
# Utility functions
# -----------------------------

class QrCodeGenerator:
    """Booking codes of the form QR-<epoch ms>-<user id>.

    The millisecond stamp is strictly increasing per generator, so one
    process never hands out the same code twice.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._lock = threading.Lock()
        self._last_stamp = 0

    def next_stamp(self) -> int:
        with self._lock:
            stamp = max(int(self._clock() * 1000), self._last_stamp + 1)
            self._last_stamp = stamp
            return stamp

    def make(self, user_id: str) -> str:
        return f"QR-{self.next_stamp()}-{user_id}"


def server_error(message: str) -> HTTPException:
    logger.exception(message)
    return HTTPException(status_code=500, detail=SERVER_ERROR)


# -----------------------------
# Authentication gate
# -----------------------------

def get_token_issuer(request: Request) -> TokenIssuer:
    return request.app.state.tokens


def get_qr_codes(request: Request) -> QrCodeGenerator:
    return request.app.state.qr_codes


def get_current_user(
    x_auth_token: Optional[str] = Header(None),
    tokens: TokenIssuer = Depends(get_token_issuer),
) -> dict:
    if not x_auth_token:
        raise HTTPException(status_code=401, detail="No token, authorization denied")
    try:
        return tokens.verify(x_auth_token)
    except InvalidToken:
        raise HTTPException(status_code=401, detail="Token is not valid")


# -----------------------------
# Routes
# -----------------------------

router = APIRouter()


@router.get("/", response_class=PlainTextResponse)
def root():
    return "Pilgrimage Management API is running..."


@router.post("/api/auth/register", status_code=201, response_model=TokenResponse)
def register(
    req: RegisterRequest,
    db: Database = Depends(get_db),
    tokens: TokenIssuer = Depends(get_token_issuer),
):
    email = req.email.lower()
    try:
        find_document(db, User.collection_name(), {"email": email})
    except NotFound:
        pass
    except PyMongoError:
        raise server_error("Register lookup failed")
    else:
        raise HTTPException(status_code=400, detail="User already exists")

    user = User(name=req.name, email=email, password_hash=hash_password(req.password))
    try:
        doc = create_document(db, User.collection_name(), user)
    except ConstraintViolation:
        raise HTTPException(status_code=400, detail="User already exists")
    except PyMongoError:
        raise server_error("Register insert failed")

    logger.info("Registered user %s", doc["_id"])
    return {"token": tokens.issue({"id": str(doc["_id"])})}


@router.post("/api/auth/login", response_model=TokenResponse)
def login(
    req: LoginRequest,
    db: Database = Depends(get_db),
    tokens: TokenIssuer = Depends(get_token_issuer),
):
    try:
        user = find_document(db, User.collection_name(), {"email": req.email.lower()})
    except NotFound:
        raise HTTPException(status_code=400, detail="Invalid Credentials")
    except PyMongoError:
        raise server_error("Login lookup failed")

    if not verify_password(req.password, user.get("passwordHash", "")):
        raise HTTPException(status_code=400, detail="Invalid Credentials")
    return {"token": tokens.issue({"id": str(user["_id"])})}


@router.get("/api/temples")
def list_temples(db: Database = Depends(get_db)):
    try:
        temples = get_documents(db, Temple.collection_name())
    except PyMongoError:
        raise server_error("Temple listing failed")
    return serialize_document(temples)


@router.post("/api/bookings", status_code=201)
def create_booking(
    req: BookingRequest,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    qr_codes: QrCodeGenerator = Depends(get_qr_codes),
):
    try:
        temple_id = parse_object_id(req.temple_id)
    except InvalidId:
        raise HTTPException(status_code=400, detail="Invalid temple id")

    booking = DarshanBooking(
        user=parse_object_id(user["id"]),
        temple=temple_id,
        slot_time=req.slot_time,
        qr_code=qr_codes.make(user["id"]),
    )
    try:
        doc = create_document(db, DarshanBooking.collection_name(), booking)
    except ConstraintViolation:
        raise HTTPException(status_code=400, detail="Booking already exists")
    except PyMongoError:
        raise server_error("Booking insert failed")

    logger.info("Booking %s created for user %s", doc["_id"], user["id"])
    return serialize_document(doc)


@router.get("/api/bookings")
def list_bookings(
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    try:
        bookings = get_documents(db, DarshanBooking.collection_name(), {"user": parse_object_id(user["id"])})
        temple_ids = list({b["temple"] for b in bookings})
        temples = get_documents(
            db,
            Temple.collection_name(),
            {"_id": {"$in": temple_ids}},
            projection={"name": 1, "location": 1},
        ) if temple_ids else []
    except PyMongoError:
        raise server_error("Booking listing failed")

    by_id = {t["_id"]: t for t in temples}
    for b in bookings:
        b["temple"] = by_id.get(b["temple"])
    return serialize_document(bookings)


@router.post("/api/data/crowd", response_model=MessageResponse)
def ingest_crowd_data(req: CrowdDataRequest, db: Database = Depends(get_db)):
    try:
        temple_id = parse_object_id(req.temple_id)
    except InvalidId:
        raise HTTPException(status_code=400, detail="Invalid temple id")

    sample = CrowdData(temple=temple_id, crowd_count=req.crowd_count, source=req.source)
    try:
        create_document(db, CrowdData.collection_name(), sample)
        # Not atomic with the insert above; a failure here leaves the sample in place.
        update_document(db, Temple.collection_name(), temple_id, TempleStatus(current_crowd_level=req.crowd_level))
    except NotFound:
        logger.warning("Crowd data for unknown temple %s; no status updated", temple_id)
    except PyMongoError:
        raise server_error("Crowd data ingestion failed")
    return {"msg": "Crowd data ingested successfully"}


@router.post("/api/alerts/panic", status_code=201, response_model=MessageResponse)
def raise_panic_alert(
    req: PanicAlertRequest,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    alert = EmergencyAlert(
        user=parse_object_id(user["id"]),
        location=GeoPoint(latitude=req.latitude, longitude=req.longitude),
        alert_type=req.alert_type or "Medical",
    )
    try:
        doc = create_document(db, EmergencyAlert.collection_name(), alert)
    except PyMongoError:
        raise server_error("Panic alert insert failed")

    logger.info("Alert %s (%s) raised by user %s", doc["_id"], doc["alertType"], user["id"])
    return {"msg": "Alert raised successfully. Help is on the way."}


# -----------------------------
# Error handlers
# -----------------------------

async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"msg": exc.detail}, status_code=exc.status_code, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else first.get("msg")
    else:
        message = "Invalid request"
    return JSONResponse({"msg": message}, status_code=400)


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse({"msg": SERVER_ERROR}, status_code=500)


# -----------------------------
# App factory
# -----------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    app.state.db.client.close()
    logger.info("MongoDB connection closed")


def create_app(settings: Settings, db: Database) -> FastAPI:
    app = FastAPI(title="Pilgrimage Management API", lifespan=lifespan)
    app.state.settings = settings
    app.state.db = db
    app.state.tokens = TokenIssuer(settings.JWT_SECRET, timedelta(hours=settings.JWT_EXPIRES_HOURS))
    app.state.qr_codes = QrCodeGenerator()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(router)
    return app


def main():
    settings = Settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        db = connect(settings)
        ensure_indexes(db)
    except PyMongoError as e:
        logger.critical("MongoDB connection error: %s", e)
        sys.exit(1)
    uvicorn.run(create_app(settings, db), host="0.0.0.0", port=settings.PORT)


if __name__ == "__main__":
    main()
