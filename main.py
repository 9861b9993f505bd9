import logging
from datetime import date
from typing import List, Optional

from fastapi import Cookie, Depends, FastAPI, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse, Response

import database
import queries
from auth import (
    STATE_COOKIE,
    STATE_TTL_MIN,
    SessionContext,
    auth_error_message,
    authorization_url,
    create_oauth_state,
    current_session,
    exchange_code,
    new_state_nonce,
    optional_session,
    sign_in,
    verify_oauth_state,
)
from availability_calendar import AvailabilityCalendar, rental_total
from config import settings
from errors import MarketplaceError, NotFoundError, PermissionDeniedError
from listing_form import ListingForm
from logging_config import configure_logging, get_logger, log_event
from schemas import (
    COMMON_COLORS,
    DRESS_TYPES,
    PICKUP_LOCATIONS,
    SIZES,
    Availability,
    AvailabilityCreate,
    AvailabilityUpdate,
    CalendarClickRequest,
    CalendarSelection,
    DressFilters,
    Profile,
)
from storage import (
    AVATAR_BUCKET,
    DRESS_BUCKET,
    ObjectStorage,
    PendingImage,
    avatar_path,
    avatar_storage,
    dress_storage,
    validate_image,
)

configure_logging()
LOGGER = get_logger(__name__)

app = FastAPI(title="Dress Rental Marketplace API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    log_event(
        LOGGER, logging.WARNING, "request.failed",
        path=request.url.path, code=exc.code, status=exc.status_code, detail=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


# ---------- Helpers ----------

def get_dress_storage() -> ObjectStorage:
    return dress_storage()


def get_avatar_storage() -> ObjectStorage:
    return avatar_storage()


def _read_upload(upload: UploadFile) -> bytes:
    # one byte past the limit is enough for validate_image to reject it
    return upload.file.read(settings.max_upload_bytes + 1)


def _pending(files: Optional[List[UploadFile]]) -> List[PendingImage]:
    images = []
    for upload in files or []:
        if not upload.filename:
            continue
        images.append(PendingImage(
            filename=upload.filename,
            content_type=upload.content_type or "",
            data=_read_upload(upload),
        ))
    return images


def _require_owner(dress: dict, session: SessionContext) -> None:
    if dress.get("owner_id") != session.user_id:
        raise PermissionDeniedError("You do not have permission to edit this dress.")


def _calendar_for(dress_id: str, **kwargs) -> AvailabilityCalendar:
    return AvailabilityCalendar(
        unavailable_dates=queries.unavailable_dates(dress_id),
        min_rental_days=settings.min_rental_days,
        max_rental_days=settings.max_rental_days,
        **kwargs,
    )


# ---------- Public routes ----------

@app.get("/")
def health():
    return {"status": "ok", "service": "dress-rental-marketplace"}


@app.get("/catalog")
def catalog():
    return {
        "types": DRESS_TYPES,
        "sizes": SIZES,
        "colors": COMMON_COLORS,
        "pickup_locations": PICKUP_LOCATIONS,
        "min_rental_days": settings.min_rental_days,
        "max_rental_days": settings.max_rental_days,
    }


# ---------- Auth ----------

@app.get("/auth/login")
def login():
    nonce = new_state_nonce()
    response = RedirectResponse(authorization_url(create_oauth_state(nonce)))
    response.set_cookie(STATE_COOKIE, nonce, max_age=STATE_TTL_MIN * 60, httponly=True, samesite="lax")
    return response


@app.get("/auth/callback")
def auth_callback(
    response: Response,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    state_nonce: Optional[str] = Cookie(None, alias=STATE_COOKIE),
):
    if error:
        raise HTTPException(status_code=401, detail=auth_error_message(error))
    if not code:
        raise HTTPException(status_code=400, detail="Missing authorization code")
    verify_oauth_state(state, state_nonce)
    response.delete_cookie(STATE_COOKIE)
    return sign_in(exchange_code(code))


@app.get("/auth/error")
def auth_error(error: Optional[str] = None):
    return {"error": error, "message": auth_error_message(error)}


@app.get("/me")
def me(session: SessionContext = Depends(current_session)):
    return {
        "user_id": session.user_id,
        "email": session.email,
        "name": session.name,
        "profile": queries.find_profile(session.user_id),
    }


# ---------- Profile ----------

@app.get("/profile")
def profile(session: SessionContext = Depends(current_session)):
    listings = queries.get_owner_dresses(session.user_id, include_inactive=True)
    active = [d for d in listings if d.get("is_active")]
    return {
        "profile": queries.get_profile(session.user_id),
        "listings": active,
        "stats": {"listings": len(active), "inactive_listings": len(listings) - len(active)},
    }


@app.put("/profile")
def save_profile(
    full_name: str = Form(...),
    phone: Optional[str] = Form(None),
    avatar: Optional[UploadFile] = File(None),
    session: SessionContext = Depends(current_session),
    storage: ObjectStorage = Depends(get_avatar_storage),
):
    if not full_name.strip():
        raise HTTPException(status_code=422, detail="Full name is required")
    fields = Profile(full_name=full_name.strip(), email=session.email, phone=phone or None).model_dump(exclude={"avatar_url"})
    if avatar is not None and avatar.filename:
        data = _read_upload(avatar)
        validate_image(avatar.content_type, len(data))
        path = storage.upload(avatar_path(session.user_id, avatar.filename), data, avatar.content_type, upsert=True)
        fields["avatar_url"] = storage.get_public_url(path)
    return queries.upsert_profile(session.user_id, fields)


# ---------- Dresses ----------

@app.get("/dresses")
def list_dresses(
    types: List[str] = Query([]),
    colors: List[str] = Query([]),
    sizes: List[str] = Query([]),
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    is_available: bool = False,
):
    filters = DressFilters(
        types=types, colors=colors, sizes=sizes,
        min_price=min_price, max_price=max_price, is_available=is_available,
    )
    items = queries.get_dresses(filters)
    return {"count": len(items), "items": items}


@app.post("/dresses", status_code=201)
def create_dress(
    title: str = Form(...),
    types: List[str] = Form([]),
    colors: List[str] = Form([]),
    custom_color: str = Form(""),
    size: str = Form(SIZES[0]),
    price: str = Form(...),
    description: str = Form(...),
    pickup_location: str = Form(""),
    custom_pickup_location: str = Form(""),
    images: Optional[List[UploadFile]] = File(None),
    session: SessionContext = Depends(current_session),
    storage: ObjectStorage = Depends(get_dress_storage),
):
    form = ListingForm(
        title=title, types=types, colors=colors, custom_color=custom_color,
        size=size, price=price, description=description,
        pickup_location=pickup_location, custom_pickup_location=custom_pickup_location,
    )
    form.add_images(_pending(images))
    return form.submit(session.user_id, storage)


@app.get("/dresses/{dress_id}")
def dress_detail(dress_id: str, session: Optional[SessionContext] = Depends(optional_session)):
    dress = queries.get_dress(dress_id)
    is_owner = session is not None and dress.get("owner_id") == session.user_id
    if not dress.get("is_active") and not is_owner:
        raise NotFoundError("Dress not found")
    owner = queries.find_profile(dress["owner_id"]) or {}
    dress["owner"] = {"full_name": owner.get("full_name"), "avatar_url": owner.get("avatar_url")}
    dress["unavailable_dates"] = queries.unavailable_dates(dress_id)
    dress["min_rental_days"] = settings.min_rental_days
    dress["max_rental_days"] = settings.max_rental_days
    dress["is_owner"] = is_owner
    return dress


@app.get("/dresses/{dress_id}/edit")
def edit_dress_form(dress_id: str, session: SessionContext = Depends(current_session)):
    dress = queries.get_dress(dress_id)
    _require_owner(dress, session)
    return ListingForm.from_dress(dress).as_state()


@app.put("/dresses/{dress_id}")
def update_dress(
    dress_id: str,
    title: str = Form(...),
    types: List[str] = Form([]),
    colors: List[str] = Form([]),
    custom_color: str = Form(""),
    size: str = Form(SIZES[0]),
    price: str = Form(...),
    description: str = Form(...),
    pickup_location: str = Form(""),
    custom_pickup_location: str = Form(""),
    keep_images: List[str] = Form([]),
    images: Optional[List[UploadFile]] = File(None),
    session: SessionContext = Depends(current_session),
    storage: ObjectStorage = Depends(get_dress_storage),
):
    dress = queries.get_dress(dress_id)
    _require_owner(dress, session)
    stored = dress.get("image_url") or []
    form = ListingForm(
        title=title, types=types, colors=colors, custom_color=custom_color,
        size=size, price=price, description=description,
        existing_images=[url for url in keep_images if url in stored],
        pickup_location=pickup_location, custom_pickup_location=custom_pickup_location,
    )
    form.add_images(_pending(images))
    return form.submit(session.user_id, storage, dress_id=dress_id)


@app.delete("/dresses/{dress_id}")
def delete_dress(dress_id: str, session: SessionContext = Depends(current_session)):
    dress = queries.get_dress(dress_id)
    _require_owner(dress, session)
    queries.delete_dress(dress_id)
    return {"deleted": True}


# ---------- Calendar ----------

@app.get("/dresses/{dress_id}/calendar")
def dress_calendar(
    dress_id: str,
    year: Optional[int] = None,
    month: Optional[int] = Query(None, ge=1, le=12),
    selected: List[date] = Query([]),
):
    dress = queries.get_dress(dress_id)
    shown = date(year, month, 1) if year and month else None
    calendar = _calendar_for(dress_id, month=shown, selected=selected)
    view = calendar.render()
    view["rental_days"] = calendar.rental_days
    view["total_price"] = rental_total(dress["price"], calendar.selection)
    return view


@app.post("/dresses/{dress_id}/calendar/select", response_model=CalendarSelection)
def select_dates(dress_id: str, payload: CalendarClickRequest):
    dress = queries.get_dress(dress_id)
    calendar = _calendar_for(dress_id, selected=payload.selected)
    changed = calendar.click(payload.clicked)
    return CalendarSelection(
        selected=calendar.selection,
        rental_days=calendar.rental_days,
        total_price=rental_total(dress["price"], calendar.selection),
        changed=changed,
    )


# ---------- Availability ----------

@app.get("/dresses/{dress_id}/availability")
def dress_availability(dress_id: str):
    return queries.get_dress_availability(dress_id)


@app.post("/dresses/{dress_id}/availability", status_code=201)
def add_availability(dress_id: str, data: AvailabilityCreate, session: SessionContext = Depends(current_session)):
    dress = queries.get_dress(dress_id)
    _require_owner(dress, session)
    if data.end_date < data.start_date:
        raise HTTPException(status_code=422, detail="end_date must not be before start_date")
    return queries.create_availability(Availability(dress_id=dress_id, **data.model_dump()))


@app.get("/dresses/{dress_id}/availability/check")
def availability_check(dress_id: str, start: date, end: date):
    if end < start:
        raise HTTPException(status_code=422, detail="end must not be before start")
    return {"dress_id": dress_id, "available": queries.check_availability(dress_id, start, end)}


@app.patch("/availability/{availability_id}")
def edit_availability(
    availability_id: str,
    data: AvailabilityUpdate,
    session: SessionContext = Depends(current_session),
):
    record = queries.get_availability(availability_id)
    _require_owner(queries.get_dress(record["dress_id"]), session)
    update = data.model_dump(exclude_none=True, mode="json")
    if not update:
        return record
    start = update.get("start_date", record["start_date"])
    end = update.get("end_date", record["end_date"])
    if end < start:
        raise HTTPException(status_code=422, detail="end_date must not be before start_date")
    return queries.update_availability(availability_id, update)


# ---------- Storage ----------

@app.get("/storage/{bucket}/{path:path}")
def storage_object(
    bucket: str,
    path: str,
    dresses: ObjectStorage = Depends(get_dress_storage),
    avatars: ObjectStorage = Depends(get_avatar_storage),
):
    buckets = {DRESS_BUCKET: dresses, AVATAR_BUCKET: avatars}
    if bucket not in buckets:
        raise HTTPException(status_code=404, detail="Bucket not found")
    storage = buckets[bucket]
    data, content_type = storage.download(path)
    return Response(content=data, media_type=content_type, headers={"Cache-Control": "max-age=3600"})


# ---------- Utilities ----------

@app.get("/test")
def test_database():
    resp = {"backend": "ok", "db": "not configured"}
    try:
        if database.db is not None:
            resp["db"] = "connected"
            resp["collections"] = database.db.list_collection_names()
    except Exception as e:
        resp["db_error"] = str(e)
    return resp


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
