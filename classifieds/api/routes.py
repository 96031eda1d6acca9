# classifieds/api/routes.py
import json
from functools import lru_cache
from typing import List

from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import TypeAdapter, ValidationError
from sqlalchemy.orm import Session

from .. import crud, schemas, services
from ..admin import AdminConsole
from ..auth import AuthClient, IdentityVerifier, UserPrincipal, authenticate_user, authorize_admin
from ..db import get_db
from ..exceptions import (
    AuthenticationError, AuthorizationError, IdentityProviderError, LimitExceededError,
    NotFoundError, PersistenceError, PreconditionError, ServiceError, StorageError,
)
from ..storage import ObjectStore, StorageClient
from ..utils import logger, utc_now

router = APIRouter()

_command_adapter = TypeAdapter(schemas.AdminCommand)


@lru_cache
def get_identity_verifier() -> IdentityVerifier:
    return AuthClient()


@lru_cache
def get_object_store() -> ObjectStore:
    return StorageClient()


def current_user(
    authorization: str | None = Header(None),
    db: Session = Depends(get_db),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
) -> UserPrincipal:
    return authenticate_user(db, verifier, authorization)


async def raw_body(request: Request) -> bytes:
    return await request.body()


def parse_command(raw: bytes):
    try:
        payload = json.loads(raw) if raw else None
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be valid JSON")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    try:
        return _command_adapter.validate_python(payload)
    except ValidationError as e:
        if any(err["type"] in ("union_tag_invalid", "union_tag_not_found") for err in e.errors()):
            raise HTTPException(status_code=400, detail="Unknown action")
        raise HTTPException(status_code=400, detail="Invalid parameters")


@router.get("/health")
def health():
    return {"status": "ok"}


@router.post("/admin")
def admin_action(
    raw: bytes = Depends(raw_body),
    authorization: str | None = Header(None),
    db: Session = Depends(get_db),
    verifier: IdentityVerifier = Depends(get_identity_verifier),
):
    # authorization first: the body is only parsed for admins
    principal = authorize_admin(db, verifier, authorization)
    command = parse_command(raw)
    try:
        return AdminConsole(db, principal).execute(command)
    except ServiceError:
        raise
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        db.rollback()
        logger.exception("Admin action %s failed: %s", command.action, e)
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/listings", response_model=List[schemas.ListingOut])
def listings(
    skip: int = 0,
    limit: int = Query(20, le=100),
    category_id: int | None = Query(None),
    min_price: int | None = Query(None),
    max_price: int | None = Query(None),
    location: str | None = Query(None),
    db: Session = Depends(get_db)
):
    filters = {
        "category_id": category_id,
        "min_price": min_price,
        "max_price": max_price,
        "location": location
    }
    res = crud.list_public_listings(db, utc_now(), skip=skip, limit=limit, filters=filters)
    return res["items"]


@router.get("/listings/{listing_id}", response_model=schemas.ListingOut)
def get_listing(listing_id: int, db: Session = Depends(get_db)):
    return services.view_listing(db, listing_id)


@router.post("/listings", response_model=schemas.ListingOut, status_code=201)
def create_listing(
    payload: schemas.ListingCreate,
    user: UserPrincipal = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        return services.create_listing(db, user, payload.model_dump())
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.patch("/listings/{listing_id}", response_model=schemas.ListingOut)
def update_listing(
    listing_id: int,
    payload: schemas.ListingUpdate,
    user: UserPrincipal = Depends(current_user),
    db: Session = Depends(get_db),
):
    try:
        return services.resubmit_listing(db, user, listing_id, payload.model_dump(exclude_unset=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/listings/{listing_id}")
def delete_listing(
    listing_id: int,
    user: UserPrincipal = Depends(current_user),
    db: Session = Depends(get_db),
    object_store: ObjectStore = Depends(get_object_store),
):
    result = services.delete_own_listing(db, user, listing_id, object_store)
    return {"status": "deleted", **result}


_ERROR_STATUS = [
    (AuthenticationError, 401, "Unauthorized"),
    (AuthorizationError, 403, "Forbidden"),
    (NotFoundError, 404, None),
    (PreconditionError, 409, None),
    (LimitExceededError, 429, None),
    (PersistenceError, 500, "Internal server error"),
    (StorageError, 500, "Internal server error"),
    (IdentityProviderError, 500, "Internal server error"),
]


def error_response(exc: ServiceError):
    for exc_type, status, message in _ERROR_STATUS:
        if isinstance(exc, exc_type):
            if status >= 500:
                logger.error("Request failed: %s", exc)
            return status, message or str(exc)
    logger.error("Unmapped service error: %s", exc)
    return 500, "Internal server error"


def register_error_handlers(app: FastAPI):
    @app.exception_handler(ServiceError)
    async def _service_error(request: Request, exc: ServiceError):
        status, message = error_response(exc)
        return JSONResponse(status_code=status, content={"detail": message})
