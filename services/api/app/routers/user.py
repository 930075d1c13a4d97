from __future__ import annotations

from fastapi import APIRouter, HTTPException
from services.api.app.models.user import UserOut, UserRegisterRequest
from services.api.app.routers.errors import raise_ledger_http_error
from services.api.app.services.ledger_base import UserRecord
from services.api.app.services.ledger_factory import get_ledger_store
from services.api.app.services.users import get_user, register_user

router = APIRouter()


def _user_out(user: UserRecord) -> UserOut:
    return UserOut(
        id=user.id,
        username=user.username,
        role=user.role,
        created_at=user.created_at.isoformat(),
    )


@router.post("/v1/users", response_model=UserOut, status_code=201)
def create_user(payload: UserRegisterRequest) -> UserOut:
    try:
        store = get_ledger_store()
    except ValueError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e

    try:
        user = register_user(store, payload.username, payload.role)
    except Exception as e:
        raise_ledger_http_error(e)

    return _user_out(user)


@router.get("/v1/users/{user_id}", response_model=UserOut)
def read_user(user_id: int) -> UserOut:
    try:
        store = get_ledger_store()
    except ValueError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e

    try:
        user = get_user(store, user_id)
    except Exception as e:
        raise_ledger_http_error(e)

    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return _user_out(user)
