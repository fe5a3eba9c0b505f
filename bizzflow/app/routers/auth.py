"""Authentication endpoints for back-office operators."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..security import (
    authenticate_user,
    create_access_token,
    get_current_user,
    require_admin,
    resolve_access_token_expiry,
)
from ..services.users import UserService, UserServiceError

router = APIRouter()


@router.post("/login", response_model=schemas.TokenResponse)
def login(payload: schemas.LoginRequest, db: Session = Depends(get_db)) -> schemas.TokenResponse:
    """Authenticate an operator and return an access token."""

    user = authenticate_user(db, payload.username, payload.password)
    return schemas.TokenResponse(
        access_token=create_access_token(user),
        expires_in=int(resolve_access_token_expiry().total_seconds()),
        user=schemas.UserRead.model_validate(user),
    )


@router.post(
    "/register",
    response_model=schemas.UserRead,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def register(payload: schemas.UserCreate, db: Session = Depends(get_db)) -> schemas.UserRead:
    try:
        return UserService.create_user(db, payload)
    except UserServiceError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc


@router.get("/profile", response_model=schemas.UserRead)
def profile(user: models.User = Depends(get_current_user)) -> schemas.UserRead:
    return user


@router.post("/change-password", response_model=schemas.MessageResponse)
def change_password(
    payload: schemas.PasswordChangeRequest,
    user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> schemas.MessageResponse:
    try:
        UserService.change_password(db, user, payload.current_password, payload.new_password)
    except UserServiceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return schemas.MessageResponse(message="Password updated")
