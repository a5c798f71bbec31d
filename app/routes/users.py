"""User account and authentication routes."""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from pydantic import EmailStr
from sqlalchemy.orm import Session

from app.core.exceptions import MissingFiles, Unauthenticated, Unauthorized, UserNotFound, ValidationError
from app.core.responses import APIResponse, CamelModel
from app.core.security import (
    Identity,
    create_access_token,
    get_current_identity,
    get_current_user,
    get_password_hash,
    require_admin,
    verify_password,
)
from app.db.sessions import get_db
from app.models.user import User, ROLE_ADMIN, ROLE_USER
from app.repositories.user_repository import UserRepository
from app.services.storage import PROFILE_PICTURES, LocalStorage, get_storage


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["Users"])


# Request/Response schemas
class RegisterRequest(CamelModel):
    name: str
    email: EmailStr
    password: str


class LoginRequest(CamelModel):
    email: EmailStr
    password: str


class UpdateUserRequest(CamelModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    password: Optional[str] = None
    role: Optional[str] = None


class UserResponse(CamelModel):
    id: int
    uuid: str
    name: str
    email: str
    role: str
    profile_picture: Optional[str] = None
    profile_picture_url: Optional[str] = None
    created_at: datetime


class LoginResponse(CamelModel):
    token: str
    token_type: str = "bearer"
    user: UserResponse


def _to_response(user: User) -> UserResponse:
    return UserResponse.model_validate(user).model_copy(
        update={"profile_picture_url": LocalStorage.url_for(PROFILE_PICTURES, user.profile_picture)}
    )


def _load_for_change(user_id: int, identity: Identity, repo: UserRepository) -> User:
    """Users may change their own account; administrators may change any."""
    if identity.id != user_id and not identity.is_admin:
        logger.warning("User %s tried to modify account %s", identity.id, user_id)
        raise Unauthorized("You can only modify your own account")
    user = repo.find_by_id(user_id)
    if user is None:
        raise UserNotFound("User not found")
    return user


@router.post("/register", response_model=APIResponse[UserResponse], status_code=status.HTTP_201_CREATED)
def register(request: RegisterRequest, db: Session = Depends(get_db)):
    """
    Register a new user.

    - New accounts always get the ``user`` role
    - Duplicate emails answer 409
    """
    name = request.name.strip()
    if not name or not request.password:
        raise ValidationError("Name, email, and password are required", code="MISSING_DATA")

    user = UserRepository(db).create(
        name=name,
        email=request.email,
        password=get_password_hash(request.password),
        role=ROLE_USER,
    )
    db.commit()
    db.refresh(user)
    logger.info("Registered user %s", user.id)

    return APIResponse(code="USER_CREATED", message="New user has been created", data=_to_response(user))


@router.post("/login", response_model=APIResponse[LoginResponse])
def login(request: LoginRequest, db: Session = Depends(get_db)):
    """
    Login with email and password.

    Returns a bearer token valid for one day.
    """
    user = UserRepository(db).find_by_email(request.email)
    if not user or not verify_password(request.password, user.password):
        raise Unauthenticated("Invalid credentials")

    token = create_access_token(user)
    return APIResponse(
        code="LOGIN_SUCCESS",
        message="Login successful",
        data=LoginResponse(token=token, user=_to_response(user)),
    )


@router.get("/me", response_model=APIResponse[UserResponse])
def get_me(current_user: User = Depends(get_current_user)):
    """Current authenticated user information."""
    return APIResponse(message="User has been retrieved", data=_to_response(current_user))


@router.get("", response_model=APIResponse[List[UserResponse]])
def list_users(
    search: Optional[str] = Query(None),
    identity: Identity = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Admin-only listing of users, filtered by name."""
    users = UserRepository(db).search((search or "").strip())
    return APIResponse(message="Users have been retrieved", data=[_to_response(u) for u in users])


@router.put("/{user_id}", response_model=APIResponse[UserResponse])
def update_user(
    user_id: int,
    request: UpdateUserRequest,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Partial profile update. Only administrators may change roles."""
    repo = UserRepository(db)
    user = _load_for_change(user_id, identity, repo)

    changes = {}
    if request.name and request.name.strip():
        changes["name"] = request.name.strip()
    if request.email:
        changes["email"] = request.email
    if request.password:
        changes["password"] = get_password_hash(request.password)
    if request.role:
        if not identity.is_admin:
            raise Unauthorized("Only administrators can change roles")
        if request.role not in (ROLE_USER, ROLE_ADMIN):
            raise ValidationError(f"Unknown role: {request.role}")
        changes["role"] = request.role

    repo.update(user, **changes)
    db.commit()
    db.refresh(user)
    return APIResponse(code="USER_UPDATED", message="User has been updated", data=_to_response(user))


@router.put("/{user_id}/picture", response_model=APIResponse[UserResponse])
async def change_picture(
    user_id: int,
    picture: Optional[UploadFile] = File(None),
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    storage: LocalStorage = Depends(get_storage),
):
    """Replace the profile picture; the previous file is removed."""
    repo = UserRepository(db)
    user = _load_for_change(user_id, identity, repo)

    if picture is None or not picture.filename:
        raise MissingFiles("Picture file is required")
    if not (picture.content_type or "").startswith("image/"):
        raise ValidationError("Only image files are allowed for profile pictures", code="INVALID_PICTURE")

    staged = await storage.stage(picture)
    previous = user.profile_picture
    try:
        filename = storage.place(staged, PROFILE_PICTURES)
    except Exception:
        storage.discard(staged)
        raise

    try:
        repo.update(user, profile_picture=filename)
        db.commit()
    except Exception:
        db.rollback()
        storage.delete(PROFILE_PICTURES, filename)
        raise

    storage.delete(PROFILE_PICTURES, previous)
    db.refresh(user)
    return APIResponse(code="PICTURE_UPDATED", message="Picture updated successfully", data=_to_response(user))


@router.delete("/{user_id}", response_model=APIResponse[None])
def delete_user(
    user_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    storage: LocalStorage = Depends(get_storage),
):
    """Delete an account together with its profile picture."""
    repo = UserRepository(db)
    user = _load_for_change(user_id, identity, repo)

    picture = user.profile_picture
    repo.delete(user)
    db.commit()
    storage.delete(PROFILE_PICTURES, picture)
    logger.info("User %s deleted by %s", user_id, identity.id)

    return APIResponse(code="USER_DELETED", message="User has been deleted")
