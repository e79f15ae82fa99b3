import logging
import sqlite3
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from auth import require_page
from config import VALID_ROLES
from database import create_user, delete_user, get_user_by_id, list_users, update_user
from models import IdentityResponse, UserCreate, UserResponse, UserUpdate, identity_response
from pages import REGISTRY
from permissions import ALL_PAGES, ExplicitPages, encode_authorized_pages, parse_authorized_pages
from security import hash_password
from session import Session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["User Management"])

manage_users = require_page("masters-manage-users")


def user_response(row: dict) -> UserResponse:
    pages = parse_authorized_pages(row.get("pages"))
    return UserResponse(
        id=row["id"],
        user_name=row["user_name"],
        name=row.get("name"),
        email=row.get("email"),
        phone_no=row.get("phone_no"),
        role=row.get("role"),
        profile_image=row.get("profile_image"),
        pages=pages.resolve(REGISTRY),
        all_access=pages.is_all,
        timestamp=row.get("timestamp"),
    )


def user_fields(user_data) -> dict:
    """Validated column values for a create/update request"""
    if user_data.role not in VALID_ROLES:
        raise HTTPException(status_code=400, detail=f"Invalid role. Must be one of: {VALID_ROLES}")

    if user_data.all_access:
        pages = ALL_PAGES
    else:
        navigable = set(REGISTRY.navigable_keys())
        unknown = [key for key in user_data.pages if key not in navigable]
        if unknown:
            raise HTTPException(status_code=400, detail=f"Unknown page keys: {unknown}")
        pages = ExplicitPages(user_data.pages)
        # Every page ticked is stored as "all" so later pages are granted too
        if navigable and pages.keys >= navigable:
            pages = ALL_PAGES

    return {
        "user_name": user_data.user_name,
        "name": user_data.name,
        "email": user_data.email,
        "phone_no": user_data.phone_no,
        "role": user_data.role,
        "profile_image": user_data.profile_image,
        "pages": encode_authorized_pages(pages),
    }


@router.get("/me", response_model=IdentityResponse)
def get_current_user_info(session: Session = Depends(require_page())):
    """Get current user info"""
    return identity_response(session.identity)


@router.get("/", response_model=List[UserResponse])
def get_users(session: Session = Depends(manage_users)):
    """List user accounts"""
    return [user_response(row) for row in list_users()]


@router.post("/", response_model=UserResponse, status_code=201)
def create_user_account(user_data: UserCreate, session: Session = Depends(manage_users)):
    """Create a user account with its page access"""
    fields = user_fields(user_data)
    try:
        new_id = create_user(fields, hash_password(user_data.password))
    except sqlite3.IntegrityError:
        raise HTTPException(status_code=400, detail="Username already exists")

    logger.info(f"User {session.identity.id} created user '{user_data.user_name}'")
    return user_response(get_user_by_id(new_id))


@router.put("/{user_id}", response_model=UserResponse)
def update_user_account(user_id: int, user_data: UserUpdate, session: Session = Depends(manage_users)):
    """Update a user account; the password changes only when given"""
    fields = user_fields(user_data)
    password_hash = hash_password(user_data.password) if user_data.password else None
    try:
        updated = update_user(user_id, fields, password_hash)
    except sqlite3.IntegrityError:
        raise HTTPException(status_code=400, detail="Username already exists")

    if not updated:
        raise HTTPException(status_code=404, detail="User not found")

    logger.info(f"User {session.identity.id} updated user {user_id}")
    return user_response(get_user_by_id(user_id))


@router.delete("/{user_id}", status_code=204)
def delete_user_account(user_id: int, session: Session = Depends(manage_users)):
    if not delete_user(user_id):
        raise HTTPException(status_code=404, detail="User not found")
    logger.info(f"User {session.identity.id} deleted user {user_id}")
