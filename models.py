from pydantic import BaseModel
from typing import Dict, List, Optional


class LoginRequest(BaseModel):
    username: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    redirect_to: str


class LogoutResponse(BaseModel):
    redirect_to: str


class IdentityResponse(BaseModel):
    id: str
    name: str
    role: str
    image: str


class SessionResponse(BaseModel):
    state: str
    loading: bool
    user: Optional[IdentityResponse] = None
    all_access: bool = False
    pages: List[str] = []


class PageResponse(BaseModel):
    key: str
    label: str
    kind: str
    path: Optional[str] = None
    parent: Optional[str] = None
    icon: Optional[str] = None
    description: Optional[str] = None


class SidebarItemResponse(BaseModel):
    page: PageResponse
    accessible_children: List[PageResponse] = []


class PageAccessResponse(BaseModel):
    page_key: str
    allowed: bool


class GuardResponse(BaseModel):
    render: bool
    redirect_to: Optional[str] = None


class UserCreate(BaseModel):
    user_name: str
    name: str
    role: str
    password: str
    email: Optional[str] = None
    phone_no: Optional[str] = None
    profile_image: Optional[str] = None
    pages: List[str] = []
    all_access: bool = False


class UserUpdate(BaseModel):
    user_name: str
    name: str
    role: str
    password: Optional[str] = None
    email: Optional[str] = None
    phone_no: Optional[str] = None
    profile_image: Optional[str] = None
    pages: List[str] = []
    all_access: bool = False


class UserResponse(BaseModel):
    id: int
    user_name: str
    name: Optional[str] = None
    email: Optional[str] = None
    phone_no: Optional[str] = None
    role: Optional[str] = None
    profile_image: Optional[str] = None
    pages: List[str] = []
    all_access: bool = False
    timestamp: Optional[str] = None


DepartmentPages = Dict[str, List[PageResponse]]


def page_response(page) -> PageResponse:
    return PageResponse(
        key=page.key,
        label=page.label,
        kind=page.kind.value,
        path=page.path,
        parent=page.parent_key,
        icon=page.icon,
        description=page.description,
    )


def identity_response(identity) -> IdentityResponse:
    return IdentityResponse(
        id=identity.id,
        name=identity.display_name,
        role=identity.role,
        image=identity.avatar_url,
    )
