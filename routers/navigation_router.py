from typing import List, Optional

from fastapi import APIRouter, Depends

from auth import get_session, require_page
from config import DEFAULT_LANDING_PATH
from guard import GuardDecision, guard, login_entry
from models import (
    DepartmentPages,
    GuardResponse,
    PageAccessResponse,
    PageResponse,
    SidebarItemResponse,
    page_response,
)
from session import Session

router = APIRouter(tags=["Navigation"])


@router.get("/pages", response_model=List[PageResponse])
def list_pages(session: Session = Depends(require_page())):
    """Full page catalog in registry order"""
    return [page_response(page) for page in session.registry.all_pages()]


@router.get("/pages/by-department", response_model=DepartmentPages)
def pages_by_department(session: Session = Depends(require_page("masters-manage-users"))):
    """Navigable pages grouped for the page assignment form"""
    return {
        department: [page_response(page) for page in pages]
        for department, pages in session.registry.pages_by_department().items()
    }


@router.get("/nav/sidebar", response_model=List[SidebarItemResponse])
def sidebar(session: Session = Depends(require_page())):
    """Sidebar entries the current user can open"""
    return [
        SidebarItemResponse(
            page=page_response(entry.page),
            accessible_children=[page_response(child) for child in entry.accessible_children],
        )
        for entry in session.accessible_sidebar_items()
    ]


@router.get("/nav/groups/{group_key}", response_model=List[PageResponse])
def group_children(group_key: str, session: Session = Depends(require_page())):
    return [page_response(page) for page in session.accessible_group_children(group_key)]


@router.get("/nav/access/{page_key}", response_model=PageAccessResponse)
def page_access(page_key: str, session: Session = Depends(require_page())):
    return PageAccessResponse(page_key=page_key, allowed=session.has_page_access(page_key))


@router.get("/nav/guard", response_model=GuardResponse)
def guard_decision(
    page_key: Optional[str] = None,
    path: Optional[str] = None,
    session: Session = Depends(get_session),
):
    """Guard decision for a page key, or for the page mounted at `path`"""
    if page_key is None and path is not None:
        page = session.registry.find_by_path(path)
        if page is None:
            # Unknown dashboard paths fall back to the landing page
            decision = guard(session)
            if decision.render:
                decision = GuardDecision.redirect(DEFAULT_LANDING_PATH)
            return GuardResponse(render=decision.render, redirect_to=decision.redirect_to)
        page_key = page.key
    decision = guard(session, page_key)
    return GuardResponse(render=decision.render, redirect_to=decision.redirect_to)


@router.get("/nav/login-entry", response_model=GuardResponse)
def login_entry_decision(session: Session = Depends(get_session)):
    decision = login_entry(session)
    return GuardResponse(render=decision.render, redirect_to=decision.redirect_to)
