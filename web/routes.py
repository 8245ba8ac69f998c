"""
web/routes.py -- Jinja2 template routes for the Stockroom web UI.

These routes serve server-rendered HTML. They share app.state with the API
routes (same user store, item store, upload directory) but authenticate with
the server-side session instead of a token, and answer with pages and
redirects instead of JSON.

Route registration order matters. FastAPI resolves same-level paths in order:
  - GET /add must be registered before any /{...} catch-all.

Routes:
  GET  /signup             -- registration form
  POST /signup             -- create account, 303 -> /login
  GET  /login              -- login form
  POST /login              -- password login, 303 -> /
  GET  /logout             -- destroy session, 302 -> /login
  GET  /home               -- landing page for a logged-in user (auth required)
  GET  /                   -- item list (auth required)
  GET  /add                -- item creation form (auth required)
  POST /add                -- create item, flash, 303 -> /
  GET  /edit/{item_id}     -- item edit form (auth required)
  POST /update/{item_id}   -- update item, flash, 303 -> /
  GET  /delete/{item_id}   -- delete item, flash, 303 -> /

Failure statuses on the auth forms match the JSON API: 400 missing fields or
duplicate email, 404 unknown email, 401 wrong password. The form is
re-rendered with the message and that status code.
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.exc import SQLAlchemyError

from auth.dependencies import page_guard
from auth.errors import AuthError, LogoutFailure
from auth.models import User
from auth.service import authenticate, register_user
from auth.session import SessionService
from core.limiter import LOGIN_RATE_LIMIT, limiter
from inventory.models import Item
from inventory.store import ItemStore
from inventory.uploads import UploadTooLarge, remove_upload, save_upload

logger = logging.getLogger("stockroom.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
router = APIRouter()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _render(request: Request, name: str, context: Optional[dict] = None, status_code: int = 200) -> HTMLResponse:
    """Render a template with the values every page needs.

    `message` is the flash popped by the session middleware for this request;
    `current_user` is the session's User snapshot or None.
    """
    ctx = {
        "message": getattr(request.state, "flash", None),
        "current_user": request.state.session.user,
    }
    if context:
        ctx.update(context)
    return templates.TemplateResponse(request, name, ctx, status_code=status_code)


def _items(request: Request) -> ItemStore:
    return request.app.state.item_store


def _parse_item_form(name: str, price: str, quantity: str) -> tuple[Optional[dict], Optional[str]]:
    """Return (fields, None) for a valid form, or (None, error message)."""
    name, price, quantity = name.strip(), price.strip(), quantity.strip()
    if not name or not price or not quantity:
        return None, "Name, price and quantity are required."
    try:
        qty = int(quantity)
    except ValueError:
        return None, "Quantity must be a whole number."
    if qty < 0:
        return None, "Quantity cannot be negative."
    return {"name": name, "price": price, "quantity": qty}, None


def _back_to_list(request: Request, kind: str, text: str) -> RedirectResponse:
    request.state.session.flash(kind, text)
    return RedirectResponse("/", status_code=303)


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


@router.get("/signup", response_class=HTMLResponse)
def signup_form(request: Request) -> HTMLResponse:
    return _render(request, "signup.html", {"title": "Sign Up"})


@router.post("/signup", response_class=HTMLResponse)
def signup_post(
    request: Request,
    name: str = Form(default=""),
    email: str = Form(default=""),
    password: str = Form(default=""),
):
    """Create an account and send the browser to the login form.

    Registration never logs the user in.
    """
    state = request.app.state
    try:
        register_user(state.user_store, state.hasher, name, email, password)
    except AuthError as exc:
        return _render(
            request,
            "signup.html",
            {"title": "Sign Up", "error_msg": exc.message, "name": name, "email": email},
            status_code=exc.status_code,
        )
    return RedirectResponse("/login", status_code=303)


# ---------------------------------------------------------------------------
# Login / logout
# ---------------------------------------------------------------------------


@router.get("/login", response_class=HTMLResponse)
def login_form(request: Request) -> HTMLResponse:
    """Render the login form. A logged-in user goes straight to the list."""
    if request.state.session.is_authenticated:
        return RedirectResponse("/", status_code=302)
    return _render(request, "login.html", {"title": "Login"})


@limiter.limit(LOGIN_RATE_LIMIT)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/login", response_class=HTMLResponse)
def login_post(
    request: Request,
    email: str = Form(default=""),
    password: str = Form(default=""),
):
    """Handle the login form.

    On success the session id is regenerated before the user is stored in it,
    so an id planted before login is worthless afterwards.
    """
    state = request.app.state
    try:
        user = authenticate(state.user_store, state.hasher, email, password)
    except AuthError as exc:
        return _render(
            request,
            "login.html",
            {"title": "Login", "error_msg": exc.message, "email": email},
            status_code=exc.status_code,
        )

    sessions: SessionService = state.sessions
    session = request.state.session
    sessions.regenerate(session)
    session.login(user)
    resp = RedirectResponse("/", status_code=303)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/logout")
def logout(request: Request) -> RedirectResponse:
    """Destroy the session and redirect to the login page."""
    sessions: SessionService = request.app.state.sessions
    try:
        sessions.destroy(request.state.session)
    except SQLAlchemyError as exc:
        logger.exception("Session destroy failed")
        raise LogoutFailure() from exc
    return RedirectResponse("/login", status_code=302)


@router.get("/home", response_class=HTMLResponse)
def home(request: Request, user: User = Depends(page_guard)) -> HTMLResponse:
    return _render(request, "home.html", {"title": "Home", "user": user})


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


@router.get("/", response_class=HTMLResponse, dependencies=[Depends(page_guard)])
def item_list(request: Request) -> HTMLResponse:
    return _render(request, "index.html", {"title": "Home Page", "items": _items(request).list_items()})


@router.get("/add", response_class=HTMLResponse, dependencies=[Depends(page_guard)])
def add_form(request: Request) -> HTMLResponse:
    return _render(request, "add_items.html", {"title": "Add Items"})


@router.post("/add", response_class=HTMLResponse, dependencies=[Depends(page_guard)])
async def add_post(
    request: Request,
    name: str = Form(default=""),
    price: str = Form(default=""),
    quantity: str = Form(default=""),
    image: Optional[UploadFile] = File(default=None),
):
    fields, error = _parse_item_form(name, price, quantity)
    if error:
        return _render(
            request,
            "add_items.html",
            {"title": "Add Items", "error_msg": error, "form": {"name": name, "price": price, "quantity": quantity}},
            status_code=400,
        )
    try:
        stored = await save_upload(image, request.app.state.upload_dir)
    except UploadTooLarge as exc:
        return _render(request, "add_items.html", {"title": "Add Items", "error_msg": str(exc)}, status_code=413)

    _items(request).create_item(Item(image=stored, **fields))
    return _back_to_list(request, "success", "Item added successfully!")


@router.get("/edit/{item_id}", response_class=HTMLResponse, dependencies=[Depends(page_guard)])
def edit_form(request: Request, item_id: int):
    item = _items(request).get_item(item_id)
    if item is None:
        return RedirectResponse("/", status_code=302)
    return _render(request, "edit_item.html", {"title": "Edit Item", "item": item})


@router.post("/update/{item_id}", response_class=HTMLResponse, dependencies=[Depends(page_guard)])
async def update_post(
    request: Request,
    item_id: int,
    name: str = Form(default=""),
    price: str = Form(default=""),
    quantity: str = Form(default=""),
    image: Optional[UploadFile] = File(default=None),
):
    """Update an item. A newly uploaded image replaces the old file on disk."""
    store = _items(request)
    existing = store.get_item(item_id)
    if existing is None:
        return RedirectResponse("/", status_code=303)

    fields, error = _parse_item_form(name, price, quantity)
    if error:
        return _render(
            request,
            "edit_item.html",
            {"title": "Edit Item", "item": existing, "error_msg": error},
            status_code=400,
        )
    upload_dir = request.app.state.upload_dir
    try:
        new_image = await save_upload(image, upload_dir)
    except UploadTooLarge as exc:
        return _render(
            request,
            "edit_item.html",
            {"title": "Edit Item", "item": existing, "error_msg": str(exc)},
            status_code=413,
        )

    updated = store.update_item(item_id, image=new_image or existing.image, **fields)
    if updated is None:
        remove_upload(new_image, upload_dir)
        return RedirectResponse("/", status_code=303)
    if new_image and existing.image:
        remove_upload(existing.image, upload_dir)
    return _back_to_list(request, "success", "Item updated successfully!")


@router.get("/delete/{item_id}", dependencies=[Depends(page_guard)])
def delete_item(request: Request, item_id: int) -> RedirectResponse:
    item = _items(request).delete_item(item_id)
    if item is not None:
        remove_upload(item.image, request.app.state.upload_dir)
    return _back_to_list(request, "info", "Item deleted successfully!")
