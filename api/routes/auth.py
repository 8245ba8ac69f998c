"""
api/routes/auth.py -- Token-based registration, login, and the example
protected dashboard.

Routes:
  POST /auth/register, /api/register  -- create account; 201 {"message"}
  POST /auth/login,    /api/login     -- password login; 200 {"message","token"}
                                          and a "token" cookie
  GET  /auth/dashboard                -- requires token (dashboard_guard)
  GET  /auth/logout                   -- clears the token cookie, 302 /login

Failure bodies are {"message": ...}. Status codes per failure:
  400 missing fields / duplicate email, 404 unknown email, 401 wrong password,
  500 store failure.

Security:
  POST /login is rate-limited per IP (LOGIN_RATE_LIMIT).
  Cache-Control: no-store on login responses so tokens are never cached.
  Tokens are not stored server-side; logout only clears the cookie. A copied
  token stays valid until it expires.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse

from api.models import DashboardResponse, LoginRequest, MessageResponse, RegisterRequest, TokenResponse, UserPublic
from auth.dependencies import dashboard_guard
from auth.errors import AuthError
from auth.models import Claims
from auth.service import authenticate, register_user
from auth.store import UserStore
from auth.tokens import TOKEN_COOKIE, TokenService, set_token_cookie
from core.config import get_settings
from core.limiter import LOGIN_RATE_LIMIT, limiter

logger = logging.getLogger("stockroom.api.auth")

# Auth policy:
# - POST /auth/register, /api/register: public
# - POST /auth/login, /api/login:       public, rate-limited
# - GET  /auth/logout:                  public -- clearing a cookie needs no prior auth
# - GET  /auth/dashboard:               requires token (dashboard_guard)
router = APIRouter()


def _error(exc: AuthError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message, "code": exc.code})


@router.post("/auth/register", response_model=MessageResponse, status_code=201)
@router.post("/api/register", response_model=MessageResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an account. Does not log the user in."""
    state = request.app.state
    try:
        register_user(state.user_store, state.hasher, body.name, body.email, body.password)
    except AuthError as exc:
        return _error(exc)
    return JSONResponse(status_code=201, content={"message": "User registered successfully!"})


@limiter.limit(LOGIN_RATE_LIMIT)  # must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=TokenResponse)
@router.post("/api/login", response_model=TokenResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Verify email and password and issue a signed token.

    The token is returned in the body for API clients and set as an httpOnly
    "token" cookie for browser clients of the same endpoints.
    """
    state = request.app.state
    tokens: TokenService = state.tokens
    try:
        user = authenticate(state.user_store, state.hasher, body.email, body.password)
    except AuthError as exc:
        resp = _error(exc)
        resp.headers["Cache-Control"] = "no-store"
        return resp

    token = tokens.issue(user)
    resp = JSONResponse(
        status_code=200,
        content=TokenResponse(
            message="Logged in successfully!",
            token=token,
            expires_in=tokens.expire_seconds,
        ).model_dump(),
    )
    set_token_cookie(resp, token, max_age=tokens.expire_seconds, secure=get_settings().secure_cookies)
    resp.headers["Cache-Control"] = "no-store"
    logger.info("Issued token for user id=%s", user.id)
    return resp


@router.get("/auth/dashboard", response_model=DashboardResponse)
def dashboard(request: Request, claims: Claims = Depends(dashboard_guard)) -> DashboardResponse:
    """Example protected resource: the caller's own account.

    The token only proves who the caller was when it was issued, so the user
    is re-read from the store.
    """
    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_id(claims.subject)
    if user is None:
        raise HTTPException(status_code=404, detail={"message": "User not found!"})
    return DashboardResponse(message="Welcome to your dashboard!", user=UserPublic.from_user(user))


@router.get("/auth/logout")
def logout() -> RedirectResponse:
    """Clear the token cookie and send the browser to the login page."""
    resp = RedirectResponse("/login", status_code=302)
    resp.delete_cookie(TOKEN_COOKIE)
    return resp
