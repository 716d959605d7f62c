"""HTTP route definitions for the auth service."""

from __future__ import annotations

import anyio
from anyio import CapacityLimiter
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from ..domain.contracts import RegistrationRequest
from ..domain.errors import RegistrationBusy
from ..domain.registration import RegistrationCoordinator
from ..domain.service import AuthenticationService
from ..observability import REGISTRATIONS

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


class LoginRequest(BaseModel):
    """Credentials payload shared by the login and register endpoints."""

    username: str
    password: str
    invite_token: str | None = None


class TokenResponse(BaseModel):
    """Bearer token returned after a successful login."""

    token: str


class RegisterResponse(BaseModel):
    """Username of the newly created account."""

    username: str


def get_auth_service(request: Request) -> AuthenticationService:
    """Resolve the `AuthenticationService` stored on the FastAPI application state."""
    service: AuthenticationService = request.app.state.auth_service
    return service


async def get_coordinator(request: Request) -> RegistrationCoordinator:
    """Resolve the process-wide `RegistrationCoordinator`."""
    coordinator: RegistrationCoordinator = request.app.state.registration_coordinator
    return coordinator


@router.post("/login", response_model=TokenResponse)
def login(
    payload: LoginRequest,
    service: AuthenticationService = Depends(get_auth_service),
) -> TokenResponse:
    """Log a user in and return a token that authenticates later requests."""
    token = service.login(payload.username, payload.password)
    return TokenResponse(token=token)


async def get_registration_limiter(request: Request) -> CapacityLimiter:
    """Return the app-wide limiter admitting one registration thread at a time."""
    limiter: CapacityLimiter | None = getattr(request.app.state, "registration_limiter", None)
    if limiter is None:
        limiter = CapacityLimiter(1)
        request.app.state.registration_limiter = limiter
    return limiter


@router.post("/register", response_model=RegisterResponse)
async def register(
    payload: LoginRequest,
    coordinator: RegistrationCoordinator = Depends(get_coordinator),
    limiter: CapacityLimiter = Depends(get_registration_limiter),
) -> RegisterResponse:
    """Create an account; the first one becomes the owner, later ones need an invite.

    Queued registrations wait on ``limiter`` in the event loop, so they never
    hold threadpool workers that logins need.
    """
    request = RegistrationRequest(
        username=payload.username,
        password=payload.password,
        invite_token=payload.invite_token,
    )
    timeout = coordinator.lock_timeout_seconds
    try:
        with anyio.fail_after(timeout if timeout > 0 else None):
            username = await anyio.to_thread.run_sync(
                coordinator.register, request, limiter=limiter
            )
    except TimeoutError as exc:
        REGISTRATIONS.labels(outcome=RegistrationBusy.__name__).inc()
        raise RegistrationBusy() from exc
    return RegisterResponse(username=username)