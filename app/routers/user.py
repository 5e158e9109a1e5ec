"""Account endpoints: register, login, profile update and password reset."""

import logging

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

from app.database import get_db
from app.dependencies import CurrentUser, get_web_session, require_web_auth
from app.errors import (
    AuthError,
    DuplicateAccountError,
    InvalidOrExpiredTokenError,
    NotFoundError,
    ValidationError,
)
from app.rate_limit import limiter
from app.services.auth import get_auth_service
from app.services.password_reset import get_password_reset_service
from app.services.sessions import Flash, WebSession
from app.templating import render

logger = logging.getLogger("vidjot")

router = APIRouter(prefix="/user", tags=["User"])


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=302)


@router.get("/updateAccount/{user_id}", response_class=HTMLResponse)
def update_account_page(
    request: Request,
    user_id: int,
    user: CurrentUser = Depends(require_web_auth),
    session: WebSession = Depends(get_web_session),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    """Render the profile form for ``user_id``; the id travels in the form itself."""
    try:
        target = get_auth_service().get_user(db, user_id)
    except NotFoundError:
        session.flash("danger", "Invalid ID")
        return _redirect("/showProfile")  # type: ignore[return-value]
    return render(
        request,
        "user/update.html",
        {"user": user, "user_id": target.id, "name": target.name, "email": target.email},
    )


@router.post("/register", response_class=HTMLResponse)
@limiter.limit("5/minute")
def register(
    request: Request,
    name: str = Form(...),
    email: str = Form(...),
    password: str = Form(...),
    password2: str = Form(...),
    session: WebSession = Depends(get_web_session),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    """Handle the registration form."""
    try:
        user = get_auth_service().register(db, name, email, password, password2)
    except ValidationError as e:
        return render(request, "user/register.html", {"errors": e.errors, "name": name, "email": email})
    except DuplicateAccountError as e:
        return render(
            request, "user/register.html", {"name": name, "email": email}, alerts=[Flash("danger", e.message)]
        )

    session.flash("success", f"{user.email} registered successfully")
    return _redirect("/showLogin")  # type: ignore[return-value]


@router.post("/login")
@limiter.limit("10/minute")
def login(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    session: WebSession = Depends(get_web_session),
    db: Session = Depends(get_db),
) -> RedirectResponse:
    """Check credentials and bind the session to the user."""
    try:
        user = get_auth_service().login(db, email, password)
    except AuthError as e:
        session.flash("danger", e.message)
        return _redirect("/showLogin")

    session.login(user.id)
    return _redirect("/chat")


@router.post("/update")
def update_account(
    user_id: int = Form(...),
    name: str = Form(...),
    email: str = Form(...),
    user: CurrentUser = Depends(require_web_auth),
    session: WebSession = Depends(get_web_session),
    db: Session = Depends(get_db),
) -> RedirectResponse:
    """Apply a profile update to the user named in the form."""
    try:
        updated = get_auth_service().update_profile(db, user_id, name, email)
    except NotFoundError:
        session.flash("danger", "Invalid ID")
        return _redirect("/showProfile")

    session.flash("success", f"{updated.email} updated successfully")
    return _redirect("/showProfile")


@router.post("/showForgot", response_class=HTMLResponse)
@limiter.limit("3/minute")
def forgot_password(
    request: Request,
    email: str = Form(...),
    session: WebSession = Depends(get_web_session),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    """Issue a reset link for the submitted email."""
    try:
        get_password_reset_service().request_reset(db, email)
    except NotFoundError as e:
        return render(request, "user/forgot.html", {"email": email}, alerts=[Flash("danger", e.message)])

    session.flash("success", f"A password reset link has been sent to {email}")
    return _redirect("/showLogin")  # type: ignore[return-value]


@router.get("/reset-password/{user_id}/{token}", response_class=HTMLResponse)
def reset_password_page(
    request: Request,
    user_id: int,
    token: str,
    session: WebSession = Depends(get_web_session),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    """Render the new-password form if the reset link still verifies."""
    try:
        user = get_password_reset_service().verify(db, user_id, token)
    except NotFoundError as e:
        session.flash("danger", e.message)
        return _redirect("/showForgot")  # type: ignore[return-value]
    except InvalidOrExpiredTokenError as e:
        return render(request, "error.html", {"title": "Reset link expired", "message": e.message}, 400)

    return render(request, "user/reset_password.html", {"email": user.email, "user_id": user_id, "token": token})


@router.post("/reset-password/{user_id}/{token}", response_class=HTMLResponse)
@limiter.limit("5/minute")
def reset_password_submit(
    request: Request,
    user_id: int,
    token: str,
    password: str = Form(...),
    password2: str = Form(...),
    session: WebSession = Depends(get_web_session),
    db: Session = Depends(get_db),
) -> HTMLResponse:
    """Set the new password from the reset form."""
    try:
        get_password_reset_service().reset_password(db, user_id, token, password, password2)
    except InvalidOrExpiredTokenError as e:
        return render(request, "error.html", {"title": "Reset link expired", "message": e.message}, 400)
    except ValidationError as e:
        # The token verified before validation ran, so the user exists
        user = get_auth_service().get_user(db, user_id)
        return render(
            request,
            "user/reset_password.html",
            {"errors": e.errors, "email": user.email, "user_id": user_id, "token": token},
        )

    session.flash("success", "Password changed successfully")
    return _redirect("/showLogin")  # type: ignore[return-value]
