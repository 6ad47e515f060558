import secrets

from fastapi import Depends, HTTPException, Request, status
from starlette.datastructures import FormData
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.formparsers import MultiPartException

from config import Settings
from logging_config import get_logger


logger = get_logger("auth")


def get_app_settings(request: Request) -> Settings:
    """
    Dependency for getting the settings the app was built with
    """
    return request.app.state.settings


def require_post(request: Request) -> None:
    if request.method != "POST":
        raise HTTPException(
            status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
            detail="Invalid request method",
            headers={"Allow": "POST"},
        )


async def read_form(request: Request) -> FormData:
    """
    Parse the request body as a form

    Starlette caches the parsed form, so the gate and the handler share it.
    Inside an app Starlette reports a bad body as its own 400 HTTPException.
    """
    try:
        return await request.form()
    except (MultiPartException, StarletteHTTPException) as e:
        logger.info("Failed to parse form: %s", e)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Failed to parse form"
        )


def check_password(form: FormData, settings: Settings) -> None:
    """
    Compare the form's password field with the shared password

    Raises:
        HTTPException: 401 if the password is missing or wrong
    """
    password = form.get("password")
    if not isinstance(password, str) or not secrets.compare_digest(
        password.encode("utf-8"), settings.PASSWORD.encode("utf-8")
    ):
        logger.warning("Unauthorized access attempt")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized"
        )


async def password_protected(request: Request, settings: Settings = Depends(get_app_settings)) -> None:
    """
    Gate for write routes: POST only, form body, correct shared password.
    """
    require_post(request)
    form = await read_form(request)
    check_password(form, settings)
