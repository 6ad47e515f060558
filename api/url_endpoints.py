from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import PlainTextResponse, RedirectResponse
from starlette.concurrency import run_in_threadpool

from api.auth import check_password, get_app_settings, password_protected, read_form, require_post
from config import Settings
from database import MappingStore, get_store
from logging_config import get_logger
from services.url_service import TokenSpaceExhausted, is_valid_url


logger = get_logger("api")

ALL_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "TRACE", "CONNECT"]


router = APIRouter(tags=["urls"])


# Registered for every method so a non-POST gets 405 here instead of
# falling through to the redirect route
@router.api_route(
    "/shorten",
    methods=ALL_METHODS,
    response_class=PlainTextResponse,
    dependencies=[Depends(password_protected)],
)
async def shorten_url(
    request: Request,
    store: MappingStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
):
    """
    Create a short URL.

    - **url**: The absolute URL to shorten (form field, required)
    - **password**: The shared password (form field, required)
    """
    logger.debug("shorten_url called")

    require_post(request)
    form = await read_form(request)
    check_password(form, settings)

    original_url = form.get("url")
    if not isinstance(original_url, str):
        original_url = ""
    logger.info("Received URL: %r", original_url)

    if not is_valid_url(original_url):
        logger.info("Invalid URL")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid URL"
        )

    try:
        token = await run_in_threadpool(store.add, original_url, settings.MAX_TOKEN_ATTEMPTS)
    except TokenSpaceExhausted as e:
        logger.error("%s", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="No short URL available"
        )

    short_url = settings.short_url(token)
    logger.info("Short URL created: %s", short_url)
    return PlainTextResponse(f"{short_url}\n")


# Redirect router - catches everything else under the route prefix
redirect_router = APIRouter(tags=["redirect"])


@redirect_router.api_route("/{token:path}", methods=ALL_METHODS)
def redirect_to_url(token: str, store: MappingStore = Depends(get_store)):
    """
    Redirect to the original URL.

    - **token**: The token from a short URL
    """
    original_url = store.resolve(token)
    if original_url is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="URL not found"
        )

    return RedirectResponse(url=original_url, status_code=status.HTTP_302_FOUND)
