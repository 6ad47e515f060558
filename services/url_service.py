import base64
import secrets
from typing import Callable

from pydantic import AnyUrl, TypeAdapter, ValidationError


TOKEN_LENGTH = 5
TOKEN_BYTES = 5

_url_adapter = TypeAdapter(AnyUrl)


class TokenSpaceExhausted(Exception):
    """Raised when no free token was found within the attempt limit"""

    def __init__(self, attempts: int):
        super().__init__(f"No free token after {attempts} attempts")
        self.attempts = attempts


def random_token() -> str:
    """
    Draw a random URL-safe token

    Returns:
        str: First TOKEN_LENGTH characters of the base64 encoded random bytes
    """
    raw = secrets.token_bytes(TOKEN_BYTES)
    return base64.urlsafe_b64encode(raw).decode("ascii")[:TOKEN_LENGTH]


def generate_token(exists: Callable[[str], bool], max_attempts: int) -> str:
    """
    Generate a token that is not already in use

    The caller must hold whatever lock guards `exists` until the token is stored.

    Args:
        exists: Membership check against the mapping table
        max_attempts: How many candidates to draw before giving up

    Returns:
        str: A free token

    Raises:
        TokenSpaceExhausted: If every candidate was already taken
    """
    for _ in range(max_attempts):
        token = random_token()
        if not exists(token):
            return token
    raise TokenSpaceExhausted(max_attempts)


def is_valid_url(url: str) -> bool:
    """
    Check that a string is an absolute URL that fits on one journal line

    Args:
        url: The URL to check

    Returns:
        bool: True if the URL can be shortened
    """
    if not url or url != url.strip():
        return False
    # control characters are silently dropped by the parser but would be stored
    if any(ord(c) < 0x20 or ord(c) == 0x7f for c in url):
        return False
    try:
        _url_adapter.validate_python(url)
    except ValidationError:
        return False
    return True
