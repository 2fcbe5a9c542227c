"""
Identity lookups for freshly obtained credentials.

Two endpoint formats are supported: the legacy email endpoint answering with
a URL-encoded ``email=...`` body, and the OAuth2 userinfo endpoint answering
with a JSON payload that also carries the display name and avatar.
"""
import logging
from enum import Enum
from typing import Dict, Optional, Tuple
from urllib.parse import parse_qsl

import google.auth.exceptions
import pydantic
import requests
from google.auth.transport.requests import AuthorizedSession
from google.oauth2.credentials import Credentials

from idelogin.auth.exceptions import EmailNotReturnedError, NetworkError
from idelogin.auth.models import UserInfo

# Configure logger
logger = logging.getLogger(__name__)

GET_EMAIL_URL = "https://www.googleapis.com/userinfo/email"
USER_INFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

# (connect, read) in seconds
DEFAULT_TIMEOUT = (5.0, 3.0)


class IdentityFormat(str, Enum):
    """Response format of the identity endpoint."""
    USER_INFO = "userinfo"
    EMAIL = "email"


def parse_url_parameters(params: str) -> Dict[str, str]:
    """
    Parse "key1=val1&key2=val2" into a dict.

    If the string contains a '?', only the part after the first one is considered.
    Pairs without a value are skipped.
    """
    before, separator, after = params.partition("?")
    query = after if separator else before
    return {
        key: value
        for key, value in parse_qsl(query, keep_blank_values=False)
    }


def _get(credentials: Credentials, url: str, timeout: Tuple[float, float]) -> requests.Response:
    session = AuthorizedSession(credentials)
    try:
        response = session.get(url, timeout=timeout)
    except (requests.RequestException, google.auth.exceptions.GoogleAuthError) as e:
        logger.warning(f"Identity query to {url} failed: {e}")
        raise NetworkError(f"Could not query identity endpoint: {e}", e)
    finally:
        session.close()

    if not response.ok:
        logger.warning(f"Identity query to {url} returned HTTP {response.status_code}")
        raise NetworkError(
            f"Identity endpoint returned HTTP {response.status_code} {response.reason}"
        )
    return response


def query_email(
    credentials: Credentials,
    url: str = GET_EMAIL_URL,
    timeout: Tuple[float, float] = DEFAULT_TIMEOUT,
) -> str:
    """
    Ask the email endpoint which account the credentials belong to.

    Raises:
        NetworkError: On transport failures and non-2xx responses
        EmailNotReturnedError: If the response carries no email
    """
    response = _get(credentials, url, timeout)
    email = parse_url_parameters(response.text.replace("\n", "")).get("email")
    if not email:
        raise EmailNotReturnedError("Server failed to return email address")
    return email


def query_user_info(
    credentials: Credentials,
    url: str = USER_INFO_URL,
    timeout: Tuple[float, float] = DEFAULT_TIMEOUT,
) -> UserInfo:
    """
    Fetch email, name and picture from the userinfo endpoint.

    Raises:
        NetworkError: On transport failures and non-2xx responses
        EmailNotReturnedError: If the payload is unreadable or has no email
    """
    response = _get(credentials, url, timeout)
    try:
        payload = response.json()
    except ValueError:
        raise EmailNotReturnedError("Server returned a malformed identity payload")

    email: Optional[str] = payload.get("email") if isinstance(payload, dict) else None
    if not email or not isinstance(email, str):
        raise EmailNotReturnedError("Server failed to return email address")

    try:
        return UserInfo(
            email=email,
            name=_optional_string(payload, "name"),
            picture=_optional_string(payload, "picture"),
        )
    except pydantic.ValidationError as e:
        raise EmailNotReturnedError(f"Server returned an unusable identity payload: {e}")


def _optional_string(payload: Dict, key: str) -> Optional[str]:
    value = payload.get(key)
    if value is not None and not isinstance(value, str):
        logger.debug(f"Ignoring non-string identity field {key!r}")
        return None
    return value
