"""Input validators for Copilot operations.

All validators are synchronous, return ``None`` on success and raise
``ValidationFailure`` carrying the offending field name otherwise.
"""

import logging
import re
from datetime import date
from typing import Any, List, NoReturn

from .exceptions import ValidationFailure

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 39
MIN_PER_PAGE = 1
MAX_PER_PAGE = 100

ORGANIZATION_PATTERN = re.compile(r"[a-zA-Z0-9]([a-zA-Z0-9-]*[a-zA-Z0-9])?")
USERNAME_PATTERN = re.compile(r"[a-zA-Z0-9](?:[a-zA-Z0-9-]*[a-zA-Z0-9])?")
# Enterprise Managed Users carry an IdP short-code suffix, e.g. "octocat_acme"
IDP_USERNAME_PATTERN = re.compile(
    r"[a-zA-Z0-9](?:[a-zA-Z0-9-]*[a-zA-Z0-9])?_[a-zA-Z0-9]+"
)
DATE_PATTERN = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")


def _fail(message: str, field: str) -> NoReturn:
    logger.debug("Validation failed for %s: %s", field, message)
    raise ValidationFailure(message, field=field)


def validate_organization_name(org: Any, field: str = "org") -> None:
    """Validate a GitHub organization login or enterprise slug."""
    if not org or not isinstance(org, str):
        _fail("Organization name is required and must be a string", field)

    if len(org) > MAX_NAME_LENGTH:
        _fail(
            f"Organization name must be between 1 and {MAX_NAME_LENGTH} characters",
            field,
        )

    if not ORGANIZATION_PATTERN.fullmatch(org):
        _fail("Organization name contains invalid characters", field)


def validate_username(username: Any, field: str = "username") -> None:
    """Validate a GitHub login, standard or IdP-provisioned (``handle_shortcode``)."""
    if not username or not isinstance(username, str):
        _fail("Username is required and must be a string", field)

    if len(username) > MAX_NAME_LENGTH:
        _fail(f"Username must be between 1 and {MAX_NAME_LENGTH} characters", field)

    if not (
        USERNAME_PATTERN.fullmatch(username)
        or IDP_USERNAME_PATTERN.fullmatch(username)
    ):
        _fail(
            "Username contains invalid characters or does not follow allowed "
            "patterns (standard or IdP with _shortname)",
            field,
        )


def validate_usernames(usernames: Any, field: str = "selected_usernames") -> None:
    """Admission check for bulk seat operations.

    The whole batch is rejected if the list is empty or any single entry
    is malformed.
    """
    if not isinstance(usernames, list) or not usernames:
        _fail(f"{field} must be a non-empty array", field)

    for index, username in enumerate(usernames):
        try:
            validate_username(username)
        except ValidationFailure as exc:
            raise ValidationFailure(
                f"{field}[{index}]: {exc.message}", field=field
            ) from exc


def validate_date_string(value: Any, field: str) -> None:
    """Validate a ``YYYY-MM-DD`` string that is also a real calendar date."""
    if not isinstance(value, str) or not DATE_PATTERN.fullmatch(value):
        _fail(f"{field} must be in YYYY-MM-DD format", field)

    year, month, day = (int(part) for part in value.split("-"))
    try:
        date(year, month, day)
    except ValueError:
        _fail(f"{field} is not a valid date", field)


def validate_pagination_params(page: int, per_page: int) -> None:
    """Validate ``page >= 1`` and ``1 <= per_page <= 100``."""
    if not isinstance(page, int) or isinstance(page, bool) or page < 1:
        _fail("Page must be greater than 0", "page")

    if (
        not isinstance(per_page, int)
        or isinstance(per_page, bool)
        or not MIN_PER_PAGE <= per_page <= MAX_PER_PAGE
    ):
        _fail(f"per_page must be between {MIN_PER_PAGE} and {MAX_PER_PAGE}", "per_page")


def validate_optional_dates(**dates: Any) -> List[str]:
    """Validate each non-empty date keyword; returns the names checked."""
    checked = []
    for field, value in dates.items():
        if value:
            validate_date_string(value, field)
            checked.append(field)
    return checked
