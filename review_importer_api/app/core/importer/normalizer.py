"""
Field-level normalization and validation for imported reviews.

These mirror what the store itself does to comment fields, so values written
through the REST API look the same as reviews submitted on the storefront.
"""

import ipaddress
import logging
import re
import unicodedata
from datetime import datetime
from typing import Optional

from dateutil import parser as date_parser
from dateutil import tz

logger = logging.getLogger(__name__)


MIN_STAR_RATING = 1
MAX_STAR_RATING = 5

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ALLOWED_REVIEW_TAGS = {"br", "p"}

_LOCAL_PART_INVALID = re.compile(r"[^a-zA-Z0-9!#$%&'*+/=?^_`{|}~.-]")
_LOCAL_PART_VALID = re.compile(r"^[a-zA-Z0-9!#$%&'*+/=?^_`{|}~.-]+$")
_SUBDOMAIN_INVALID = re.compile(r"[^a-z0-9-]+", re.IGNORECASE)
_SUBDOMAIN_VALID = re.compile(r"^[a-z0-9-]+$", re.IGNORECASE)
_DOMAIN_TRIM = " \t\n\r\0\x0B."
_SUBDOMAIN_TRIM = " \t\n\r\0\x0B-"

_NEWLINE = re.compile(r"(\r\n|\n\r|\n|\r)")
_COMMENT = re.compile(r"<!--.*?-->", re.DOTALL)
_TAG = re.compile(r"<\s*(/?)\s*([a-zA-Z][a-zA-Z0-9]*)\b[^>]*>|<[^>]*>|<[^>]*$")
_LEADING_INT = re.compile(r"^\s*[+-]?\d+")


def absint(value) -> int:
    """Non-negative integer from leading digits; non-numeric input gives 0."""
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return abs(value)
    if isinstance(value, float):
        return abs(int(value))
    match = _LEADING_INT.match(str(value or ""))
    return abs(int(match.group(0))) if match else 0


def validate_star_rating(value) -> Optional[int]:
    """Return the rating as int if within 1-5, else None."""
    rating = absint(value)
    if rating < MIN_STAR_RATING or rating > MAX_STAR_RATING:
        return None
    return rating


def sanitize_email(email: str) -> str:
    """
    Strip characters not allowed in an email address.

    Returns:
        Cleaned address, or "" if nothing usable remains.
    """
    email = (email or "").strip()
    if len(email) < 6:
        return ""
    if email.find("@", 1) == -1:
        return ""

    local, domain = email.split("@", 1)

    local = _LOCAL_PART_INVALID.sub("", local)
    if not local:
        return ""

    if re.search(r"\.{2,}", domain):
        return ""
    domain = domain.strip(_DOMAIN_TRIM)
    if not domain:
        return ""

    subs = []
    for sub in domain.split("."):
        sub = _SUBDOMAIN_INVALID.sub("", sub.strip(_SUBDOMAIN_TRIM))
        if sub:
            subs.append(sub)
    if len(subs) < 2:
        return ""

    return f"{local}@{'.'.join(subs)}"


def is_email(email: str) -> bool:
    """Check that an address is well formed."""
    if not email or len(email) < 6:
        return False
    if email.find("@", 1) == -1:
        return False

    local, domain = email.split("@", 1)

    if not _LOCAL_PART_VALID.match(local):
        return False
    if re.search(r"\.{2,}", domain):
        return False
    if domain.strip(_DOMAIN_TRIM) != domain:
        return False

    subs = domain.split(".")
    if len(subs) < 2:
        return False
    for sub in subs:
        if sub != sub.strip(_SUBDOMAIN_TRIM):
            return False
        if not _SUBDOMAIN_VALID.match(sub):
            return False
    return True


def _keep_allowed_tag(match: "re.Match") -> str:
    name = (match.group(2) or "").lower()
    if name not in ALLOWED_REVIEW_TAGS:
        return ""
    closing = bool(match.group(1))
    if name == "br":
        return "" if closing else "<br />"
    return "</p>" if closing else "<p>"


def sanitize_review_text(text: str) -> str:
    """
    Convert line breaks to <br /> and strip every tag except br and p.

    Attributes on the allowed tags are dropped.
    """
    text = _NEWLINE.sub(lambda m: "<br />" + m.group(1), text or "")
    text = _COMMENT.sub("", text)
    return _TAG.sub(_keep_allowed_tag, text)


def is_valid_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def now_string(timezone_name: str = "UTC") -> str:
    """Current wall-clock time in the store timezone, without offset."""
    zone = tz.gettz(timezone_name) or tz.UTC
    return datetime.now(zone).strftime(DATE_FORMAT)


def parse_review_date(value: Optional[str], timezone_name: str = "UTC") -> str:
    """
    Normalize a review date to '%Y-%m-%d %H:%M:%S'.

    The wall-clock time is kept as written and any timezone suffix dropped.
    Empty or unparseable input falls back to the current time.
    """
    if not value:
        return now_string(timezone_name)

    try:
        parsed = date_parser.parse(value, ignoretz=True)
    except (ValueError, OverflowError) as e:
        logger.debug(f"Unparseable review date '{value}', using current time: {e}")
        return now_string(timezone_name)

    return parsed.strftime(DATE_FORMAT)


def sanitize_username(value: str) -> str:
    """Reduce a string to characters allowed in a login name."""
    norm = unicodedata.normalize("NFKD", value or "")
    ascii_text = norm.encode("ascii", "ignore").decode("ascii")
    ascii_text = re.sub(r"<[^>]+>", "", ascii_text)
    ascii_text = re.sub(r"%[a-fA-F0-9]{2}", "", ascii_text)
    ascii_text = re.sub(r"&.+?;", "", ascii_text)
    ascii_text = re.sub(r"[^a-zA-Z0-9 _.\-@]", "", ascii_text)
    ascii_text = re.sub(r"\s+", " ", ascii_text)
    return ascii_text.strip()
