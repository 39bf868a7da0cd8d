import ipaddress
import logging
import random
import string
from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple

import requests
from email_validator import EmailNotValidError, validate_email
from pydantic import HttpUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

import config
from errors import ValidationError

logger = logging.getLogger(__name__)

SHORT_LINK_LENGTH = 4
SHORT_LINK_ALPHABET = string.ascii_letters + string.digits
MAX_URL_LENGTH = 2048

DATE_FORMAT = "%Y-%m-%d"

_http_url = TypeAdapter(HttpUrl)


def generate_short_link() -> str:
    return ''.join(random.choice(SHORT_LINK_ALPHABET) for _ in range(SHORT_LINK_LENGTH))


def normalize_url(url) -> str:
    """Strip and structurally validate an absolute http(s) URL.

    Raises ValidationError("Invalid URL") for anything else.
    """
    if not isinstance(url, str):
        raise ValidationError("Invalid URL")
    url = url.strip()
    if not url or len(url) > MAX_URL_LENGTH:
        raise ValidationError("Invalid URL")
    try:
        _http_url.validate_python(url)
    except PydanticValidationError:
        raise ValidationError("Invalid URL")
    return url


def is_valid_email(email) -> bool:
    if not isinstance(email, str):
        return False
    try:
        validate_email(email.strip(), check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


def is_valid_ip(ip) -> bool:
    if not ip:
        return False
    try:
        ipaddress.ip_address(ip)
    except ValueError:
        return False
    return True


def parse_date(value: str) -> date:
    return datetime.strptime(value.strip(), DATE_FORMAT).date()


def day_bounds(initial: date, final: date) -> Tuple[datetime, datetime]:
    """Half-open [start, end) range covering every instant of both days."""
    return datetime.combine(initial, time.min), datetime.combine(final + timedelta(days=1), time.min)


def date_range(initial_date: str, final_date: str) -> Tuple[datetime, datetime]:
    """Turn two YYYY-MM-DD strings into a half-open datetime range."""
    try:
        initial = parse_date(initial_date)
        final = parse_date(final_date)
    except ValueError:
        raise ValidationError("Invalid date format. Use YYYY-MM-DD.")
    return day_bounds(initial, final)


def get_geo_from_ip(ip: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """Look up (country, city) for an IP; returns (None, None) when unavailable."""
    if not ip or not config.GEO_LOOKUP_ENABLED:
        return None, None
    try:
        res = requests.get(config.GEO_LOOKUP_URL.format(ip=ip), timeout=5)
        res.raise_for_status()
        data = res.json()
    except (requests.RequestException, ValueError) as e:
        logger.warning(f"Geo lookup failed for {ip}: {e}")
        return None, None
    if data.get("status") == "success":
        return data.get("country"), data.get("city")
    return None, None
