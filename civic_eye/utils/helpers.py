import re
import secrets
import string
import time

TRACKING_CODE_PREFIX = "CIV"
TRACKING_CODE_REGEX = re.compile(r"^CIV-\d{13}-[0-9A-Z]{6}$")
_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


def generate_tracking_code(prefix: str = TRACKING_CODE_PREFIX) -> str:
    """CIV-<epoch millis>-<6 random upper-case alphanumerics>."""
    millis = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(6))
    return f"{prefix}-{millis}-{suffix}"


def is_tracking_code(value: str) -> bool:
    return bool(value and TRACKING_CODE_REGEX.match(value))
