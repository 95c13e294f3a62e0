"""
Identifier generation for vouchers and usage records.

FORMAT: <PREFIX>_<YYYYMMDD>_<6 random chars from A-Z0-9>
e.g. VCH_20261019_7QK2ZD, USE_20261019_M3X9PA

The random suffix comes from secrets (CSPRNG). Callers pass the ids that
are already taken so a collision is retried instead of overwriting.
"""

import secrets
import string
from datetime import datetime

from ..errors import StorageError


VOUCHER_PREFIX = "VCH"
USAGE_PREFIX = "USE"

SUFFIX_ALPHABET = string.ascii_uppercase + string.digits
SUFFIX_LENGTH = 6
MAX_ATTEMPTS = 10


def random_suffix(length: int = SUFFIX_LENGTH) -> str:
    return "".join(secrets.choice(SUFFIX_ALPHABET) for _ in range(length))


def new_identifier(prefix: str, now: datetime, taken=()) -> str:
    """Generate an id not present in `taken` (any container supporting `in`)."""
    day = now.strftime("%Y%m%d")
    for _ in range(MAX_ATTEMPTS):
        candidate = f"{prefix}_{day}_{random_suffix()}"
        if candidate not in taken:
            return candidate
    raise StorageError(f"Could not allocate a unique {prefix} identifier")


def new_voucher_id(now: datetime, taken=()) -> str:
    return new_identifier(VOUCHER_PREFIX, now, taken)


def new_usage_id(now: datetime, taken=()) -> str:
    return new_identifier(USAGE_PREFIX, now, taken)
