"""
Address, balance and timestamp helpers.
"""

import secrets
import time
from datetime import datetime, timezone
from decimal import Context, Decimal
from typing import Optional, Union

# wide enough for any uint256 so scaling never rounds
_UINT256 = Context(prec=80)


def truncate_address(address: str, chars: int = 4) -> str:
    if not address:
        return ""
    return f"{address[:chars + 2]}...{address[-chars:]}"


def to_token_amount(raw: Union[int, str, Decimal], decimals: int) -> Decimal:
    """Raw base units -> token amount, e.g. 5 * 10**18 with 18 decimals -> 5."""
    return Decimal(raw).scaleb(-decimals, _UINT256)


def format_balance(raw: int, decimals: int = 18, precision: int = 4) -> str:
    quotient, remainder = divmod(raw, 10 ** decimals)
    if decimals == 0:
        return str(quotient)
    fraction = str(remainder).rjust(decimals, "0")
    return f"{quotient}.{fraction[:precision]}"


def format_timestamp(ts: datetime, now: Optional[datetime] = None) -> str:
    """Relative time for recent messages, calendar date otherwise."""
    now = now or datetime.now(timezone.utc)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    diff = (now - ts).total_seconds()
    if diff < 60:
        return "Just now"
    if diff < 3600:
        return f"{int(diff // 60)}m ago"
    if diff < 86400:
        return f"{int(diff // 3600)}h ago"
    return ts.date().isoformat()


def generate_message_id() -> str:
    return f"msg_{int(time.time() * 1000)}_{secrets.token_hex(5)}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
