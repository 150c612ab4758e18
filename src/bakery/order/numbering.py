"""Human-readable order numbers: ``<prefix><YYMMDD><NNN>``, the sequence restarting each day."""

from datetime import datetime


def day_key(moment: datetime) -> str:
    return moment.strftime("%y%m%d")


def format_order_number(prefix: str, day: str, sequence: int) -> str:
    """``format_order_number("SP", "240315", 7)`` gives ``"SP240315007"``.

    Sequences beyond 999 keep all their digits rather than wrapping.
    """
    return f"{prefix}{day}{sequence:03d}"
