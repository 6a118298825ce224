import calendar
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings


MONTH_LABELS = (
    "Jan", "Fev", "Mar", "Abr", "Mai", "Jun",
    "Jul", "Ago", "Set", "Out", "Nov", "Dez",
)


def today() -> date:
    return datetime.now(ZoneInfo(get_settings().timezone)).date()


def current_month(ref: Optional[date] = None) -> str:
    ref = ref or today()
    return f"{ref.year:04d}-{ref.month:02d}"


def split_month(mes: str) -> tuple[int, int]:
    year_str, month_str = mes.split("-", 1)
    return int(year_str), int(month_str)


def add_months(mes: str, count: int) -> str:
    year, month = split_month(mes)
    total = year * 12 + (month - 1) + count
    return f"{total // 12:04d}-{total % 12 + 1:02d}"


def last_months(quantity: int = 6, ref: Optional[date] = None) -> list[str]:
    """Months ending at ``ref``'s month, oldest first. Clamped to 1..24."""
    quantity = max(1, min(quantity, 24))
    end = current_month(ref)
    return [add_months(end, -offset) for offset in range(quantity - 1, -1, -1)]


def month_label(mes: str) -> str:
    _, month = split_month(mes)
    return MONTH_LABELS[month - 1]


def day_in_month(mes: str, day: int) -> date:
    """Date for ``day`` in ``mes``, snapped to the last day of short months."""
    year, month = split_month(mes)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))
