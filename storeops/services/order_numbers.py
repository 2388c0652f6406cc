from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from storeops.models.order import Order


def order_number_prefix(day: date) -> str:
    return day.strftime("%m%d%y")


def _suffix(order_number: str) -> int | None:
    parts = order_number.split("-")
    if len(parts) != 2:
        return None
    try:
        return int(parts[1])
    except ValueError:
        return None


def next_order_number(db: Session, *, today: date | None = None) -> str:
    """
    ``MMDDYY-N`` with N one past the highest suffix already used today.

    Scan-then-insert: two concurrent callers can get the same number. The
    unique constraint on ``orders.order_number`` catches that at insert time.
    """
    prefix = order_number_prefix(today or date.today())
    existing = db.execute(
        select(Order.order_number).where(Order.order_number.like(f"{prefix}-%"))
    ).scalars().all()
    suffixes = [value for value in (_suffix(number) for number in existing) if value is not None]
    next_sequential = max(suffixes) + 1 if suffixes else 1
    return f"{prefix}-{next_sequential}"
