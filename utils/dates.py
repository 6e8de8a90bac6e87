from datetime import date, datetime


def utcnow() -> datetime:
    # naive UTC, matching the DateTime columns
    return datetime.utcnow()


def month_bucket(moment: datetime | date) -> date:
    """First day of the calendar month, used as payment_month / payout_month."""
    return date(moment.year, moment.month, 1)


def shift_month(bucket: date, months: int) -> date:
    index = bucket.year * 12 + (bucket.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)
