"""Input record types.

Payment records and transaction contexts are the raw inputs of the
feature extractor. Both parse from plain dictionaries (API payloads, CSV
rows) and convert to pandas DataFrames for vectorised feature windows.
"""

from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable, Optional, Union

import pandas as pd

from ..errors import InputError


class PaymentStatus(str, Enum):
    """Lifecycle status of a payment."""
    PAID = "paid"
    PENDING = "pending"
    LATE = "late"
    FAILED = "failed"
    DEFAULTED = "defaulted"


FAILED_STATUSES = frozenset({PaymentStatus.FAILED.value, PaymentStatus.DEFAULTED.value})

PAYMENT_COLUMNS = [
    "amount",
    "due_date",
    "paid_date",
    "status",
    "created_at",
    "country",
    "device_id",
    "merchant_category",
]


def to_utc(value: Union[str, datetime, pd.Timestamp, None]) -> Optional[datetime]:
    """Parse a timestamp and return it timezone-aware in UTC.

    Naive values are assumed to be UTC already.
    """
    if value is None:
        return None
    if isinstance(value, str):
        if not value.strip():
            return None
    elif pd.isna(value):
        return None
    try:
        ts = pd.Timestamp(value)
    except (TypeError, ValueError) as e:
        raise InputError(f"Invalid timestamp: {value!r}") from e
    if pd.isna(ts):
        return None
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    return ts.tz_convert("UTC").to_pydatetime()


@dataclass(frozen=True)
class PaymentRecord:
    """A single historical payment or transaction of a user."""

    amount: float
    due_date: datetime
    created_at: datetime
    status: str = PaymentStatus.PAID.value
    paid_date: Optional[datetime] = None
    country: Optional[str] = None
    device_id: Optional[str] = None
    merchant_category: Optional[str] = None

    @property
    def is_on_time(self) -> bool:
        """Paid no later than the due date."""
        return (
            self.status == PaymentStatus.PAID.value
            and self.paid_date is not None
            and self.paid_date <= self.due_date
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PaymentRecord":
        """Build a record from a dictionary, validating required fields."""
        try:
            amount = float(data["amount"])
            due_date = to_utc(data["due_date"])
        except KeyError as e:
            raise InputError(f"Payment record missing field: {e.args[0]}") from e
        except (TypeError, ValueError) as e:
            raise InputError(f"Invalid payment amount: {data.get('amount')!r}") from e
        if amount < 0:
            raise InputError("Payment amount must be non-negative")
        if due_date is None:
            raise InputError("Payment record missing field: due_date")

        created_at = to_utc(data.get("created_at")) or due_date
        status = str(data.get("status") or PaymentStatus.PAID.value).lower()

        return cls(
            amount=amount,
            due_date=due_date,
            created_at=created_at,
            status=status,
            paid_date=to_utc(data.get("paid_date")),
            country=_optional_str(data.get("country")),
            device_id=_optional_str(data.get("device_id")),
            merchant_category=_optional_str(data.get("merchant_category")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


@dataclass(frozen=True)
class TransactionContext:
    """The transaction being assessed for fraud."""

    amount: float
    timestamp: datetime
    country: Optional[str] = None
    device_id: Optional[str] = None
    merchant_category: Optional[str] = None
    transaction_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TransactionContext":
        """Build a context from a dictionary."""
        try:
            amount = float(data["amount"])
            timestamp = to_utc(data["timestamp"])
        except KeyError as e:
            raise InputError(f"Transaction context missing field: {e.args[0]}") from e
        except (TypeError, ValueError) as e:
            raise InputError(f"Invalid transaction amount: {data.get('amount')!r}") from e
        if timestamp is None:
            raise InputError("Transaction context missing field: timestamp")

        return cls(
            amount=amount,
            timestamp=timestamp,
            country=_optional_str(data.get("country")),
            device_id=_optional_str(data.get("device_id")),
            merchant_category=_optional_str(data.get("merchant_category")),
            transaction_id=_optional_str(data.get("transaction_id")),
        )


def _optional_str(value: Any) -> Optional[str]:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    value = str(value).strip()
    return value or None


def records_to_frame(records: Iterable[Union[PaymentRecord, dict]]) -> pd.DataFrame:
    """
    Convert payment records to a DataFrame with UTC timestamp columns.

    Args:
        records: PaymentRecord objects or dictionaries.

    Returns:
        DataFrame with PAYMENT_COLUMNS; empty with those columns if no records.
    """
    rows = [
        (r if isinstance(r, PaymentRecord) else PaymentRecord.from_dict(r)).to_dict()
        for r in records
    ]
    if not rows:
        return pd.DataFrame(columns=PAYMENT_COLUMNS)

    df = pd.DataFrame(rows, columns=PAYMENT_COLUMNS)
    for col in ("due_date", "paid_date", "created_at"):
        df[col] = pd.to_datetime(df[col], utc=True)
    df["amount"] = df["amount"].astype(float)
    return df


def frame_to_records(df: pd.DataFrame) -> list[PaymentRecord]:
    """Convert a DataFrame of payment rows back into records."""
    return [PaymentRecord.from_dict(row) for row in df.to_dict(orient="records")]


def utc_now() -> datetime:
    """Current time in UTC."""
    return datetime.now(timezone.utc)
