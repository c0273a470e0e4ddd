"""Payment records and synthetic data generation."""
from .records import (
    FAILED_STATUSES,
    PAYMENT_COLUMNS,
    PaymentRecord,
    PaymentStatus,
    TransactionContext,
    frame_to_records,
    records_to_frame,
    to_utc,
    utc_now,
)

__all__ = [
    "PaymentStatus",
    "PaymentRecord",
    "TransactionContext",
    "FAILED_STATUSES",
    "PAYMENT_COLUMNS",
    "records_to_frame",
    "frame_to_records",
    "to_utc",
    "utc_now",
]
