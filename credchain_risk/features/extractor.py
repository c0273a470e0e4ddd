"""
Feature Engineering Module.

Converts a user's payment and transaction history into the fixed-length
numeric vectors consumed by the credit and fraud estimators.

All temporal features are computed relative to an explicit ``now`` so the
extractor is a pure function of its inputs. Empty histories produce
zero vectors instead of raising.
"""

from datetime import datetime, timedelta
from typing import Iterable, Optional, Union

import numpy as np
import pandas as pd

from ..config import FeatureConfig
from ..data.records import (
    FAILED_STATUSES,
    PAYMENT_COLUMNS,
    PaymentRecord,
    PaymentStatus,
    TransactionContext,
    records_to_frame,
    to_utc,
)

CREDIT_FEATURE_NAMES: tuple[str, ...] = (
    "on_time_rate",
    "utilization_pct",
    "credit_age_months",
    "amount_type_count",
    "recent_records",
    "record_count",
    "average_amount",
    "late_payment_pct",
    "average_delay_days",
    "amount_volatility_pct",
)

FRAUD_FEATURE_NAMES: tuple[str, ...] = (
    "amount",
    "amount_ratio",
    "hour",
    "day_of_week",
    "is_weekend",
    "is_round_amount",
    "is_new_location",
    "is_new_device",
    "suspicious_country",
    "transactions_1h",
    "transactions_24h",
    "transactions_7d",
    "history_count",
    "historical_average",
    "failed_transactions",
)

CREDIT_FEATURE_COUNT = len(CREDIT_FEATURE_NAMES)
FRAUD_FEATURE_COUNT = len(FRAUD_FEATURE_NAMES)

# Upper bounds (exclusive) of the amount-based credit types
AMOUNT_TYPE_BOUNDS = (
    ("small", 100.0),
    ("medium", 500.0),
    ("large", 1000.0),
)
PREMIUM_TYPE = "premium"

RecordsInput = Union[Iterable[Union[PaymentRecord, dict]], pd.DataFrame]


def amount_type(amount: float) -> str:
    """Bucket an amount into small, medium, large or premium."""
    for name, upper in AMOUNT_TYPE_BOUNDS:
        if amount < upper:
            return name
    return PREMIUM_TYPE


class FeatureExtractor:
    """
    Feature extractor for credit and fraud estimators.

    Credit vector (10 values): on-time rate, utilization, credit age,
    amount-type diversity, recent activity, record count, average amount,
    late-payment rate, average payment delay, amount volatility.

    Fraud vector (15 values): transaction amount and its ratio to the
    historical average, hour, weekday, weekend flag, round-amount flag,
    new location/device flags, suspicious-country flag, activity counts
    over 1h/24h/7d windows, history size, historical average and count
    of failed transactions.
    """

    def __init__(self, config: Optional[FeatureConfig] = None):
        """
        Initialize the feature extractor.

        Args:
            config: Feature configuration. Uses defaults if not provided.
        """
        self.config = config or FeatureConfig()

    @property
    def credit_feature_names(self) -> tuple[str, ...]:
        return CREDIT_FEATURE_NAMES

    @property
    def fraud_feature_names(self) -> tuple[str, ...]:
        return FRAUD_FEATURE_NAMES

    def _frame(self, records: RecordsInput) -> pd.DataFrame:
        if isinstance(records, pd.DataFrame):
            if records.empty:
                return records_to_frame([])
            df = records.copy()
            for col in PAYMENT_COLUMNS:
                if col not in df.columns:
                    df[col] = None
            if df["created_at"].isna().all():
                df["created_at"] = df["due_date"]
            df["status"] = df["status"].fillna(PaymentStatus.PAID.value).str.lower()
            for col in ("due_date", "paid_date", "created_at"):
                df[col] = pd.to_datetime(df[col], utc=True)
            return df
        return records_to_frame(records)

    def credit_features(self, records: RecordsInput, now: datetime) -> np.ndarray:
        """
        Extract the credit feature vector.

        Args:
            records: Payment history (records, dicts or a DataFrame).
            now: Reference time for the recent-activity window.

        Returns:
            Array of CREDIT_FEATURE_COUNT raw values; zeros for empty history.
        """
        df = self._frame(records)
        features = np.zeros(CREDIT_FEATURE_COUNT)
        n = len(df)
        if n == 0:
            return features

        now = to_utc(now)
        amounts = df["amount"].astype(float)
        total = float(amounts.sum())
        average = total / n

        on_time = self._on_time_mask(df)

        # Estimated limit is ten times the average amount, so total / limit
        # reduces to n / 10; stored as a percentage to avoid float drift.
        utilization_pct = n * 10.0
        age_days = (df["created_at"].max() - df["created_at"].min()).total_seconds() / 86400
        age_months = age_days / self.config.days_per_month

        type_count = len({amount_type(a) for a in amounts})

        window = timedelta(days=self.config.days_per_month * self.config.inquiry_window_months)
        recent = int((df["created_at"] >= now - window).sum())

        late = (
            df["status"].isin([PaymentStatus.LATE.value, *FAILED_STATUSES])
            | ((df["status"] == PaymentStatus.PAID.value) & ~on_time)
        )

        paid = df[df["paid_date"].notna()]
        if len(paid):
            delays = (paid["paid_date"] - paid["due_date"]).dt.total_seconds() / 86400
            average_delay = float(delays.clip(lower=0).mean())
        else:
            average_delay = 0.0

        volatility = float(amounts.std(ddof=0) / average * 100) if average > 0 else 0.0

        features[:] = [
            on_time.sum() / n * 100,
            utilization_pct,
            age_months,
            type_count,
            min(recent, self.config.max_inquiries),
            n,
            average,
            late.sum() / n * 100,
            average_delay,
            volatility,
        ]
        return features

    def fraud_features(
        self,
        context: Union[TransactionContext, dict],
        records: RecordsInput,
        now: Optional[datetime] = None,
    ) -> np.ndarray:
        """
        Extract the fraud feature vector for a transaction.

        Args:
            context: The transaction being assessed.
            records: The user's prior transactions.
            now: Reference time for activity windows; defaults to the
                transaction timestamp.

        Returns:
            Array of FRAUD_FEATURE_COUNT raw values. History-derived
            values are zero for empty history.
        """
        if isinstance(context, dict):
            context = TransactionContext.from_dict(context)
        df = self._frame(records)
        now = to_utc(now) if now is not None else context.timestamp

        amount = float(context.amount)
        hour = context.timestamp.hour
        weekday = context.timestamp.weekday()
        country = (context.country or "").upper()

        features = np.zeros(FRAUD_FEATURE_COUNT)
        features[0] = amount
        features[2] = hour
        features[3] = weekday
        features[4] = 1.0 if weekday >= 5 else 0.0
        features[5] = 1.0 if amount % self.config.round_amount_unit == 0 else 0.0
        features[8] = 1.0 if country in self.config.suspicious_countries else 0.0

        n = len(df)
        if n == 0:
            return features

        average = float(df["amount"].astype(float).mean())
        features[1] = amount / average if average > 0 else 0.0

        known_countries = {str(c).upper() for c in df["country"].dropna()}
        if country and known_countries:
            features[6] = 0.0 if country in known_countries else 1.0
        known_devices = set(df["device_id"].dropna())
        if context.device_id and known_devices:
            features[7] = 0.0 if context.device_id in known_devices else 1.0

        created = df["created_at"]
        for idx, window in ((9, timedelta(hours=1)), (10, timedelta(hours=24)), (11, timedelta(days=7))):
            features[idx] = int(((created > now - window) & (created <= now)).sum())

        features[12] = n
        features[13] = average
        features[14] = int(df["status"].isin(FAILED_STATUSES).sum())
        return features

    def credit_matrix(self, histories: Iterable[RecordsInput], now: datetime) -> np.ndarray:
        """Stack credit vectors for several users."""
        rows = [self.credit_features(h, now) for h in histories]
        return np.vstack(rows) if rows else np.zeros((0, CREDIT_FEATURE_COUNT))

    def to_dataframe(self, features: np.ndarray, kind: str = "credit") -> pd.DataFrame:
        """Label a vector or matrix with its feature names."""
        names = CREDIT_FEATURE_NAMES if kind == "credit" else FRAUD_FEATURE_NAMES
        return pd.DataFrame(np.atleast_2d(features), columns=list(names))

    @staticmethod
    def _on_time_mask(df: pd.DataFrame) -> pd.Series:
        return (
            (df["status"] == PaymentStatus.PAID.value)
            & df["paid_date"].notna()
            & (df["paid_date"] <= df["due_date"])
        )
