"""Synthetic Payment Data Generator.

Generates payment histories and transactions for training the credit and
fraud networks. Identifiers, countries and merchant categories come from
Faker; amounts, timings and payment behaviour from a seeded NumPy
generator.

Credit labels are the deterministic factor composite rescaled to
[0, 1000] plus noise. Fraud labels mark transactions with injected fraud
patterns.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional

import numpy as np
import pandas as pd
from faker import Faker

from ..config import RiskEngineConfig
from ..features.extractor import CREDIT_FEATURE_NAMES, FRAUD_FEATURE_NAMES, FeatureExtractor
from ..models.credit import factor_scores, weighted_sum
from .records import PAYMENT_COLUMNS, PaymentRecord, PaymentStatus, TransactionContext, to_utc, utc_now

MERCHANT_CATEGORIES = ["grocery", "utilities", "electronics", "travel", "restaurants", "fuel", "rent"]


class FraudPattern(str, Enum):
    """Fraud patterns injected into synthetic transactions."""
    HIGH_AMOUNT = "high_amount"
    NIGHT_ROUND_AMOUNT = "night_round_amount"
    SUSPICIOUS_COUNTRY = "suspicious_country"
    VELOCITY = "velocity"
    ACCOUNT_TAKEOVER = "account_takeover"


@dataclass
class UserHistory:
    """A synthetic user with payment history and historical credit score."""

    user_id: str
    records: list[PaymentRecord]
    credit_score: float  # model scale [0, 1000]
    home_country: str
    devices: list[str] = field(default_factory=list)


@dataclass
class TransactionSample:
    """A transaction to assess, the history before it and its label."""

    user_id: str
    context: TransactionContext
    history: list[PaymentRecord]
    is_fraud: bool = False
    fraud_pattern: Optional[str] = None


class PaymentDataGenerator:
    """
    Generates synthetic payment data for training and tests.

    All randomness flows from the seed, so two generators with the same
    seed and reference time produce identical data.
    """

    def __init__(
        self,
        seed: Optional[int] = None,
        locale: str = "en_US",
        reference_time: Optional[datetime] = None,
        config: Optional[RiskEngineConfig] = None,
        score_noise: float = 25.0,
    ):
        """
        Initialize the data generator.

        Args:
            seed: Random seed for reproducibility.
            locale: Faker locale.
            reference_time: The "now" of the generated data; defaults to
                the current UTC time.
            config: Engine configuration used for feature extraction and
                the credit composite.
            score_noise: Standard deviation of the noise added to credit
                labels on the [0, 1000] scale.
        """
        self.seed = seed
        self.faker = Faker(locale)
        if seed is not None:
            self.faker.seed_instance(seed)
        self.rng = np.random.default_rng(seed)
        self.reference_time = to_utc(reference_time) if reference_time is not None else utc_now()
        self.config = config or RiskEngineConfig()
        self.extractor = FeatureExtractor(self.config.features)
        self.score_noise = score_noise
        self._user_counter = 0

    def _generate_user_id(self) -> str:
        self._user_counter += 1
        return f"USER-{self._user_counter:08d}"

    def _home_country(self) -> str:
        suspicious = set(self.config.features.suspicious_countries)
        while True:
            code = self.faker.country_code()
            if code not in suspicious:
                return code

    def generate_history(
        self,
        n_records: Optional[int] = None,
        reliability: Optional[float] = None,
        home_country: Optional[str] = None,
        devices: Optional[list[str]] = None,
        end: Optional[datetime] = None,
    ) -> list[PaymentRecord]:
        """
        Generate one user's payment history.

        Args:
            n_records: Number of records; random in [3, 36] if omitted.
            reliability: Probability that a payment is on time.
            home_country: Country of every record.
            devices: Device ids to draw from.
            end: Latest due date; defaults to the reference time.

        Returns:
            Records ordered by due date, oldest first.
        """
        n = int(n_records if n_records is not None else self.rng.integers(3, 37))
        reliability = float(reliability if reliability is not None else self.rng.beta(8, 2))
        home_country = home_country or self._home_country()
        devices = devices or [self.faker.uuid4()[:12]]
        end = end or self.reference_time

        typical = float(self.rng.lognormal(mean=5.0, sigma=0.8))
        # one payment roughly every month, with jitter
        gaps = self.rng.integers(20, 41, size=n)
        offsets = (np.cumsum(gaps) - gaps[0])[::-1]

        records = []
        for offset in offsets:
            due_date = end - timedelta(days=int(offset))
            created_at = due_date - timedelta(days=int(self.rng.integers(5, 31)))
            amount = round(float(typical * self.rng.lognormal(0.0, 0.5)), 2)

            roll = self.rng.random()
            if roll < reliability:
                status = PaymentStatus.PAID.value
                paid_date = due_date - timedelta(days=int(self.rng.integers(0, 6)))
            elif roll < reliability + (1 - reliability) * 0.6:
                status = PaymentStatus.PAID.value
                paid_date = due_date + timedelta(days=int(self.rng.integers(1, 46)))
            else:
                status = str(self.rng.choice([
                    PaymentStatus.LATE.value,
                    PaymentStatus.FAILED.value,
                    PaymentStatus.DEFAULTED.value,
                ]))
                paid_date = None

            records.append(PaymentRecord(
                amount=amount,
                due_date=due_date,
                created_at=min(created_at, end),
                status=status,
                paid_date=paid_date,
                country=home_country,
                device_id=str(self.rng.choice(devices)),
                merchant_category=str(self.rng.choice(MERCHANT_CATEGORIES)),
            ))
        return records

    def credit_label(self, records: list[PaymentRecord]) -> float:
        """Historical credit score on the [0, 1000] scale."""
        features = self.extractor.credit_features(records, self.reference_time)
        if features[5] == 0:
            return 0.0
        composite = weighted_sum(factor_scores(features), self.config.credit.weights) * 10
        noisy = composite + self.rng.normal(0.0, self.score_noise)
        return float(np.clip(noisy, 0.0, 1000.0))

    def generate_user(self) -> UserHistory:
        """Generate a single user with history and credit label."""
        home_country = self._home_country()
        devices = [self.faker.uuid4()[:12] for _ in range(int(self.rng.integers(1, 3)))]
        records = self.generate_history(home_country=home_country, devices=devices)
        return UserHistory(
            user_id=self._generate_user_id(),
            records=records,
            credit_score=self.credit_label(records),
            home_country=home_country,
            devices=devices,
        )

    def generate_users(self, count: int) -> list[UserHistory]:
        """
        Generate multiple users.

        Args:
            count: Number of users to generate.

        Returns:
            List of UserHistory objects.
        """
        return [self.generate_user() for _ in range(count)]

    def _legitimate_context(self, user: UserHistory, timestamp: datetime) -> TransactionContext:
        average = float(np.mean([r.amount for r in user.records]))
        return TransactionContext(
            amount=round(float(average * self.rng.uniform(0.5, 1.8)), 2),
            timestamp=timestamp,
            country=user.home_country,
            device_id=str(self.rng.choice(user.devices)),
            merchant_category=str(self.rng.choice(MERCHANT_CATEGORIES)),
            transaction_id=self.faker.uuid4(),
        )

    def _inject_fraud(
        self,
        user: UserHistory,
        context: TransactionContext,
        pattern: FraudPattern,
    ) -> tuple[TransactionContext, list[PaymentRecord]]:
        history = list(user.records)
        average = float(np.mean([r.amount for r in history]))
        suspicious = self.config.features.suspicious_countries
        values = asdict(context)

        if pattern is FraudPattern.HIGH_AMOUNT:
            values["amount"] = round(average * float(self.rng.uniform(8, 20)), 2)
        elif pattern is FraudPattern.NIGHT_ROUND_AMOUNT:
            hour = int(self.rng.choice(self.config.fraud.round_amount_hours))
            values["timestamp"] = context.timestamp.replace(hour=hour, minute=int(self.rng.integers(0, 60)))
            unit = self.config.features.round_amount_unit
            values["amount"] = float(unit * int(self.rng.integers(5, 30)))
        elif pattern is FraudPattern.SUSPICIOUS_COUNTRY:
            values["country"] = str(self.rng.choice(suspicious))
            values["amount"] = round(average * float(self.rng.uniform(2, 6)), 2)
        elif pattern is FraudPattern.VELOCITY:
            burst = int(self.rng.integers(self.config.fraud.max_hourly_transactions + 1, 25))
            for _ in range(burst):
                created = context.timestamp - timedelta(minutes=float(self.rng.uniform(1, 59)))
                history.append(PaymentRecord(
                    amount=round(average * float(self.rng.uniform(0.2, 1.0)), 2),
                    due_date=created,
                    created_at=created,
                    status=str(self.rng.choice([PaymentStatus.PAID.value, PaymentStatus.FAILED.value])),
                    paid_date=created,
                    country=user.home_country,
                    device_id=context.device_id,
                ))
        elif pattern is FraudPattern.ACCOUNT_TAKEOVER:
            values["device_id"] = self.faker.uuid4()[:12]
            values["country"] = self._home_country() if self.rng.random() < 0.5 else str(self.rng.choice(suspicious))
            values["amount"] = round(average * float(self.rng.uniform(4, 12)), 2)
            values["timestamp"] = context.timestamp.replace(hour=int(self.rng.integers(0, 6)))

        return TransactionContext(**values), history

    def generate_transactions(self, count: int, fraud_ratio: float = 0.15) -> list[TransactionSample]:
        """
        Generate labelled transactions.

        Args:
            count: Number of transactions.
            fraud_ratio: Fraction of transactions carrying a fraud pattern.

        Returns:
            List of TransactionSample objects.
        """
        if not 0.0 <= fraud_ratio <= 1.0:
            raise ValueError("fraud_ratio must be between 0 and 1")

        samples = []
        patterns = list(FraudPattern)
        n_fraud = int(round(count * fraud_ratio))
        fraud_flags = np.zeros(count, dtype=bool)
        fraud_flags[:n_fraud] = True
        self.rng.shuffle(fraud_flags)

        for is_fraud in fraud_flags:
            user = self.generate_user()
            hour = int(self.rng.integers(8, 21))
            timestamp = (self.reference_time + timedelta(days=1)).replace(
                hour=hour, minute=int(self.rng.integers(0, 60)), second=0, microsecond=0
            )
            context = self._legitimate_context(user, timestamp)
            history = user.records
            pattern = None
            if is_fraud:
                pattern = patterns[int(self.rng.integers(0, len(patterns)))]
                context, history = self._inject_fraud(user, context, pattern)
            samples.append(TransactionSample(
                user_id=user.user_id,
                context=context,
                history=history,
                is_fraud=bool(is_fraud),
                fraud_pattern=pattern.value if pattern else None,
            ))
        return samples

    def credit_dataset(self, count: int) -> tuple[np.ndarray, np.ndarray]:
        """Credit feature matrix and historical scores for count users."""
        users = self.generate_users(count)
        X = self.extractor.credit_matrix([u.records for u in users], self.reference_time)
        y = np.array([u.credit_score for u in users], dtype=float)
        return X, y

    def fraud_dataset(self, count: int, fraud_ratio: float = 0.15) -> tuple[np.ndarray, np.ndarray]:
        """Fraud feature matrix and binary labels for count transactions."""
        samples = self.generate_transactions(count, fraud_ratio)
        X = np.vstack([self.extractor.fraud_features(s.context, s.history) for s in samples])
        y = np.array([int(s.is_fraud) for s in samples])
        return X, y

    def to_dataframe(self, users: list[UserHistory]) -> pd.DataFrame:
        """
        Flatten users into one row per payment record.

        Args:
            users: Users to convert.

        Returns:
            DataFrame with user_id, credit_score and PAYMENT_COLUMNS.
        """
        rows = []
        for user in users:
            for record in user.records:
                rows.append({"user_id": user.user_id, "credit_score": user.credit_score, **record.to_dict()})
        return pd.DataFrame(rows, columns=["user_id", "credit_score", *PAYMENT_COLUMNS])


def credit_frame(X: np.ndarray, y: np.ndarray) -> pd.DataFrame:
    """Label a credit training matrix for CSV export."""
    df = pd.DataFrame(X, columns=list(CREDIT_FEATURE_NAMES))
    df["credit_score"] = y
    return df


def fraud_frame(X: np.ndarray, y: np.ndarray) -> pd.DataFrame:
    """Label a fraud training matrix for CSV export."""
    df = pd.DataFrame(X, columns=list(FRAUD_FEATURE_NAMES))
    df["is_fraud"] = y
    return df
