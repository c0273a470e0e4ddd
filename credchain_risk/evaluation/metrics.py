"""Evaluation Metrics Module.

Hand-computed metrics for the trained estimators:

- regression (credit): MSE, MAE, R-squared and tolerance accuracy
- classification (fraud): accuracy, precision, recall, F1 at a threshold
  and rank-based AUC

Zero denominators yield 0.0 instead of raising.
"""

from dataclasses import asdict, dataclass
from typing import Optional

import numpy as np
import pandas as pd


def safe_ratio(numerator: float, denominator: float) -> float:
    """numerator / denominator, or 0.0 when the denominator is zero."""
    if denominator == 0:
        return 0.0
    return float(numerator / denominator)


@dataclass
class RegressionResults:
    """Validation metrics of the credit regressor."""

    mse: float
    mae: float
    r2: float
    accuracy: float
    count: int

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ClassificationResults:
    """Confusion counts and derived rates of the fraud classifier."""

    true_positives: int
    false_positives: int
    true_negatives: int
    false_negatives: int
    precision: float
    recall: float
    f1_score: float
    accuracy: float
    auc: float
    threshold: float

    def to_dict(self) -> dict:
        return asdict(self)


class RegressionMetrics:
    """Evaluates credit regression output against labels in [0, 1]."""

    def __init__(self, tolerance: float = 0.1):
        """
        Args:
            tolerance: Absolute error at or below which a prediction counts
                as accurate.
        """
        self.tolerance = tolerance
        self._results: Optional[RegressionResults] = None

    @staticmethod
    def calculate_r2(y_true: np.ndarray, y_pred: np.ndarray) -> float:
        """1 - SSres / SStot; 0.0 when the labels are constant."""
        ss_res = float(np.sum((y_true - y_pred) ** 2))
        ss_tot = float(np.sum((y_true - y_true.mean()) ** 2))
        if ss_tot == 0:
            return 0.0
        return 1 - ss_res / ss_tot

    def evaluate(self, y_true, y_pred) -> RegressionResults:
        """
        Evaluate predictions against labels.

        Args:
            y_true: True values.
            y_pred: Predicted values.

        Returns:
            RegressionResults with all metrics.
        """
        y_true = np.asarray(y_true, dtype=float)
        y_pred = np.asarray(y_pred, dtype=float)
        if y_true.shape != y_pred.shape:
            raise ValueError(f"Shape mismatch: {y_true.shape} vs {y_pred.shape}")

        n = len(y_true)
        if n == 0:
            self._results = RegressionResults(mse=0.0, mae=0.0, r2=0.0, accuracy=0.0, count=0)
            return self._results

        errors = y_pred - y_true
        self._results = RegressionResults(
            mse=float(np.mean(errors ** 2)),
            mae=float(np.mean(np.abs(errors))),
            r2=self.calculate_r2(y_true, y_pred),
            accuracy=float(np.mean(np.abs(errors) <= self.tolerance)),
            count=n,
        )
        return self._results


class ClassificationMetrics:
    """
    Evaluates fraud probabilities against binary labels.

    A prediction is positive when its probability is strictly above the
    threshold. The training threshold is 0.5; the production block
    threshold lives in the fraud configuration and is not used here.
    """

    def __init__(self, threshold: float = 0.5):
        self.threshold = threshold
        self._results: Optional[ClassificationResults] = None

    @staticmethod
    def calculate_auc(y_true: np.ndarray, scores: np.ndarray) -> float:
        """
        Rank-based AUC (Mann-Whitney U).

        AUC = (sum of positive ranks - P(P+1)/2) / (P * N), with tied
        scores sharing their average rank. Returns 0.0 if either class
        is absent.
        """
        y_true = np.asarray(y_true).astype(bool)
        n_pos = int(y_true.sum())
        n_neg = len(y_true) - n_pos
        if n_pos == 0 or n_neg == 0:
            return 0.0

        ranks = pd.Series(np.asarray(scores, dtype=float)).rank(method="average").to_numpy()
        u = ranks[y_true].sum() - n_pos * (n_pos + 1) / 2
        return float(u / (n_pos * n_neg))

    def evaluate(self, y_true, scores) -> ClassificationResults:
        """
        Evaluate fraud probabilities against ground truth.

        Args:
            y_true: Binary labels (1 = fraud).
            scores: Predicted fraud probabilities.

        Returns:
            ClassificationResults with all metrics.
        """
        y_true = np.asarray(y_true).astype(bool)
        scores = np.asarray(scores, dtype=float)
        if y_true.shape != scores.shape:
            raise ValueError(f"Shape mismatch: {y_true.shape} vs {scores.shape}")
        flagged = scores > self.threshold

        tp = int(np.sum(y_true & flagged))
        fp = int(np.sum(~y_true & flagged))
        tn = int(np.sum(~y_true & ~flagged))
        fn = int(np.sum(y_true & ~flagged))

        precision = safe_ratio(tp, tp + fp)
        recall = safe_ratio(tp, tp + fn)

        self._results = ClassificationResults(
            true_positives=tp,
            false_positives=fp,
            true_negatives=tn,
            false_negatives=fn,
            precision=precision,
            recall=recall,
            f1_score=safe_ratio(2 * precision * recall, precision + recall),
            accuracy=safe_ratio(tp + tn, len(y_true)),
            auc=self.calculate_auc(y_true, scores),
            threshold=self.threshold,
        )
        return self._results

    def get_confusion_matrix(self) -> np.ndarray:
        """Counts of the last evaluation laid out as [[TN, FP], [FN, TP]]."""
        if self._results is None:
            raise ValueError("evaluate() has not been called")
        r = self._results
        return np.array([[r.true_negatives, r.false_positives], [r.false_negatives, r.true_positives]])
