"""
Risk Engine Logging.

Thin wrapper over the standard library logger used by training, scoring
and serving. Records carry keyword fields, rendered as JSON keys in
production and as ``key=value`` pairs in development output. The wrapper
also keeps in-process duration and metric series so training runs and the
model server can report summaries without a metrics backend.
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class JsonFormatter(logging.Formatter):
    """Render a record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(getattr(record, "fields", {}))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class FieldTextFormatter(logging.Formatter):
    """Human-readable records with fields appended after a pipe."""

    def __init__(self):
        super().__init__(TEXT_FORMAT)

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        fields = getattr(record, "fields", None)
        if fields:
            line += " | " + " ".join(f"{key}={value}" for key, value in fields.items())
        return line


class RiskLogger:
    """
    Structured logger for the risk engine.

    Attributes:
        name: Name of the underlying stdlib logger.
        level: Minimum level emitted.
        format: 'json' or 'text'.
        log_file: Optional file receiving the same records as stdout.
    """

    def __init__(
        self,
        name: str = "credchain_risk",
        level: str = "INFO",
        format: str = "json",
        log_file: Optional[str] = None
    ):
        self.name = name
        self.level = level
        self.format = format
        self.log_file = log_file

        self._series: dict[str, list[float]] = {}
        self._running: dict[str, float] = {}
        self._logger = logging.getLogger(name)
        self._configure()

    def _configure(self) -> None:
        self._logger.setLevel(self.level.upper())
        self._logger.propagate = False
        # Re-creating a logger with the same name replaces its outputs.
        while self._logger.handlers:
            old = self._logger.handlers.pop()
            old.close()

        formatter = JsonFormatter() if self.format == "json" else FieldTextFormatter()
        handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
        if self.log_file:
            Path(self.log_file).parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(self.log_file))
        for handler in handlers:
            handler.setFormatter(formatter)
            self._logger.addHandler(handler)

    @property
    def logger(self) -> logging.Logger:
        """The wrapped stdlib logger."""
        return self._logger

    def debug(self, message: str, **fields) -> None:
        self._emit(logging.DEBUG, message, fields)

    def info(self, message: str, **fields) -> None:
        self._emit(logging.INFO, message, fields)

    def warning(self, message: str, **fields) -> None:
        self._emit(logging.WARNING, message, fields)

    def error(self, message: str, exc_info: bool = False, **fields) -> None:
        """Log at error level; exc_info attaches the active exception."""
        self._emit(logging.ERROR, message, fields, exc_info)

    def _emit(self, level: int, message: str, fields: dict, exc_info: bool = False) -> None:
        if self._logger.isEnabledFor(level):
            self._logger.log(level, message, exc_info=exc_info, extra={"fields": fields})

    def _record(self, series: str, value: float) -> None:
        self._series.setdefault(series, []).append(value)

    def start_timer(self, operation: str) -> None:
        """Start timing an operation."""
        self._running[operation] = time.perf_counter()

    def stop_timer(self, operation: str) -> float:
        """Stop timing and return the duration in seconds (0.0 if never started)."""
        started = self._running.pop(operation, None)
        if started is None:
            return 0.0
        duration = time.perf_counter() - started
        self._record(operation, duration)
        return duration

    @contextmanager
    def timer(self, operation: str, log_result: bool = True) -> Iterator[None]:
        """Time the enclosed block and record it under ``operation``."""
        self.start_timer(operation)
        try:
            yield
        finally:
            duration = self.stop_timer(operation)
            if log_result:
                self.info(f"{operation} completed", duration_seconds=round(duration, 3))

    def log_metrics(self, **metrics) -> None:
        """Record numeric metrics and log them."""
        for name, value in metrics.items():
            self._record(name, value)
        self.info("Metrics recorded", **metrics)

    def get_metrics_summary(self) -> dict[str, dict[str, float]]:
        """Count, mean, min, max and last value of every recorded series."""
        return {
            name: {
                "count": len(values),
                "mean": sum(values) / len(values),
                "min": min(values),
                "max": max(values),
                "last": values[-1],
            }
            for name, values in self._series.items()
            if values
        }

    def log_training_result(
        self,
        model_type: str,
        num_train: int,
        num_validation: int,
        duration: float,
        **metrics
    ) -> None:
        """Log the outcome of a training run with rounded metrics."""
        rounded = {name: round(float(value), 4) for name, value in metrics.items()}
        self.info(
            "Training completed",
            model_type=model_type,
            train_records=num_train,
            validation_records=num_validation,
            duration_seconds=round(duration, 3),
            **rounded
        )

    def log_prediction(self, model_name: str, processing_ms: float, **fields) -> None:
        """Track latency of a served prediction and log it at debug level."""
        self._record(f"{model_name}_ms", processing_ms)
        self.debug(
            "Prediction served",
            model_name=model_name,
            processing_ms=round(processing_ms, 3),
            **fields
        )


def get_logger(
    name: str = "credchain_risk",
    level: str = "INFO",
    format: str = "text",
    log_file: Optional[str] = None
) -> RiskLogger:
    """Create a RiskLogger; text output by default."""
    return RiskLogger(name=name, level=level, format=format, log_file=log_file)


def logger_from_config(config, name: str = "credchain_risk") -> RiskLogger:
    """Build a logger from a LoggingConfig section."""
    return get_logger(name, level=config.level, format=config.format, log_file=config.log_file)


def log_function_call(logger: Optional[RiskLogger] = None):
    """
    Decorator timing each call of the wrapped function.

    Args:
        logger: Logger receiving the records; a default text logger is
            created per call when omitted.
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs):
            log = logger or get_logger()
            log.debug(f"Calling {func.__name__}", args_count=len(args), kwargs_keys=sorted(kwargs))
            with log.timer(func.__name__):
                return func(*args, **kwargs)
        return wrapper
    return decorator
