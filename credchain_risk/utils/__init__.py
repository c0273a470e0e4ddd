"""Utility modules for the risk engine."""

from .logging import JsonFormatter, RiskLogger, get_logger, log_function_call, logger_from_config

__all__ = [
    "RiskLogger",
    "JsonFormatter",
    "get_logger",
    "logger_from_config",
    "log_function_call",
]
