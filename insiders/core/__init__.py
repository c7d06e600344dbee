"""Core types: results, exit codes and settings."""

from .config import ConfigError, DispatchTarget, PipelineSettings, Secrets, load_settings
from .errors import ErrorCode
from .result import Err, Ok, Result, is_err, is_ok

__all__ = [
    # config
    "ConfigError",
    "DispatchTarget",
    "PipelineSettings",
    "Secrets",
    "load_settings",
    # errors
    "ErrorCode",
    # result
    "Err",
    "Ok",
    "Result",
    "is_err",
    "is_ok",
]
