"""Core types: results, errors, configuration and fallback chains."""

from .config import Config, ConfigError, load_config
from .errors import ErrorCode
from .fallback import FallbackResult, Strategy, first_non_empty
from .result import Err, Ok, Result, is_err, is_ok

__all__ = [
    # config
    "Config",
    "ConfigError",
    "load_config",
    # errors
    "ErrorCode",
    # fallback
    "FallbackResult",
    "Strategy",
    "first_non_empty",
    # result
    "Err",
    "Ok",
    "Result",
    "is_err",
    "is_ok",
]
