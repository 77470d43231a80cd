import logging
from datetime import timedelta
from functools import partial
from pathlib import Path
from typing import Annotated, Any, Callable, Final, Optional, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator

__all__ = ('DEFAULT_CIPHERS', 'DEFAULT_LOG_FORMAT', 'LoaderConfig', 'LoggingConfig')

DEFAULT_CIPHERS: Final[str] = 'ECDHE+AESGCM:ECDHE+CHACHA20'
DEFAULT_LOG_FORMAT: Final[str] = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'

def _ensure_minimum_length(arg: Union[str, Path], length: int, alias: str) -> str:
    if len(arg:=str(arg).strip()) < length:
        raise ValueError(f'Argument ({alias}, value: {arg}) must have atleast length {length}, got {len(arg)}')
    return arg

def _period_to_seconds(period: Union[float, int, timedelta, None]) -> float:
    if period is None:
        return 0.0
    if isinstance(period, timedelta):
        return period.total_seconds()
    return period

class LoaderConfig(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    # Credentials
    certificate_filepath: Annotated[Path, BeforeValidator(partial(_ensure_minimum_length, length=1, alias='certificate_filepath'))]
    key_filepath: Annotated[Path, BeforeValidator(partial(_ensure_minimum_length, length=1, alias='key_filepath'))]

    # Reload
    check_reload_period: Annotated[float, Field(default=0.0), BeforeValidator(_period_to_seconds)]  # Seconds, non-positive disables polling

    # Notifications
    on_reload: Optional[Callable[[], Any]] = None
    on_error: Optional[Callable[[Exception], Any]] = None

    # TLS
    ciphers: Annotated[str, Field(default=DEFAULT_CIPHERS), BeforeValidator(lambda ciphers : ciphers.strip().upper())]
    cafile: Optional[Path] = None

    @property
    def polling_enabled(self) -> bool:
        return self.check_reload_period > 0

class LoggingConfig(BaseModel):
    log_level: Annotated[str, Field(default='INFO'), BeforeValidator(lambda level : str(level).strip().upper())]
    log_format: Annotated[str, Field(default=DEFAULT_LOG_FORMAT)]

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, level: str) -> str:
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f'Unknown log level {level}')
        return level
