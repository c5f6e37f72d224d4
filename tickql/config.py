"""Engine settings.

Values come from keyword arguments or from ``TICKQL_*`` environment
variables (optionally loaded from a dotenv file first):

- ``TICKQL_AUTO_CAMEL_CASE``: expose snake_case attributes as camelCase (default true)
- ``TICKQL_MAX_BATCH_SIZE``: split loader batches above this size (default unlimited)
- ``TICKQL_TIMEOUT``: per-execution timeout in seconds (default none)
- ``TICKQL_LOG_LEVEL``: level applied to the ``tickql`` logger (default unset)
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

ENV_PREFIX = 'TICKQL_'

_TRUE = {'1', 'true', 'yes', 'on'}
_FALSE = {'0', 'false', 'no', 'off'}


def _parse_bool(name: str, raw: str) -> bool:
    v = raw.strip().lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    raise ValueError(f"{name}: expected a boolean, got {raw!r}")


def _parse_optional_int(name: str, raw: str) -> Optional[int]:
    if not raw.strip():
        return None
    try:
        value = int(raw)
    except ValueError as e:
        raise ValueError(f"{name}: expected an integer, got {raw!r}") from e
    if value < 1:
        raise ValueError(f"{name}: must be positive")
    return value


def _parse_optional_float(name: str, raw: str) -> Optional[float]:
    if not raw.strip():
        return None
    try:
        value = float(raw)
    except ValueError as e:
        raise ValueError(f"{name}: expected a number, got {raw!r}") from e
    if value <= 0:
        raise ValueError(f"{name}: must be positive")
    return value


@dataclass(frozen=True)
class EngineSettings:
    auto_camel_case: bool = True
    max_batch_size: Optional[int] = None
    timeout: Optional[float] = None
    log_level: Optional[str] = None

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None, *, env_file: Optional[str] = None) -> 'EngineSettings':
        if env_file is not None:
            load_dotenv(env_file, override=False)
        source = os.environ if env is None else env
        kwargs = {}
        raw = source.get(ENV_PREFIX + 'AUTO_CAMEL_CASE')
        if raw is not None:
            kwargs['auto_camel_case'] = _parse_bool(ENV_PREFIX + 'AUTO_CAMEL_CASE', raw)
        raw = source.get(ENV_PREFIX + 'MAX_BATCH_SIZE')
        if raw is not None:
            kwargs['max_batch_size'] = _parse_optional_int(ENV_PREFIX + 'MAX_BATCH_SIZE', raw)
        raw = source.get(ENV_PREFIX + 'TIMEOUT')
        if raw is not None:
            kwargs['timeout'] = _parse_optional_float(ENV_PREFIX + 'TIMEOUT', raw)
        raw = source.get(ENV_PREFIX + 'LOG_LEVEL')
        if raw:
            kwargs['log_level'] = raw.strip().upper()
        return cls(**kwargs)

    def make_schema(self, **kwargs):
        """A fresh :class:`~tickql.registry.Schema` honouring ``auto_camel_case``."""
        from .registry import Schema

        kwargs.setdefault('auto_camel_case', self.auto_camel_case)
        return Schema(**kwargs)

    def apply_logging(self) -> None:
        """Set the level of the ``tickql`` logger; handlers are left to the application."""
        if self.log_level:
            logging.getLogger('tickql').setLevel(self.log_level)


__all__ = ['EngineSettings', 'ENV_PREFIX']
