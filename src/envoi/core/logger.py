"""
Structured logging for envoi services.

Every log line is an event name followed by context fields. Two renderings
are supported: ``key=value`` pairs for terminals and one JSON object per
line for log shippers.

[StructuredFormatter][envoi.core.logger.StructuredFormatter] is installed on
the root handler by the CLI so plain ``logging.getLogger()`` records from
the models and utils layers come out in the same shape as
[Logger][envoi.core.logger.Logger] records.

Examples:
    ```python
    from envoi.core.logger import Logger

    logger = Logger("api")
    logger.info("cache_hit", direction="forward", key="alice.voi")
    # Output: cache_hit direction=forward key=alice.voi

    Logger("api", json_output=True).info("cache_hit", key="alice.voi")
    # Output: {"timestamp": "...", "level": "info", "service": "api", ...}
    ```
"""

from __future__ import annotations

import datetime
import json
import logging
from typing import Any, ClassVar


_KV_EXTRA = "structured_kv"


def _truncate(value: Any, limit: int | None) -> Any:
    text = str(value)
    if not limit or len(text) <= limit:
        return value
    return f"{text[:limit]}...<truncated {len(text) - limit} chars>"


def format_kv_pairs(
    fields: dict[str, Any],
    max_value_length: int | None = 1000,
    prefix: str = " ",
) -> str:
    """Render *fields* as space-separated ``key=value`` pairs.

    Values that are empty or contain spaces, ``=`` or quotes are wrapped in
    double quotes with backslashes and inner quotes escaped.

    Returns:
        The rendered pairs preceded by *prefix*, or ``""`` when *fields*
        is empty.
    """
    if not fields:
        return ""

    parts = []
    for key, value in fields.items():
        text = str(_truncate(value, max_value_length))
        if not text or any(ch in text for ch in ' ="\''):
            text = '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'
        parts.append(f"{key}={text}")
    return prefix + " ".join(parts)


class StructuredFormatter(logging.Formatter):
    """Render any ``LogRecord`` as ``level logger message key=value...``.

    Context fields are read from the ``structured_kv`` extra attached by
    [Logger][envoi.core.logger.Logger]; records without it are emitted with
    the same prefix and no trailing pairs.
    """

    def format(self, record: logging.LogRecord) -> str:
        line = f"{record.levelname.lower()} {record.name} {record.getMessage()}"
        fields: dict[str, Any] = getattr(record, _KV_EXTRA, {})
        if fields:
            line += format_kv_pairs(fields)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class Logger:
    """Thin wrapper over ``logging.Logger`` that accepts context as kwargs.

    Examples:
        ```python
        logger = Logger("api")
        logger.warning("chain_lookup_failed", direction="reverse", error="timeout")
        ```
    """

    _DEFAULT_MAX_VALUE_LENGTH: ClassVar[int] = 1000

    def __init__(
        self,
        name: str,
        *,
        json_output: bool = False,
        max_value_length: int | None = None,
    ) -> None:
        """Create a logger bound to ``logging.getLogger(name)``.

        Args:
            name: Logger name, usually the service name.
            json_output: Emit JSON objects instead of ``key=value`` pairs.
            max_value_length: Truncate individual field values beyond this
                many characters. Defaults to 1000.
        """
        self._logger = logging.getLogger(name)
        self._json_output = json_output
        self._max_value_length = (
            self._DEFAULT_MAX_VALUE_LENGTH if max_value_length is None else max_value_length
        )

    @property
    def name(self) -> str:
        return self._logger.name

    def _log(self, level: int, msg: str, fields: dict[str, Any], *, exc_info: bool = False) -> None:
        if not self._logger.isEnabledFor(level):
            return
        if self._json_output:
            payload = {
                "timestamp": datetime.datetime.now(datetime.UTC).isoformat(),
                "level": logging.getLevelName(level).lower(),
                "service": self._logger.name,
                "message": msg,
                **fields,
            }
            self._logger.log(level, json.dumps(payload, default=str), exc_info=exc_info)
            return

        extra = {}
        if fields:
            extra[_KV_EXTRA] = {
                k: _truncate(v, self._max_value_length) for k, v in fields.items()
            }
        self._logger.log(level, msg, extra=extra, exc_info=exc_info)

    def debug(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.DEBUG, msg, kwargs)

    def info(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.INFO, msg, kwargs)

    def warning(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.WARNING, msg, kwargs)

    def error(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.ERROR, msg, kwargs)

    def critical(self, msg: str, **kwargs: Any) -> None:
        self._log(logging.CRITICAL, msg, kwargs)

    def exception(self, msg: str, **kwargs: Any) -> None:
        """Log at ERROR level with the active exception's traceback."""
        self._log(logging.ERROR, msg, kwargs, exc_info=True)
