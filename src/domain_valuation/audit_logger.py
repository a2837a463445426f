"""
Structured logging for the domain valuation client.

Every component logs through an AuditLogger: entries carry a component name
and a data dict, are filtered by a minimum level, have secrets masked, and
are written as JSON lines, readable text, or both.
"""

import json
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, TextIO

from domain_valuation.enums import LogLevel


OUTPUT_FORMATS = ("json", "text", "both")

_LEVEL_ORDER = {
    LogLevel.DEBUG: 0,
    LogLevel.INFO: 1,
    LogLevel.WARN: 2,
    LogLevel.ERROR: 3,
}


@dataclass
class LogEntry:
    """One recorded log line."""

    timestamp: str
    level: LogLevel
    component: str
    message: str
    data: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "level": self.level.value,
            "component": self.component,
            "message": self.message,
            "data": self.data,
        }


class AuditLogger:
    """
    Leveled logger writing JSON lines and/or text lines to a stream.

    Entries below the minimum level are dropped entirely. Accepted entries
    are also kept in memory and exposed through ``entries``.
    """

    # Substrings that mark a data key as sensitive (case-insensitive)
    SENSITIVE_KEYS = frozenset({
        'token', 'secret', 'password', 'api_key', 'auth',
        'credential', 'private_key', 'search_data', 'cookie',
    })

    MASK_VALUE = "***MASKED***"

    def __init__(
        self,
        output_format: str = "text",
        output_stream: Optional[TextIO] = None,
        level: LogLevel = LogLevel.INFO,
    ) -> None:
        """
        Args:
            output_format: One of 'json', 'text' or 'both'
            output_stream: Destination stream, sys.stderr when omitted
            level: Minimum level that is recorded

        Raises:
            ValueError: If output_format is not recognised
        """
        if output_format not in OUTPUT_FORMATS:
            raise ValueError(
                f"Unknown output format {output_format!r}, expected one of {OUTPUT_FORMATS}"
            )

        self._output_format = output_format
        self._stream = output_stream if output_stream is not None else sys.stderr
        self._level = level
        self._entries: list[LogEntry] = []

    @classmethod
    def from_config(cls, config, output_stream: Optional[TextIO] = None) -> "AuditLogger":
        """Build a logger from a LoggingConfig."""
        return cls(
            output_format=config.output_format,
            output_stream=output_stream,
            level=LogLevel(config.level),
        )

    @property
    def output_format(self) -> str:
        return self._output_format

    @property
    def level(self) -> LogLevel:
        return self._level

    @property
    def entries(self) -> list[LogEntry]:
        return list(self._entries)

    def is_enabled_for(self, level: LogLevel) -> bool:
        return _LEVEL_ORDER[level] >= _LEVEL_ORDER[self._level]

    def log(
        self,
        level: LogLevel,
        component: str,
        message: str,
        data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Record and write one entry.

        Args:
            level: Severity of the entry
            component: Name of the emitting component (e.g. 'valuation_client')
            message: Short description of the event
            data: Extra context; sensitive keys are masked before writing

        Returns:
            The recorded LogEntry, or None when the level is filtered out
        """
        if not self.is_enabled_for(level):
            return None

        entry = LogEntry(
            timestamp=datetime.now(timezone.utc).isoformat(),
            level=level,
            component=component,
            message=message,
            data=self.mask_sensitive_data(data or {}),
        )
        self._entries.append(entry)
        self._write(entry)
        return entry

    def debug(self, component: str, message: str, data: Optional[dict] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.DEBUG, component, message, data)

    def info(self, component: str, message: str, data: Optional[dict] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.INFO, component, message, data)

    def warn(self, component: str, message: str, data: Optional[dict] = None) -> Optional[LogEntry]:
        return self.log(LogLevel.WARN, component, message, data)

    def log_error(
        self,
        component: str,
        message: str,
        error: Optional[BaseException] = None,
        request_url: Optional[str] = None,
        response_status_code: Optional[int] = None,
        additional_data: Optional[dict] = None,
    ) -> Optional[LogEntry]:
        """
        Record a failure together with the request that caused it.

        The exception text and class name, the request URL and the response
        status are added to ``additional_data`` when given.
        """
        data = dict(additional_data or {})

        if error is not None:
            data.update(error_message=str(error), error_type=type(error).__name__)

        context = {
            "request_url": request_url,
            "response_status_code": response_status_code,
        }
        data.update({key: value for key, value in context.items() if value is not None})

        return self.log(LogLevel.ERROR, component, message, data)

    def is_sensitive_key(self, key: Any) -> bool:
        lowered = str(key).lower()
        return any(marker in lowered for marker in self.SENSITIVE_KEYS)

    def mask_sensitive_data(self, data: dict) -> dict:
        """Return a copy of ``data`` with sensitive values replaced, at any depth."""
        if not isinstance(data, dict):
            return data
        return {
            key: self.MASK_VALUE if self.is_sensitive_key(key) else self._mask_value(value)
            for key, value in data.items()
        }

    def _mask_value(self, value: Any) -> Any:
        if isinstance(value, dict):
            return self.mask_sensitive_data(value)
        if isinstance(value, (list, tuple)):
            return [self._mask_value(item) for item in value]
        return value

    def _write(self, entry: LogEntry) -> None:
        lines = []
        if self._output_format != "text":
            lines.append(self.format_json(entry))
        if self._output_format != "json":
            lines.append(self.format_text(entry))

        for line in lines:
            self._stream.write(line + "\n")
        self._stream.flush()

    def format_json(self, entry: LogEntry) -> str:
        return json.dumps(entry.to_dict(), ensure_ascii=False, default=str)

    def format_text(self, entry: LogEntry) -> str:
        """Render ``[timestamp] LEVEL [component] message {data}``."""
        line = f"[{entry.timestamp}] {entry.level.value.upper()} [{entry.component}] {entry.message}"
        if entry.data:
            line += " " + json.dumps(entry.data, ensure_ascii=False, default=str)
        return line

    def clear_entries(self) -> None:
        self._entries.clear()
