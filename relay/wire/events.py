from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from relay.domain.models import UpstreamRecord
from relay.domain.states import RunStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StatusEvent(BaseModel):
    """One lifecycle update as it travels over the wire.

    ``timestamp`` is stamped by the relay when the update is forwarded, not taken
    from upstream.
    """
    model_config = ConfigDict(frozen=True)

    status: RunStatus
    message: Optional[str] = None
    error: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value: Any) -> RunStatus:
        if value is None:
            raise ValueError("status is required")
        return RunStatus.parse(value)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @classmethod
    def from_record(cls, record: UpstreamRecord) -> "StatusEvent":
        status = RunStatus.parse(record.status)
        return cls(
            status=status,
            message=_output_message(record.output) if status is RunStatus.COMPLETED else None,
            error=_terminal_error(status, record.error),
        )

    @classmethod
    def synthetic_error(cls, error: str) -> "StatusEvent":
        return cls(status=RunStatus.ERROR, error=error or "Unknown error")


def _output_message(output: Any) -> Optional[str]:
    if isinstance(output, Mapping):
        message = output.get("message")
        return None if message is None else str(message)
    if isinstance(output, str):
        return output
    return None


def _error_message(error: Any) -> Optional[str]:
    if error is None:
        return None
    if isinstance(error, Mapping):
        message = error.get("message")
        return None if message is None else str(message)
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    return str(error)


def _terminal_error(status: RunStatus, error: Any) -> Optional[str]:
    if status is RunStatus.FAILED:
        return _error_message(error)
    if status is RunStatus.ERROR:
        return _error_message(error) or "Unknown error"
    return None
