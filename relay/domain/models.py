import re
from dataclasses import dataclass
from typing import Any, Optional

from relay.domain.errors import InvalidHandle

HANDLE_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.:\-]{0,255}$")

@dataclass(frozen=True)
class JobHandle:
    id: str

    @classmethod
    def parse(cls, value: Any) -> "JobHandle":
        if isinstance(value, cls):
            return value
        if not isinstance(value, str) or not value.strip():
            raise InvalidHandle(value)
        value = value.strip()
        if not HANDLE_PATTERN.match(value):
            raise InvalidHandle(value)
        return cls(value)

    def __str__(self) -> str:
        return self.id

@dataclass(frozen=True)
class UpstreamRecord:
    status: str
    output: Optional[Any] = None
    error: Optional[Any] = None
