"""Data models for alertbeat settings and check outcomes."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Tuple


@dataclass(frozen=True)
class Settings:
    check_uuid: str
    prometheus_url: str
    healthchecks_url: str = "https://hc-ping.com"
    timeout: float = 30.0
    interval: float = 300.0


class Status(Enum):
    SUCCESS = "success"
    FAILURE = "failure"

    @property
    def icon(self) -> str:
        return {
            Status.SUCCESS: "[green]\u2714[/green]",
            Status.FAILURE: "[red]\u2718[/red]",
        }[self]


@dataclass
class Outcome:
    status: Status
    message: str = ""
    context: List[Tuple[str, Any]] = field(default_factory=list)

    @classmethod
    def success(cls) -> "Outcome":
        return cls(Status.SUCCESS)

    @classmethod
    def failure(cls, message: str, *context: Tuple[str, Any]) -> "Outcome":
        return cls(Status.FAILURE, message, list(context))

    @property
    def ok(self) -> bool:
        return self.status == Status.SUCCESS

    def render(self) -> str:
        """Flatten message and context into one line: ``msg k=v k=v``."""
        parts = [self.message]
        parts.extend(f"{key}={value}" for key, value in self.context)
        return " ".join(parts)

    def to_dict(self) -> dict:
        d = {"status": self.status.value}
        if self.message:
            d["message"] = self.message
        if self.context:
            d["context"] = {key: str(value) for key, value in self.context}
        return d
