from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Literal

EventLevel = Literal["debug", "info", "warning", "error"]

_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass(frozen=True)
class DiagnosticEvent:
    level: EventLevel
    code: str
    message: str
    subject_id: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        return {
            "level": self.level,
            "code": self.code,
            "message": self.message,
            "subject_id": self.subject_id,
        }


@dataclass
class LayoutDiagnostics:
    """Ordered event log shared by the passes of one layout run.

    Every event is also logged through the emitting module's logger.
    """

    events: List[DiagnosticEvent] = field(default_factory=list)

    def record(
        self,
        level: EventLevel,
        code: str,
        message: str,
        *,
        subject_id: str | None = None,
        logger: logging.Logger | None = None,
    ) -> DiagnosticEvent:
        event = DiagnosticEvent(level=level, code=code, message=message, subject_id=subject_id)
        self.events.append(event)
        target = logger or logging.getLogger(__name__)
        target.log(_LOG_LEVELS[level], "%s: %s", code, message)
        return event

    def codes(self) -> list[str]:
        return [event.code for event in self.events]

    def by_code(self, code: str) -> list[DiagnosticEvent]:
        return [event for event in self.events if event.code == code]

    def warnings(self) -> list[DiagnosticEvent]:
        return [event for event in self.events if event.level in {"warning", "error"}]
