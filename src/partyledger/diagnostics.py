from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from partyledger.logging import get_logger


class DiagnosticCode(str, Enum):
    NO_PAYER = "no_payer"
    NEGATIVE_REMAINDER = "negative_remainder"
    UNKNOWN_PARTICIPANT = "unknown_participant"
    UNALLOCATED_REMAINDER = "unallocated_remainder"


@dataclass(frozen=True, slots=True)
class Diagnostic:
    code: DiagnosticCode
    message: str
    context: dict[str, Any] = field(default_factory=dict)


DiagnosticSink = Callable[[Diagnostic], None]


def log_diagnostic(diagnostic: Diagnostic) -> None:
    log = get_logger("partyledger.diagnostics")
    log.warning(f"split.{diagnostic.code.value}", message=diagnostic.message, **diagnostic.context)


def ignore_diagnostic(diagnostic: Diagnostic) -> None:
    return None


class DiagnosticCollector:
    """Sink that keeps every diagnostic it receives, in arrival order."""

    def __init__(self) -> None:
        self.items: list[Diagnostic] = []

    def __call__(self, diagnostic: Diagnostic) -> None:
        self.items.append(diagnostic)

    def codes(self) -> list[DiagnosticCode]:
        return [item.code for item in self.items]

    def __len__(self) -> int:
        return len(self.items)
