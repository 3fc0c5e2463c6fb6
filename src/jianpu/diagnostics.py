"""
Diagnostics collected while building a numbered-notation score.

A build never aborts on a malformed note or block; instead each local
recovery is recorded here and handed back with the result.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional


logger = logging.getLogger(__name__)


class DiagnosticKind(Enum):
    """Categories of locally recovered problems."""
    DURATION_UNDERFLOW = "duration_underflow"  # shorter than a 64th note
    PITCH_FALLBACK = "pitch_fallback"          # degree table lookup failed
    MALFORMED_INPUT = "malformed_input"        # input entry skipped on load


@dataclass(frozen=True)
class Diagnostic:
    """
    A single recorded recovery.

    Attributes:
        kind: Diagnostic category
        message: Human readable description
        quarter: Score position in quarter notes, when one applies
    """
    kind: DiagnosticKind
    message: str
    quarter: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert diagnostic to dictionary representation."""
        result: Dict[str, Any] = {
            'kind': self.kind.value,
            'message': self.message,
        }
        if self.quarter is not None:
            result['quarter'] = self.quarter
        return result


class DiagnosticLog:
    """Ordered collection of diagnostics for one build."""

    def __init__(self):
        self._entries: List[Diagnostic] = []

    def record(
        self,
        kind: DiagnosticKind,
        message: str,
        quarter: Optional[float] = None
    ) -> Diagnostic:
        """
        Record a diagnostic and mirror it to the module logger.

        Args:
            kind: Diagnostic category
            message: Human readable description
            quarter: Score position in quarter notes (optional)

        Returns:
            The recorded diagnostic
        """
        diagnostic = Diagnostic(kind=kind, message=message, quarter=quarter)
        self._entries.append(diagnostic)
        logger.debug(f"{kind.value}: {message}")
        return diagnostic

    def extend(self, diagnostics: List[Diagnostic]) -> None:
        """Append already built diagnostics (e.g. from input loading)."""
        for diagnostic in diagnostics:
            self._entries.append(diagnostic)
            logger.debug(f"{diagnostic.kind.value}: {diagnostic.message}")

    def of_kind(self, kind: DiagnosticKind) -> List[Diagnostic]:
        """Get all diagnostics of one category."""
        return [d for d in self._entries if d.kind == kind]

    def to_list(self) -> List[Diagnostic]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self._entries)
