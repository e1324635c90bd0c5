"""
diagnostics.py
Non-fatal and per-record findings collected during a generation run.
The collected list has a total, stable order so two runs can be compared directly.
"""
import threading
from enum import Enum
from typing import Iterable, List, Optional

from record_model import SourceLocation, UNKNOWN_LOCATION


class Severity(Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class DiagnosticKind(Enum):
    UNRESOLVED_BASE = "unresolved-base"
    NON_CAPABLE_BASE_IGNORED = "non-capable-base-ignored"
    FIELD_NAME_COLLISION = "field-name-collision"
    CYCLIC_INHERITANCE = "cyclic-inheritance"
    NON_SERIALIZABLE_FIELD_TYPE = "non-serializable-field-type"
    UNSUPPORTED_TYPE = "unsupported-type"
    FIELD_COLLISION_ERROR = "field-collision-error"


class Diagnostic:
    def __init__(self, kind: DiagnosticKind, severity: Severity, message: str,
                 location: Optional[SourceLocation] = None, record: str = "", field: Optional[str] = None):
        self.kind = kind
        self.severity = severity
        self.message = message
        self.location = location or UNKNOWN_LOCATION
        self.record = record
        self.field = field

    def sort_key(self):
        return (self.location.sort_key(), self.record, self.field or "", self.kind.value, self.message)

    def __eq__(self, other):
        if not isinstance(other, Diagnostic):
            return NotImplemented
        return self.sort_key() == other.sort_key() and self.severity == other.severity

    def __hash__(self):
        return hash(self.sort_key())

    def __str__(self):
        return f"{self.location}: {self.severity.value}: [{self.kind.value}] {self.message}"

    def __repr__(self):
        return f"Diagnostic({self.kind.name}, {self.severity.name}, record={self.record!r}, field={self.field!r})"


class DiagnosticCollector:
    """Thread-safe, de-duplicating sink. `sorted()` is the only way results come back out."""

    def __init__(self):
        self._lock = threading.Lock()
        self._items = set()

    def add(self, diagnostic: Diagnostic):
        with self._lock:
            self._items.add(diagnostic)

    def extend(self, diagnostics: Iterable[Diagnostic]):
        for d in diagnostics:
            self.add(d)

    def sorted(self) -> List[Diagnostic]:
        with self._lock:
            return sorted(self._items, key=Diagnostic.sort_key)

    def has_errors(self) -> bool:
        with self._lock:
            return any(d.severity == Severity.ERROR for d in self._items)

    def __len__(self):
        return len(self._items)
