"""
field_flattener.py
Computes the ordered, de-duplicated list of fields visible on a capable record.

Capable bases are walked left to right in declaration order and their flattened fields are
appended, then the record's own fields. Non-capable and external bases contribute nothing.
When a name is seen twice the first occurrence wins and the drop is reported.
"""
import logging
import threading
from typing import Dict, List, Tuple

from capability_resolver import CapabilityResolver
from diagnostics import Diagnostic, DiagnosticKind, Severity
from generation_errors import FieldCollisionError, NotCapableError
from record_model import SourceLocation, TypeDescriptor
from symbol_registry import SymbolRegistry

logger = logging.getLogger(__name__)


class FlattenedField:
    __slots__ = ("name", "type", "origin", "location")

    def __init__(self, name: str, type_descriptor: TypeDescriptor, origin: str, location: SourceLocation):
        self.name = name
        self.type = type_descriptor
        self.origin = origin
        self.location = location

    def as_tuple(self) -> Tuple[str, TypeDescriptor, str]:
        return (self.name, self.type, self.origin)

    def __eq__(self, other):
        if not isinstance(other, FlattenedField):
            return NotImplemented
        return self.as_tuple() == other.as_tuple()

    def __hash__(self):
        return hash(self.as_tuple())

    def __repr__(self):
        return f"FlattenedField({self.name!r}, {self.type.spelling()!r}, origin={self.origin!r})"


class FieldFlattener:
    def __init__(self, registry: SymbolRegistry, resolver: CapabilityResolver, strict_collisions: bool = False):
        self.registry = registry
        self.resolver = resolver
        self.strict_collisions = strict_collisions
        self._memo: Dict[str, Tuple[Tuple[FlattenedField, ...], Tuple[Diagnostic, ...]]] = {}
        self._lock = threading.Lock()

    def flatten(self, qualified_name: str) -> Tuple[FlattenedField, ...]:
        return self.flatten_with_diagnostics(qualified_name)[0]

    def flatten_with_diagnostics(self, qualified_name: str):
        """
        Returns (fields, diagnostics) for the record. The diagnostics only cover this record's own
        level of the walk; collisions inside a base are reported against that base.

        Raises:
            NotCapableError: the record is unknown or not capable
            CyclicInheritanceError: the record's ancestry is cyclic
            FieldCollisionError: a name collides and strict_collisions is set
        """
        cached = self._memo.get(qualified_name)
        if cached is not None:
            return cached
        decl = self.registry.resolve(qualified_name)
        if decl is None or not self.resolver.is_capable(qualified_name):
            raise NotCapableError(
                f"Record '{qualified_name}' does not participate in reflection and cannot be flattened",
                qualified_name, decl.location if decl is not None else None)

        diagnostics: List[Diagnostic] = []
        collected: List[FlattenedField] = []
        by_name: Dict[str, FlattenedField] = {}

        def append(candidate: FlattenedField):
            kept = by_name.get(candidate.name)
            if kept is None:
                by_name[candidate.name] = candidate
                collected.append(candidate)
                return
            message = (f"Field '{candidate.name}' from '{candidate.origin}' is hidden by the field of the same "
                       f"name from '{kept.origin}' in record '{qualified_name}'")
            if self.strict_collisions:
                raise FieldCollisionError(message, qualified_name, decl.location, candidate.name)
            logger.warning(message)
            diagnostics.append(Diagnostic(DiagnosticKind.FIELD_NAME_COLLISION, Severity.WARNING, message,
                                          candidate.location, qualified_name, candidate.name))

        for base in decl.bases:
            target = self.registry.resolve_base(base)
            if target is None:
                continue
            if not self.resolver.is_capable(target.qualified_name):
                if target.fields:
                    diagnostics.append(Diagnostic(
                        DiagnosticKind.NON_CAPABLE_BASE_IGNORED, Severity.INFO,
                        f"Base '{target.qualified_name}' of '{qualified_name}' is not reflectable; "
                        f"its fields {[f.name for f in target.fields]} are ignored",
                        base.location if base.location.line else decl.location, qualified_name))
                continue
            for inherited in self.flatten(target.qualified_name):
                append(inherited)

        for own in decl.fields:
            append(FlattenedField(own.name, own.type, qualified_name, own.location))

        result = (tuple(collected), tuple(diagnostics))
        with self._lock:
            result = self._memo.setdefault(qualified_name, result)
        return result
