"""
symbol_registry.py
Arena of record declarations keyed by qualified name. Bases refer to each other by name,
so inheritance is a graph over this table rather than a web of object references.
"""
import logging
from typing import Dict, Iterable, List, Optional, Tuple

from generation_errors import DuplicateSymbolError, RegistryClosedError
from record_model import BaseReference, RecordDeclaration

logger = logging.getLogger(__name__)


class SymbolRegistry:
    def __init__(self):
        self._records: Dict[str, RecordDeclaration] = {}
        self._order: List[str] = []
        self._closed = False

    @classmethod
    def from_declarations(cls, declarations: Iterable[RecordDeclaration]) -> "SymbolRegistry":
        """Register every declaration in order and close the registry."""
        registry = cls()
        for decl in declarations:
            registry.register(decl)
        registry.close()
        return registry

    def register(self, decl: RecordDeclaration):
        if self._closed:
            raise RegistryClosedError(
                f"Cannot register '{decl.qualified_name}': registry is closed",
                decl.qualified_name, decl.location)
        existing = self._records.get(decl.qualified_name)
        if existing is not None:
            raise DuplicateSymbolError(
                f"Record '{decl.qualified_name}' is already declared at {existing.location}",
                decl.qualified_name, decl.location)
        self._records[decl.qualified_name] = decl
        self._order.append(decl.qualified_name)
        logger.debug(f"Registered {decl.qualified_name}")

    def close(self):
        if not self._closed:
            self._closed = True
            logger.debug(f"Registry closed with {len(self._order)} records")

    @property
    def closed(self) -> bool:
        return self._closed

    def resolve(self, qualified_name: str) -> Optional[RecordDeclaration]:
        return self._records.get(qualified_name)

    def resolve_base(self, base: BaseReference) -> Optional[RecordDeclaration]:
        """None means the base points outside the closed set; callers treat it as external."""
        return self._records.get(base.qualified_name)

    def declarations(self) -> List[RecordDeclaration]:
        return [self._records[name] for name in self._order]

    def unresolved_references(self) -> List[Tuple[RecordDeclaration, BaseReference]]:
        result = []
        for decl in self.declarations():
            for base in decl.bases:
                if base.qualified_name not in self._records:
                    result.append((decl, base))
        return result

    def __contains__(self, qualified_name: str) -> bool:
        return qualified_name in self._records

    def __len__(self):
        return len(self._order)

    def __iter__(self):
        return iter(self.declarations())
