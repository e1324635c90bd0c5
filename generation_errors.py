"""
generation_errors.py
Exceptions raised while registering, resolving, flattening and emitting records.
"""
from typing import Optional, Sequence

from record_model import SourceLocation, UNKNOWN_LOCATION


class GenerationError(Exception):
    """Base for every failure tied to a single record."""

    def __init__(self, message: str, qualified_name: str = "", location: Optional[SourceLocation] = None,
                 field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.qualified_name = qualified_name
        self.location = location or UNKNOWN_LOCATION
        self.field = field


class DuplicateSymbolError(GenerationError):
    """Two declarations share a qualified name. The whole batch is inconsistent."""


class RegistryClosedError(GenerationError):
    pass


class CyclicInheritanceError(GenerationError):
    def __init__(self, qualified_name: str, cycle: Sequence[str], location: Optional[SourceLocation] = None,
                 via: Optional[str] = None):
        path = " -> ".join(list(cycle) + [cycle[0]]) if cycle else qualified_name
        if via:
            message = f"Record '{qualified_name}' inherits from '{via}', which is part of an inheritance cycle: {path}"
        else:
            message = f"Record '{qualified_name}' is part of an inheritance cycle: {path}"
        super().__init__(message, qualified_name, location)
        self.cycle = tuple(cycle)
        self.via = via


class NotCapableError(GenerationError):
    pass


class FieldCollisionError(GenerationError):
    pass


class NonSerializableFieldTypeError(GenerationError):
    pass


class UnsupportedTypeError(GenerationError):
    pass
