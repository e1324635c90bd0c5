"""
record_model.py
Declaration model consumed by the generator: records, their bases, their fields and the
closed set of field type descriptors. Everything here is immutable once constructed.
"""
from enum import Enum
from typing import Iterable, List, Optional, Tuple


QUALIFIED_NAME_SEPARATOR = "::"


def join_qualified_name(namespace: Iterable[str], name: str) -> str:
    parts = [p for p in namespace if p]
    parts.append(name)
    return QUALIFIED_NAME_SEPARATOR.join(parts)


def split_qualified_name(qualified_name: str) -> Tuple[Tuple[str, ...], str]:
    """Split 'a::b::Name' into (('a', 'b'), 'Name')."""
    parts = qualified_name.split(QUALIFIED_NAME_SEPARATOR)
    return tuple(parts[:-1]), parts[-1]


class SourceLocation:
    """Position of a declaration in its source file. Ordered by (file, line, column)."""

    __slots__ = ("file", "line", "column")

    def __init__(self, file: str = "", line: int = 0, column: int = 0):
        self.file = file or ""
        self.line = line or 0
        self.column = column or 0

    def sort_key(self) -> Tuple[str, int, int]:
        return (self.file, self.line, self.column)

    def __eq__(self, other):
        if not isinstance(other, SourceLocation):
            return NotImplemented
        return self.sort_key() == other.sort_key()

    def __lt__(self, other):
        if not isinstance(other, SourceLocation):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    def __hash__(self):
        return hash(self.sort_key())

    def __str__(self):
        if not self.file and not self.line:
            return "<unknown>"
        return f"{self.file}:{self.line}:{self.column}"

    def __repr__(self):
        return f"SourceLocation({self.file!r}, {self.line}, {self.column})"


UNKNOWN_LOCATION = SourceLocation()


class PrimitiveKind(Enum):
    BOOLEAN = "bool"
    INTEGER = "int"
    FLOATING = "float"


class TypeDescriptor:
    """
    Base of the closed set of field type shapes.
    Subclasses are value objects: equality and hashing follow their canonical spelling.
    """

    __slots__ = ()

    def spelling(self) -> str:
        raise NotImplementedError

    def _key(self):
        return (type(self).__name__, self.spelling())

    def __eq__(self, other):
        if not isinstance(other, TypeDescriptor):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self):
        return hash(self._key())

    def __setattr__(self, name, value):
        if hasattr(self, name):
            raise AttributeError(f"{type(self).__name__} is immutable")
        object.__setattr__(self, name, value)

    def __repr__(self):
        return f"{type(self).__name__}({self.spelling()!r})"

    def __str__(self):
        return self.spelling()


class Primitive(TypeDescriptor):
    __slots__ = ("kind",)

    def __init__(self, kind: PrimitiveKind):
        self.kind = PrimitiveKind(kind)

    def spelling(self) -> str:
        return self.kind.value


class Text(TypeDescriptor):
    __slots__ = ()

    def spelling(self) -> str:
        return "text"


class Sequence(TypeDescriptor):
    __slots__ = ("element",)

    def __init__(self, element: TypeDescriptor):
        self.element = element

    def spelling(self) -> str:
        return f"sequence<{self.element.spelling()}>"


class Mapping(TypeDescriptor):
    __slots__ = ("key", "value")

    def __init__(self, key: TypeDescriptor, value: TypeDescriptor):
        self.key = key
        self.value = value

    def spelling(self) -> str:
        return f"mapping<{self.key.spelling()}, {self.value.spelling()}>"


class Record(TypeDescriptor):
    """Reference to another record declaration, looked up in the registry only when needed."""

    __slots__ = ("qualified_name",)

    def __init__(self, qualified_name: str):
        self.qualified_name = qualified_name

    def spelling(self) -> str:
        return self.qualified_name


class Opaque(TypeDescriptor):
    """A type shape the front end could not interpret. Carried only for diagnostics."""

    __slots__ = ("raw_spelling",)

    def __init__(self, raw_spelling: str):
        self.raw_spelling = raw_spelling

    def spelling(self) -> str:
        return f"opaque<{self.raw_spelling}>"


BOOL = Primitive(PrimitiveKind.BOOLEAN)
INT = Primitive(PrimitiveKind.INTEGER)
FLOAT = Primitive(PrimitiveKind.FLOATING)
TEXT = Text()


class BaseReference:
    def __init__(self, qualified_name: str, location: Optional[SourceLocation] = None):
        self.qualified_name = qualified_name
        self.location = location or UNKNOWN_LOCATION

    def __eq__(self, other):
        if not isinstance(other, BaseReference):
            return NotImplemented
        return self.qualified_name == other.qualified_name

    def __hash__(self):
        return hash(self.qualified_name)

    def __repr__(self):
        return f"BaseReference({self.qualified_name!r})"


class FieldDeclaration:
    def __init__(self, name: str, type_descriptor: TypeDescriptor, index: int = 0,
                 location: Optional[SourceLocation] = None):
        self.name = name
        self.type = type_descriptor
        self.index = index
        self.location = location or UNKNOWN_LOCATION

    def __repr__(self):
        return f"FieldDeclaration({self.name!r}, {self.type!r}, index={self.index})"


class RecordDeclaration:
    """
    Shape of one record type as produced by a front end.

    Args:
        qualified_name: namespace path and local name joined by '::'
        bases: base references in declaration order
        fields: own fields in declaration order
        capable: whether the record itself carries the reflection marker
        location: where the record was declared
    """

    def __init__(self, qualified_name: str, bases: Iterable = (), fields: Iterable = (),
                 capable: bool = False, location: Optional[SourceLocation] = None,
                 doc: str = ""):
        self.qualified_name = qualified_name
        self.bases: Tuple[BaseReference, ...] = tuple(
            b if isinstance(b, BaseReference) else BaseReference(b) for b in bases
        )
        own_fields: List[FieldDeclaration] = []
        seen = set()
        for index, f in enumerate(fields):
            if f.name in seen:
                raise ValueError(f"Record '{qualified_name}' declares field '{f.name}' more than once")
            seen.add(f.name)
            if f.index != index:
                f = FieldDeclaration(f.name, f.type, index, f.location)
            own_fields.append(f)
        self.fields: Tuple[FieldDeclaration, ...] = tuple(own_fields)
        self.capable = bool(capable)
        self.location = location or UNKNOWN_LOCATION
        self.doc = doc

    @property
    def namespace(self) -> Tuple[str, ...]:
        return split_qualified_name(self.qualified_name)[0]

    @property
    def name(self) -> str:
        return split_qualified_name(self.qualified_name)[1]

    def __repr__(self):
        return (f"RecordDeclaration({self.qualified_name!r}, bases={[b.qualified_name for b in self.bases]}, "
                f"fields={[f.name for f in self.fields]}, capable={self.capable})")
