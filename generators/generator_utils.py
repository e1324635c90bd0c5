"""
Shared utilities for the code and schema generators.
Handles identifier mangling and type spelling for record type descriptors.
"""
import builtins
import keyword
import re
from typing import Dict, Iterable, List, Optional

from record_model import (
    Mapping, Opaque, Primitive, PrimitiveKind, QUALIFIED_NAME_SEPARATOR, Record, Sequence, Text,
    TypeDescriptor,
)

# --- Type Mapping ---
PRIMITIVE_TO_PY_TYPE = {
    PrimitiveKind.BOOLEAN: 'bool',
    PrimitiveKind.INTEGER: 'int',
    PrimitiveKind.FLOATING: 'float',
}

PRIMITIVE_TO_JSON_TYPE = {
    PrimitiveKind.BOOLEAN: 'boolean',
    PrimitiveKind.INTEGER: 'integer',
    PrimitiveKind.FLOATING: 'number',
}

ENCODER_SUFFIX = '_to_json'
DECODER_SUFFIX = '_from_json'

# Module-level names the generated code relies on: builtins it calls, the prelude's imports
# and the parameter names of the generated functions.
RESERVED_NAMES = frozenset(dir(builtins)) | {'annotations', 'dataclass', 'value', 'data'}

_NON_IDENT = re.compile(r'[^0-9a-zA-Z_]')


# --- Name Resolution ---
def python_identifier(qualified_name: str) -> str:
    """'geo::shapes::Point' -> 'geo__shapes__Point'."""
    ident = qualified_name.replace(QUALIFIED_NAME_SEPARATOR, '__')
    ident = _NON_IDENT.sub('_', ident)
    if not ident or ident[0].isdigit() or keyword.iskeyword(ident):
        ident = '_' + ident
    return ident


def field_identifier(name: str) -> str:
    """Attribute name for a field. Python keywords get a trailing underscore, leading digits a leading one."""
    ident = _NON_IDENT.sub('_', name)
    if not ident or ident[0].isdigit():
        ident = '_' + ident
    if keyword.iskeyword(ident):
        ident += '_'
    return ident


def field_identifiers(field_names: Iterable[str]) -> List[str]:
    """
    Attribute names for a record's fields, in order.
    A name that mangles onto one already taken gets the first free _2, _3, ... suffix.
    """
    taken = set()
    result = []
    for name in field_names:
        base = field_identifier(name)
        ident = base
        n = 1
        while ident in taken:
            n += 1
            ident = f"{base}_{n}"
        taken.add(ident)
        result.append(ident)
    return result


def encoder_name(qualified_name: str) -> str:
    return f"{python_identifier(qualified_name)}{ENCODER_SUFFIX}"


def decoder_name(qualified_name: str) -> str:
    return f"{python_identifier(qualified_name)}{DECODER_SUFFIX}"


class RecordNames:
    """
    Module-level names of every generated record: its class, encoder and decoder.

    Names are handed out in the order records are given. A record whose mangled name
    is reserved, or whose class or function names are already taken by an earlier record,
    gets the first free _2, _3, ... suffix.
    """

    def __init__(self, qualified_names: Iterable[str] = ()):
        self._classes: Dict[str, str] = {}
        self._taken = set(RESERVED_NAMES)
        for qname in qualified_names:
            self._assign(qname)

    def _assign(self, qualified_name: str) -> str:
        base = python_identifier(qualified_name)
        ident = base
        n = 1
        while self._clashes(ident):
            n += 1
            ident = f"{base}_{n}"
        self._classes[qualified_name] = ident
        self._taken.update((ident, ident + ENCODER_SUFFIX, ident + DECODER_SUFFIX))
        return ident

    def _clashes(self, ident: str) -> bool:
        return any(name in self._taken for name in (ident, ident + ENCODER_SUFFIX, ident + DECODER_SUFFIX))

    def __contains__(self, qualified_name: str) -> bool:
        return qualified_name in self._classes

    def class_name(self, qualified_name: str) -> str:
        if qualified_name not in self._classes:
            raise KeyError(f"No generated name for record '{qualified_name}'")
        return self._classes[qualified_name]

    def encoder(self, qualified_name: str) -> str:
        return self.class_name(qualified_name) + ENCODER_SUFFIX

    def decoder(self, qualified_name: str) -> str:
        return self.class_name(qualified_name) + DECODER_SUFFIX


def get_python_type(desc: TypeDescriptor, names: Optional[RecordNames] = None) -> str:
    """Map a type descriptor to the annotation used on the generated dataclass."""
    if isinstance(desc, Primitive):
        return PRIMITIVE_TO_PY_TYPE[desc.kind]
    if isinstance(desc, Text):
        return 'str'
    if isinstance(desc, Sequence):
        return f'list[{get_python_type(desc.element, names)}]'
    if isinstance(desc, Mapping):
        return f'dict[{get_python_type(desc.key, names)}, {get_python_type(desc.value, names)}]'
    if isinstance(desc, Record):
        if names is not None:
            return names.class_name(desc.qualified_name)
        return python_identifier(desc.qualified_name)
    if isinstance(desc, Opaque):
        return 'object'
    raise TypeError(f"Unknown type descriptor: {desc!r}")


def referenced_records(desc: TypeDescriptor) -> set:
    """Qualified names of every record reachable inside a (possibly nested) descriptor."""
    if isinstance(desc, Record):
        return {desc.qualified_name}
    if isinstance(desc, Sequence):
        return referenced_records(desc.element)
    if isinstance(desc, Mapping):
        return referenced_records(desc.key) | referenced_records(desc.value)
    return set()
