"""
Python codec generator for reflected records.
For every capable record emits a dataclass holding its flattened fields plus a pair of
module-level functions converting it to and from a JSON-compatible dict.
"""
import json
import logging
import threading
from typing import Iterable, List, Optional, Tuple

from capability_resolver import CapabilityResolver
from field_flattener import FieldFlattener, FlattenedField
from generation_errors import CyclicInheritanceError, NonSerializableFieldTypeError, UnsupportedTypeError
from generators.generator_utils import (
    RecordNames, decoder_name, encoder_name, field_identifiers, get_python_type, referenced_records,
)
from record_model import (
    Mapping, Opaque, Primitive, PrimitiveKind, Record, RecordDeclaration, Sequence, Text, TypeDescriptor,
)
from symbol_registry import SymbolRegistry

logger = logging.getLogger(__name__)

INDENT = "    "

MODULE_PRELUDE = [
    "from __future__ import annotations",
    "",
    "from dataclasses import dataclass",
]


class RecordPlan:
    """Validated input for rendering one record: its flattened fields and the records they use."""

    def __init__(self, decl: RecordDeclaration, fields: Tuple[FlattenedField, ...], references: Tuple[str, ...],
                 attributes: Optional[Tuple[str, ...]] = None):
        self.decl = decl
        self.fields = fields
        self.references = references
        # Python attribute name of each field, parallel to fields
        self.attributes = attributes if attributes is not None else tuple(field_identifiers(f.name for f in fields))

    @property
    def qualified_name(self) -> str:
        return self.decl.qualified_name


def _is_identity(desc: TypeDescriptor, decoding: bool) -> bool:
    if isinstance(desc, Text):
        return True
    if isinstance(desc, Primitive):
        return not (decoding and desc.kind == PrimitiveKind.FLOATING)
    return False


def encode_expression(desc: TypeDescriptor, expr: str, depth: int = 0, names: Optional[RecordNames] = None) -> str:
    """Python expression turning `expr` (a value of type desc) into its wire form."""
    if isinstance(desc, (Primitive, Text)):
        return expr
    if isinstance(desc, Sequence):
        if _is_identity(desc.element, False):
            return f"list({expr})"
        item = f"item{depth}"
        return f"[{encode_expression(desc.element, item, depth + 1, names)} for {item} in {expr}]"
    if isinstance(desc, Mapping):
        key, value = f"key{depth}", f"value{depth}"
        return (f"[[{encode_expression(desc.key, key, depth + 1, names)}, "
                f"{encode_expression(desc.value, value, depth + 1, names)}]"
                f" for {key}, {value} in {expr}.items()]")
    if isinstance(desc, Record):
        encoder = names.encoder(desc.qualified_name) if names is not None else encoder_name(desc.qualified_name)
        return f"{encoder}({expr})"
    raise TypeError(f"No codec for {desc!r}")


def decode_expression(desc: TypeDescriptor, expr: str, depth: int = 0, names: Optional[RecordNames] = None) -> str:
    """Python expression rebuilding a value of type desc from its wire form `expr`."""
    if isinstance(desc, Primitive) and desc.kind == PrimitiveKind.FLOATING:
        return f"float({expr})"
    if isinstance(desc, (Primitive, Text)):
        return expr
    if isinstance(desc, Sequence):
        if _is_identity(desc.element, True):
            return f"list({expr})"
        item = f"item{depth}"
        return f"[{decode_expression(desc.element, item, depth + 1, names)} for {item} in {expr}]"
    if isinstance(desc, Mapping):
        key, value = f"key{depth}", f"value{depth}"
        return (f"{{{decode_expression(desc.key, key, depth + 1, names)}: "
                f"{decode_expression(desc.value, value, depth + 1, names)}"
                f" for {key}, {value} in {expr}}}")
    if isinstance(desc, Record):
        decoder = names.decoder(desc.qualified_name) if names is not None else decoder_name(desc.qualified_name)
        return f"{decoder}({expr})"
    raise TypeError(f"No codec for {desc!r}")


class CodecGenerator:
    def __init__(self, registry: SymbolRegistry, resolver: CapabilityResolver, flattener: FieldFlattener):
        self.registry = registry
        self.resolver = resolver
        self.flattener = flattener
        self._names: Optional[RecordNames] = None
        self._names_lock = threading.Lock()

    @property
    def names(self) -> RecordNames:
        """Generated class and function names of every capable record, assigned in registration order."""
        with self._names_lock:
            if self._names is None:
                self._names = RecordNames(self.resolver.capable_records())
            return self._names

    def plan_record(self, qualified_name: str) -> RecordPlan:
        """
        Flatten the record and check every field type can be encoded.
        All type problems surface here, never in the generated code.
        """
        decl = self.registry.resolve(qualified_name)
        fields = self.flattener.flatten(qualified_name)
        references = set()
        for f in fields:
            self._check_type(f.type, f, qualified_name)
            references |= referenced_records(f.type)
        return RecordPlan(decl, fields, tuple(sorted(references)))

    def _check_type(self, desc: TypeDescriptor, f: FlattenedField, owner: str, position: str = ""):
        where = f"field '{f.name}' of '{owner}'" + (f" ({position})" if position else "")
        if isinstance(desc, (Primitive, Text)):
            return
        if isinstance(desc, Sequence):
            self._check_type(desc.element, f, owner, "sequence element")
            return
        if isinstance(desc, Mapping):
            if not isinstance(desc.key, (Primitive, Text)):
                raise UnsupportedTypeError(
                    f"Unsupported mapping key type '{desc.key.spelling()}' in {where}; keys must be primitive or text",
                    owner, f.location, f.name)
            self._check_type(desc.key, f, owner, "mapping key")
            self._check_type(desc.value, f, owner, "mapping value")
            return
        if isinstance(desc, Record):
            try:
                capable = self.resolver.is_capable(desc.qualified_name)
            except CyclicInheritanceError:
                capable = False
            if not capable:
                reason = "is not declared" if desc.qualified_name not in self.registry else "is not reflectable"
                raise NonSerializableFieldTypeError(
                    f"Record type '{desc.qualified_name}' used by {where} {reason}",
                    owner, f.location, f.name)
            return
        if isinstance(desc, Opaque):
            raise UnsupportedTypeError(
                f"Unsupported type '{desc.raw_spelling}' in {where}", owner, f.location, f.name)
        raise UnsupportedTypeError(f"Unknown type descriptor {desc!r} in {where}", owner, f.location, f.name)

    def render_record(self, plan: RecordPlan) -> str:
        """Source block for one record. Field order is the flattened order everywhere."""
        qname = plan.qualified_name
        names = self.names
        cls = names.class_name(qname)
        fields = list(zip(plan.fields, plan.attributes))
        lines: List[str] = []

        lines.append("@dataclass")
        lines.append(f"class {cls}:")
        lines.append(f'{INDENT}"""Reflected record {qname}."""')
        for f, attr in fields:
            annotation = f"{INDENT}{attr}: {get_python_type(f.type, names)}"
            if f.origin != qname:
                annotation += f"  # from {f.origin}"
            lines.append(annotation)
        lines.append("")
        lines.append("")

        lines.append(f"def {names.encoder(qname)}(value: {cls}) -> dict:")
        if not fields:
            lines.append(f"{INDENT}return {{}}")
        else:
            lines.append(f"{INDENT}return {{")
            for f, attr in fields:
                expr = encode_expression(f.type, f"value.{attr}", names=names)
                lines.append(f"{INDENT * 2}{json.dumps(f.name)}: {expr},")
            lines.append(f"{INDENT}}}")
        lines.append("")
        lines.append("")

        lines.append(f"def {names.decoder(qname)}(data: dict) -> {cls}:")
        if not fields:
            lines.append(f"{INDENT}return {cls}()")
        else:
            lines.append(f"{INDENT}return {cls}(")
            for f, attr in fields:
                expr = decode_expression(f.type, f"data[{json.dumps(f.name)}]", names=names)
                lines.append(f"{INDENT * 2}{attr}={expr},")
            lines.append(f"{INDENT})")
        return "\n".join(lines)

    def generate_record(self, qualified_name: str) -> str:
        plan = self.plan_record(qualified_name)
        logger.debug(f"Rendering {qualified_name} with {len(plan.fields)} fields")
        return self.render_record(plan)


def render_module(blocks: Iterable[str], module_doc: Optional[str] = None) -> str:
    lines: List[str] = []
    if module_doc:
        lines.append(f'"""{module_doc}"""')
    lines.extend(MODULE_PRELUDE)
    for block in blocks:
        lines.append("")
        lines.append("")
        lines.append(block)
    return "\n".join(lines) + "\n"
