"""
record_def_loader.py
Builds RecordDeclaration values from .rdef fixture text:

    namespace geo {
        reflect record Point { x: float; y: float; }
        record Tagged : Point, ext::Thing { tags: sequence<text>; }
    }

Names used as bases or field types are looked up from the innermost enclosing namespace
outwards; a name that matches no declaration is kept as written (an external type).
"""
import os
from typing import List, Optional, Sequence as Seq

from lark import Token, Transformer, v_args

from lark_parser import parse_record_defs
from record_model import (
    BOOL, FLOAT, INT, TEXT, BaseReference, FieldDeclaration, Mapping, Opaque, Record, RecordDeclaration,
    Sequence, SourceLocation, TypeDescriptor, join_qualified_name,
)

PRIMITIVE_NAMES = {
    "bool": BOOL,
    "int": INT,
    "float": FLOAT,
    "text": TEXT,
}


class _RecordNode:
    def __init__(self, name, capable, bases, fields, location):
        self.name = name
        self.capable = capable
        self.bases = bases
        self.fields = fields
        self.location = location


class _NamespaceNode:
    def __init__(self, path, items):
        self.path = path
        self.items = items


class _NamePath(list):
    """Name segments of a qualified name, with where the name was written."""

    def __init__(self, segments, location):
        super().__init__(segments)
        self.location = location


class _FieldNode:
    def __init__(self, name, type_node, location):
        self.name = name
        self.type_node = type_node
        self.location = location


class _RdefTransformer(Transformer):
    def __init__(self, file: str):
        super().__init__()
        self.file = file

    def _loc(self, meta) -> SourceLocation:
        if getattr(meta, 'empty', True):
            return SourceLocation(self.file)
        return SourceLocation(self.file, meta.line, meta.column)

    def start(self, items):
        return list(items)

    @v_args(meta=True)
    def qualified_name(self, meta, names):
        return _NamePath([str(n) for n in names], self._loc(meta))

    @v_args(meta=True)
    def namespace(self, meta, children):
        return _NamespaceNode(children[0], children[1:])

    @v_args(meta=True)
    def record(self, meta, children):
        capable = False
        name = None
        bases = []
        fields = []
        for child in children:
            if isinstance(child, Token) and child.type == 'REFLECT':
                capable = True
            elif isinstance(child, Token) and child.type == 'NAME':
                name = str(child)
            elif isinstance(child, tuple) and child and child[0] == 'bases':
                bases = child[1]
            elif isinstance(child, _FieldNode):
                fields.append(child)
        return _RecordNode(name, capable, bases, fields, self._loc(meta))

    def bases(self, children):
        return ('bases', [(path, path.location) for path in children])

    @v_args(meta=True)
    def field(self, meta, children):
        return _FieldNode(str(children[0]), children[1], self._loc(meta))

    def sequence_type(self, children):
        return ('sequence', children[0])

    def mapping_type(self, children):
        return ('mapping', children[0], children[1])

    def opaque_type(self, children):
        return ('opaque', str(children[0])[1:-1])

    def named_type(self, children):
        return ('named', children[0])


class _Resolver:
    """Turns parsed nodes into declarations, resolving names against everything declared in the file."""

    def __init__(self, known: set):
        self.known = known

    def lookup(self, path: List[str], scope: Seq[str]) -> str:
        written = join_qualified_name(path[:-1], path[-1])
        for depth in range(len(scope), -1, -1):
            candidate = join_qualified_name(list(scope[:depth]) + path[:-1], path[-1])
            if candidate in self.known:
                return candidate
        return written

    def type_descriptor(self, node, scope) -> TypeDescriptor:
        kind = node[0]
        if kind == 'sequence':
            return Sequence(self.type_descriptor(node[1], scope))
        if kind == 'mapping':
            return Mapping(self.type_descriptor(node[1], scope), self.type_descriptor(node[2], scope))
        if kind == 'opaque':
            return Opaque(node[1])
        path = node[1]
        if len(path) == 1 and path[0] in PRIMITIVE_NAMES:
            return PRIMITIVE_NAMES[path[0]]
        return Record(self.lookup(path, scope))


def _collect_names(items, scope, out: List[str]):
    for item in items:
        if isinstance(item, _NamespaceNode):
            _collect_names(item.items, list(scope) + item.path, out)
        else:
            out.append(join_qualified_name(scope, item.name))


def _build(items, scope, resolver: _Resolver, out: List[RecordDeclaration]):
    for item in items:
        if isinstance(item, _NamespaceNode):
            _build(item.items, list(scope) + item.path, resolver, out)
            continue
        bases = [BaseReference(resolver.lookup(path, scope), loc) for path, loc in item.bases]
        fields = [FieldDeclaration(f.name, resolver.type_descriptor(f.type_node, scope), i, f.location)
                  for i, f in enumerate(item.fields)]
        out.append(RecordDeclaration(join_qualified_name(scope, item.name), bases, fields,
                                     capable=item.capable, location=item.location))


def load_declarations(text: str, file: str = "<string>") -> List[RecordDeclaration]:
    """Parse .rdef text and return its record declarations in source order."""
    tree = parse_record_defs(text)
    items = _RdefTransformer(file).transform(tree)
    names: List[str] = []
    _collect_names(items, [], names)
    declarations: List[RecordDeclaration] = []
    _build(items, [], _Resolver(set(names)), declarations)
    return declarations


def load_declarations_from_file(path: str, extra_paths: Optional[List[str]] = None) -> List[RecordDeclaration]:
    """
    Load a file, plus any extra files, into one declaration list.
    Names resolve only within their own file.
    """
    declarations: List[RecordDeclaration] = []
    for p in [path] + list(extra_paths or []):
        with open(p, "r", encoding="utf-8") as f:
            declarations.extend(load_declarations(f.read(), os.path.basename(p)))
    return declarations
