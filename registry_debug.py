"""
registry_debug.py
Hierarchical debug dump of a closed registry: each record's capability, bases and flattened fields.
"""
import os

from capability_resolver import CapabilityResolver
from field_flattener import FieldFlattener
from generation_errors import CyclicInheritanceError, GenerationError
from symbol_registry import SymbolRegistry


def _capability_label(resolver: CapabilityResolver, qualified_name: str) -> str:
    try:
        return "reflect" if resolver.is_capable(qualified_name) else "plain"
    except CyclicInheritanceError:
        return "cyclic"


def _print_record(decl, registry, resolver, flattener, indent_level, add_line):
    ind = '  ' * indent_level
    label = _capability_label(resolver, decl.qualified_name)
    add_line(f"{ind}Record: {decl.qualified_name} [{label}] ({decl.location})")
    for base in decl.bases:
        target = registry.resolve_base(base)
        if target is None:
            add_line(f"{ind}  Base: {base.qualified_name} [external]")
        else:
            add_line(f"{ind}  Base: {base.qualified_name} [{_capability_label(resolver, target.qualified_name)}]")
    for f in decl.fields:
        add_line(f"{ind}  Field: {f.name}: {f.type.spelling()}")
    if label != "reflect":
        return
    try:
        flattened = flattener.flatten(decl.qualified_name)
    except GenerationError as err:
        add_line(f"{ind}  Flattened: <error: {err.message}>")
        return
    add_line(f"{ind}  Flattened:")
    for f in flattened:
        add_line(f"{ind}    {f.name}: {f.type.spelling()} (from {f.origin})")


def debug_print_registry(registry: SymbolRegistry, indent=0, file_path=None, out_dir="./generated/registry"):
    """
    Print a view of every registered record in registration order.
    If file_path is given, write output to that file (in out_dir if relative), else return the text.
    """
    resolver = CapabilityResolver(registry)
    flattener = FieldFlattener(registry, resolver)
    lines = []

    def add_line(s):
        lines.append(s)

    add_line(f"{'  ' * indent}Registry ({len(registry)} records)")
    for decl in registry.declarations():
        _print_record(decl, registry, resolver, flattener, indent + 1, add_line)

    text = "\n".join(lines)
    if file_path:
        if not os.path.isabs(file_path):
            file_path = os.path.join(out_dir, file_path)
        os.makedirs(os.path.dirname(file_path), exist_ok=True)
        with open(file_path, "w", encoding="utf-8") as f:
            f.write(text + "\n")
    return text
