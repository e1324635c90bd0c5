import threading

import pytest

from capability_resolver import CapabilityResolver
from generation_errors import CyclicInheritanceError
from record_model import INT
from symbol_registry import SymbolRegistry
from tests.test_utils import record


def make_resolver(*decls):
    return CapabilityResolver(SymbolRegistry.from_declarations(decls))


def test_explicit_marker_is_capable():
    resolver = make_resolver(record("A"), record("P", capable=False))
    assert resolver.is_capable("A")
    assert not resolver.is_capable("P")


def test_capability_is_inherited_through_indirect_bases():
    resolver = make_resolver(
        record("Root"),
        record("Mid", bases=["Root"], capable=False),
        record("Leaf", bases=["Mid"], capable=False),
    )
    assert resolver.is_capable("Leaf")
    assert resolver.is_capable("Mid")


def test_external_and_unknown_are_not_capable():
    resolver = make_resolver(record("Plain", bases=["ext::Reflectable"], capable=False))
    assert not resolver.is_capable("Plain")
    assert not resolver.is_capable("ext::Reflectable")


def test_plain_base_does_not_make_derived_capable():
    resolver = make_resolver(
        record("NonReflectableClass", [("foo", INT)], capable=False),
        record("SomeOtherNonReflectableClass", [("bar", INT)], bases=["NonReflectableClass"], capable=False),
    )
    assert not resolver.is_capable("SomeOtherNonReflectableClass")


def test_cycle_fails_only_the_records_on_it():
    resolver = make_resolver(
        record("A", bases=["B"]),
        record("B", bases=["A"], capable=False),
        record("Fine", [("x", INT)]),
    )
    with pytest.raises(CyclicInheritanceError) as excinfo:
        resolver.is_capable("A")
    assert excinfo.value.qualified_name == "A"
    assert excinfo.value.cycle == ("A", "B")
    with pytest.raises(CyclicInheritanceError) as excinfo:
        resolver.is_capable("B")
    assert excinfo.value.cycle == ("B", "A")
    assert resolver.is_capable("Fine")
    assert resolver.capable_records() == ["Fine"]


def test_self_inheritance_is_a_cycle():
    resolver = make_resolver(record("Loop", bases=["Loop"]))
    with pytest.raises(CyclicInheritanceError) as excinfo:
        resolver.is_capable("Loop")
    assert excinfo.value.cycle == ("Loop",)


@pytest.mark.parametrize("first", ["A", "B", "C", "Child"])
def test_cycle_report_does_not_depend_on_query_order(first):
    resolver = make_resolver(
        record("A", bases=["B"]),
        record("B", bases=["C"]),
        record("C", bases=["A"]),
        record("Child", bases=["A"]),
    )
    with pytest.raises(CyclicInheritanceError):
        resolver.is_capable(first)
    reports = {}
    for name in ["A", "B", "C", "Child"]:
        with pytest.raises(CyclicInheritanceError) as excinfo:
            resolver.is_capable(name)
        reports[name] = (excinfo.value.cycle, excinfo.value.via)
    assert reports == {
        "A": (("A", "B", "C"), None),
        "B": (("B", "C", "A"), None),
        "C": (("C", "A", "B"), None),
        "Child": (("A", "B", "C"), "A"),
    }


def test_repeated_queries_return_the_same_answer():
    resolver = make_resolver(record("Root"), record("Leaf", bases=["Root"], capable=False))
    assert [resolver.is_capable("Leaf") for _ in range(3)] == [True, True, True]


def test_parallel_queries_agree():
    decls = [record("R0")]
    for i in range(1, 60):
        decls.append(record(f"R{i}", bases=[f"R{i - 1}", "ext::X"], capable=False))
    resolver = make_resolver(*decls)
    results = {}

    def worker(offset):
        for i in range(60):
            name = f"R{(i + offset) % 60}"
            results.setdefault(name, set()).add(resolver.is_capable(name))

    threads = [threading.Thread(target=worker, args=(k * 7,)) for k in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert all(values == {True} for values in results.values())
    assert len(results) == 60
