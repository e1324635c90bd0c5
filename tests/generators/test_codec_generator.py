import json

import pytest

from capability_resolver import CapabilityResolver
from field_flattener import FieldFlattener
from generation_errors import NonSerializableFieldTypeError, UnsupportedTypeError
from generators.codec_generator import CodecGenerator, decode_expression, encode_expression, render_module
from record_model import BOOL, FLOAT, INT, TEXT, Mapping, Opaque, Record, Sequence
from symbol_registry import SymbolRegistry
from tests.test_utils import exec_generated_module, load_def, record


def make_generator(decls):
    registry = SymbolRegistry.from_declarations(decls)
    resolver = CapabilityResolver(registry)
    return CodecGenerator(registry, resolver, FieldFlattener(registry, resolver))


def build_module(decls, name):
    generator = make_generator(decls)
    blocks = [generator.generate_record(d.qualified_name) for d in decls if generator.resolver.is_capable(d.qualified_name)]
    return exec_generated_module(render_module(blocks), name)


def test_expressions_for_nested_shapes():
    assert encode_expression(INT, "v") == "v"
    assert encode_expression(Sequence(TEXT), "v") == "list(v)"
    assert decode_expression(Sequence(FLOAT), "d") == "[float(item0) for item0 in d]"
    assert encode_expression(Mapping(TEXT, Sequence(Record("a::B"))), "v") == (
        "[[key0, [a__B_to_json(item1) for item1 in value0]] for key0, value0 in v.items()]")
    assert decode_expression(Mapping(INT, TEXT), "d") == "{key0: value0 for key0, value0 in d}"


def test_emission_follows_flattened_order(derived_scenario):
    generator = make_generator(derived_scenario)
    source = generator.generate_record("Derived")
    positions = [source.index(f'"{n}":') for n in ["a", "b", "c", "d", "f"]]
    assert positions == sorted(positions)
    assert '"e"' not in source
    assert "a: int  # from Base1" in source
    assert "f: bool\n" in source


def test_derived_round_trip(derived_scenario):
    module = build_module(derived_scenario, "gen_derived")
    value = module.Derived(a=7, b="x", c="", d=["p", "q", "p"], f=True)
    wire = module.Derived_to_json(value)
    assert list(wire) == ["a", "b", "c", "d", "f"]
    assert wire == {"a": 7, "b": "x", "c": "", "d": ["p", "q", "p"], "f": True}
    assert module.Derived_from_json(json.loads(json.dumps(wire))) == value


def test_primitives_keep_their_type():
    module = build_module([record("P", [("i", INT), ("f", FLOAT), ("b", BOOL), ("t", TEXT)])], "gen_prims")
    value = module.P_from_json({"i": -3, "f": 2, "b": False, "t": "hé\"llo\n"})
    assert isinstance(value.f, float) and value.f == 2.0
    assert value.b is False
    assert value.t == "hé\"llo\n"
    assert module.P_from_json(module.P_to_json(value)) == value


def test_nested_records_sequences_and_mappings_round_trip():
    decls = load_def("shapes.rdef")
    module = build_module(decls, "gen_shapes")
    origin = module.geo__Point(x=1.5, y=-2.0)
    square = module.geo__shapes__Polygon(
        name="square",
        vertices=[module.geo__Point(0.0, 0.0), module.geo__Point(1.0, 0.0), module.geo__Point(1.0, 1.0)],
        tags={"z": 1, "a": 2},
    )
    empty = module.geo__shapes__Polygon(name="", vertices=[], tags={})
    layer = module.geo__shapes__Layer(
        polygons=[[square, empty], []],
        visible=True,
        styles={3: ["bold"], 1: []},
        origin=origin,
    )
    wire = module.geo__shapes__Layer_to_json(layer)
    assert wire["styles"] == [[3, ["bold"]], [1, []]]
    assert wire["polygons"][0][0]["tags"] == [["z", 1], ["a", 2]]
    decoded = module.geo__shapes__Layer_from_json(json.loads(json.dumps(wire)))
    assert decoded == layer
    assert list(decoded.styles) == [3, 1]


def test_record_without_fields():
    module = build_module([record("Empty")], "gen_empty")
    assert module.Empty_to_json(module.Empty()) == {}
    assert module.Empty_from_json({}) == module.Empty()


def test_keyword_field_names_keep_their_wire_name():
    module = build_module([record("K", [("class", TEXT), ("from", INT)])], "gen_keywords")
    value = module.K(class_="c", from_=1)
    assert module.K_to_json(value) == {"class": "c", "from": 1}
    assert module.K_from_json({"class": "c", "from": 1}) == value


def test_recursive_record_type():
    module = build_module([record("Node", [("label", TEXT), ("children", Sequence(Record("Node")))])], "gen_tree")
    tree = module.Node("root", [module.Node("a", []), module.Node("b", [module.Node("c", [])])])
    assert module.Node_from_json(module.Node_to_json(tree)) == tree


def test_reference_to_plain_record_fails_at_generation():
    generator = make_generator([
        record("Plain", [("x", INT)], capable=False),
        record("User", [("p", Record("Plain"))]),
    ])
    with pytest.raises(NonSerializableFieldTypeError) as excinfo:
        generator.plan_record("User")
    assert excinfo.value.field == "p"
    assert excinfo.value.qualified_name == "User"


def test_reference_to_unknown_record_fails_at_generation():
    generator = make_generator([record("User", [("items", Sequence(Record("ext::Thing")))])])
    with pytest.raises(NonSerializableFieldTypeError):
        generator.plan_record("User")


def test_opaque_type_is_unsupported():
    generator = make_generator([record("Raw", [("ok", INT), ("handle", Opaque("void*"))])])
    with pytest.raises(UnsupportedTypeError) as excinfo:
        generator.plan_record("Raw")
    assert excinfo.value.field == "handle"


def test_record_mapping_key_is_unsupported():
    generator = make_generator([
        record("Key", [("k", INT)]),
        record("Index", [("by_key", Mapping(Record("Key"), TEXT))]),
    ])
    with pytest.raises(UnsupportedTypeError):
        generator.plan_record("Index")


def test_plan_lists_referenced_records():
    generator = make_generator(load_def("shapes.rdef"))
    plan = generator.plan_record("geo::shapes::Layer")
    assert plan.references == ("geo::Point", "geo::shapes::Polygon")


def test_mangled_name_clash_gets_a_suffix():
    module = build_module([record("a::B", [("x", INT)]), record("a__B", [("y", TEXT)])], "gen_mangled_clash")
    first = module.a__B(x=1)
    second = module.a__B_2(y="t")
    assert module.a__B_to_json(first) == {"x": 1}
    assert module.a__B_2_to_json(second) == {"y": "t"}
    assert module.a__B_2_from_json({"y": "t"}) == second


def test_record_named_like_a_builtin_does_not_shadow_it():
    module = build_module([
        record("list", [("n", Sequence(TEXT))]),
        record("float", [("n", FLOAT)]),
        record("Holder", [("names", Sequence(TEXT)), ("x", FLOAT), ("inner", Record("list"))]),
    ], "gen_builtin_names")
    assert "list" not in vars(module) and "float" not in vars(module)
    value = module.Holder_from_json({"names": ["a", "b"], "x": 1.5, "inner": {"n": ["c"]}})
    assert value.names == ["a", "b"]
    assert value.x == 1.5 and type(value.x) is float
    assert value.inner == module.list_2(n=["c"])
    assert module.Holder_from_json(module.Holder_to_json(value)) == value
    assert module.float_2_from_json({"n": 2}).n == 2.0


def test_record_named_like_another_records_function():
    module = build_module([record("P", [("x", INT)]), record("P_to_json", [("y", INT)])], "gen_function_names")
    assert module.P_to_json(module.P(x=3)) == {"x": 3}
    assert module.P_to_json_2_to_json(module.P_to_json_2(y=4)) == {"y": 4}


def test_field_names_that_mangle_alike_stay_distinct():
    decl = record("R", [("from", INT), ("from_", INT), ("a-b", TEXT), ("a_b", TEXT), ("1st", BOOL)])
    generator = make_generator([decl])
    assert generator.plan_record("R").attributes == ("from_", "from__2", "a_b", "a_b_2", "_1st")
    module = build_module([decl], "gen_field_clash")
    wire = {"from": 1, "from_": 2, "a-b": "x", "a_b": "y", "1st": True}
    value = module.R_from_json(wire)
    assert (value.from_, value.from__2, value.a_b, value.a_b_2, value._1st) == (1, 2, "x", "y", True)
    assert module.R_to_json(value) == wire
