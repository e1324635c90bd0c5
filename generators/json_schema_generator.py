"""
JSON Schema generator for reflected records.
Generates a JSON Schema (Draft 7) describing the wire form produced by the generated encoders:
one definition per planned record, properties in flattened field order.
"""
import json
from typing import Iterable

from generators.codec_generator import RecordPlan
from generators.generator_utils import PRIMITIVE_TO_JSON_TYPE
from record_model import Mapping, Primitive, Record, Sequence, Text, TypeDescriptor


def generate_json_schema(plans: Iterable[RecordPlan], title="Record Definitions",
                         description="JSON schema for reflected record definitions"):
    schema = {
        "$schema": "http://json-schema.org/draft-07/schema#",
        "title": title,
        "description": description,
        "definitions": {},
    }
    for plan in plans:
        record_def = {
            "type": "object",
            "description": plan.decl.doc or plan.qualified_name,
            "properties": {},
            "required": [],
            "additionalProperties": False,
        }
        for f in plan.fields:
            record_def["properties"][f.name] = type_to_json_schema(f.type)
            record_def["required"].append(f.name)
        if not record_def["required"]:
            del record_def["required"]
        schema["definitions"][plan.qualified_name] = record_def
    return schema


def type_to_json_schema(desc: TypeDescriptor):
    if isinstance(desc, Primitive):
        return {"type": PRIMITIVE_TO_JSON_TYPE[desc.kind]}
    if isinstance(desc, Text):
        return {"type": "string"}
    if isinstance(desc, Sequence):
        return {"type": "array", "items": type_to_json_schema(desc.element)}
    # Mappings go over the wire as [key, value] pairs
    if isinstance(desc, Mapping):
        return {
            "type": "array",
            "items": {
                "type": "array",
                "items": [type_to_json_schema(desc.key), type_to_json_schema(desc.value)],
                "minItems": 2,
                "maxItems": 2,
            },
        }
    if isinstance(desc, Record):
        return {"$ref": f"#/definitions/{desc.qualified_name}"}
    # Opaque never reaches a plan
    return {}


def write_json_schema_file(plans: Iterable[RecordPlan], out_path):
    schema = generate_json_schema(plans)
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(schema, f, indent=2)
