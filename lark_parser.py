from lark import Lark


# Grammar for .rdef record fixture files
grammar = r"""
    start: item*

    ?item: namespace
         | record

    namespace: "namespace" qualified_name "{" item* "}"
    record: REFLECT? "record" NAME bases? "{" field* "}"
    bases: ":" qualified_name ("," qualified_name)*

    field: NAME ":" type_def ";"

    ?type_def: sequence_type
             | mapping_type
             | opaque_type
             | named_type

    sequence_type: "sequence" "<" type_def ">"
    mapping_type: "mapping" "<" type_def "," type_def ">"
    opaque_type: OPAQUE
    named_type: qualified_name

    qualified_name: NAME ("::" NAME)*

    REFLECT: "reflect"
    OPAQUE: /`[^`]*`/
    NAME: /[a-zA-Z_][a-zA-Z0-9_]*/
    COMMENT: /\/\/[^\n]*/
    C_COMMENT: /\/\*[\s\S]*?\*\//

    %import common.WS
    %ignore WS
    %ignore COMMENT
    %ignore C_COMMENT
"""

parser = Lark(
    grammar,
    start='start',
    propagate_positions=True
)


def parse_record_defs(text):
    return parser.parse(text)
