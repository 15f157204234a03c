from __future__ import annotations

from enum import Enum, auto
from typing import Any, Optional

from milang.tokenizer import MiToken


# annotate rendered expressions with their datatypes, e.g. `(ADD:int ...)`
DEBUG = False


class NodeKind(Enum):
    # structure
    PARENT = auto()
    SCOPE = auto()
    STANDARDLIB_MI_FINISH_CODE = auto()
    CREATE_MODULE = auto()
    CREATE_CLASS = auto()
    CREATE_ENUM = auto()
    ENUM_VALUES = auto()
    CREATE_CONSTRUCTOR = auto()
    FUNCTION_DEFINITION = auto()
    NATIVE_FUNCTION_DEFINITION = auto()
    NATIVE_FUNCTION_STR = auto()
    PARAMETERS = auto()
    PARAMETER = auto()
    MODIFIERS = auto()
    MODIFIER = auto()
    IDENTIFIER = auto()
    MEMBER = auto()
    TYPE = auto()
    VALUE = auto()
    OPERATOR = auto()
    CONDITION = auto()

    # statements
    VAR_DEFINITION = auto()
    VAR_DEF_AND_SET_VALUE = auto()
    VAR_SET_VALUE = auto()
    RETURN_VALUE = auto()
    BREAK_STATEMENT = auto()
    CONTINUE_STATEMENT = auto()
    USE_STATEMENT = auto()
    IF_STATEMENT = auto()
    ELSE_STATEMENT = auto()
    WHILE_STATEMENT = auto()
    DO_STATEMENT = auto()
    FOR_FAKE_SCOPE = auto()
    FOR_INSTRUCT = auto()

    # expressions
    FUNCTION_CALL = auto()
    INTEGER_NUM_LITERAL = auto()
    LONG_NUM_LITERAL = auto()
    FLOAT_NUM_LITERAL = auto()
    DOUBLE_NUM_LITERAL = auto()
    CHAR_LITERAL = auto()
    STRING_LITERAL = auto()
    BOOL_LITERAL = auto()
    NULL_LITERAL = auto()

    ADD = auto()
    SUBTRACT = auto()
    MULTIPLY = auto()
    DIVIDE = auto()
    MODULUS = auto()
    LSHIFT = auto()
    RSHIFT = auto()
    BIT_AND = auto()
    BIT_OR = auto()
    XOR = auto()
    LOGICAL_AND = auto()
    LOGICAL_OR = auto()
    EQUALS = auto()
    NOTEQUALS = auto()
    LESS_THAN = auto()
    LESS_THAN_EQ = auto()
    GREATER_THAN = auto()
    GREATER_THAN_EQ = auto()

    NEGATE = auto()
    BOOL_NOT = auto()
    BIT_NOT = auto()

    TERNARY_OPERATOR = auto()
    TERNARY_OPERATOR_IF = auto()
    TERNARY_OPERATOR_ELSE = auto()
    CAST_VALUE = auto()
    GET_ENUM_MEMBER = auto()
    STRUCT_CONSTRUCT = auto()


literal_kinds = frozenset([
    NodeKind.INTEGER_NUM_LITERAL,
    NodeKind.LONG_NUM_LITERAL,
    NodeKind.FLOAT_NUM_LITERAL,
    NodeKind.DOUBLE_NUM_LITERAL,
    NodeKind.CHAR_LITERAL,
    NodeKind.STRING_LITERAL,
    NodeKind.BOOL_LITERAL,
    NodeKind.NULL_LITERAL,
])

comparison_kinds = frozenset([
    NodeKind.EQUALS,
    NodeKind.NOTEQUALS,
    NodeKind.LESS_THAN,
    NodeKind.LESS_THAN_EQ,
    NodeKind.GREATER_THAN,
    NodeKind.GREATER_THAN_EQ,
])

binary_operator_kinds = frozenset([
    NodeKind.ADD,
    NodeKind.SUBTRACT,
    NodeKind.MULTIPLY,
    NodeKind.DIVIDE,
    NodeKind.MODULUS,
    NodeKind.LSHIFT,
    NodeKind.RSHIFT,
    NodeKind.BIT_AND,
    NodeKind.BIT_OR,
    NodeKind.XOR,
    NodeKind.LOGICAL_AND,
    NodeKind.LOGICAL_OR,
] + list(comparison_kinds))

# every node of these kinds leaves the analyzer with a datatype attached
expression_kinds = frozenset([
    NodeKind.FUNCTION_CALL,
    NodeKind.NEGATE,
    NodeKind.BOOL_NOT,
    NodeKind.BIT_NOT,
    NodeKind.TERNARY_OPERATOR,
    NodeKind.CAST_VALUE,
    NodeKind.GET_ENUM_MEMBER,
    NodeKind.STRUCT_CONSTRUCT,
] + list(literal_kinds) + list(binary_operator_kinds))


class Node:
    def __init__(self, kind: NodeKind, value: Optional[MiToken] = None, *, children: Optional[list[Node]] = None, line: int = -1, datatype: Any = None, ref: Any = None) -> None:
        self.kind = kind
        self.value = value
        self.children: list[Node] = children if children != None else []
        if line == -1 and value != None:
            line = value.actual_line
        self.line = line
        # set on expressions, see expression_kinds
        self.datatype = datatype
        # resolved symbol for identifiers, calls and definitions
        self.ref = ref

    def add(self, node: Node):
        self.children.append(node)

    def child(self, index: int) -> Node:
        return self.children[index]

    def walk(self):
        yield self
        for child in self.children:
            yield from child.walk()

    def find_all(self, kind: NodeKind) -> list[Node]:
        return [n for n in self.walk() if n.kind == kind]

    def __repr__(self) -> str:
        return f"<Node {self.kind.name}{' ' + repr(self.value.literal) if self.value != None else ''} children={len(self.children)}>"

    def render(self, debug: Optional[bool] = None) -> str:
        """
        S-expression view of the tree, e.g. `(ADD (INTEGER_NUM_LITERAL 1) (IDENTIFIER a))`.
        """
        if debug == None:
            debug = DEBUG
        parts = [self.kind.name if not (debug and self.datatype != None) else f"{self.kind.name}:{self.datatype}"]
        if self.value != None:
            parts.append(self.value.literal)
        for child in self.children:
            parts.append(child.render(debug))
        return f"({' '.join(parts)})"
