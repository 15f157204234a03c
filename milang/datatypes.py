from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from milang.common import MiInternalError
from milang.mi_ast import NodeKind
from milang.tokenizer import MiToken, MiTokenKind


class PrimitiveDatatype(Enum):
    INT = "int"
    LONG = "long"
    DOUBLE = "double"
    FLOAT = "float"
    BOOL = "bool"
    CHAR = "char"
    STRING = "string"
    VOID = "void"
    NULL = "null"

    def is_numeric(self) -> bool:
        return self in PROMOTION_RANK

    def rank(self) -> int:
        return PROMOTION_RANK[self]


# char < int < long < float < double, bool and string never promote
PROMOTION_RANK = {
    PrimitiveDatatype.CHAR: 0,
    PrimitiveDatatype.INT: 1,
    PrimitiveDatatype.LONG: 2,
    PrimitiveDatatype.FLOAT: 3,
    PrimitiveDatatype.DOUBLE: 4,
}

integer_family = frozenset([
    PrimitiveDatatype.INT,
    PrimitiveDatatype.LONG,
    PrimitiveDatatype.CHAR,
])

TOKEN_TO_PRIMITIVE = {
    MiTokenKind.INT: PrimitiveDatatype.INT,
    MiTokenKind.LONG: PrimitiveDatatype.LONG,
    MiTokenKind.DOUBLE: PrimitiveDatatype.DOUBLE,
    MiTokenKind.FLOAT: PrimitiveDatatype.FLOAT,
    MiTokenKind.BOOL: PrimitiveDatatype.BOOL,
    MiTokenKind.CHAR: PrimitiveDatatype.CHAR,
    MiTokenKind.STRING: PrimitiveDatatype.STRING,
    MiTokenKind.VOID: PrimitiveDatatype.VOID,
}

PRIMITIVE_TO_TOKEN = dict((v, k) for k, v in TOKEN_TO_PRIMITIVE.items())

arithmetic_ops = frozenset([
    NodeKind.ADD,
    NodeKind.SUBTRACT,
    NodeKind.MULTIPLY,
    NodeKind.DIVIDE,
    NodeKind.MODULUS,
])

bitwise_ops = frozenset([
    NodeKind.BIT_AND,
    NodeKind.BIT_OR,
    NodeKind.XOR,
    NodeKind.LSHIFT,
    NodeKind.RSHIFT,
])

logical_ops = frozenset([
    NodeKind.LOGICAL_AND,
    NodeKind.LOGICAL_OR,
])

ordering_ops = frozenset([
    NodeKind.LESS_THAN,
    NodeKind.LESS_THAN_EQ,
    NodeKind.GREATER_THAN,
    NodeKind.GREATER_THAN_EQ,
])

equality_ops = frozenset([
    NodeKind.EQUALS,
    NodeKind.NOTEQUALS,
])


class Datatype:
    """
    Either a primitive or a named reference to an enum or class.
    `ref` holds the resolved MiEnum/MiClass for named types.
    """
    INT: Datatype
    LONG: Datatype
    DOUBLE: Datatype
    FLOAT: Datatype
    BOOL: Datatype
    CHAR: Datatype
    STRING: Datatype
    VOID: Datatype
    NULL: Datatype

    def __init__(self, primitive: Optional[PrimitiveDatatype] = None, *, name: Optional[str] = None, ref: Any = None, nullable: bool = False) -> None:
        if (primitive == None) == (name == None):
            raise MiInternalError("A datatype is either primitive or named")
        self.primitive = primitive
        self.name = name if name != None else primitive.value
        self.ref = ref
        self.nullable = nullable or primitive == PrimitiveDatatype.NULL

    @staticmethod
    def of(token: MiToken, nullable: bool = False) -> Optional[Datatype]:
        primitive = TOKEN_TO_PRIMITIVE.get(token.kind, None)
        if primitive == None:
            return None
        return Datatype(primitive, nullable=nullable)

    @staticmethod
    def named(name: str, ref: Any, nullable: bool = False) -> Datatype:
        return Datatype(name=name, ref=ref, nullable=nullable)

    def with_nullable(self, nullable: bool) -> Datatype:
        if self.primitive != None:
            return Datatype(self.primitive, nullable=nullable)
        return Datatype(name=self.name, ref=self.ref, nullable=nullable)

    def is_primitive(self) -> bool:
        return self.primitive != None

    def not_primitive(self) -> bool:
        return self.primitive == None

    def is_numeric(self) -> bool:
        return self.primitive != None and self.primitive.is_numeric()

    def is_void(self) -> bool:
        return self.primitive == PrimitiveDatatype.VOID

    def is_null(self) -> bool:
        return self.primitive == PrimitiveDatatype.NULL

    def same_base(self, other: Datatype) -> bool:
        if self.primitive != None or other.primitive != None:
            return self.primitive == other.primitive
        if self.ref != None and other.ref != None:
            return self.ref is other.ref
        return self.name == other.name

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Datatype):
            return NotImplemented
        return self.same_base(other) and self.nullable == other.nullable

    def __hash__(self) -> int:
        return hash((self.primitive, self.name, self.nullable))

    def __repr__(self) -> str:
        return f"<Datatype {self}>"

    def __str__(self) -> str:
        if self.nullable and not self.is_null():
            return f"nullable {self.name}"
        return self.name

    def type_token(self, at: Optional[MiToken] = None) -> MiToken:
        """
        A token spelling this datatype, used for TYPE nodes of inferred and implicit types.
        """
        if self.is_null():
            return MiToken.synthetic(MiTokenKind.NULL, at=at)
        if self.primitive != None:
            return MiToken.synthetic(PRIMITIVE_TO_TOKEN[self.primitive], at=at)
        return MiToken.synthetic(MiTokenKind.IDENTIFIER, self.name, at=at)

    def operator_defined(self, op: NodeKind, other: Datatype) -> bool:
        if self.is_void() or other.is_void():
            return False
        if op in equality_ops:
            if self.is_null() or other.is_null():
                return self.nullable and other.nullable
            return self.same_base(other) or (self.is_numeric() and other.is_numeric())
        if self.is_null() or other.is_null():
            return False
        if op in arithmetic_ops:
            if op == NodeKind.ADD and (self.primitive == PrimitiveDatatype.STRING or other.primitive == PrimitiveDatatype.STRING):
                return self.is_primitive() and other.is_primitive()
            return self.is_numeric() and other.is_numeric()
        if op in bitwise_ops:
            return self.primitive in integer_family and other.primitive in integer_family
        if op in logical_ops:
            return self.primitive == PrimitiveDatatype.BOOL and other.primitive == PrimitiveDatatype.BOOL
        if op in ordering_ops:
            return self.is_numeric() and other.is_numeric()
        raise MiInternalError(f"Not a binary operator: {op}")

    def operator_result(self, op: NodeKind, other: Datatype) -> Optional[Datatype]:
        if not self.operator_defined(op, other):
            return None
        if op in equality_ops or op in ordering_ops or op in logical_ops:
            return Datatype.BOOL
        if op == NodeKind.ADD and (self.primitive == PrimitiveDatatype.STRING or other.primitive == PrimitiveDatatype.STRING):
            return Datatype(PrimitiveDatatype.STRING, nullable=self.nullable or other.nullable)
        return heavier(self, other)


Datatype.INT = Datatype(PrimitiveDatatype.INT)
Datatype.LONG = Datatype(PrimitiveDatatype.LONG)
Datatype.DOUBLE = Datatype(PrimitiveDatatype.DOUBLE)
Datatype.FLOAT = Datatype(PrimitiveDatatype.FLOAT)
Datatype.BOOL = Datatype(PrimitiveDatatype.BOOL)
Datatype.CHAR = Datatype(PrimitiveDatatype.CHAR)
Datatype.STRING = Datatype(PrimitiveDatatype.STRING)
Datatype.VOID = Datatype(PrimitiveDatatype.VOID)
Datatype.NULL = Datatype(PrimitiveDatatype.NULL)


def heavier(a: Datatype, b: Datatype) -> Optional[Datatype]:
    """
    The more general of two numeric types, None if either side doesn't promote.
    """
    if not (a.is_numeric() and b.is_numeric()):
        return None
    base = a if a.primitive.rank() >= b.primitive.rank() else b
    return base.with_nullable(a.nullable or b.nullable)


def equal(a: Datatype, b: Datatype) -> bool:
    if a.is_null() or b.is_null():
        return a.nullable and b.nullable
    return a == b


def promotion_distance(target: Datatype, value: Datatype, *, check_null: bool = True) -> Optional[int]:
    """
    How many promotion steps turn `value` into `target`, None if it can't be assigned at all.
    """
    if value.is_null():
        return 0 if target.nullable or not check_null else None
    if check_null and value.nullable and not target.nullable:
        return None
    if target.same_base(value):
        return 0
    if target.is_numeric() and value.is_numeric():
        steps = target.primitive.rank() - value.primitive.rank()
        if steps > 0:
            return steps
    return None


def assignable(target: Datatype, value: Datatype, *, check_null: bool = True) -> bool:
    return promotion_distance(target, value, check_null=check_null) != None


class Modifier(Enum):
    PUB = "pub"
    PRIV = "priv"
    OWN = "own"
    CONST = "const"
    MUT = "mut"
    NULLABLE = "nullable"
    NAT = "nat"

    @staticmethod
    def of(token: MiToken) -> Optional[Modifier]:
        try:
            return Modifier(token.kind.value)
        except ValueError:
            return None

    def is_visibility(self) -> bool:
        return self in visibility_modifiers

    def is_mutability(self) -> bool:
        return self in mutability_modifiers


visibility_modifiers = frozenset([Modifier.PUB, Modifier.PRIV, Modifier.OWN])
mutability_modifiers = frozenset([Modifier.CONST, Modifier.MUT])


def find_conflicting_modifier(existing: list[Modifier], new: Modifier) -> Optional[Modifier]:
    for modifier in existing:
        if modifier == new:
            return modifier
        if modifier.is_visibility() and new.is_visibility():
            return modifier
        if modifier.is_mutability() and new.is_mutability():
            return modifier
    return None


class EqualOperation(Enum):
    EQUAL = MiTokenKind.EQ
    ADD = MiTokenKind.PLUS_EQ
    SUB = MiTokenKind.MINUS_EQ
    MULT = MiTokenKind.STAR_EQ
    DIV = MiTokenKind.SLASH_EQ
    MOD = MiTokenKind.MODULUS_EQ
    AND = MiTokenKind.AND_EQ
    OR = MiTokenKind.OR_EQ
    XOR = MiTokenKind.XOR_EQ
    LSHIFT = MiTokenKind.LSHIFT_EQ
    RSHIFT = MiTokenKind.RSHIFT_EQ
    INCREMENT = MiTokenKind.INCREMENT
    DECREMENT = MiTokenKind.DECREMENT

    @staticmethod
    def of(token: MiToken) -> Optional[EqualOperation]:
        try:
            return EqualOperation(token.kind)
        except ValueError:
            return None

    def binary_operator(self) -> Optional[NodeKind]:
        return EQUAL_OPERATION_TO_BINARY[self]


EQUAL_OPERATION_TO_BINARY = {
    EqualOperation.EQUAL: None,
    EqualOperation.ADD: NodeKind.ADD,
    EqualOperation.SUB: NodeKind.SUBTRACT,
    EqualOperation.MULT: NodeKind.MULTIPLY,
    EqualOperation.DIV: NodeKind.DIVIDE,
    EqualOperation.MOD: NodeKind.MODULUS,
    EqualOperation.AND: NodeKind.BIT_AND,
    EqualOperation.OR: NodeKind.BIT_OR,
    EqualOperation.XOR: NodeKind.XOR,
    EqualOperation.LSHIFT: NodeKind.LSHIFT,
    EqualOperation.RSHIFT: NodeKind.RSHIFT,
    EqualOperation.INCREMENT: NodeKind.ADD,
    EqualOperation.DECREMENT: NodeKind.SUBTRACT,
}
