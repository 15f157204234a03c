from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from milang.datatypes import Datatype, equal
from milang.mi_ast import Node, NodeKind
from milang.tokenizer import MiToken, MiTokenKind

if TYPE_CHECKING:
    from milang.parser import MiParser


@dataclass
class TypedNode:
    datatype: Datatype
    node: Node


# lowest precedence first
PRECEDENCE: list[dict[MiTokenKind, NodeKind]] = [
    {MiTokenKind.QUESTION: NodeKind.TERNARY_OPERATOR},
    {MiTokenKind.OR: NodeKind.LOGICAL_OR},
    {MiTokenKind.AND: NodeKind.LOGICAL_AND},
    {MiTokenKind.BIT_OR: NodeKind.BIT_OR},
    {MiTokenKind.XOR: NodeKind.XOR},
    {MiTokenKind.BIT_AND: NodeKind.BIT_AND},
    {
        MiTokenKind.EQUALS: NodeKind.EQUALS,
        MiTokenKind.NOT_EQUALS: NodeKind.NOTEQUALS,
    },
    {
        MiTokenKind.LESS: NodeKind.LESS_THAN,
        MiTokenKind.LESSEQ: NodeKind.LESS_THAN_EQ,
        MiTokenKind.GREATER: NodeKind.GREATER_THAN,
        MiTokenKind.GREATEREQ: NodeKind.GREATER_THAN_EQ,
    },
    {
        MiTokenKind.LSHIFT: NodeKind.LSHIFT,
        MiTokenKind.RSHIFT: NodeKind.RSHIFT,
    },
    {
        MiTokenKind.PLUS: NodeKind.ADD,
        MiTokenKind.MINUS: NodeKind.SUBTRACT,
    },
    {
        MiTokenKind.STAR: NodeKind.MULTIPLY,
        MiTokenKind.SLASH: NodeKind.DIVIDE,
        MiTokenKind.MODULUS: NodeKind.MODULUS,
    },
]

TERNARY_LEVEL = 0

numeric_operand = [Datatype.INT, Datatype.LONG, Datatype.DOUBLE, Datatype.FLOAT]
bitwise_operand = [Datatype.INT, Datatype.LONG, Datatype.CHAR]
boolean_operand = [Datatype.BOOL]


def split_arguments(tokens: list[MiToken]) -> list[list[MiToken]]:
    """
    Splits on commas that aren't nested in parentheses.
    """
    result: list[list[MiToken]] = []
    if len(tokens) == 0:
        return result
    current: list[MiToken] = []
    depth = 0
    for token in tokens:
        if token.kind == MiTokenKind.OPEN_PAREN:
            depth += 1
        elif token.kind == MiTokenKind.CLOSE_PAREN:
            depth -= 1
        elif token.kind == MiTokenKind.COMMA and depth == 0:
            result.append(current)
            current = []
            continue
        current.append(token)
    result.append(current)
    return result


def find_closing_paren(tokens: list[MiToken], start: int) -> int:
    """
    Index of the parenthesis closing the one at `start`, -1 if it's never closed.
    """
    depth = 0
    for i in range(start, len(tokens)):
        if tokens[i].kind == MiTokenKind.OPEN_PAREN:
            depth += 1
        elif tokens[i].kind == MiTokenKind.CLOSE_PAREN:
            depth -= 1
            if depth == 0:
                return i
    return -1


class ValueParser:
    """
    Precedence climbing over one expression's tokens. Every parse method returns
    None after recording an error.
    """
    def __init__(self, tokens: list[MiToken], parser: MiParser) -> None:
        self.tokens = tokens
        self.parser = parser
        self.pos = 0

    @property
    def resolver(self):
        return self.parser.resolver

    def current(self) -> Optional[MiToken]:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return None

    def peek(self, offset=1) -> Optional[MiToken]:
        if self.pos + offset < len(self.tokens):
            return self.tokens[self.pos + offset]
        return None

    def advance(self) -> Optional[MiToken]:
        token = self.current()
        self.pos += 1
        return token

    def parse(self) -> Optional[TypedNode]:
        if len(self.tokens) == 0:
            self.parser.error("Expected expression")
            return None
        result = self.parse_level(TERNARY_LEVEL)
        if result == None:
            return None
        if self.current() != None:
            token = self.current()
            self.parser.error(f"Unexpected token '{token.literal}', couldn't parse expression", token)
            return None
        return result

    def parse_level(self, level: int) -> Optional[TypedNode]:
        if level >= len(PRECEDENCE):
            return self.parse_factor()
        left = self.parse_level(level + 1)
        if left == None:
            return None
        while self.current() != None and self.current().kind in PRECEDENCE[level]:
            op = self.advance()
            if level == TERNARY_LEVEL:
                return self.parse_ternary(left, op)
            right = self.parse_level(level + 1)
            if right == None:
                return None
            left = self.binary(left, right, op, PRECEDENCE[level][op.kind])
            if left == None:
                return None
        return left

    def parse_ternary(self, condition: TypedNode, question: MiToken) -> Optional[TypedNode]:
        if_arm = self.parse_level(TERNARY_LEVEL)
        if if_arm == None:
            return None
        colon = self.current()
        if colon == None or colon.kind != MiTokenKind.COLON:
            self.parser.error("Expected ':' after ternary 'if'", colon if colon != None else question)
            return None
        self.advance()
        # right associative, `a ? b : c ? d : e` nests in the else arm
        else_arm = self.parse_level(TERNARY_LEVEL)
        if else_arm == None:
            return None

        if condition.datatype != Datatype.BOOL:
            self.parser.error(f"Ternary operator condition should be of type 'bool' but is instead '{condition.datatype}'", question)
            return None
        if not equal(if_arm.datatype, else_arm.datatype):
            self.parser.error(
                "'if' part of ternary operator should have the same type as the 'else' part of the ternary operator", colon,
                f"'if' part is of type {if_arm.datatype}, while 'else' part is {else_arm.datatype}",
            )
            return None
        # a null arm takes the type of the other arm
        datatype = else_arm.datatype if if_arm.datatype.is_null() else if_arm.datatype
        node = Node(NodeKind.TERNARY_OPERATOR, line=question.actual_line, datatype=datatype, children=[
            Node(NodeKind.CONDITION, line=question.actual_line, children=[condition.node]),
            Node(NodeKind.TERNARY_OPERATOR_IF, line=question.actual_line, children=[if_arm.node]),
            Node(NodeKind.TERNARY_OPERATOR_ELSE, line=colon.actual_line, children=[else_arm.node]),
        ])
        return TypedNode(datatype, node)

    def binary(self, left: TypedNode, right: TypedNode, op: MiToken, kind: NodeKind) -> Optional[TypedNode]:
        datatype = left.datatype.operator_result(kind, right.datatype)
        if datatype == None:
            self.parser.error(f"Undefined operator '{op.literal}' for datatypes '{left.datatype}' and '{right.datatype}'", op)
            return None
        node = Node(kind, line=op.actual_line, datatype=datatype, children=[left.node, right.node])
        return TypedNode(datatype, node)

    def expect_value(self, prefix: MiToken) -> bool:
        if self.current() == None:
            self.parser.error(f"Expected value after '{prefix.literal}'", prefix)
            return False
        return True

    def prefixed(self, prefix: MiToken, allowed: list[Datatype], kind: Optional[NodeKind]) -> Optional[TypedNode]:
        if not self.expect_value(prefix):
            return None
        factor = self.parse_factor()
        if factor == None:
            return None
        if factor.datatype not in allowed:
            self.parser.error(f"Cannot use '{prefix.literal}' operator on type '{factor.datatype}'", prefix)
            return None
        if kind == None:
            # unary plus, ++ and -- don't change the value of an expression
            return factor
        return TypedNode(factor.datatype, Node(kind, line=prefix.actual_line, datatype=factor.datatype, children=[factor.node]))

    def parse_factor(self) -> Optional[TypedNode]:
        token = self.advance()
        if token == None:
            self.parser.error("Expected value", self.tokens[-1])
            return None

        match token.kind:
            case MiTokenKind.PLUS | MiTokenKind.INCREMENT | MiTokenKind.DECREMENT:
                return self.prefixed(token, numeric_operand, None)
            case MiTokenKind.MINUS:
                return self.prefixed(token, numeric_operand, NodeKind.NEGATE)
            case MiTokenKind.NOT:
                return self.prefixed(token, boolean_operand, NodeKind.BOOL_NOT)
            case MiTokenKind.TILDE:
                return self.prefixed(token, bitwise_operand, NodeKind.BIT_NOT)
            case MiTokenKind.OPEN_PAREN:
                inner = self.parse_level(TERNARY_LEVEL)
                if inner == None:
                    return None
                closing = self.current()
                if closing == None or closing.kind != MiTokenKind.CLOSE_PAREN:
                    self.parser.error("Expected ')' after expression in parenthesis", closing if closing != None else self.tokens[-1])
                    return None
                self.advance()
                return inner
            case MiTokenKind.NEW:
                name = self.advance()
                if name == None or name.kind != MiTokenKind.IDENTIFIER:
                    self.parser.error("Expected identifier after 'new'", token)
                    return None
                cls = self.resolver.find_class(name)
                if cls == None:
                    return None
                datatype = Datatype.named(cls.name, cls)
                return TypedNode(datatype, Node(NodeKind.STRUCT_CONSTRUCT, line=token.actual_line, datatype=datatype, children=[
                    Node(NodeKind.IDENTIFIER, name, ref=cls),
                ]))
            case MiTokenKind.IDENTIFIER:
                following = self.current()
                if following != None and following.kind == MiTokenKind.DOUBLE_COLON:
                    return self.enum_member(token)
                if following != None and following.kind == MiTokenKind.OPEN_PAREN:
                    return self.function_call(token)
                return self.variable(token)
            case kind if kind.is_datatype():
                return self.cast(token)
            case _:
                return self.literal(token)

    def cast(self, datatype_token: MiToken) -> Optional[TypedNode]:
        if datatype_token.kind == MiTokenKind.VOID:
            self.parser.error("Cannot cast a value to 'void'", datatype_token)
            return None
        if not self.expect_value(datatype_token):
            return None
        value = self.parse_factor()
        if value == None:
            return None
        # the runtime converts, any pair is accepted here
        target = Datatype.of(datatype_token)
        return TypedNode(target, Node(NodeKind.CAST_VALUE, datatype_token, datatype=target, children=[value.node]))

    def literal(self, token: MiToken) -> Optional[TypedNode]:
        match token.kind:
            case MiTokenKind.INTEGER:
                if token.literal[-1] in "lL":
                    kind, datatype = NodeKind.LONG_NUM_LITERAL, Datatype.LONG
                else:
                    kind, datatype = NodeKind.INTEGER_NUM_LITERAL, Datatype.INT
            case MiTokenKind.DECIMAL:
                if token.literal[-1] in "fF":
                    kind, datatype = NodeKind.FLOAT_NUM_LITERAL, Datatype.FLOAT
                else:
                    kind, datatype = NodeKind.DOUBLE_NUM_LITERAL, Datatype.DOUBLE
            case MiTokenKind.CHAR_LITERAL:
                kind, datatype = NodeKind.CHAR_LITERAL, Datatype.CHAR
            case MiTokenKind.STRING_LITERAL:
                kind, datatype = NodeKind.STRING_LITERAL, Datatype.STRING
            case MiTokenKind.TRUE | MiTokenKind.FALSE:
                kind, datatype = NodeKind.BOOL_LITERAL, Datatype.BOOL
            case MiTokenKind.NULL:
                kind, datatype = NodeKind.NULL_LITERAL, Datatype.NULL
            case _:
                self.parser.error(f"Unexpected token '{token.literal}', couldn't parse expression", token)
                return None
        return TypedNode(datatype, Node(kind, token, datatype=datatype))

    def variable(self, token: MiToken) -> Optional[TypedNode]:
        variable = self.resolver.find_variable(token)
        if variable == None:
            return None
        if not variable.initialized and not variable.is_global():
            self.parser.error(f"Variable '{token.literal}' might not have been initialized", token,
                              f"Assign a value to '{token.literal}' before reading it")
            return None
        return TypedNode(variable.datatype, Node(NodeKind.IDENTIFIER, token, datatype=variable.datatype, ref=variable))

    def enum_member(self, token: MiToken) -> Optional[TypedNode]:
        colons = self.advance()
        member = self.advance()
        if member == None or member.kind != MiTokenKind.IDENTIFIER:
            self.parser.error("Expected enum member identifier after '::'", colons)
            return None
        enum = self.resolver.find_enum(token)
        if enum == None:
            return None
        if member.literal not in enum.members:
            self.parser.error(f"Enum '{enum.name}' has no member called '{member.literal}'", member,
                              f"Members of '{enum.name}' are {', '.join(enum.members)}")
            return None
        datatype = Datatype.named(enum.name, enum)
        return TypedNode(datatype, Node(NodeKind.GET_ENUM_MEMBER, line=token.actual_line, datatype=datatype, children=[
            Node(NodeKind.IDENTIFIER, token, ref=enum),
            Node(NodeKind.MEMBER, member),
        ]))

    def function_call(self, token: MiToken) -> Optional[TypedNode]:
        closing = find_closing_paren(self.tokens, self.pos)
        if closing == -1:
            self.parser.error("Expected ')' after arguments of function call", self.tokens[-1])
            return None
        inner = self.tokens[self.pos + 1:closing]
        self.pos = closing + 1

        args: list[TypedNode] = []
        for arg_tokens in split_arguments(inner):
            if len(arg_tokens) == 0:
                self.parser.error("Expected argument between commas", token)
                return None
            arg = ValueParser(arg_tokens, self.parser).parse()
            if arg == None:
                return None
            args.append(arg)

        definition = self.resolver.resolve_call(token, [a.datatype for a in args])
        if definition == None:
            return None
        parameters = Node(NodeKind.PARAMETERS, line=token.actual_line)
        for arg in args:
            parameters.add(Node(NodeKind.PARAMETER, line=arg.node.line, children=[
                Node(NodeKind.VALUE, line=arg.node.line, children=[arg.node]),
                Node(NodeKind.TYPE, arg.datatype.type_token(token), datatype=arg.datatype),
            ]))
        datatype = definition.return_type
        node = Node(NodeKind.FUNCTION_CALL, line=token.actual_line, datatype=datatype, ref=definition, children=[
            Node(NodeKind.IDENTIFIER, token, ref=definition),
            parameters,
        ])
        return TypedNode(datatype, node)
