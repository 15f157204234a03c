import pathlib

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Iterator

from milang.common import MiInternalError


STDLIB_FINISH = "STANDARDLIB_MI_FINISH_CODE"


class MiTokenKind(Enum):
    ERROR = "<error>"
    EOF = "<eof>"

    # symbols
    PLUS = "+"
    MINUS = "-"
    STAR = "*"
    SLASH = "/"
    MODULUS = "%"
    EQ = "="
    PLUS_EQ = "+="
    MINUS_EQ = "-="
    STAR_EQ = "*="
    SLASH_EQ = "/="
    MODULUS_EQ = "%="
    AND_EQ = "&="
    OR_EQ = "|="
    XOR_EQ = "^="
    LSHIFT_EQ = "<<="
    RSHIFT_EQ = ">>="
    EQUALS = "=="
    NOT_EQUALS = "!="
    LESS = "<"
    LESSEQ = "<="
    GREATER = ">"
    GREATEREQ = ">="
    LSHIFT = "<<"
    RSHIFT = ">>"
    BIT_AND = "&"
    BIT_OR = "|"
    XOR = "^"
    AND = "&&"
    OR = "||"
    NOT = "!"
    TILDE = "~"
    INCREMENT = "++"
    DECREMENT = "--"
    QUESTION = "?"
    COLON = ":"
    DOUBLE_COLON = "::"
    ARROW = "->"

    OPEN_PAREN = "("
    CLOSE_PAREN = ")"
    OPEN_CURLY = "{"
    CLOSE_CURLY = "}"
    COMMA = ","
    SEMI = ";"

    # keywords
    MODULE = "module"
    CLASS = "class"
    ENUM = "enum"
    FN = "fn"
    NEW = "new"
    IF = "if"
    ELSE = "else"
    WHILE = "while"
    DO = "do"
    FOR = "for"
    RET = "ret"
    BREAK = "break"
    CONTINUE = "continue"
    USE = "use"

    PUB = "pub"
    PRIV = "priv"
    OWN = "own"
    CONST = "const"
    MUT = "mut"
    NULLABLE = "nullable"
    NAT = "nat"

    TRUE = "true"
    FALSE = "false"
    NULL = "null"

    INT = "int"
    LONG = "long"
    DOUBLE = "double"
    FLOAT = "float"
    BOOL = "bool"
    CHAR = "char"
    STRING = "string"
    VOID = "void"

    STDLIB_FINISH = STDLIB_FINISH

    # special
    IDENTIFIER = "{identifier}"
    INTEGER = "{integer}"
    DECIMAL = "{decimal}"
    STRING_LITERAL = "{string}"
    CHAR_LITERAL = "{char}"

    def is_placeholder(self) -> bool:
        # kinds whose spelling comes from the source, like `{identifier}`
        return len(self.value) > 1 and self.value.startswith("{") and self.value.endswith("}")

    def is_keyword(self) -> bool:
        return self.value.isidentifier()

    def is_symbolic(self) -> bool:
        if self in [MiTokenKind.ERROR, MiTokenKind.EOF]:
            return False
        return not self.value[0].isalnum() and not self.is_placeholder()

    def is_datatype(self) -> bool:
        return self in DATATYPE_KINDS

    def is_modifier(self) -> bool:
        return self in MODIFIER_KINDS


KEYWORDS = dict(
    (x.value, x) for x in MiTokenKind if x.is_keyword()
)

SYMBOLS = dict(
    (x.value, x) for x in MiTokenKind if x.is_symbolic()
)
for t in MiTokenKind:
    if t.is_symbolic():
        # longest match below only looks three characters ahead
        assert len(t.value) <= 3, t.value

DATATYPE_KINDS = frozenset([
    MiTokenKind.INT,
    MiTokenKind.LONG,
    MiTokenKind.DOUBLE,
    MiTokenKind.FLOAT,
    MiTokenKind.BOOL,
    MiTokenKind.CHAR,
    MiTokenKind.STRING,
    MiTokenKind.VOID,
])

# names that can never be used for modules, datatypes, functions or variables
RESERVED_KEYWORDS = sorted(KEYWORDS)

MODIFIER_KINDS = frozenset([
    MiTokenKind.PUB,
    MiTokenKind.PRIV,
    MiTokenKind.OWN,
    MiTokenKind.CONST,
    MiTokenKind.MUT,
    MiTokenKind.NULLABLE,
    MiTokenKind.NAT,
])

NUMBER_SUFFIXES = frozenset("lLfFdD")

ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "0": "\0",
    "\\": "\\",
    "'": "'",
    '"': '"',
}


@dataclass
class LineInfo:
    line: int
    column_start: int
    column_end: int

    def to_path_cursor(self) -> str:
        return f"{self.line + 1}:{self.column_start + 1}"


class MiToken:
    def __init__(self, kind: MiTokenKind, literal: str, *, line: int, column_start: int, column_end: int, actual_line: Optional[int] = None, message: Optional[str] = None) -> None:
        self.kind = kind
        self.literal = literal

        self.line = line
        self.column_start = column_start
        self.column_end = column_end
        # line inside the user's text, the standard library prefix is not counted
        self.actual_line = actual_line if actual_line != None else line
        # only set on ERROR tokens
        self.message = message

    @staticmethod
    def synthetic(kind: MiTokenKind, literal: Optional[str] = None, *, at: Optional["MiToken"] = None) -> "MiToken":
        """
        Builds a token that doesn't exist in the source, like the `<` of a desugared `i -> 10` loop.
        """
        if literal == None:
            literal = kind.value
        if at == None:
            return MiToken(kind, literal, line=-1, column_start=-1, column_end=-1)
        return MiToken(kind, literal, line=at.line, column_start=at.column_start, column_end=at.column_end, actual_line=at.actual_line)

    def get_line_info(self) -> LineInfo:
        return LineInfo(
            self.actual_line,
            self.column_start,
            self.column_end,
        )

    def __repr__(self) -> str:
        return f"<MiToken {self.kind.name} {self.literal!r} {self.get_line_info().to_path_cursor()}>"

    def render(self) -> str:
        if self.kind.is_placeholder():
            match self.kind:
                case MiTokenKind.IDENTIFIER | MiTokenKind.INTEGER | MiTokenKind.DECIMAL \
                    | MiTokenKind.STRING_LITERAL | MiTokenKind.CHAR_LITERAL:
                    return self.literal
                case _:
                    raise MiInternalError(f"Unhandled token kind: {self.kind.name}")
        else:
            return self.kind.value


def unescape(body: str) -> str:
    result = []
    escaping = False
    for c in body:
        if escaping:
            result.append(ESCAPES.get(c, c))
            escaping = False
        elif c == "\\":
            escaping = True
        else:
            result.append(c)
    return "".join(result)


class Tokenizer:
    def __init__(self, data: str, *, filepath: Optional[pathlib.Path] = None) -> None:
        self.data = data
        self.offset = 0
        self.line = 0
        self.column = 0
        self.filepath = filepath
        self.remaining = len(self.data)
        # set once the standard library sentinel was seen, user lines count from the line after it
        self.line_offset = 0

    def advance(self) -> None:
        c = self.data[self.offset]
        self.offset += 1
        self.remaining -= 1
        if c == "\n":
            self.line += 1
            self.column = 0
        else:
            self.column += 1

    def peek(self, offset=1) -> str:
        if self.remaining > offset:
            return self.data[self.offset + offset]
        return ""

    def make_token(self, kind: MiTokenKind, literal: str, *, message: Optional[str] = None) -> MiToken:
        return MiToken(
            kind=kind,
            literal=literal,
            line=self.line,
            column_start=self.column - len(literal),
            column_end=self.column,
            actual_line=self.line - self.line_offset,
            message=message,
        )

    def make_error(self, message: str, literal: str) -> MiToken:
        return self.make_token(MiTokenKind.ERROR, literal, message=message)

    def _take_quoted(self, quote: str) -> tuple[str, bool]:
        # the opening quote is the current character
        lit = quote
        self.advance()
        escaping = False
        while self.remaining > 0:
            c = self.peek(0)
            if c == "\n":
                break
            lit += c
            self.advance()
            if escaping:
                escaping = False
            elif c == "\\":
                escaping = True
            elif c == quote:
                return lit, True
        return lit, False

    def process_iter(self) -> Iterator[MiToken]:
        while self.remaining > 0:
            c = self.peek(0)

            if c.isalpha() or c == "_":
                # identifier, qualified identifier or keyword
                ident = c
                self.advance()
                while self.remaining > 0:
                    cc = self.peek(0)
                    if cc.isalnum() or cc == "_":
                        ident += cc
                        self.advance()
                    elif cc == "." and (self.peek(1).isalpha() or self.peek(1) == "_"):
                        ident += cc
                        self.advance()
                    else:
                        break
                kind = KEYWORDS.get(ident, MiTokenKind.IDENTIFIER)
                tok = self.make_token(kind, ident)
                if kind == MiTokenKind.STDLIB_FINISH:
                    self.line_offset = self.line + 1
                yield tok
            elif c.isspace():
                # advance keeps track of line and column already
                self.advance()
            elif c.isnumeric():
                lit = c
                self.advance()
                while self.remaining > 0:
                    cc = self.peek(0)
                    if not (cc.isnumeric() or cc == "."):
                        break
                    lit += cc
                    self.advance()
                if self.remaining > 0 and self.peek(0) in NUMBER_SUFFIXES:
                    lit += self.peek(0)
                    self.advance()
                dot_count = lit.count(".")
                if dot_count > 1 or lit.endswith("."):
                    yield self.make_error(f"Malformed numeric literal: {lit}", lit)
                elif dot_count == 1 or lit[-1] in "fFdD":
                    if lit[-1] in "lL":
                        yield self.make_error(f"Decimal literal cannot be a long: {lit}", lit)
                    else:
                        yield self.make_token(MiTokenKind.DECIMAL, lit)
                else:
                    yield self.make_token(MiTokenKind.INTEGER, lit)
            elif c == '"':
                lit, closed = self._take_quoted('"')
                if not closed:
                    yield self.make_error(f"Encountered an unclosed string literal: {lit}", lit)
                else:
                    yield self.make_token(MiTokenKind.STRING_LITERAL, lit)
            elif c == "'":
                lit, closed = self._take_quoted("'")
                if not closed:
                    yield self.make_error(f"Encountered an unclosed character literal: {lit}", lit)
                elif len(unescape(lit[1:-1])) != 1:
                    yield self.make_error(f"Character literal must hold exactly one character: {lit}", lit)
                else:
                    yield self.make_token(MiTokenKind.CHAR_LITERAL, lit)
            elif c == "/" and self.peek(1) == "/":
                while self.remaining > 0 and self.peek(0) != "\n":
                    self.advance()
            elif c == "/" and self.peek(1) == "*":
                self.advance()
                self.advance()
                while self.remaining > 0 and not (self.peek(0) == "*" and self.peek(1) == "/"):
                    self.advance()
                if self.remaining <= 0:
                    yield self.make_error("Encountered an unclosed block comment", "/*")
                else:
                    self.advance()
                    self.advance()
            else:
                # symbol, longest match first
                for length in (3, 2, 1):
                    candidate = self.data[self.offset:self.offset + length]
                    kind = SYMBOLS.get(candidate, None)
                    if len(candidate) == length and kind != None:
                        for _ in range(length):
                            self.advance()
                        yield self.make_token(kind, candidate)
                        break
                else:
                    self.advance()
                    yield self.make_error(f"Unrecognized symbol: '{c}'", c)
        yield self.make_token(MiTokenKind.EOF, "")

    def process(self) -> list[MiToken]:
        return list(self.process_iter())
