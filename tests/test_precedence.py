import hypothesis
import hypothesis.strategies as st

from conftest import error_messages, function_body
from milang.parser import MiParser


# binding strength of the binary operators, higher binds tighter
LEVELS = {
    "||": 0,
    "&&": 1,
    "|": 2,
    "^": 3,
    "&": 4,
    "==": 5,
    "!=": 5,
    "<": 6,
    "<=": 6,
    ">": 6,
    ">=": 6,
    "<<": 7,
    ">>": 7,
    "+": 8,
    "-": 8,
    "*": 9,
    "/": 9,
    "%": 9,
}

INTEGER_OPERATORS = ["|", "^", "&", "<<", ">>", "+", "-", "*", "/", "%"]
# bind tighter than the comparisons, so their operands stay integers
ARITHMETIC_OPERATORS = ["<<", ">>", "+", "-", "*", "/", "%"]
ORDERING_OPERATORS = ["<", "<=", ">", ">="]
EQUALITY_OPERATORS = ["==", "!="]
LOGICAL_OPERATORS = ["&&", "||"]


def parenthesize(tokens: list[str]) -> str:
    """
    Fully parenthesised form of a flat `operand (op operand)*` expression, left associative.
    """
    pos = 0

    def climb(min_level: int) -> str:
        nonlocal pos
        left = tokens[pos]
        pos += 1
        while pos < len(tokens) and LEVELS[tokens[pos]] >= min_level:
            op = tokens[pos]
            pos += 1
            right = climb(LEVELS[op] + 1)
            left = f"({left} {op} {right})"
        return left

    return climb(0)


def parenthesize_ternary(branches: list[tuple[list[str], list[str]]], otherwise: list[str]) -> str:
    """
    `c1 ? a1 : c2 ? a2 : e` nests to the right, `(c1 ? a1 : (c2 ? a2 : e))`.
    """
    result = parenthesize(otherwise)
    for condition, arm in reversed(branches):
        result = f"({parenthesize(condition)} ? {parenthesize(arm)} : {result})"
    return result


def parse_initializer(code: str, datatype: str = "int") -> str:
    result = MiParser(f"module m {{ fn main {{ {datatype} value = {code}; }} }}").parse()
    assert error_messages(result) == []
    return function_body(result, "main").child(0).child(-1).child(0).render()


numbers = st.integers(min_value=0, max_value=1000).map(str)


def flat(operators: list[str], max_size: int = 6):
    return st.lists(
        st.tuples(st.sampled_from(operators), numbers),
        min_size=0,
        max_size=max_size,
    ).flatmap(
        lambda rest: numbers.map(lambda first: [first] + [t for op, n in rest for t in (op, n)])
    )


flat_expressions = flat(INTEGER_OPERATORS).filter(lambda tokens: len(tokens) > 1)
arithmetic = flat(ARITHMETIC_OPERATORS, max_size=2)


@st.composite
def comparisons(draw) -> list[str]:
    # `a < b == c > d` compares two bools, `a == b` two integers
    left = draw(arithmetic) + [draw(st.sampled_from(ORDERING_OPERATORS))] + draw(arithmetic)
    if draw(st.booleans()):
        right = draw(arithmetic) + [draw(st.sampled_from(ORDERING_OPERATORS))] + draw(arithmetic)
        return left + [draw(st.sampled_from(EQUALITY_OPERATORS))] + right
    if draw(st.booleans()):
        return draw(arithmetic) + [draw(st.sampled_from(EQUALITY_OPERATORS))] + draw(arithmetic)
    return left


@st.composite
def boolean_expressions(draw) -> list[str]:
    tokens = draw(comparisons())
    for _ in range(draw(st.integers(min_value=0, max_value=3))):
        tokens += [draw(st.sampled_from(LOGICAL_OPERATORS))] + draw(comparisons())
    return tokens


@st.composite
def ternaries(draw) -> tuple[list[tuple[list[str], list[str]]], list[str]]:
    branches = draw(st.lists(st.tuples(boolean_expressions(), flat(INTEGER_OPERATORS, max_size=2)), min_size=1, max_size=3))
    return branches, draw(flat(INTEGER_OPERATORS, max_size=2))


def test_parenthesize():
    assert parenthesize(["1", "+", "2", "*", "3", "-", "4"]) == "((1 + (2 * 3)) - 4)"
    assert parenthesize(["1", "<", "2", "||", "3", "==", "4", "&&", "5", ">", "6"]) == "((1 < 2) || ((3 == 4) && (5 > 6)))"


def test_parenthesize_ternary():
    branches = [(["a"], ["1"]), (["b"], ["2", "+", "3"])]
    assert parenthesize_ternary(branches, ["4"]) == "(a ? 1 : (b ? (2 + 3) : 4))"


@hypothesis.settings(deadline=None, max_examples=50)
@hypothesis.given(flat_expressions)
def test_precedence_matches_parenthesised_form(tokens):
    code = " ".join(tokens)
    assert parse_initializer(code) == parse_initializer(parenthesize(tokens))


@hypothesis.settings(deadline=None, max_examples=50)
@hypothesis.given(boolean_expressions())
def test_boolean_precedence_matches_parenthesised_form(tokens):
    code = " ".join(tokens)
    assert parse_initializer(code, "bool") == parse_initializer(parenthesize(tokens), "bool")


@hypothesis.settings(deadline=None, max_examples=30)
@hypothesis.given(ternaries())
def test_ternary_nests_to_the_right(ternary):
    branches, otherwise = ternary
    code = " ".join(t for condition, arm in branches for t in condition + ["?"] + arm + [":"]) + " " + " ".join(otherwise)
    assert parse_initializer(code) == parse_initializer(parenthesize_ternary(branches, otherwise))
