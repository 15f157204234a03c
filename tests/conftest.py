from collections.abc import Callable
import pytest

from milang.diagnostics import AnalysisResult
from milang.mi_ast import Node, NodeKind
from milang.parser import MiParser


# https://docs.pytest.org/en/latest/example/simple.html#control-skipping-of-tests-according-to-command-line-option
def pytest_addoption(parser: pytest.Parser):
    parser.addoption("--fuzz", action="store_true", default=False, help="run fuzzer")


def pytest_configure(config: pytest.Config):
    config.addinivalue_line(
        "markers", "fuzz: fuzz tests"
    )


def pytest_collection_modifyitems(
        session: pytest.Session,
        config: pytest.Config,
        items: list[pytest.Item],
    ):
    if config.getoption("--fuzz"):
        return
    skip_fuzz = pytest.mark.skip(reason="need --fuzz option to run")
    for item in items:
        if "fuzz" in item.keywords:
            item.add_marker(skip_fuzz)


def error_messages(result: AnalysisResult) -> list[str]:
    return [d.message for d in result.errors()]


def warning_messages(result: AnalysisResult) -> list[str]:
    return [d.message for d in result.warnings()]


def user_nodes(result: AnalysisResult) -> list[Node]:
    """
    Top level nodes after the standard library.
    """
    children = result.root.children
    for i, child in enumerate(children):
        if child.kind == NodeKind.STANDARDLIB_MI_FINISH_CODE:
            return children[i + 1:]
    return children


def function_body(result: AnalysisResult, name: str) -> Node:
    for node in result.root.find_all(NodeKind.FUNCTION_DEFINITION):
        if node.value.literal == name:
            return node.child(-1)
    raise LookupError(name)


@pytest.fixture
def analyze() -> Callable[..., AnalysisResult]:
    def execute(code: str, **kwargs):
        return MiParser(code, **kwargs).parse()

    return execute


@pytest.fixture
def in_function(analyze) -> Callable[..., AnalysisResult]:
    """
    Wraps statements into `fn main` of `module m`, `before` goes next to `main`.
    """
    def execute(body: str, *, before: str = "", **kwargs):
        code = f"""
module m {{
{before}
    fn main {{
{body}
    }}
}}
"""
        return analyze(code, **kwargs)

    return execute


@pytest.fixture
def analyze_ok(analyze) -> Callable[..., AnalysisResult]:
    def execute(code: str, **kwargs):
        result = analyze(code, **kwargs)
        assert error_messages(result) == []
        return result

    return execute


@pytest.fixture
def expression(in_function) -> Callable[[str], Node]:
    """
    The analysed initializer of `? value = <code>;`.
    """
    def execute(code: str, *, before: str = ""):
        result = in_function(f"? value = {code};", before=before)
        assert error_messages(result) == []
        definition = function_body(result, "main").child(0)
        assert definition.kind == NodeKind.VAR_DEF_AND_SET_VALUE
        return definition.child(-1).child(0)

    return execute
