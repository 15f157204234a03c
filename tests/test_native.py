from typing import Optional, Union

import pytest

from milang.datatypes import Datatype
from milang.mi_ast import NodeKind
from milang.native import NativeBinder, NativeHandle, ReflectiveNativeBinder, mi_callable, unwrap_annotation
from milang.stdlib import STD_CLASS, MiStandardLib

from conftest import error_messages, user_nodes


class HostStd:
    @staticmethod
    @mi_callable
    def sleep(millis: int) -> None:
        pass

    @staticmethod
    def unmarked(x: int) -> None:
        pass

    @mi_callable
    def instance(self, x: int) -> None:
        pass

    @staticmethod
    @mi_callable
    def maybe(s: Optional[str]) -> Optional[str]:
        return s

    @staticmethod
    @mi_callable
    def strict(s: str) -> str:
        return s

    @staticmethod
    @mi_callable(name="twice")
    def twice_int(i: int) -> int:
        return i * 2

    @staticmethod
    @mi_callable(name="twice")
    def twice_str(s: str) -> str:
        return s * 2


@pytest.fixture
def analyze_native(analyze):
    def execute(declarations: str, body: str = ""):
        binder = ReflectiveNativeBinder(classes={"host.Std": HostStd})
        code = f"""
module m {{
{declarations}
    fn main {{
{body}
    }}
}}
"""
        return analyze(code, native_binder=binder)

    return execute


def test_bind(analyze_native):
    result = analyze_native('nat fn sleep~ (long millis) -> "host.Std";', "sleep(5L);")
    assert error_messages(result) == []
    sleep = result.module.children["m"].functions["sleep"][0]
    assert sleep.is_native()
    assert sleep.host_class == "host.Std"
    assert sleep.native.host is HostStd
    assert sleep.native.function is HostStd.sleep

    definition = user_nodes(result)[0].child(-1).child(0)
    assert definition.kind == NodeKind.NATIVE_FUNCTION_DEFINITION
    assert definition.child(-1).kind == NodeKind.NATIVE_FUNCTION_STR
    assert definition.child(-1).value.literal == '"host.Std"'


def test_overloads_bind_by_mi_name(analyze_native):
    result = analyze_native(
        """
    nat fn twice :: int (int i) -> "host.Std";
    nat fn twice :: string (string s) -> "host.Std";
""",
        "int x = twice(2);\nstring s = twice(\"ab\");",
    )
    assert error_messages(result) == []
    by_type = {f.parameter_types()[0]: f.native for f in result.module.children["m"].functions["twice"]}
    assert by_type[Datatype.INT](21) == 42
    assert by_type[Datatype.STRING]("ab") == "abab"


def test_nullable_signatures(analyze_native):
    result = analyze_native('nullable nat fn maybe :: string (nullable string s) -> "host.Std";')
    assert error_messages(result) == []
    maybe = result.module.children["m"].functions["maybe"][0]
    assert maybe.native(None) == None


# declaration, error
error_tests = [
    ('nat fn sleep~ (string millis) -> "host.Std";', "Cannot find native method 'sleep' with parameter types (str) in native class 'host.Std'"),
    ('nat fn sleep~ (long a, long b) -> "host.Std";', "Cannot find native method 'sleep' with parameter types (int, int) in native class 'host.Std'"),
    ('nat fn unmarked~ (int x) -> "host.Std";', "May only use host methods decorated with @mi_callable as native functions"),
    ('nat fn instance~ (int x) -> "host.Std";', "Native methods must be static"),
    ('nat fn sleep~ (long millis) -> "nowhere.Missing";', "Cannot find native class 'nowhere.Missing' for native function"),
    ('nat fn sleep~ (long millis) -> "Missing";', "Cannot find native class 'Missing' for native function"),
    ('nat fn sleep~ (long millis) -> "milang.stdlib.standard_library";', "Cannot find native class 'milang.stdlib.standard_library' for native function"),
    ('enum E {\nA;\n}\nnat fn sleep~ (E e) -> "host.Std";', "Only primitive datatypes (int, long, double, float, bool, string, char) may be used as native function arguments"),
    ('enum E {\nA;\n}\nnat fn sleep :: E () -> "host.Std";', "Only primitive datatypes (int, long, double, float, bool, string, char) may be used as a native function return type"),
    ('nat fn strict :: string (nullable string s) -> "host.Std";', "Parameter #0 of native function is nullable, but the same parameter of the host method is not Optional"),
    ('nat fn maybe :: string (nullable string s) -> "host.Std";', "Return type of native function must be nullable"),
    ('nat fn twice :: string (int i) -> "host.Std";', "Return type of native function does not match return type of native host method"),
    ("nat fn sleep~ (long millis);", "Expected '-> <constant-string-literal>' after ')' in native function definition"),
    ("nat fn sleep~ (long millis) -> 5;", "Expected '-> <constant-string-literal>' after ')' in native function definition"),
    ('nat fn sleep~ (long millis) -> "host.Std" {\n}', "Expected ';' after native function definition"),
    ('nat fn sleep~ (long millis) -> "host.Std" "x";', "Unexpected token '\"x\"'"),
]


@pytest.mark.parametrize("declaration,message", error_tests)
def test_errors(analyze_native, declaration, message):
    result = analyze_native(declaration)
    assert message in error_messages(result)


def test_native_parameters(analyze_native):
    result = analyze_native('nat fn sleep~ (nat long millis) -> "host.Std";')
    assert "Unexpected token 'nat', function parameters cannot be native" in error_messages(result)


def test_standard_library_is_bound(analyze_ok):
    result = analyze_ok("module m { }")
    std = result.module.children["std"]
    for overloads in std.functions.values():
        for function in overloads:
            assert function.is_native()
            assert function.host_class == STD_CLASS
            assert function.native.host is MiStandardLib
            assert function.stdlib


def test_custom_binder(analyze):
    class RecordingBinder(NativeBinder):
        def __init__(self) -> None:
            self.calls = []

        def bind(self, host_class, method_name, params, return_type):
            self.calls.append((host_class, method_name, params, return_type))
            return NativeHandle(host_class, method_name, object, lambda *args: None)

    binder = RecordingBinder()
    result = analyze('module m { nat fn f :: int (char c) -> "anything"; }', stdlib=False, native_binder=binder)
    assert error_messages(result) == []
    assert binder.calls == [("anything", "f", [Datatype.CHAR], Datatype.INT)]


# annotation, expected
annotation_tests = [
    (int, (int, False)),
    (Optional[int], (int, True)),
    (int | None, (int, True)),
    (Optional[str], (str, True)),
    (None, (None, False)),
]


@pytest.mark.parametrize("annotation,expected", annotation_tests)
def test_unwrap_annotation(annotation, expected):
    assert unwrap_annotation(annotation) == expected


def test_unwrap_wide_union():
    annotation = Union[int, str, None]
    assert unwrap_annotation(annotation) == (annotation, False)
