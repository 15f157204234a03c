from milang.datatypes import Datatype
from milang.mi_ast import NodeKind

from conftest import error_messages, function_body


OVERLOADS = """
    fn foo (int a) {
    }
    fn foo (string a) {
    }
"""


def called(result, index=0):
    node = function_body(result, "main").child(index)
    assert node.kind == NodeKind.FUNCTION_CALL
    return node.ref


def test_picks_matching_overload(in_function):
    result = in_function("foo(1);\nfoo(\"a\");", before=OVERLOADS)
    assert error_messages(result) == []
    assert called(result, 0).parameter_types() == [Datatype.INT]
    assert called(result, 1).parameter_types() == [Datatype.STRING]


def test_no_matching_overload(in_function):
    result = in_function("foo(true);", before=OVERLOADS)
    assert error_messages(result) == ["Cannot find any implementation for function 'foo' with argument types (bool)"]


def test_no_arguments(in_function):
    result = in_function("foo();", before=OVERLOADS)
    assert error_messages(result) == ["Cannot find any implementation for function 'foo' with no arguments"]


def test_unknown_function(in_function):
    result = in_function("bar(1);")
    assert error_messages(result) == ["Cannot find any function called 'bar' in module 'm'"]


def test_exact_match_wins_over_promotion(in_function):
    result = in_function(
        "f(1);",
        before="""
    fn f (long a) {
    }
    fn f (int a) {
    }
""",
    )
    assert error_messages(result) == []
    assert called(result).parameter_types() == [Datatype.INT]


def test_smallest_promotion_wins(in_function):
    result = in_function(
        "f('c');",
        before="""
    fn f (double a) {
    }
    fn f (long a) {
    }
""",
    )
    assert error_messages(result) == []
    assert called(result).parameter_types() == [Datatype.LONG]


def test_ambiguous_call(in_function):
    result = in_function(
        "f(1, 1);",
        before="""
    fn f (long a, float b) {
    }
    fn f (float a, long b) {
    }
""",
    )
    errors = result.errors()
    assert [e.message for e in errors] == ["Ambiguous call to function 'f' with argument types (int, int)"]
    assert len(errors[0].hints) == 2


def test_null_matches_nullable_parameter(in_function):
    result = in_function(
        "f(null);",
        before="""
    fn f (nullable string s) {
    }
    fn f (int i) {
    }
""",
    )
    assert error_messages(result) == []
    assert called(result).parameter_types() == [Datatype.STRING.with_nullable(True)]


def test_standard_library_overloads(in_function):
    result = in_function(
        """
        std.println("s");
        std.println('c');
        std.println(1);
        std.println(1L);
        std.println(1.5f);
        std.println(1.5);
        std.println(true);
        """
    )
    assert error_messages(result) == []
    chosen = [called(result, i).parameter_types() for i in range(7)]
    assert chosen == [
        [Datatype.STRING],
        [Datatype.CHAR],
        [Datatype.INT],
        [Datatype.LONG],
        [Datatype.FLOAT],
        [Datatype.DOUBLE],
        [Datatype.BOOL],
    ]


def test_overload_sets_have_unique_parameter_lists(analyze_ok):
    result = analyze_ok("module m { }")
    for module in result.module.children.values():
        for overloads in module.functions.values():
            signatures = [tuple(f.parameter_types()) for f in overloads]
            assert len(signatures) == len(set(signatures))
