import pytest

from milang.datatypes import Datatype
from milang.mi_ast import NodeKind

from conftest import error_messages, function_body


# code, datatype
inference_tests = [
    ("? x = 5;", Datatype.INT),
    ("? x = 5L;", Datatype.LONG),
    ("? x = \"s\";", Datatype.STRING),
    ("? x = 'c' + 1;", Datatype.INT),
    ("? x = 1 < 2;", Datatype.BOOL),
    ("nullable ? x = 1.5f;", Datatype.FLOAT.with_nullable(True)),
]


@pytest.mark.parametrize("code,datatype", inference_tests)
def test_inferred_datatype(in_function, code, datatype):
    result = in_function(code)
    assert error_messages(result) == []
    definition = function_body(result, "main").child(0)
    assert definition.ref.datatype == datatype
    assert definition.child(2).kind == NodeKind.TYPE
    assert definition.child(2).datatype == datatype


def test_definition_without_value(in_function):
    result = in_function("int x;\nx = 1;")
    assert error_messages(result) == []
    body = function_body(result, "main")
    assert body.child(0).kind == NodeKind.VAR_DEFINITION
    assert [n.kind for n in body.child(0).children] == [NodeKind.MODIFIERS, NodeKind.IDENTIFIER, NodeKind.TYPE]
    assert body.child(1).kind == NodeKind.VAR_SET_VALUE


def test_constant_gets_one_assignment(in_function):
    result = in_function("const int x;\nx = 2;\nx = 3;")
    assert error_messages(result) == ["Cannot reassign constant variable 'x'"]


def test_compound_assignments(in_function):
    result = in_function(
        """
        mut int x = 1;
        x += 2;
        x <<= 1;
        x %= 3;
        x++;
        x--;
        mut string s = "a";
        s += "b";
        s += 1;
        mut bool b = true;
        b = false;
        mut long l = 1L;
        l += 1;
        """
    )
    assert error_messages(result) == []


def test_increment_is_a_compound_add(in_function):
    result = in_function("mut int x = 1;\nx++;")
    increment = function_body(result, "main").child(1)
    assert increment.render() == "(VAR_SET_VALUE x (IDENTIFIER x) (OPERATOR +=) (VALUE (INTEGER_NUM_LITERAL 1)))"


def test_nullability_is_not_rechecked_on_reassignment(in_function):
    result = in_function("nullable int a = null;\nmut int b = 1;\nb = a;")
    assert error_messages(result) == []


def test_globals_can_be_changed_from_functions(analyze_ok):
    analyze_ok(
        """
module m {
    mut int counter = 0;
    fn tick {
        counter += 1;
    }
}
"""
    )


def test_block_locals_end_with_the_block(in_function):
    result = in_function("if true {\n int y = 1;\n}\nint z = y;")
    assert error_messages(result) == ["Cannot find variable 'y'"]


# body, error
error_tests = [
    ("? x;", "Unexpected token '?', expected a definite datatype"),
    ("? x = null;", "Unexpected token '?', expected a definite datatype"),
    ("const int x = 1;\nx = 2;", "Cannot reassign constant variable 'x'"),
    ("int x = 1;\nx += 2;", "Cannot reassign constant variable 'x'"),
    ("int x = 1;\nx++;", "Cannot reassign constant variable 'x'"),
    ("mut int x;\nx += 1;", "Variable 'x' might not have been initialized"),
    ("int x;\nint y = x;", "Variable 'x' might not have been initialized"),
    ("mut bool b = true;\nb += 1;", "Undefined operator '+=' for datatype 'bool'"),
    ("mut string s = \"a\";\ns++;", "Undefined operator '++' for datatype 'string'"),
    ("mut int x = 1;\nx += 1.5;", "Undefined operator '+=' for datatype 'int'"),
    ("mut int x = 1;\nx = \"a\";", "Datatypes are not equal on both sides, trying to assign string to a int variable."),
    ("mut int x = 1;\nx = ;", "Expected value after '='"),
    ("int x = 1;\nint x = 2;", "Redefinition of variable 'x'"),
    ("int x = 1;\nif true {\n int x = 2;\n}", "Redefinition of variable 'x'"),
    ("pub int x = 1;", "Unexpected token 'pub', cannot use visibility modifiers (pub, priv, own) for local variables"),
    ("nat int x = 1;", "Variables cannot be native"),
    ("int x = \"a\";", "Datatypes are not equal on both sides, trying to assign string to a int variable."),
    ("int x = null;", "Datatypes are not equal on both sides, trying to assign null to a int variable."),
    ("int x = 1L;", "Datatypes are not equal on both sides, trying to assign long to a int variable."),
    ("void v;", "Variables cannot be of type 'void'"),
    ("int x 5;", "Unexpected token '5', expected '=' or ';'"),
    ("int x =;", "Expected value after '='"),
    ("int x = 1 {\n}", "Expected ';' after variable definition"),
    ("mut mut int x = 1;", "Duplicate modifier 'mut'"),
    ("const mut int x = 1;", "Conflicting modifiers 'const' and 'mut'"),
    ("pub priv int x = 1;", "Conflicting modifiers 'pub' and 'priv'"),
    ("mut;", "Expected statement after modifiers"),
    ("y = 1;", "Cannot find variable 'y'"),
    ("int if = 1;", "Cannot use restricted name 'if'"),
    ("int a.b = 1;", "Cannot use restricted name 'a.b'"),
    ("Missing x;", "Cannot find datatype 'Missing'"),
]


@pytest.mark.parametrize("body,message", error_tests)
def test_errors(in_function, body, message):
    assert message in error_messages(in_function(body))


def test_nullable_accepts_null(in_function):
    result = in_function("nullable int x = null;\nnullable string s = \"a\";\nlong l = 1;")
    assert error_messages(result) == []
    assert function_body(result, "main").child(0).ref.datatype == Datatype.INT.with_nullable(True)
