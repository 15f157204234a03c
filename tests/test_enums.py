import pytest

from milang.datatypes import Datatype
from milang.mi_ast import NodeKind

from conftest import error_messages, function_body


def test_members(analyze_ok):
    result = analyze_ok(
        """
module m {
    enum Color {
        RED, GREEN, BLUE;
    }
    fn main {
        Color c = Color::GREEN;
        bool same = c == Color::RED;
    }
}
"""
    )
    color = result.module.children["m"].enums["Color"]
    assert color.members == ["RED", "GREEN", "BLUE"]

    definition = function_body(result, "main").child(0)
    member = definition.child(-1).child(0)
    assert member.kind == NodeKind.GET_ENUM_MEMBER
    assert member.datatype == Datatype.named("Color", color)
    assert member.child(0).ref is color
    assert member.child(1).value.literal == "GREEN"


def test_single_member(analyze_ok):
    result = analyze_ok("module m { enum E { ONLY; } }")
    assert result.module.children["m"].enums["E"].members == ["ONLY"]


def test_qualified_enum(analyze_ok):
    result = analyze_ok(
        """
module m {
    enum E {
        A, B;
    }
}
module n {
    fn main {
        m.E v = m.E::A;
    }
}
"""
    )
    e = result.module.children["m"].enums["E"]
    variable = function_body(result, "main").child(0).ref
    assert variable.datatype.ref is e


def test_enum_used_before_its_definition_in_bodies(analyze_ok):
    analyze_ok(
        """
module m {
    fn main {
        E e = E::A;
    }
    enum E {
        A;
    }
}
"""
    )


def test_enum_in_signature_must_be_defined_first(analyze):
    result = analyze(
        """
module m {
    fn f (E e) {
    }
    enum E {
        A;
    }
}
"""
    )
    assert error_messages(result) == ["Cannot find datatype 'E'"]
    assert result.root == None


def test_enums_of_different_modules_differ(analyze):
    result = analyze(
        """
module a {
    enum E {
        X;
    }
}
module b {
    enum E {
        X;
    }
    fn main {
        E e = a.E::X;
    }
}
"""
    )
    assert error_messages(result) == ["Datatypes are not equal on both sides, trying to assign E to a E variable."]


# code, error
error_tests = [
    ("module m { A, B; }", "Expected statement to be inside of an enum"),
    ("module m { fn main { A, B; } }", "Expected statement to be inside of an enum"),
    ("module m { enum E { A; B; } }", "Redefinition of enum members"),
    ("module m { enum E { A, A; } }", "Redefinition of identifier 'A'"),
    ("module m { enum E { A, B C; } }", "Expected ','"),
    ("module m { enum E { A,; } }", "Expected identifier after ','"),
    ("module m { enum E { A, int; } }", "Cannot use restricted name 'int'"),
    ("module m { enum E { A; } fn main { E e = E::X; } }", "Enum 'E' has no member called 'X'"),
    ("module m { fn main { int x = Nope::A; } }", "Cannot find enum 'Nope'"),
    ("module m { fn main { int x = E::; } }", "Expected enum member identifier after '::'"),
    ("module m { enum E { A; } fn main { int x = E::A; } }", "Datatypes are not equal on both sides, trying to assign E to a int variable."),
    ("enum E { A; }", "Cannot define enums at root level"),
    ("module m { fn main { } enum int { } }", "Cannot use restricted name 'int'"),
    ("module m { const enum E { A; } }", "Cannot declare enums as own, const or mut, they are automatically constant because they cannot be redefined"),
    ("module m { nullable enum E { A; } }", "Cannot use modifier 'nullable' on enums"),
    ("module m { enum E { A; } enum E { B; } }", "Redefinition of datatype 'E'"),
    ("module m { enum E { A; } class E { } }", "Redefinition of datatype 'E'"),
    ("module m { enum E { fn f { } } }", "Expected function definition to be inside of a module or class"),
    ("module m { enum E; }", "Expected '{' after enum name"),
]


@pytest.mark.parametrize("code,message", error_tests)
def test_errors(analyze, code, message):
    assert message in error_messages(analyze(code))
