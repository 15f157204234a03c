import pytest

from milang.common import MiInternalError
from milang.parser import MiParser


try:
    from lark import Lark
    import hypothesis
    from hypothesis.extra.lark import from_lark
except ImportError:
    pass
else:
    with open("milang/grammar.lark") as fp:
        grammar = fp.read()

    lark_parser = Lark(grammar)

    @pytest.mark.fuzz
    @hypothesis.settings(deadline=None)
    @hypothesis.given(
        from_lark(lark_parser)
    )
    def test_fuzz_analyzer(code: str):
        # user errors end up as diagnostics, anything raised is a bug
        try:
            result = MiParser(code).parse()
        except MiInternalError as e:
            pytest.fail(f"internal error on:\n{code}\n{e}")
        assert result.encountered_error == (len(result.errors()) > 0)
        if not result.encountered_error:
            assert result.root != None
