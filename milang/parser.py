from __future__ import annotations

import logging
import pathlib

from typing import Any, Optional

from milang.common import MiInternalError
from milang.diagnostics import AnalysisResult, Diagnostic, Severity
from milang.evaluator import StatementEvaluator
from milang.mi_ast import Node, NodeKind
from milang.native import NativeBinder, ReflectiveNativeBinder
from milang.resolver import Resolver
from milang.scope import ModuleScope, Scope, ScopeKind, ScopeStack
from milang.stdlib import standard_library
from milang.symbols import Module
from milang.tokenizer import MiToken, MiTokenKind, Tokenizer


logger = logging.getLogger(__name__)


class MiParser:
    """
    Runs the semantic analysis of one Mi source text.

    The text is read twice. The skim pass registers modules, datatypes, function
    signatures and globals without looking into function bodies, so that code can
    call functions defined further down. The second pass analyses everything and
    builds the tree, reusing what was registered while skimming.
    """
    def __init__(self, code: str, *, stdlib: bool = True, stdlib_extra: str = "", native_binder: Optional[NativeBinder] = None, filepath: Optional[pathlib.Path] = None) -> None:
        self.code = code
        self.stdlib = stdlib
        self.stdlib_extra = stdlib_extra
        self.native_binder = native_binder if native_binder != None else ReflectiveNativeBinder()
        self.filepath = filepath
        self.tokens = Tokenizer(self.source(), filepath=filepath).process()

        self.diagnostics: list[Diagnostic] = []
        self.encountered_error = False
        self.root_module = Module("")
        # skimmed symbols by the index of their statement's first token
        self.definitions: dict[int, Any] = {}

        self.scopes = ScopeStack()
        self.resolver = Resolver(self)
        self.evaluator = StatementEvaluator(self)

        self.skimming = False
        self.in_stdlib = stdlib
        # the scope closed by the `}` right before the current statement
        self.last_closed: Optional[Scope] = None
        self.closed_before: Optional[Scope] = None
        # a do block still waiting for its `while` condition
        self.pending_do: Optional[Node] = None
        self.parsed = False

    def source(self) -> str:
        if self.stdlib:
            return standard_library(self.stdlib_extra) + "\n" + self.code
        return self.code

    def report(self, diagnostic: Diagnostic):
        for existing in self.diagnostics:
            if existing.message == diagnostic.message and existing.token is diagnostic.token:
                return
        self.diagnostics.append(diagnostic)
        logger.debug(f"{diagnostic.severity.value}: {diagnostic.render(self.filepath)}")

    def error(self, message: str, token: Optional[MiToken] = None, *hints: str):
        self.encountered_error = True
        self.report(Diagnostic(Severity.ERROR, message, token, list(hints)))

    def warning(self, message: str, token: Optional[MiToken] = None, *hints: str):
        self.report(Diagnostic(Severity.WARNING, message, token, list(hints)))

    def parse(self) -> AnalysisResult:
        if self.parsed:
            raise MiInternalError("A parser can only be used once, create a new one")
        self.parsed = True

        self.skimming = True
        self.run_pass()
        if self.encountered_error:
            logger.debug("skimming failed, skipping analysis")
            return AnalysisResult(None, self.root_module, self.diagnostics, True)

        self.skimming = False
        root = self.run_pass()
        logger.debug(f"analysis finished with {len(self.diagnostics)} diagnostics")
        return AnalysisResult(root, self.root_module, self.diagnostics, self.encountered_error)

    def emit(self, node: Node):
        self.scopes.current().body.add(node)

    def push_scope(self, scope: Scope, statement: Node):
        scope.statement = statement
        self.scopes.push(scope)

    def run_pass(self) -> Node:
        logger.debug(f"starting {'skim' if self.skimming else 'analysis'} pass")
        self.in_stdlib = self.stdlib
        self.last_closed = None
        self.closed_before = None
        self.pending_do = None

        root = Node(NodeKind.PARENT)
        self.scopes = ScopeStack()
        self.scopes.push(ModuleScope(ScopeKind.PARENT, root, self.root_module))

        tokens = self.tokens
        i = 0
        while tokens[i].kind != MiTokenKind.EOF:
            if tokens[i].kind == MiTokenKind.CLOSE_CURLY:
                self.close_scope(tokens[i])
                i += 1
                continue

            end = self.statement_end(i)
            terminator = tokens[end]
            statement = tokens[i:end]
            if self.report_lexer_errors(statement):
                i = end
                if terminator.kind == MiTokenKind.SEMI:
                    i = end + 1
                elif terminator.kind == MiTokenKind.OPEN_CURLY:
                    i = self.skip_block(end + 1, terminator)
                continue
            if terminator.kind not in (MiTokenKind.SEMI, MiTokenKind.OPEN_CURLY):
                self.error("Expected ';' after statement", statement[-1])
                i = end
                continue
            if len(statement) == 0:
                self.error(f"Unexpected token '{terminator.literal}'", terminator)
                i = end + 1
                if terminator.kind == MiTokenKind.OPEN_CURLY:
                    i = self.skip_block(i, terminator)
                continue

            depth = len(self.scopes)
            self.statement(statement, terminator, i)
            i = end + 1
            if terminator.kind == MiTokenKind.OPEN_CURLY and len(self.scopes) == depth:
                # nothing was opened, either a skimmed function body or a failed statement
                i = self.skip_block(i, terminator)

        eof = tokens[i]
        self.flush_pending_do(eof)
        if len(self.scopes) > 1:
            scope = self.scopes.current()
            self.error(f"Expected '}}' to close {scope.kind.name.lower()} scope", eof)
        return root

    def statement_end(self, start: int) -> int:
        for i in range(start, len(self.tokens)):
            if self.tokens[i].kind in (MiTokenKind.SEMI, MiTokenKind.OPEN_CURLY, MiTokenKind.CLOSE_CURLY, MiTokenKind.EOF):
                return i
        raise MiInternalError("Token stream is missing its EOF token")

    def report_lexer_errors(self, tokens: list[MiToken]) -> bool:
        found = False
        for token in tokens:
            if token.kind == MiTokenKind.ERROR:
                self.error(token.message, token)
                found = True
        return found

    def skip_block(self, start: int, opening: MiToken) -> int:
        """
        Index after the `}` matching an already consumed `{`.
        """
        depth = 1
        i = start
        while self.tokens[i].kind != MiTokenKind.EOF:
            match self.tokens[i].kind:
                case MiTokenKind.OPEN_CURLY:
                    depth += 1
                case MiTokenKind.CLOSE_CURLY:
                    depth -= 1
                    if depth == 0:
                        return i + 1
                case MiTokenKind.ERROR:
                    self.error(self.tokens[i].message, self.tokens[i])
            i += 1
        self.error("Expected '}' to close block", opening)
        return i

    def statement(self, tokens: list[MiToken], terminator: MiToken, index: int):
        self.closed_before = self.last_closed
        self.last_closed = None

        if self.pending_do != None:
            do_node = self.pending_do
            self.pending_do = None
            if tokens[0].kind == MiTokenKind.WHILE and terminator.kind == MiTokenKind.SEMI:
                self.evaluator.do_while_condition(do_node, tokens)
                return
            self.error("Expected 'while' condition after 'do' block", tokens[0])

        self.check_reachable(tokens[0])
        self.evaluator.evaluate(tokens, terminator, index)

    def check_reachable(self, token: MiToken):
        if self.scopes.function() == None:
            return
        scope = self.scopes.current()
        if (scope.reached_end or scope.jumped) and not scope.warned_unreachable:
            scope.warned_unreachable = True
            self.warning("Unreachable code", token, "Delete the statements after 'ret', 'break' or 'continue'")

    def flush_pending_do(self, token: MiToken):
        if self.pending_do != None:
            self.pending_do = None
            self.error("Expected 'while' condition after 'do' block", token)

    def close_scope(self, token: MiToken):
        self.flush_pending_do(token)
        if len(self.scopes) <= 1:
            self.error("Unexpected '}'", token, "Delete the closing brace or open a block before it")
            return

        scope = self.scopes.pop()
        match scope.kind:
            case ScopeKind.FUNCTION:
                definition = scope.definition
                if not definition.return_type.is_void() and not scope.reached_end:
                    self.error(f"Missing return statement in function '{definition.name}'", token)
            case ScopeKind.ELSE:
                if scope.reached_end and scope.if_scope.reached_end:
                    scope.parent.reached_end = True
            case ScopeKind.DO:
                self.pending_do = scope.statement
                if scope.reached_end and not scope.saw_break:
                    scope.parent.reached_end = True
            case ScopeKind.FOR:
                # the scope holding the loop variable
                self.scopes.pop()
        self.last_closed = scope


def analyze(code: str, **kwargs) -> AnalysisResult:
    return MiParser(code, **kwargs).parse()
