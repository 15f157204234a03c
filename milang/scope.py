from __future__ import annotations

import logging

from enum import Enum, auto
from typing import Iterator, Optional

from milang.common import MiInternalError
from milang.datatypes import Datatype
from milang.mi_ast import Node
from milang.symbols import FunctionDefinition, LocalVariable, MiClass, MiEnum, Module, Variable


logger = logging.getLogger(__name__)


class ScopeKind(Enum):
    PARENT = auto()
    MODULE = auto()
    CLASS = auto()
    ENUM = auto()
    FUNCTION = auto()
    IF = auto()
    ELSE = auto()
    WHILE = auto()
    DO = auto()
    FOR = auto()
    # bounds the lifetime of a for loop's init variable
    FAKE = auto()

    def is_loop(self) -> bool:
        return self in (ScopeKind.WHILE, ScopeKind.DO, ScopeKind.FOR)


class Scope:
    def __init__(self, kind: ScopeKind, body: Node) -> None:
        self.kind = kind
        # statements analysed inside the scope are appended here
        self.body = body
        self.parent: Optional[Scope] = None
        self.locals: dict[str, LocalVariable] = {}
        # a `ret` was seen directly in this scope or on every branch below it
        self.reached_end = False
        # a `break` or `continue` was seen directly in this scope
        self.jumped = False
        self.warned_unreachable = False
        # the statement node that opened the scope
        self.statement: Optional[Node] = None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.kind.name}>"


class ModuleScope(Scope):
    def __init__(self, kind: ScopeKind, body: Node, module: Module) -> None:
        assert kind in (ScopeKind.PARENT, ScopeKind.MODULE), kind
        super().__init__(kind, body)
        self.module = module


class ClassScope(Scope):
    def __init__(self, body: Node, entity: MiClass) -> None:
        super().__init__(ScopeKind.CLASS, body)
        self.entity = entity
        self.constructor_given = False


class EnumScope(Scope):
    def __init__(self, body: Node, entity: MiEnum, *, known: bool = False) -> None:
        super().__init__(ScopeKind.ENUM, body)
        self.entity = entity
        # members were already collected by an earlier pass
        self.known = known
        self.members_given = False


class FunctionScope(Scope):
    def __init__(self, body: Node, definition: FunctionDefinition) -> None:
        super().__init__(ScopeKind.FUNCTION, body)
        self.definition = definition
        self.return_type: Datatype = definition.return_type
        self.owner_class = definition.owner_class
        self.using: list[Module] = []


class BlockScope(Scope):
    def __init__(self, kind: ScopeKind, body: Node, *, if_scope: Optional[BlockScope] = None) -> None:
        assert kind in (ScopeKind.IF, ScopeKind.ELSE, ScopeKind.FAKE), kind
        super().__init__(kind, body)
        # the block an `else` belongs to
        self.if_scope = if_scope


class LoopScope(Scope):
    def __init__(self, kind: ScopeKind, body: Node) -> None:
        assert kind.is_loop(), kind
        super().__init__(kind, body)
        self.saw_break = False


class ScopeStack:
    def __init__(self) -> None:
        self.scopes: list[Scope] = []

    def __len__(self) -> int:
        return len(self.scopes)

    def __iter__(self) -> Iterator[Scope]:
        """
        Innermost scope first.
        """
        return reversed(self.scopes)

    def push(self, scope: Scope):
        scope.parent = self.scopes[-1] if len(self.scopes) > 0 else None
        self.scopes.append(scope)
        logger.debug(f"pushed {scope.kind.name} scope, depth {len(self.scopes)}")

    def pop(self) -> Scope:
        if len(self.scopes) == 0:
            raise MiInternalError("Tried popping an empty scope stack")
        scope = self.scopes.pop()
        logger.debug(f"popped {scope.kind.name} scope, depth {len(self.scopes)}")
        return scope

    def current(self) -> Scope:
        if len(self.scopes) == 0:
            raise MiInternalError("The scope stack is empty")
        return self.scopes[-1]

    def find(self, *kinds: ScopeKind) -> Optional[Scope]:
        for scope in self:
            if scope.kind in kinds:
                return scope
        return None

    def module(self) -> Module:
        scope = self.find(ScopeKind.MODULE, ScopeKind.PARENT)
        if scope == None:
            raise MiInternalError("No module scope on the stack")
        return scope.module

    def function(self) -> Optional[FunctionScope]:
        return self.find(ScopeKind.FUNCTION)

    def owner_class(self) -> Optional[MiClass]:
        function = self.function()
        if function != None:
            return function.owner_class
        scope = self.find(ScopeKind.CLASS)
        if scope != None:
            return scope.entity
        return None

    def loop(self) -> Optional[LoopScope]:
        for scope in self:
            if scope.kind == ScopeKind.FUNCTION:
                return None
            if scope.kind.is_loop():
                return scope
        return None

    def frames(self) -> Iterator[Scope]:
        """
        Local variable frames from the innermost scope up to the enclosing function.
        """
        for scope in self:
            yield scope
            if scope.kind == ScopeKind.FUNCTION:
                return

    def find_local(self, name: str) -> Optional[Variable]:
        if self.function() == None:
            return None
        for scope in self.frames():
            if name in scope.locals:
                return scope.locals[name]
        return None
