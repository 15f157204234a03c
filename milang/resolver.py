from __future__ import annotations

import logging

from typing import TYPE_CHECKING, Iterator, Optional

from milang.datatypes import Datatype, Modifier, equal, promotion_distance
from milang.symbols import FunctionDefinition, MiClass, MiEnum, Module, Symbol, Variable, format_types
from milang.tokenizer import MiToken, MiTokenKind

if TYPE_CHECKING:
    from milang.parser import MiParser


logger = logging.getLogger(__name__)


class Resolver:
    """
    Name lookup for the statement currently being analysed.

    Lookup order: locals innermost-out, members of the owning class, then for
    qualified names the module path, otherwise the `use`d modules in order and
    finally the enclosing module chain up to the root.
    """
    def __init__(self, parser: MiParser) -> None:
        self.parser = parser

    @property
    def scopes(self):
        return self.parser.scopes

    def using_modules(self) -> list[Module]:
        function = self.scopes.function()
        return function.using if function != None else []

    def find_module(self, qualified: str) -> Optional[Module]:
        path = qualified.split(".")
        for base in self.using_modules():
            found = base.find_module(path)
            if found != None:
                return found
        for base in self.scopes.module().chain():
            found = base.find_module(path)
            if found != None:
                return found
        return None

    def containers(self, qualified: str, *, members=True) -> Iterator[tuple[Module | MiClass, str]]:
        if "." in qualified:
            path, _, name = qualified.rpartition(".")
            module = self.find_module(path)
            if module != None:
                yield module, name
            return
        if members:
            owner = self.scopes.owner_class()
            if owner != None:
                yield owner, qualified
        for module in self.using_modules():
            yield module, qualified
        for module in self.scopes.module().chain():
            yield module, qualified

    def accessible(self, symbol: Symbol, token: MiToken) -> bool:
        match symbol.visibility():
            case Modifier.PRIV:
                owner = symbol.owning_module()
                if owner != None and not self.scopes.module().is_within(owner):
                    self.parser.error(f"Cannot access '{symbol.name}', it is private to module '{owner.full_name()}'", token)
                    return False
            case Modifier.OWN:
                if symbol.stdlib != self.parser.in_stdlib:
                    self.parser.error(f"Cannot access '{symbol.name}', it is owned by another unit", token,
                                      "'own' symbols are only visible in the standard library or the user code that declared them")
                    return False
        return True

    def find_variable(self, token: MiToken) -> Optional[Variable]:
        name = token.literal
        local = self.scopes.find_local(name)
        if local != None:
            return local
        for container, simple in self.containers(name):
            variable = container.variables.get(simple, None)
            if variable != None:
                if not self.accessible(variable, token):
                    return None
                return variable
        self.parser.error(f"Cannot find variable '{name}'", token)
        return None

    def find_entity(self, token: MiToken) -> Optional[MiEnum | MiClass]:
        for container, simple in self.containers(token.literal, members=False):
            found = container.find_type(simple)
            if found != None:
                if not self.accessible(found, token):
                    return None
                return found
        return None

    def find_enum(self, token: MiToken) -> Optional[MiEnum]:
        found = self.find_entity(token)
        if not isinstance(found, MiEnum):
            self.parser.error(f"Cannot find enum '{token.literal}'", token)
            return None
        return found

    def find_class(self, token: MiToken) -> Optional[MiClass]:
        found = self.find_entity(token)
        if not isinstance(found, MiClass):
            self.parser.error(f"Cannot find class '{token.literal}'", token)
            return None
        return found

    def find_datatype(self, token: MiToken, nullable: bool = False) -> Optional[Datatype]:
        """
        Keyword types map directly, identifiers name an enum or a class.
        """
        if token.kind.is_datatype():
            return Datatype.of(token, nullable)
        if token.kind != MiTokenKind.IDENTIFIER:
            self.parser.error(f"Expected datatype, got '{token.literal}'", token)
            return None
        found = self.find_entity(token)
        if found == None:
            self.parser.error(f"Cannot find datatype '{token.literal}'", token)
            return None
        return Datatype.named(found.name, found, nullable)

    def resolve_call(self, token: MiToken, args: list[Datatype]) -> Optional[FunctionDefinition]:
        name = token.literal
        found_any = False
        for container, simple in self.containers(name):
            candidates = container.functions.get(simple, [])
            if len(candidates) == 0:
                continue
            found_any = True
            matches = []
            for candidate in candidates:
                cost = call_cost(candidate, args)
                if cost != None:
                    matches.append((cost, candidate))
            if len(matches) == 0:
                continue
            best = min(cost for cost, _ in matches)
            chosen = [c for cost, c in matches if cost == best]
            if len(chosen) > 1:
                self.parser.error(f"Ambiguous call to function '{name}' with argument types {format_types(args)}", token,
                                  *[f"Candidate: {c.signature()}" for c in chosen])
                return None
            logger.debug(f"resolved {name}{format_types(args)} to {chosen[0].signature()}")
            if not self.accessible(chosen[0], token):
                return None
            return chosen[0]

        if not found_any:
            self.parser.error(f"Cannot find any function called '{name}' in module '{self.scopes.module().full_name()}'", token)
        elif len(args) == 0:
            self.parser.error(f"Cannot find any implementation for function '{name}' with no arguments", token)
        else:
            self.parser.error(f"Cannot find any implementation for function '{name}' with argument types {format_types(args)}", token)
        return None


def call_cost(candidate: FunctionDefinition, args: list[Datatype]) -> Optional[int]:
    """
    0 for an exact match, otherwise the summed promotion steps. None if the call can't match.
    """
    params = candidate.parameter_types()
    if len(params) != len(args):
        return None
    total = 0
    for param, arg in zip(params, args):
        if equal(param, arg):
            continue
        distance = promotion_distance(param, arg)
        if distance == None:
            return None
        # nonnull into nullable counts as one step so exact nullability wins
        total += distance + (1 if param.nullable and not arg.nullable else 0)
    return total
