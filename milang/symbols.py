from __future__ import annotations

from typing import Any, Iterator, Optional

from milang.datatypes import Datatype, Modifier
from milang.mi_ast import Node
from milang.tokenizer import MiToken


def format_types(types: list[Datatype]) -> str:
    return "(" + ", ".join(str(t) for t in types) + ")"


class Symbol:
    """
    Anything that can be looked up by name. `stdlib` tells which unit declared it,
    `own` symbols are only visible inside that unit.
    """
    def __init__(self, name: str, modifiers: list[Modifier], *, token: Optional[MiToken] = None, stdlib: bool = False) -> None:
        self.name = name
        self.modifiers = modifiers
        self.token = token
        self.stdlib = stdlib

    def visibility(self) -> Modifier:
        for modifier in self.modifiers:
            if modifier.is_visibility():
                return modifier
        return Modifier.PUB

    def owning_module(self) -> Optional[Module]:
        return None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class Module(Symbol):
    def __init__(self, name: str, parent: Optional[Module] = None, *, stdlib: bool = False) -> None:
        super().__init__(name, [], stdlib=stdlib)
        self.parent = parent
        self.children: dict[str, Module] = {}
        self.functions: dict[str, list[FunctionDefinition]] = {}
        self.variables: dict[str, Variable] = {}
        self.classes: dict[str, MiClass] = {}
        self.enums: dict[str, MiEnum] = {}

    def is_root(self) -> bool:
        return self.parent == None

    def full_name(self) -> str:
        if self.parent == None:
            return "<root>"
        if self.parent.is_root():
            return self.name
        return f"{self.parent.full_name()}.{self.name}"

    def owning_module(self) -> Optional[Module]:
        return self

    def chain(self) -> Iterator[Module]:
        """
        This module followed by its ancestors up to the root.
        """
        module = self
        while module != None:
            yield module
            module = module.parent

    def is_within(self, other: Module) -> bool:
        return any(m is other for m in self.chain())

    def child(self, name: str, *, stdlib: bool = False) -> Module:
        # modules can be reopened, `module std { ... }` twice extends the same module
        existing = self.children.get(name, None)
        if existing != None:
            return existing
        result = Module(name, self, stdlib=stdlib)
        self.children[name] = result
        return result

    def find_module(self, path: list[str]) -> Optional[Module]:
        module = self
        for part in path:
            module = module.children.get(part, None)
            if module == None:
                return None
        return module

    def find_type(self, name: str) -> Optional[MiEnum | MiClass]:
        if name in self.enums:
            return self.enums[name]
        return self.classes.get(name, None)

    def add_function(self, definition: FunctionDefinition) -> bool:
        return add_overload(self.functions, definition)


def add_overload(functions: dict[str, list[FunctionDefinition]], definition: FunctionDefinition) -> bool:
    overloads = functions.setdefault(definition.name, [])
    for existing in overloads:
        if existing.same_parameters(definition):
            return False
    overloads.append(definition)
    return True


class FunctionParameter:
    def __init__(self, datatype: Datatype, name: str, modifiers: list[Modifier], *, token: Optional[MiToken] = None) -> None:
        self.datatype = datatype
        self.name = name
        self.modifiers = modifiers
        self.token = token

    def __repr__(self) -> str:
        return f"<FunctionParameter {self.datatype} {self.name}>"


class FunctionDefinition(Symbol):
    """
    Either has a body, is bound to a native host method, or is still a forward
    declaration recorded while skimming.
    """
    def __init__(self, name: str, return_type: Datatype, parameters: list[FunctionParameter], modifiers: list[Modifier], module: Module, *, owner_class: Optional[MiClass] = None, token: Optional[MiToken] = None, stdlib: bool = False) -> None:
        super().__init__(name, modifiers, token=token, stdlib=stdlib)
        self.return_type = return_type
        self.parameters = parameters
        self.module = module
        self.owner_class = owner_class
        self.body: Optional[Node] = None
        self.native: Any = None
        self.host_class: Optional[str] = None

    def is_native(self) -> bool:
        return self.native != None

    def parameter_types(self) -> list[Datatype]:
        return [p.datatype for p in self.parameters]

    def same_parameters(self, other: FunctionDefinition) -> bool:
        return self.parameter_types() == other.parameter_types()

    def owning_module(self) -> Optional[Module]:
        return self.module

    def signature(self) -> str:
        return f"{self.name}{format_types(self.parameter_types())} -> {self.return_type}"


class Variable(Symbol):
    def __init__(self, name: str, datatype: Datatype, modifiers: list[Modifier], module: Optional[Module] = None, *, initialized: bool = False, value: Optional[Node] = None, token: Optional[MiToken] = None, stdlib: bool = False) -> None:
        super().__init__(name, modifiers, token=token, stdlib=stdlib)
        self.datatype = datatype
        # None for locals
        self.module = module
        self.initialized = initialized
        self.value = value

    def is_mutable(self) -> bool:
        return Modifier.MUT in self.modifiers

    def is_global(self) -> bool:
        return self.module != None

    def owning_module(self) -> Optional[Module]:
        return self.module


class LocalVariable(Variable):
    def __init__(self, name: str, datatype: Datatype, modifiers: list[Modifier], function_scope: Any, *, initialized: bool = False, value: Optional[Node] = None, token: Optional[MiToken] = None) -> None:
        super().__init__(name, datatype, modifiers, None, initialized=initialized, value=value, token=token)
        self.function_scope = function_scope


class MiEnum(Symbol):
    def __init__(self, name: str, members: list[str], module: Module, modifiers: list[Modifier], *, token: Optional[MiToken] = None, stdlib: bool = False) -> None:
        super().__init__(name, modifiers, token=token, stdlib=stdlib)
        self.members = members
        self.module = module

    def owning_module(self) -> Optional[Module]:
        return self.module


class MiClass(Symbol):
    def __init__(self, name: str, module: Module, modifiers: list[Modifier], *, token: Optional[MiToken] = None, stdlib: bool = False) -> None:
        super().__init__(name, modifiers, token=token, stdlib=stdlib)
        self.module = module
        self.variables: dict[str, Variable] = {}
        self.functions: dict[str, list[FunctionDefinition]] = {}
        self.constructor: Optional[FunctionDefinition] = None

    def owning_module(self) -> Optional[Module]:
        return self.module

    def add_function(self, definition: FunctionDefinition) -> bool:
        return add_overload(self.functions, definition)
