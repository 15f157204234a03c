from __future__ import annotations

import logging

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Optional

from milang.datatypes import Datatype, EqualOperation, Modifier, assignable, find_conflicting_modifier
from milang.mi_ast import Node, NodeKind
from milang.native import NativeBindingError
from milang.scope import BlockScope, ClassScope, EnumScope, FunctionScope, LoopScope, ModuleScope, Scope, ScopeKind
from milang.symbols import FunctionDefinition, FunctionParameter, LocalVariable, MiClass, MiEnum, Variable, format_types
from milang.tokenizer import MiToken, MiTokenKind
from milang.valueparser import ValueParser, find_closing_paren, split_arguments

if TYPE_CHECKING:
    from milang.parser import MiParser


logger = logging.getLogger(__name__)


# modifiers that make no sense on something that can't be reassigned
CONSTANT_ENTITY_MODIFIERS = frozenset([Modifier.OWN, Modifier.CONST, Modifier.MUT])


@dataclass
class Modifiers:
    values: list[Modifier] = field(default_factory=list)
    tokens: list[MiToken] = field(default_factory=list)

    def __contains__(self, modifier: Modifier) -> bool:
        return modifier in self.values

    def __len__(self) -> int:
        return len(self.values)

    def node(self) -> Node:
        return Node(NodeKind.MODIFIERS, children=[Node(NodeKind.MODIFIER, t) for t in self.tokens])


@dataclass
class FunctionHeader:
    name: MiToken
    return_type: Datatype
    return_token: MiToken
    parameters: list[FunctionParameter]
    parameters_node: Node
    # index of the first token after the parameter list
    end: int


class StatementEvaluator:
    """
    Analyses one statement at a time. Simple statements return their node,
    block statements emit their node and push the scope of their block.
    """
    def __init__(self, parser: MiParser) -> None:
        self.parser = parser
        # index of the first token of the current statement, keys the skim definitions
        self.index = -1

    @property
    def scopes(self):
        return self.parser.scopes

    @property
    def resolver(self):
        return self.parser.resolver

    def error(self, message: str, token: Optional[MiToken] = None, *hints: str):
        self.parser.error(message, token, *hints)

    def evaluate(self, tokens: list[MiToken], terminator: MiToken, index: int):
        self.index = index
        modifiers = self.collect_modifiers(tokens)
        if modifiers == None:
            return
        rest = tokens[len(modifiers.tokens):]
        if len(rest) == 0:
            self.error("Expected statement after modifiers", tokens[-1])
            return

        production = self.dispatch(rest)
        if production == None:
            self.error(f"Unexpected token '{rest[0].literal}'", rest[0])
            return
        node = production(rest, terminator, modifiers)
        if node != None:
            self.parser.emit(node)

    def dispatch(self, tokens: list[MiToken]) -> Optional[Callable[[list[MiToken], MiToken, Modifiers], Optional[Node]]]:
        first = tokens[0]
        second = tokens[1] if len(tokens) > 1 else None
        match first.kind:
            case MiTokenKind.MODULE:
                return self.module_definition
            case MiTokenKind.CLASS:
                return self.class_definition
            case MiTokenKind.ENUM:
                return self.enum_definition
            case MiTokenKind.FN:
                return self.function_definition
            case MiTokenKind.NEW:
                return self.constructor_definition
            case MiTokenKind.IF | MiTokenKind.WHILE:
                return self.conditional
            case MiTokenKind.ELSE:
                return self.else_statement
            case MiTokenKind.DO:
                return self.do_statement
            case MiTokenKind.FOR:
                return self.for_statement
            case MiTokenKind.RET:
                return self.return_statement
            case MiTokenKind.BREAK | MiTokenKind.CONTINUE:
                return self.loop_jump
            case MiTokenKind.USE:
                return self.use_statement
            case MiTokenKind.STDLIB_FINISH:
                return self.standard_library_finish
            case MiTokenKind.QUESTION:
                return self.variable_definition
            case kind if kind.is_datatype():
                return self.variable_definition
            case MiTokenKind.IDENTIFIER:
                if second == None or second.kind == MiTokenKind.COMMA:
                    return self.enum_members
                if second.kind == MiTokenKind.OPEN_PAREN:
                    return self.call_statement
                if second.kind == MiTokenKind.IDENTIFIER:
                    return self.variable_definition
                if EqualOperation.of(second) != None:
                    return self.variable_set
        return None

    # helpers

    def collect_modifiers(self, tokens: list[MiToken]) -> Optional[Modifiers]:
        result = Modifiers()
        for token in tokens:
            if not token.kind.is_modifier():
                break
            modifier = Modifier.of(token)
            conflict = find_conflicting_modifier(result.values, modifier)
            if conflict == modifier:
                self.error(f"Duplicate modifier '{modifier.value}'", token, "Delete the duplicate modifier")
                return None
            if conflict != None:
                self.error(f"Conflicting modifiers '{conflict.value}' and '{modifier.value}'", token)
                return None
            result.values.append(modifier)
            result.tokens.append(token)
        return result

    def unexpected_modifiers(self, modifiers: Modifiers) -> bool:
        if len(modifiers) > 0:
            self.error(f"Unexpected token '{modifiers.tokens[0].literal}'", modifiers.tokens[0], "Modifiers are not allowed on this statement")
            return True
        return False

    def expect_name(self, token: Optional[MiToken], after: MiToken) -> bool:
        if token == None:
            self.error(f"Expected identifier after '{after.literal}'", after)
            return False
        if token.kind.is_keyword():
            self.error(f"Cannot use restricted name '{token.literal}'", token, f"'{token.literal}' is a reserved keyword")
            return False
        if token.kind != MiTokenKind.IDENTIFIER:
            self.error(f"Expected identifier, got '{token.literal}'", token)
            return False
        if "." in token.literal:
            self.error(f"Cannot use restricted name '{token.literal}'", token,
                       "'.' characters are only allowed when referring to members of other modules")
            return False
        return True

    def expect_end(self, tokens: list[MiToken], end: int) -> bool:
        if end < len(tokens):
            self.error(f"Unexpected token '{tokens[end].literal}'", tokens[end])
            return False
        return True

    def expect_block(self, terminator: MiToken, what: str) -> bool:
        if terminator.kind != MiTokenKind.OPEN_CURLY:
            self.error(f"Expected '{{' after {what}", terminator)
            return False
        return True

    def expect_semi(self, terminator: MiToken, what: str) -> bool:
        if terminator.kind != MiTokenKind.SEMI:
            self.error(f"Expected ';' after {what}", terminator)
            return False
        return True

    def expect_function(self, token: MiToken) -> Optional[FunctionScope]:
        function = self.scopes.function()
        if function == None:
            self.error("Expected statement to be inside of a function", token, "Enclose your statement inside of a function")
        return function

    def reject_modifiers(self, modifiers: Modifiers, rejected: frozenset[Modifier], what: str) -> bool:
        for modifier, token in zip(modifiers.values, modifiers.tokens):
            if modifier in rejected:
                self.error(f"Cannot declare {what} as own, const or mut, they are automatically constant because they cannot be redefined", token)
                return True
            if modifier in (Modifier.NAT, Modifier.NULLABLE):
                self.error(f"Cannot use modifier '{modifier.value}' on {what}", token)
                return True
        return False

    def skimmed(self, token: MiToken):
        definition = self.parser.definitions.get(self.index, None)
        if definition == None and not self.parser.encountered_error:
            # a failed definition was already reported while skimming
            self.error("Unexpected parsing error, definition was not registered while skimming", token)
        return definition

    def open_block(self, node: Node, scope: Scope):
        self.parser.emit(node)
        self.parser.push_scope(scope, node)

    def parse_value(self, tokens: list[MiToken]) -> Optional[Node]:
        result = ValueParser(tokens, self.parser).parse()
        if result == None:
            return None
        if result.datatype.is_void():
            self.error("Expected a value, but got void", tokens[0], "Functions without a return type cannot be used as values")
            return None
        return result.node

    def parse_condition(self, keyword: MiToken, tokens: list[MiToken]) -> Optional[Node]:
        if len(tokens) == 0:
            self.error(f"Expected condition after '{keyword.literal}'", keyword)
            return None
        value = self.parse_value(tokens)
        if value == None:
            return None
        if value.datatype != Datatype.BOOL:
            self.error(f"Expected boolean condition after '{keyword.literal}', but got {value.datatype} instead", tokens[0],
                       "Cast condition to 'bool' or change the expression to be a bool on its own")
            return None
        return Node(NodeKind.CONDITION, line=keyword.actual_line, children=[value])

    # declarations

    def module_definition(self, tokens: list[MiToken], terminator: MiToken, modifiers: Modifiers) -> Optional[Node]:
        if self.unexpected_modifiers(modifiers):
            return None
        name = tokens[1] if len(tokens) > 1 else None
        if not self.expect_name(name, tokens[0]) or not self.expect_end(tokens, 2):
            return None
        if not self.expect_block(terminator, "module name"):
            return None
        scope = self.scopes.current()
        if scope.kind not in (ScopeKind.PARENT, ScopeKind.MODULE):
            self.error("Expected module definition to be at root level or inside of another module", tokens[0])
            return None

        module = scope.module.child(name.literal, stdlib=self.parser.in_stdlib)
        body = Node(NodeKind.SCOPE, terminator)
        node = Node(NodeKind.CREATE_MODULE, name, ref=module, children=[
            Node(NodeKind.IDENTIFIER, name, ref=module),
            body,
        ])
        self.open_block(node, ModuleScope(ScopeKind.MODULE, body, module))
        return None

    def entity_module(self, token: MiToken, what: str, plural: str):
        scope = self.scopes.current()
        if scope.kind == ScopeKind.MODULE or (scope.kind == ScopeKind.PARENT and self.parser.in_stdlib):
            return scope.module
        if scope.kind == ScopeKind.PARENT:
            self.error(f"Cannot define {plural} at root level", token, f"Move your {what} into a module or create a new module for it")
        else:
            self.error(f"Expected {what} definition to be inside of a module", token)
        return None

    def class_definition(self, tokens: list[MiToken], terminator: MiToken, modifiers: Modifiers) -> Optional[Node]:
        if self.reject_modifiers(modifiers, CONSTANT_ENTITY_MODIFIERS, "classes"):
            return None
        name = tokens[1] if len(tokens) > 1 else None
        if not self.expect_name(name, tokens[0]) or not self.expect_end(tokens, 2):
            return None
        if not self.expect_block(terminator, "class name"):
            return None
        module = self.entity_module(name, "class", "classes")
        if module == None:
            return None

        if self.parser.skimming:
            if module.find_type(name.literal) != None:
                self.error(f"Redefinition of datatype '{name.literal}'", name)
                return None
            entity = MiClass(name.literal, module, modifiers.values, token=name, stdlib=self.parser.in_stdlib)
            self.parser.definitions[self.index] = entity
            module.classes[name.literal] = entity
        else:
            entity = self.skimmed(name)
            if entity == None:
                return None

        body = Node(NodeKind.SCOPE, terminator)
        node = Node(NodeKind.CREATE_CLASS, name, ref=entity, children=[
            modifiers.node(),
            Node(NodeKind.IDENTIFIER, name, ref=entity),
            body,
        ])
        self.open_block(node, ClassScope(body, entity))
        return None

    def enum_definition(self, tokens: list[MiToken], terminator: MiToken, modifiers: Modifiers) -> Optional[Node]:
        if self.reject_modifiers(modifiers, CONSTANT_ENTITY_MODIFIERS, "enums"):
            return None
        name = tokens[1] if len(tokens) > 1 else None
        if not self.expect_name(name, tokens[0]) or not self.expect_end(tokens, 2):
            return None
        if not self.expect_block(terminator, "enum name"):
            return None
        module = self.entity_module(name, "enum", "enums")
        if module == None:
            return None

        if self.parser.skimming:
            if module.find_type(name.literal) != None:
                self.error(f"Redefinition of datatype '{name.literal}'", name)
                return None
            entity = MiEnum(name.literal, [], module, modifiers.values, token=name, stdlib=self.parser.in_stdlib)
            self.parser.definitions[self.index] = entity
            module.enums[name.literal] = entity
            known = False
        else:
            entity = self.skimmed(name)
            if entity == None:
                return None
            known = True

        body = Node(NodeKind.SCOPE, terminator)
        node = Node(NodeKind.CREATE_ENUM, name, ref=entity, children=[
            modifiers.node(),
            Node(NodeKind.IDENTIFIER, name, ref=entity),
            body,
        ])
        self.open_block(node, EnumScope(body, entity, known=known))
        return None

    def enum_members(self, tokens: list[MiToken], terminator: MiToken, modifiers: Modifiers) -> Optional[Node]:
        if self.unexpected_modifiers(modifiers) or not self.expect_semi(terminator, "enum members"):
            return None
        scope = self.scopes.current()
        if not isinstance(scope, EnumScope):
            self.error("Expected statement to be inside of an enum", tokens[0], "Enclose your statement inside of an enum")
            return None
        if scope.members_given:
            self.error("Redefinition of enum members", tokens[0], "Delete redefinition")
            return None
        scope.members_given = True

        names: list[str] = []
        node = Node(NodeKind.ENUM_VALUES, tokens[0])
        expect_identifier = True
        for token in tokens:
            if expect_identifier:
                if token.kind == MiTokenKind.COMMA:
                    self.error("Unexpected token ','", token)
                    return None
                if not self.expect_name(token, token):
                    return None
                if token.literal in names:
                    self.error(f"Redefinition of identifier '{token.literal}'", token)
                    return None
                names.append(token.literal)
                node.add(Node(NodeKind.IDENTIFIER, token, ref=scope.entity))
                expect_identifier = False
            elif token.kind != MiTokenKind.COMMA:
                self.error("Expected ','", token)
                return None
            else:
                expect_identifier = True
        if expect_identifier:
            self.error("Expected identifier after ','", tokens[-1])
            return None
        if not scope.known:
            scope.entity.members.extend(names)
        return node

    def function_parameters(self, tokens: list[MiToken], at: MiToken) -> Optional[tuple[list[FunctionParameter], Node]]:
        parameters: list[FunctionParameter] = []
        node = Node(NodeKind.PARAMETERS, line=at.actual_line)
        for part in split_arguments(tokens):
            if len(part) == 0:
                self.error("Expected function parameter between commas", at)
                return None
            modifiers = self.collect_modifiers(part)
            if modifiers == None:
                return None
            for modifier, token in zip(modifiers.values, modifiers.tokens):
                if modifier.is_visibility():
                    self.error(f"Unexpected token '{token.literal}', cannot use visibility modifiers (pub, priv, own) for function parameters", token)
                    return None
                if modifier == Modifier.NAT:
                    self.error("Unexpected token 'nat', function parameters cannot be native", token)
                    return None
            k = len(modifiers.tokens)
            if k >= len(part):
                self.error(f"Unexpected token '{part[-1].literal}' while parsing function parameters, expected datatype before identifier", part[-1])
                return None
            type_token = part[k]
            datatype = self.resolver.find_datatype(type_token, Modifier.NULLABLE in modifiers)
            if datatype == None:
                return None
            if datatype.is_void():
                self.error("Function parameters cannot be of type 'void'", type_token)
                return None
            name = part[k + 1] if k + 1 < len(part) else None
            if not self.expect_name(name, type_token):
                return None
            if k + 2 < len(part):
                self.error(f"Could not parse function argument, unexpected token '{part[k + 2].literal}'", part[k + 2])
                return None
            if any(p.name == name.literal for p in parameters):
                self.error(f"Redefinition of function argument '{name.literal}'", name)
                return None
            parameters.append(FunctionParameter(datatype, name.literal, modifiers.values, token=name))
            node.add(Node(NodeKind.PARAMETER, name, children=[
                Node(NodeKind.TYPE, type_token, datatype=datatype),
                Node(NodeKind.IDENTIFIER, name, datatype=datatype),
                modifiers.node(),
            ]))
        return parameters, node

    def function_header(self, tokens: list[MiToken], modifiers: Modifiers) -> Optional[FunctionHeader]:
        """
        `fn name~ (params)`, `fn name :: type (params)`, `fn name (params)` and `fn name`.
        """
        name = tokens[1] if len(tokens) > 1 else None
        if not self.expect_name(name, tokens[0]):
            return None
        i = 2
        return_type = Datatype.VOID
        return_token = MiToken.synthetic(MiTokenKind.VOID, at=name)
        if i < len(tokens) and tokens[i].kind == MiTokenKind.TILDE:
            i += 1
        elif i < len(tokens) and tokens[i].kind == MiTokenKind.DOUBLE_COLON:
            if i + 1 >= len(tokens):
                self.error("Expected return type after '::'", tokens[i])
                return None
            return_token = tokens[i + 1]
            return_type = self.resolver.find_datatype(return_token, Modifier.NULLABLE in modifiers)
            if return_type == None:
                return None
            i += 2
        if Modifier.NULLABLE in modifiers and return_type.is_void():
            self.error("Functions without a return type cannot be nullable", modifiers.tokens[modifiers.values.index(Modifier.NULLABLE)])
            return None

        parameters: list[FunctionParameter] = []
        parameters_node = Node(NodeKind.PARAMETERS, line=name.actual_line)
        if i < len(tokens) and tokens[i].kind == MiTokenKind.OPEN_PAREN:
            closing = find_closing_paren(tokens, i)
            if closing == -1:
                self.error("Expected ')' after function parameters", tokens[-1])
                return None
            parsed = self.function_parameters(tokens[i + 1:closing], tokens[i])
            if parsed == None:
                return None
            parameters, parameters_node = parsed
            i = closing + 1
        return FunctionHeader(name, return_type, return_token, parameters, parameters_node, i)

    def function_container(self, token: MiToken) -> Optional[tuple[object, Optional[MiClass]]]:
        scope = self.scopes.current()
        if isinstance(scope, ClassScope):
            return scope.entity, scope.entity
        if scope.kind == ScopeKind.MODULE or (scope.kind == ScopeKind.PARENT and self.parser.in_stdlib):
            return scope.module, None
        if scope.kind == ScopeKind.PARENT:
            self.error("Expected function definition to be inside of a module", token, "Move your function into a module or create a new module for it")
        else:
            self.error("Expected function definition to be inside of a module or class", token)
        return None

    def function_definition(self, tokens: list[MiToken], terminator: MiToken, modifiers: Modifiers) -> Optional[Node]:
        for modifier, token in zip(modifiers.values, modifiers.tokens):
            if modifier in CONSTANT_ENTITY_MODIFIERS:
                self.error("Cannot declare functions as own, const or mut, they are automatically constant because they cannot be redefined", token)
                return None
        header = self.function_header(tokens, modifiers)
        if header == None:
            return None

        native = Modifier.NAT in modifiers
        host_token = None
        if native:
            rest = tokens[header.end:]
            if len(rest) < 2 or rest[0].kind != MiTokenKind.ARROW or rest[1].kind != MiTokenKind.STRING_LITERAL:
                self.error("Expected '-> <constant-string-literal>' after ')' in native function definition", rest[0] if len(rest) > 0 else tokens[-1],
                           "Native functions name the host class they are bound to, e.g. -> \"milang.stdlib.MiStandardLib\"")
                return None
            if not self.expect_end(tokens, header.end + 2) or not self.expect_semi(terminator, "native function definition"):
                return None
            host_token = rest[1]
        else:
            if header.end < len(tokens) and tokens[header.end].kind == MiTokenKind.ARROW:
                self.error(f"Unexpected token '{tokens[header.end].literal}'", tokens[header.end], "Only native functions can name a host class, add the 'nat' modifier")
                return None
            if not self.expect_end(tokens, header.end) or not self.expect_block(terminator, "function definition"):
                return None

        container = self.function_container(header.name)
        if container == None:
            return None
        owner, owner_class = container

        if self.parser.skimming:
            definition = FunctionDefinition(header.name.literal, header.return_type, header.parameters, modifiers.values,
                                            self.scopes.module(), owner_class=owner_class, token=header.name, stdlib=self.parser.in_stdlib)
            if not owner.add_function(definition):
                self.error(f"Redefinition of function '{definition.name}' with parameter types {format_types(definition.parameter_types())}", header.name,
                           "Delete the redefinition or change its parameter types")
                return None
            self.parser.definitions[self.index] = definition
            if native and not self.bind_native(definition, host_token):
                return None
        else:
            definition = self.skimmed(header.name)
            if definition == None:
                return None

        node = Node(NodeKind.NATIVE_FUNCTION_DEFINITION if native else NodeKind.FUNCTION_DEFINITION, header.name, ref=definition, children=[
            Node(NodeKind.IDENTIFIER, header.name, ref=definition),
            Node(NodeKind.TYPE, header.return_token, datatype=header.return_type),
            modifiers.node(),
            header.parameters_node,
        ])
        if native:
            node.add(Node(NodeKind.NATIVE_FUNCTION_STR, host_token))
            return node
        if self.parser.skimming:
            # bodies are analysed in the second pass, the parser skips the block
            return None
        self.open_function(node, definition, terminator)
        return None

    def bind_native(self, definition: FunctionDefinition, host_token: MiToken) -> bool:
        host_class = host_token.literal[1:-1]
        try:
            handle = self.parser.native_binder.bind(host_class, definition.name, definition.parameter_types(), definition.return_type)
        except NativeBindingError as e:
            self.error(e.message, definition.token, *e.hints)
            return False
        definition.native = handle
        definition.host_class = host_class
        return True

    def open_function(self, node: Node, definition: FunctionDefinition, terminator: MiToken):
        body = Node(NodeKind.SCOPE, terminator)
        node.add(body)
        definition.body = body
        scope = FunctionScope(body, definition)
        self.open_block(node, scope)
        for parameter in definition.parameters:
            scope.locals[parameter.name] = LocalVariable(parameter.name, parameter.datatype, parameter.modifiers, scope,
                                                         initialized=True, token=parameter.token)

    def constructor_definition(self, tokens: list[MiToken], terminator: MiToken, modifiers: Modifiers) -> Optional[Node]:
        scope = self.scopes.current()
        if not isinstance(scope, ClassScope):
            self.error("Expected constructor to be inside of a class", tokens[0])
            return None
        for modifier, token in zip(modifiers.values, modifiers.tokens):
            if modifier in CONSTANT_ENTITY_MODIFIERS or modifier in (Modifier.NAT, Modifier.NULLABLE):
                self.error(f"Cannot use modifier '{modifier.value}' on constructors", token)
                return None
        if not self.expect_block(terminator, "constructor definition"):
            return None

        parameters: list[FunctionParameter] = []
        parameters_node = Node(NodeKind.PARAMETERS, line=tokens[0].actual_line)
        end = 1
        if len(tokens) > 1 and tokens[1].kind == MiTokenKind.OPEN_PAREN:
            closing = find_closing_paren(tokens, 1)
            if closing == -1:
                self.error("Expected ')' after constructor parameters", tokens[-1])
                return None
            parsed = self.function_parameters(tokens[2:closing], tokens[1])
            if parsed == None:
                return None
            parameters, parameters_node = parsed
            end = closing + 1
        if not self.expect_end(tokens, end):
            return None

        entity = scope.entity
        if scope.constructor_given:
            self.error(f"Redefinition of constructor in class '{entity.name}'", tokens[0], "A class can only have one constructor")
            return None
        scope.constructor_given = True

        if self.parser.skimming:
            definition = FunctionDefinition("new", Datatype.VOID, parameters, modifiers.values, self.scopes.module(),
                                            owner_class=entity, token=tokens[0], stdlib=self.parser.in_stdlib)
            entity.constructor = definition
            self.parser.definitions[self.index] = definition
            return None
        definition = self.skimmed(tokens[0])
        if definition == None:
            return None
        node = Node(NodeKind.CREATE_CONSTRUCTOR, tokens[0], ref=definition, children=[
            modifiers.node(),
            parameters_node,
        ])
        self.open_function(node, definition, terminator)
        return None

    def variable_definition(self, tokens: list[MiToken], terminator: MiToken, modifiers: Modifiers) -> Optional[Node]:
        if not self.expect_semi(terminator, "variable definition"):
            return None
        if Modifier.NAT in modifiers:
            self.error("Variables cannot be native", modifiers.tokens[modifiers.values.index(Modifier.NAT)], "Only functions can be bound to host methods")
            return None
        type_token = tokens[0]
        name = tokens[1] if len(tokens) > 1 else None
        if not self.expect_name(name, type_token):
            return None

        value = None
        if len(tokens) > 2:
            if tokens[2].kind != MiTokenKind.EQ:
                self.error(f"Unexpected token '{tokens[2].literal}', expected '=' or ';'", tokens[2])
                return None
            if len(tokens) == 3:
                self.error("Expected value after '='", tokens[2])
                return None
            value = self.parse_value(tokens[3:])
            if value == None:
                return None

        nullable = Modifier.NULLABLE in modifiers
        if type_token.kind == MiTokenKind.QUESTION:
            if value == None:
                self.error("Unexpected token '?', expected a definite datatype", type_token,
                           "Either give the variable a value or write its datatype instead of '?'")
                return None
            if value.datatype.is_null():
                self.error("Unexpected token '?', expected a definite datatype", type_token,
                           "The datatype of 'null' cannot be inferred, write the datatype of the variable instead of '?'")
                return None
            datatype = value.datatype.with_nullable(nullable or value.datatype.nullable)
        else:
            datatype = self.resolver.find_datatype(type_token, nullable)
            if datatype == None:
                return None
            if datatype.is_void():
                self.error("Variables cannot be of type 'void'", type_token)
                return None
            if value != None and not assignable(datatype, value.datatype):
                self.error(f"Datatypes are not equal on both sides, trying to assign {value.datatype} to a {datatype} variable.", type_token,
                           "Cast the value or change the datatype of the variable")
                return None

        variable = self.register_variable(name, datatype, modifiers, value)
        if variable == None:
            return None
        children = [
            modifiers.node(),
            Node(NodeKind.IDENTIFIER, name, datatype=datatype, ref=variable),
            Node(NodeKind.TYPE, datatype.type_token(type_token) if type_token.kind == MiTokenKind.QUESTION else type_token, datatype=datatype),
        ]
        if value != None:
            children.append(Node(NodeKind.VALUE, line=value.line, children=[value]))
            return Node(NodeKind.VAR_DEF_AND_SET_VALUE, name, ref=variable, children=children)
        return Node(NodeKind.VAR_DEFINITION, name, ref=variable, children=children)

    def register_variable(self, name: MiToken, datatype: Datatype, modifiers: Modifiers, value: Optional[Node]) -> Optional[Variable]:
        function = self.scopes.function()
        if function != None:
            for modifier, token in zip(modifiers.values, modifiers.tokens):
                if modifier.is_visibility():
                    self.error(f"Unexpected token '{token.literal}', cannot use visibility modifiers (pub, priv, own) for local variables", token)
                    return None
            if self.scopes.find_local(name.literal) != None:
                self.error(f"Redefinition of variable '{name.literal}'", name)
                return None
            variable = LocalVariable(name.literal, datatype, modifiers.values, function, initialized=value != None, value=value, token=name)
            self.scopes.current().locals[name.literal] = variable
            return variable

        scope = self.scopes.current()
        if isinstance(scope, ClassScope):
            container = scope.entity
        elif scope.kind == ScopeKind.MODULE or (scope.kind == ScopeKind.PARENT and self.parser.in_stdlib):
            container = scope.module
        elif scope.kind == ScopeKind.PARENT:
            self.error("Cannot define global variables at root level", name, "Move your variable into a module or create a new module for it")
            return None
        else:
            self.error("Expected variable definition to be inside of a module, a class or a function", name)
            return None

        if not self.parser.skimming:
            return self.skimmed(name)
        if name.literal in container.variables:
            self.error(f"Redefinition of global variable '{name.literal}'", name)
            return None
        variable = Variable(name.literal, datatype, modifiers.values, self.scopes.module(), initialized=value != None, value=value,
                            token=name, stdlib=self.parser.in_stdlib)
        container.variables[name.literal] = variable
        self.parser.definitions[self.index] = variable
        return variable

    # statements inside functions

    def variable_set(self, tokens: list[MiToken], terminator: MiToken, modifiers: Modifiers) -> Optional[Node]:
        if self.unexpected_modifiers(modifiers) or not self.expect_semi(terminator, "assignment"):
            return None
        if self.expect_function(tokens[0]) == None:
            return None
        name, op_token = tokens[0], tokens[1]
        operation = EqualOperation.of(op_token)
        variable = self.resolver.find_variable(name)
        if variable == None:
            return None

        if operation in (EqualOperation.INCREMENT, EqualOperation.DECREMENT):
            if not self.expect_end(tokens, 2):
                return None
            if not variable.datatype.is_numeric():
                self.error(f"Undefined operator '{op_token.literal}' for datatype '{variable.datatype}'", op_token)
                return None
            if not self.check_mutation(variable, name):
                return None
            operator = MiToken.synthetic(MiTokenKind.PLUS_EQ if operation == EqualOperation.INCREMENT else MiTokenKind.MINUS_EQ, at=op_token)
            value = Node(NodeKind.INTEGER_NUM_LITERAL, MiToken.synthetic(MiTokenKind.INTEGER, "1", at=op_token), datatype=Datatype.INT)
        else:
            if len(tokens) == 2:
                self.error(f"Expected value after '{op_token.literal}'", op_token)
                return None
            value = self.parse_value(tokens[2:])
            if value == None:
                return None
            operator = op_token
            if operation == EqualOperation.EQUAL:
                if not variable.is_mutable() and variable.initialized:
                    self.error(f"Cannot reassign constant variable '{name.literal}'", name, f"Add the 'mut' modifier to the definition of '{name.literal}'")
                    return None
                # nullability isn't rechecked on reassignment
                if not assignable(variable.datatype, value.datatype, check_null=False):
                    self.error(f"Datatypes are not equal on both sides, trying to assign {value.datatype} to a {variable.datatype} variable.", op_token,
                               "Cast the value or change the datatype of the variable")
                    return None
                variable.initialized = True
            else:
                if not self.check_mutation(variable, name):
                    return None
                result = variable.datatype.operator_result(operation.binary_operator(), value.datatype)
                if result == None or not assignable(variable.datatype, result, check_null=False):
                    self.error(f"Undefined operator '{op_token.literal}' for datatype '{variable.datatype}'", op_token)
                    return None

        return Node(NodeKind.VAR_SET_VALUE, name, ref=variable, children=[
            Node(NodeKind.IDENTIFIER, name, datatype=variable.datatype, ref=variable),
            Node(NodeKind.OPERATOR, operator),
            Node(NodeKind.VALUE, line=name.actual_line, children=[value]),
        ])

    def check_mutation(self, variable: Variable, name: MiToken) -> bool:
        if not variable.initialized:
            self.error(f"Variable '{name.literal}' might not have been initialized", name, f"Assign a value to '{name.literal}' before changing it")
            return False
        if not variable.is_mutable():
            self.error(f"Cannot reassign constant variable '{name.literal}'", name, f"Add the 'mut' modifier to the definition of '{name.literal}'")
            return False
        return True

    def call_statement(self, tokens: list[MiToken], terminator: MiToken, modifiers: Modifiers) -> Optional[Node]:
        if self.unexpected_modifiers(modifiers) or not self.expect_semi(terminator, "function call"):
            return None
        if self.expect_function(tokens[0]) == None:
            return None
        result = ValueParser(tokens, self.parser).parse()
        if result == None:
            return None
        if result.node.kind != NodeKind.FUNCTION_CALL:
            self.error("Expected function call or assignment", tokens[0], "Expressions cannot be used as statements on their own")
            return None
        return result.node

    def return_statement(self, tokens: list[MiToken], terminator: MiToken, modifiers: Modifiers) -> Optional[Node]:
        if self.unexpected_modifiers(modifiers) or not self.expect_semi(terminator, "return statement"):
            return None
        function = self.expect_function(tokens[0])
        if function == None:
            return None
        expected = function.return_type
        # a failed ret still ends the block
        self.scopes.current().reached_end = True

        node = Node(NodeKind.RETURN_VALUE, tokens[0])
        if len(tokens) == 1:
            if not expected.is_void():
                self.error(f"Expected datatype of return value to be {expected}, but got void instead", tokens[0])
                return None
        else:
            value = self.parse_value(tokens[1:])
            if value == None:
                return None
            if expected.is_void() or not assignable(expected, value.datatype):
                self.error(f"Expected datatype of return value to be {expected}, but got {value.datatype} instead", tokens[1])
                return None
            if value.datatype != expected:
                value = Node(NodeKind.CAST_VALUE, expected.type_token(tokens[0]), datatype=expected, children=[value])
            node.add(value)
        return node

    def loop_jump(self, tokens: list[MiToken], terminator: MiToken, modifiers: Modifiers) -> Optional[Node]:
        if self.unexpected_modifiers(modifiers) or not self.expect_semi(terminator, f"'{tokens[0].literal}'"):
            return None
        if self.expect_function(tokens[0]) == None or not self.expect_end(tokens, 1):
            return None
        loop = self.scopes.loop()
        if loop == None:
            self.error("Expected statement to be inside of a loop (while, do or for)", tokens[0], "Delete unavailable statement")
            return None
        self.scopes.current().jumped = True
        if tokens[0].kind == MiTokenKind.BREAK:
            loop.saw_break = True
        kind = NodeKind.BREAK_STATEMENT if tokens[0].kind == MiTokenKind.BREAK else NodeKind.CONTINUE_STATEMENT
        return Node(kind, tokens[0])

    def use_statement(self, tokens: list[MiToken], terminator: MiToken, modifiers: Modifiers) -> Optional[Node]:
        if self.unexpected_modifiers(modifiers) or not self.expect_semi(terminator, "use statement"):
            return None
        function = self.expect_function(tokens[0])
        if function == None:
            return None
        if len(tokens) < 2 or tokens[1].kind != MiTokenKind.IDENTIFIER:
            self.error("Expected module name after 'use'", tokens[0])
            return None
        if not self.expect_end(tokens, 2):
            return None
        module = self.resolver.find_module(tokens[1].literal)
        if module == None:
            self.error(f"Cannot find module '{tokens[1].literal}'", tokens[1])
            return None
        if not any(m is module for m in function.using):
            function.using.append(module)
        return Node(NodeKind.USE_STATEMENT, tokens[0], children=[Node(NodeKind.IDENTIFIER, tokens[1], ref=module)])

    def standard_library_finish(self, tokens: list[MiToken], terminator: MiToken, modifiers: Modifiers) -> Optional[Node]:
        if self.unexpected_modifiers(modifiers) or not self.expect_semi(terminator, tokens[0].literal):
            return None
        if self.scopes.current().kind != ScopeKind.PARENT or not self.parser.in_stdlib:
            self.error(f"Unexpected token '{tokens[0].literal}'", tokens[0])
            return None
        self.parser.in_stdlib = False
        logger.debug("standard library finished")
        return Node(NodeKind.STANDARDLIB_MI_FINISH_CODE, tokens[0])

    # control flow

    def conditional(self, tokens: list[MiToken], terminator: MiToken, modifiers: Modifiers) -> Optional[Node]:
        if self.unexpected_modifiers(modifiers) or self.expect_function(tokens[0]) == None:
            return None
        keyword = tokens[0]
        condition = self.parse_condition(keyword, tokens[1:])
        if condition == None:
            return None
        if terminator.kind != MiTokenKind.OPEN_CURLY:
            hints = ["A while condition ending in ';' has to directly follow a do block"] if keyword.kind == MiTokenKind.WHILE else []
            self.error(f"Expected '{{' after {keyword.literal} condition", terminator, *hints)
            return None
        body = Node(NodeKind.SCOPE, terminator)
        if keyword.kind == MiTokenKind.IF:
            node = Node(NodeKind.IF_STATEMENT, keyword, children=[condition, body])
            self.open_block(node, BlockScope(ScopeKind.IF, body))
        else:
            node = Node(NodeKind.WHILE_STATEMENT, keyword, children=[condition, body])
            self.open_block(node, LoopScope(ScopeKind.WHILE, body))
        return None

    def else_statement(self, tokens: list[MiToken], terminator: MiToken, modifiers: Modifiers) -> Optional[Node]:
        if self.unexpected_modifiers(modifiers) or self.expect_function(tokens[0]) == None:
            return None
        if len(tokens) > 1:
            self.error(f"Unexpected token '{tokens[1].literal}' after 'else'", tokens[1],
                       "'else if' is not supported, put an if statement inside of the else block")
            return None
        if not self.expect_block(terminator, "'else'"):
            return None
        previous = self.parser.closed_before
        if previous == None or previous.kind != ScopeKind.IF:
            self.error("Expected 'if' block before 'else'", tokens[0])
            return None
        body = Node(NodeKind.SCOPE, terminator)
        node = Node(NodeKind.ELSE_STATEMENT, tokens[0], children=[body])
        self.open_block(node, BlockScope(ScopeKind.ELSE, body, if_scope=previous))
        return None

    def do_statement(self, tokens: list[MiToken], terminator: MiToken, modifiers: Modifiers) -> Optional[Node]:
        if self.unexpected_modifiers(modifiers) or self.expect_function(tokens[0]) == None:
            return None
        if not self.expect_end(tokens, 1) or not self.expect_block(terminator, "'do'"):
            return None
        body = Node(NodeKind.SCOPE, terminator)
        node = Node(NodeKind.DO_STATEMENT, tokens[0], children=[body])
        self.open_block(node, LoopScope(ScopeKind.DO, body))
        return None

    def do_while_condition(self, do_node: Node, tokens: list[MiToken]):
        condition = self.parse_condition(tokens[0], tokens[1:])
        if condition != None:
            do_node.add(condition)

    def for_statement(self, tokens: list[MiToken], terminator: MiToken, modifiers: Modifiers) -> Optional[Node]:
        if self.unexpected_modifiers(modifiers) or self.expect_function(tokens[0]) == None:
            return None
        if not self.expect_block(terminator, "for statement"):
            return None
        inner = tokens[1:]
        if len(inner) > 0 and inner[0].kind == MiTokenKind.OPEN_PAREN and find_closing_paren(inner, 0) == len(inner) - 1:
            inner = inner[1:-1]
        parts = split_arguments(inner)
        if len(parts) == 0:
            self.error("Expected expression after 'for' statement", tokens[0])
            return None
        if len(parts) not in (2, 3):
            self.error(f"Unexpected amount of expressions after 'for', got {len(parts)}", tokens[0],
                       "Expected 2 or 3 expressions, so remove any trailing ones, or add a second expression if you only have 1.")
            return None
        if any(len(p) == 0 for p in parts):
            self.error("Expected expression between commas in for statement", tokens[0])
            return None

        if len(parts) == 2:
            # for (init, i -> end) is for (init, i < (end), i++)
            transition = parts[1]
            if len(transition) < 3 or transition[0].kind != MiTokenKind.IDENTIFIER or transition[1].kind != MiTokenKind.ARROW:
                self.error("Expected '<identifier> -> <value>' as for loop transition", transition[0])
                return None
            arrow = transition[1]
            condition_tokens = [
                transition[0],
                MiToken.synthetic(MiTokenKind.LESS, at=arrow),
                MiToken.synthetic(MiTokenKind.OPEN_PAREN, at=arrow),
                *transition[2:],
                MiToken.synthetic(MiTokenKind.CLOSE_PAREN, at=transition[-1]),
            ]
            instruct_tokens = [transition[0], MiToken.synthetic(MiTokenKind.INCREMENT, at=arrow)]
        else:
            condition_tokens, instruct_tokens = parts[1], parts[2]

        fake_node = Node(NodeKind.FOR_FAKE_SCOPE, tokens[0])
        fake = BlockScope(ScopeKind.FAKE, fake_node)
        self.parser.push_scope(fake, fake_node)
        if not self.for_parts(tokens[0], fake_node, parts[0], condition_tokens, instruct_tokens, terminator):
            self.scopes.pop()
            return None
        return None

    def for_parts(self, keyword: MiToken, fake_node: Node, init: list[MiToken], condition_tokens: list[MiToken], instruct_tokens: list[MiToken], terminator: MiToken) -> bool:
        semi = MiToken.synthetic(MiTokenKind.SEMI, at=terminator)
        modifiers = self.collect_modifiers(init)
        if modifiers == None:
            return False
        rest = init[len(modifiers.tokens):]
        if len(rest) == 0 or self.dispatch(rest) != self.variable_definition:
            self.error("Expected variable definition", init[0])
            return False
        variable = self.variable_definition(rest, semi, modifiers)
        if variable == None:
            return False
        if variable.kind != NodeKind.VAR_DEF_AND_SET_VALUE:
            self.error("Expected variable definition with a value", init[0])
            return False
        fake_node.add(variable)

        condition = self.parse_condition(keyword, condition_tokens)
        if condition == None:
            return False
        fake_node.add(condition)

        production = self.dispatch(instruct_tokens)
        if production not in (self.variable_set, self.call_statement):
            self.error("Expected variable set or function call as for loop instruct", instruct_tokens[0])
            return False
        instruct = production(instruct_tokens, semi, Modifiers())
        if instruct == None:
            return False
        fake_node.add(Node(NodeKind.FOR_INSTRUCT, line=instruct.line, children=[instruct]))

        body = Node(NodeKind.SCOPE, terminator)
        fake_node.add(body)
        # the fake scope's own parent receives the loop
        self.scopes.current().parent.body.add(fake_node)
        self.parser.push_scope(LoopScope(ScopeKind.FOR, body), fake_node)
        return True
