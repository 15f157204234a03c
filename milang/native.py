from __future__ import annotations

import importlib
import inspect
import logging
import types
import typing

from dataclasses import dataclass
from typing import Any, Callable, Optional

from milang.datatypes import Datatype, PrimitiveDatatype


logger = logging.getLogger(__name__)


MI_CALLABLE_ATTR = "__mi_callable__"

PRIMITIVE_ONLY = "Only primitive datatypes (int, long, double, float, bool, string, char) may be used"

HOST_TYPES = {
    PrimitiveDatatype.INT: int,
    PrimitiveDatatype.LONG: int,
    PrimitiveDatatype.DOUBLE: float,
    PrimitiveDatatype.FLOAT: float,
    PrimitiveDatatype.BOOL: bool,
    PrimitiveDatatype.STRING: str,
    PrimitiveDatatype.CHAR: str,
    PrimitiveDatatype.VOID: type(None),
}


def mi_callable(func: Optional[Callable] = None, *, name: Optional[str] = None):
    """
    Marks a host function as bindable from Mi code. `name` sets the Mi visible name
    so several host functions can back one overloaded Mi function.

        class Host:
            @staticmethod
            @mi_callable(name="println")
            def println_int(i: int) -> None: ...
    """
    def decorate(f: Callable) -> Callable:
        target = f.__func__ if isinstance(f, (staticmethod, classmethod)) else f
        setattr(target, MI_CALLABLE_ATTR, name if name != None else target.__name__)
        return f

    if func != None:
        return decorate(func)
    return decorate


class NativeBindingError(Exception):
    def __init__(self, message: str, *hints: str) -> None:
        super().__init__(message)
        self.message = message
        self.hints = list(hints)


@dataclass
class NativeHandle:
    host_class: str
    method_name: str
    host: type
    function: Callable

    def __call__(self, *args: Any) -> Any:
        return self.function(*args)


class NativeBinder:
    def bind(self, host_class: str, method_name: str, params: list[Datatype], return_type: Datatype) -> NativeHandle:
        raise NotImplementedError()


def unwrap_annotation(annotation: Any) -> tuple[Any, bool]:
    """
    Splits `Optional[T]` into `(T, True)`, anything else is `(annotation, False)`.
    """
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1 and len(typing.get_args(annotation)) == 2:
            return args[0], True
    return annotation, False


@dataclass
class HostSignature:
    params: list[tuple[Any, bool]]
    returns: tuple[Any, bool]


class ReflectiveNativeBinder(NativeBinder):
    """
    Finds host methods on Python classes. Classes come from `classes` first,
    otherwise the host name is imported as a dotted path.
    """
    def __init__(self, classes: Optional[dict[str, type]] = None) -> None:
        self.classes = classes if classes != None else {}

    def find_class(self, host_class: str) -> type:
        if host_class in self.classes:
            return self.classes[host_class]
        module_name, _, attr = host_class.rpartition(".")
        try:
            if module_name == "":
                raise ImportError(host_class)
            result = getattr(importlib.import_module(module_name), attr)
        except (ImportError, AttributeError) as e:
            raise NativeBindingError(f"Cannot find native class '{host_class}' for native function") from e
        if not isinstance(result, type):
            raise NativeBindingError(f"Cannot find native class '{host_class}' for native function", f"'{host_class}' is not a class")
        return result

    def host_signature(self, raw: Any) -> Optional[HostSignature]:
        func = raw.__func__ if isinstance(raw, (staticmethod, classmethod)) else raw
        try:
            hints = typing.get_type_hints(func)
            signature = inspect.signature(func)
        except (NameError, TypeError, ValueError):
            return None
        params = list(signature.parameters.values())
        if not isinstance(raw, staticmethod) and len(params) > 0:
            # self or cls
            params = params[1:]
        result = []
        for param in params:
            if param.kind not in (param.POSITIONAL_ONLY, param.POSITIONAL_OR_KEYWORD):
                return None
            if param.name not in hints:
                return None
            result.append(unwrap_annotation(hints[param.name]))
        returns = unwrap_annotation(hints.get("return", type(None)))
        return HostSignature(result, returns)

    def candidates(self, host: type, method_name: str):
        seen = set()
        for klass in host.__mro__:
            for attr, raw in vars(klass).items():
                if attr in seen:
                    continue
                func = raw.__func__ if isinstance(raw, (staticmethod, classmethod)) else raw
                if not callable(func):
                    continue
                if attr == method_name or getattr(func, MI_CALLABLE_ATTR, None) == method_name:
                    seen.add(attr)
                    yield raw, func

    def bind(self, host_class: str, method_name: str, params: list[Datatype], return_type: Datatype) -> NativeHandle:
        for param in params:
            if param.not_primitive():
                raise NativeBindingError(f"{PRIMITIVE_ONLY} as native function arguments")
        if return_type.not_primitive():
            raise NativeBindingError(f"{PRIMITIVE_ONLY} as a native function return type")

        host = self.find_class(host_class)
        wanted = [HOST_TYPES[p.primitive] for p in params]

        found = None
        for raw, func in self.candidates(host, method_name):
            signature = self.host_signature(raw)
            if signature == None or len(signature.params) != len(wanted):
                continue
            if all(base is w for (base, _), w in zip(signature.params, wanted)):
                found = raw, func, signature
                break
        if found == None:
            names = ", ".join(t.__name__ for t in wanted)
            raise NativeBindingError(
                f"Cannot find native method '{method_name}' with parameter types ({names}) in native class '{host_class}'",
                "int and long map to int, double and float to float, string and char to str, bool to bool",
            )
        raw, func, signature = found

        if signature.returns[0] is not HOST_TYPES[return_type.primitive]:
            raise NativeBindingError(
                "Return type of native function does not match return type of native host method",
                f"Expected the host method to return {HOST_TYPES[return_type.primitive].__name__}",
            )
        for i, (param, (_, optional)) in enumerate(zip(params, signature.params)):
            if param.nullable and not optional:
                raise NativeBindingError(
                    f"Parameter #{i} of native function is nullable, but the same parameter of the host method is not Optional",
                )
        if not return_type.nullable and not return_type.is_void() and signature.returns[1]:
            raise NativeBindingError(
                "Return type of native function must be nullable",
                "Either add the 'nullable' modifier to your native function definition, or drop Optional from the host method's return annotation",
            )
        if getattr(func, MI_CALLABLE_ATTR, None) == None:
            raise NativeBindingError(
                "May only use host methods decorated with @mi_callable as native functions",
                f"Decorate {host.__name__}.{func.__name__} with @mi_callable",
            )
        if not isinstance(raw, staticmethod):
            raise NativeBindingError("Native methods must be static", "Wrap the host method in @staticmethod")

        logger.debug(f"bound native {method_name} to {host.__name__}.{func.__name__}")
        return NativeHandle(host_class, method_name, host, func)
