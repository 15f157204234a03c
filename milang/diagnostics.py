from __future__ import annotations

import pathlib

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from milang.mi_ast import Node
from milang.symbols import Module
from milang.tokenizer import MiToken


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass
class Diagnostic:
    severity: Severity
    message: str
    token: Optional[MiToken] = None
    hints: list[str] = field(default_factory=list)

    @property
    def line(self) -> int:
        return self.token.actual_line if self.token != None else -1

    @property
    def column(self) -> int:
        return self.token.column_start if self.token != None else -1

    def render(self, filepath: Optional[pathlib.Path] = None) -> str:
        location = ""
        if self.token != None and self.token.line >= 0:
            location = self.token.get_line_info().to_path_cursor()
            if filepath != None:
                location = f"{filepath}:{location}"
            location += ": "
        result = f"{location}{self.severity.value}: {self.message}"
        for hint in self.hints:
            result += f"\n    hint: {hint}"
        return result


class MiAnalysisError(ValueError):
    def __init__(self, diagnostics: list[Diagnostic]) -> None:
        self.diagnostics = diagnostics
        first = diagnostics[0].render() if len(diagnostics) > 0 else "analysis failed"
        super().__init__(first)


@dataclass
class AnalysisResult:
    # None when the skim pass already failed
    root: Optional[Node]
    module: Module
    diagnostics: list[Diagnostic]
    encountered_error: bool

    def errors(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.ERROR]

    def warnings(self) -> list[Diagnostic]:
        return [d for d in self.diagnostics if d.severity == Severity.WARNING]

    def raise_for_errors(self) -> AnalysisResult:
        if self.encountered_error:
            raise MiAnalysisError(self.errors())
        return self
