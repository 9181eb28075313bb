"""Static check of staged procedures: every name must be declared or whitelisted.

Built on pyflakes with its builtin table replaced by the sandbox bindings, so
a reference to ``open``, ``__import__`` or any other name the sandbox does
not provide is reported as an undefined name.
"""
from __future__ import annotations

import ast
from typing import Dict, Iterable, List

import pyflakes.checker
from pyflakes import messages as pyflakes_messages

# pyflakes message class → code reported back to the model
_RULES = {
    pyflakes_messages.UndefinedName: "F821",
    pyflakes_messages.UndefinedLocal: "F823",
}

_FIX_HINTS: Dict[str, str] = {
    "E999": "Fix the syntax error.",
    "F821": "Use only the documented world functions, log, Vec3, wait and the listed builtins.",
    "F823": "Assign the variable before reading it.",
}


def _checker_for(allowed_names: Iterable[str]):
    class _SandboxChecker(pyflakes.checker.Checker):
        builtIns = frozenset(allowed_names)

    return _SandboxChecker


def format_violations(violations: List[Dict]) -> str:
    lines = ["#### CODE LINTING ERRORS ###"]
    for v in violations:
        lines.append(f"{v['code']} line {v['line']}, column {v['col']}: {v['message']}. {v['fix_hint']}")
    return "\n".join(lines)


def lint_procedure(source: str, allowed_names: Iterable[str], filename: str = "<generated>") -> List[Dict]:
    """Return violation dicts for *source*; an empty list means the code may run."""
    try:
        tree = ast.parse(source, filename=filename)
    except SyntaxError as exc:
        return [{
            "code": "E999",
            "line": exc.lineno or 0,
            "col": exc.offset or 0,
            "message": f"SyntaxError: {exc.msg}",
            "fix_hint": _FIX_HINTS["E999"],
        }]

    checker = _checker_for(allowed_names)(tree, filename=filename)
    violations: List[Dict] = []
    for message in sorted(checker.messages, key=lambda m: (m.lineno, m.col)):
        code = _RULES.get(type(message))
        if code is None:
            continue
        violations.append({
            "code": code,
            "line": message.lineno,
            "col": message.col,
            "message": message.message % message.message_args,
            "fix_hint": _FIX_HINTS[code],
        })
    return violations
