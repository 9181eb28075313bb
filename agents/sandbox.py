"""Staging and restricted execution of generated procedures.

A generated procedure is the body of ``async def main(world, log, Vec3)``.
:class:`ProcedureStager` turns that text into a callable:

1. parse it and reject constructs that could escape the sandbox (imports,
   dunder access, ``global``, class definitions, NameError handlers);
2. rewrite ``print(...)`` into ``log(...)``;
3. wrap it in a fixed template that catches runtime errors;
4. insert a cooperative interruption check after every statement,
   including statements inside helper functions the procedure defines;
5. write the staged source to disk for audit;
6. evaluate it in a namespace whose builtins are an explicit allow-list.

If the allow-list ever contains a dangerous builtin, or the interpreter
does not honour the restricted builtins, construction fails with
:class:`SandboxUnavailableError`. There is no unrestricted fallback.

Typical usage::

    stager = ProcedureStager(Path("generated_code"))
    flag = InterruptFlag(max_statements=100000)
    staged = await stager.stage(body, parameters=["count"], flag=flag)
    result = await staged.main(restricted_world, log, Vec3, count="3")
"""
from __future__ import annotations

import ast
import asyncio
import copy
import inspect
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from core.exceptions import SandboxUnavailableError, StagingError
from core.logging_utils import log_json
from core.sanitizer import sanitize_path

MAX_RANGE_LENGTH = 100000
MAX_WAIT_SECONDS = 10.0


def _bounded_range(*args):
    span = range(*args)
    if len(span) > MAX_RANGE_LENGTH:
        raise ValueError(f"range of {len(span)} items exceeds the limit of {MAX_RANGE_LENGTH}")
    return span


SAFE_BUILTINS: Dict[str, Any] = {
    "abs": abs, "min": min, "max": max, "sum": sum, "len": len, "range": _bounded_range,
    "enumerate": enumerate, "sorted": sorted, "reversed": reversed, "zip": zip,
    "map": map, "filter": filter, "all": all, "any": any, "round": round,
    "int": int, "float": float, "bool": bool, "str": str,
    "list": list, "dict": dict, "set": set, "tuple": tuple, "isinstance": isinstance,
    "Exception": Exception, "ValueError": ValueError, "RuntimeError": RuntimeError,
    "KeyError": KeyError, "TypeError": TypeError, "IndexError": IndexError,
}

# Must never be reachable from generated code.
FORBIDDEN_BUILTINS = frozenset({
    "eval", "exec", "compile", "open", "__import__", "getattr", "setattr", "delattr",
    "globals", "locals", "vars", "type", "object", "super", "input", "breakpoint",
    "memoryview", "help", "dir", "exit", "quit", "__build_class__", "classmethod",
    "staticmethod", "property",
})

PROCEDURE_PARAMETERS = ("world", "log", "Vec3")
INTERRUPT_CHECK_NAME = "_should_interrupt"
CHECKPOINT_NAME = "_checkpoint"
INTERRUPT_SIGNAL_NAME = "_ProcedureInterrupted"

# Injected by the stager; generated code may not reference them.
_RESERVED_NAMES = frozenset({INTERRUPT_CHECK_NAME, CHECKPOINT_NAME, INTERRUPT_SIGNAL_NAME})

_BLOCKED_ATTRIBUTES = frozenset({
    "format", "format_map", "gi_frame", "gi_code", "cr_frame", "cr_code",
    "ag_frame", "ag_code", "f_globals", "f_locals", "f_builtins", "f_back",
    "tb_frame", "tb_next",
})

_TEMPLATE = """
async def main({params}):
    try:
        pass
    except {signal}:
        log('Code interrupted.')
        return 'Interrupted'
    except Exception as error:
        log('Execution Error:', error)
        return 'Execution failed: ' + str(error)
"""

_INTERRUPT_CHECK = f"""
if {INTERRUPT_CHECK_NAME}():
    log('Code interrupted.')
    return 'Interrupted'
"""

# Inside helper functions a return would only leave the helper.
_NESTED_INTERRUPT_CHECK = f"{CHECKPOINT_NAME}()\n"

_TERMINAL_STATEMENTS = (ast.Return, ast.Raise, ast.Break, ast.Continue)
_FINALLY_EXITS = (ast.Return, ast.Break, ast.Continue)


class ProcedureInterrupted(BaseException):
    """Unwinds helper functions of a staged procedure once its flag is raised.

    Not an :class:`Exception`, so ``except Exception`` in generated code
    lets it through to the template's handler.
    """


class InterruptFlag:
    """Cooperative cancellation signal polled by staged code.

    Each poll also counts one executed statement; exceeding
    ``max_statements`` raises the flag with reason ``"statement_budget"``.
    """

    REQUESTED = "requested"
    STATEMENT_BUDGET = "statement_budget"

    def __init__(self, max_statements: int = 100000):
        self.max_statements = max_statements
        self.statements = 0
        self.reason: Optional[str] = None

    @property
    def is_set(self) -> bool:
        return self.reason is not None

    def set(self, reason: str = REQUESTED) -> None:
        if self.reason is None:
            self.reason = reason

    def clear(self) -> None:
        self.reason = None
        self.statements = 0

    def check(self) -> bool:
        self.statements += 1
        if self.statements > self.max_statements:
            self.set(self.STATEMENT_BUDGET)
        return self.is_set

    def checkpoint(self) -> None:
        """Like :meth:`check`, but raises :class:`ProcedureInterrupted` once the flag is set."""
        if self.check():
            raise ProcedureInterrupted(self.reason)


async def _wait(seconds=1):
    await asyncio.sleep(min(max(float(seconds), 0.0), MAX_WAIT_SECONDS))


def sandbox_names(parameters: Sequence[str] = ()) -> List[str]:
    """Every name staged code may reference without defining it."""
    return sorted(set(SAFE_BUILTINS) | _RESERVED_NAMES | {"wait"} | set(PROCEDURE_PARAMETERS) | set(parameters))


@dataclass
class StagedProcedure:
    main: Callable[..., Any]
    source: str
    lint_source: str
    path: Optional[Path] = None


# ---------------------------------------------------------------------------
# AST passes
# ---------------------------------------------------------------------------

def _guard(statements: List[ast.stmt]) -> List[str]:
    problems = []
    for root in statements:
        for node in ast.walk(root):
            line = getattr(node, "lineno", "?")
            if isinstance(node, (ast.Import, ast.ImportFrom)):
                problems.append(f"line {line}: imports are not allowed")
            elif isinstance(node, (ast.Global, ast.Nonlocal)):
                problems.append(f"line {line}: global/nonlocal is not allowed")
            elif isinstance(node, ast.ClassDef):
                problems.append(f"line {line}: class definitions are not allowed")
            elif isinstance(node, ast.Attribute) and (
                node.attr.startswith("_") or node.attr in _BLOCKED_ATTRIBUTES
            ):
                problems.append(f"line {line}: access to attribute '{node.attr}' is not allowed")
            elif isinstance(node, ast.Name) and node.id.startswith("__"):
                problems.append(f"line {line}: name '{node.id}' is not allowed")
            elif isinstance(node, ast.Name) and node.id in _RESERVED_NAMES:
                problems.append(f"line {line}: name '{node.id}' is reserved")
            elif isinstance(node, ast.ExceptHandler) and _catches_name_error(node):
                problems.append(f"line {line}: bare except or NameError handlers are not allowed")
            elif _exits_from_finally(node):
                problems.append(f"line {line}: return, break or continue inside finally is not allowed")
    return problems


def _exits_from_finally(node: ast.AST) -> bool:
    # Such an exit would discard an in-flight ProcedureInterrupted.
    for stmt in getattr(node, "finalbody", None) or []:
        if any(isinstance(inner, _FINALLY_EXITS) for inner in ast.walk(stmt)):
            return True
    return False


def _catches_name_error(handler: ast.ExceptHandler) -> bool:
    if handler.type is None:
        return True
    types = handler.type.elts if isinstance(handler.type, ast.Tuple) else [handler.type]
    return any(isinstance(t, ast.Name) and t.id in ("NameError", "BaseException") for t in types)


class _PrintToLog(ast.NodeTransformer):
    def visit_Call(self, node: ast.Call) -> ast.Call:
        self.generic_visit(node)
        if isinstance(node.func, ast.Name) and node.func.id == "print":
            node.func = ast.Name(id="log", ctx=ast.Load())
        return node


def _with_interrupt_checks(statements: List[ast.stmt], check: str = _INTERRUPT_CHECK) -> List[ast.stmt]:
    result: List[ast.stmt] = []
    for stmt in statements:
        if isinstance(stmt, (ast.FunctionDef, ast.AsyncFunctionDef)):
            stmt.body = _with_interrupt_checks(stmt.body, _NESTED_INTERRUPT_CHECK)
        else:
            for attr in ("body", "orelse", "finalbody"):
                block = getattr(stmt, attr, None)
                if isinstance(block, list) and block and isinstance(block[0], ast.stmt):
                    setattr(stmt, attr, _with_interrupt_checks(block, check))
            for handler in getattr(stmt, "handlers", []):
                handler.body = _with_interrupt_checks(handler.body, check)
        result.append(stmt)
        if not isinstance(stmt, _TERMINAL_STATEMENTS):
            result.extend(ast.parse(check).body)
    return result


def _procedure_body(code: str) -> List[ast.stmt]:
    try:
        tree = ast.parse(code)
    except SyntaxError as exc:
        raise StagingError(f"Syntax error on line {exc.lineno}: {exc.msg}") from exc
    body = tree.body
    # Accept a full ``async def main(...)`` definition and keep only its body.
    if len(body) == 1 and isinstance(body[0], (ast.AsyncFunctionDef, ast.FunctionDef)) and body[0].name == "main":
        body = body[0].body
    if not body:
        raise StagingError("Generated code is empty.")
    return body


def _wrap(statements: List[ast.stmt], parameters: Sequence[str]) -> ast.Module:
    params = ", ".join(list(PROCEDURE_PARAMETERS) + [f"{p}=None" for p in parameters])
    module = ast.parse(_TEMPLATE.format(params=params, signal=INTERRUPT_SIGNAL_NAME))
    module.body[0].body[0].body = statements
    return ast.fix_missing_locations(module)


# ---------------------------------------------------------------------------
# Stager
# ---------------------------------------------------------------------------

class ProcedureStager:
    def __init__(self, output_dir, builtins: Optional[Dict[str, Any]] = None):
        self.output_dir = Path(output_dir)
        self.builtins = dict(SAFE_BUILTINS if builtins is None else builtins)
        self._verify_isolation()

    def _verify_isolation(self) -> None:
        leaked = FORBIDDEN_BUILTINS.intersection(self.builtins)
        if leaked:
            raise SandboxUnavailableError(f"Refusing to run generated code: unsafe builtins exposed {sorted(leaked)}")
        probe: Dict[str, Any] = {"__builtins__": self.builtins}
        exec(compile("def probe():\n    return open\n", "<sandbox-probe>", "exec"), probe)
        try:
            probe["probe"]()
        except NameError:
            return
        raise SandboxUnavailableError("Restricted builtins are not enforced by this interpreter.")

    async def stage(self, code: str, parameters: Sequence[str] = (), flag: Optional[InterruptFlag] = None) -> StagedProcedure:
        """Build a callable procedure from *code*; raises :class:`StagingError`."""
        statements = _procedure_body(code.strip())
        problems = _guard(statements)
        if problems:
            raise StagingError("Generated code uses forbidden constructs:\n" + "\n".join(problems))

        statements = [_PrintToLog().visit(stmt) for stmt in statements]
        lint_source = ast.unparse(_wrap(copy.deepcopy(statements), parameters))
        source = ast.unparse(_wrap(_with_interrupt_checks(statements), parameters))

        path = await self._persist(source)

        flag = flag or InterruptFlag()
        namespace: Dict[str, Any] = {
            "__builtins__": self.builtins,
            INTERRUPT_CHECK_NAME: flag.check,
            CHECKPOINT_NAME: flag.checkpoint,
            INTERRUPT_SIGNAL_NAME: ProcedureInterrupted,
            "wait": _wait,
        }
        try:
            exec(compile(source, str(path or "<generated>"), "exec"), namespace)
        except Exception as exc:  # pylint: disable=broad-except
            raise StagingError(f"Evaluating staged code failed: {exc}") from exc
        main = namespace.get("main")
        if not inspect.iscoroutinefunction(main):
            raise StagingError("Staged code did not produce an async procedure.")
        return StagedProcedure(main=main, source=source, lint_source=lint_source, path=path)

    async def _persist(self, source: str) -> Optional[Path]:
        try:
            target = sanitize_path(f"{self._next_index()}.py", self.output_dir)
            await asyncio.to_thread(self._write, target, source)
        except OSError as exc:
            log_json("WARN", "generated_code_persist_failed", details={"error": str(exc)})
            return None
        log_json("INFO", "generated_code_staged", details={"path": str(target)})
        return target

    def _next_index(self) -> int:
        if not self.output_dir.exists():
            return 1
        existing = [int(p.stem) for p in self.output_dir.glob("*.py") if p.stem.isdigit()]
        return max(existing + [0]) + 1

    @staticmethod
    def _write(target: Path, source: str) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(source + "\n", encoding="utf-8")
