"""Contract tests for the modular pyramid fold implementation.

These tests are intentionally lightweight and fast. They enforce code-level
invariants that keep the fold pipeline uniform as it evolves.
"""

from __future__ import annotations

import ast
import re
from pathlib import Path

import pytest


def _aefold_dir() -> Path:
    # .../aefold/tests/pyramid/test_*.py -> parents[2] is .../aefold
    return Path(__file__).resolve().parents[2]


def _pyramid_files() -> list[Path]:
    aefold_dir = _aefold_dir()
    files = sorted((aefold_dir / "pyramid").glob("*.py"))
    files.append(aefold_dir / "subproblem_fold.py")
    return files


def _parse(path: Path) -> ast.Module:
    return ast.parse(path.read_text(encoding="utf-8"), filename=str(path))


def _has_module_docstring_as_first_stmt(tree: ast.Module) -> bool:
    if not tree.body:
        return False
    first = tree.body[0]
    if isinstance(first, ast.Expr):
        val = first.value
        return isinstance(val, ast.Constant) and isinstance(val.value, str)
    return False


def _top_level_defs(tree: ast.Module):
    for node in tree.body:
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            yield node


def _find_print_calls(tree: ast.Module) -> list[ast.Call]:
    calls: list[ast.Call] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Call) and isinstance(node.func, ast.Name) and node.func.id == "print":
            calls.append(node)
    return calls


@pytest.mark.parametrize("path", _pyramid_files(), ids=lambda p: p.name)
def test_module_docstring_first_statement(path: Path) -> None:
    tree = _parse(path)
    assert _has_module_docstring_as_first_stmt(tree), (
        f"{path} must start with a module docstring as the first statement"
    )


@pytest.mark.parametrize("path", _pyramid_files(), ids=lambda p: p.name)
def test_top_level_definitions_have_docstrings(path: Path) -> None:
    tree = _parse(path)
    missing: list[str] = []
    for node in _top_level_defs(tree):
        if ast.get_docstring(node) is None:
            missing.append(f"{node.name} (line {node.lineno})")
    assert not missing, f"{path} missing docstrings for: {', '.join(missing)}"


@pytest.mark.parametrize("path", _pyramid_files(), ids=lambda p: p.name)
def test_print_policy(path: Path) -> None:
    tree = _parse(path)
    prints = _find_print_calls(tree)
    if path.name == "stats.py":
        return
    assert not prints, f"{path} has print() calls; printing must be confined to pyramid/stats.py"


@pytest.mark.parametrize("path", _pyramid_files(), ids=lambda p: p.name)
def test_no_explicit_inverses_or_inplace_state(path: Path) -> None:
    text = path.read_text(encoding="utf-8")

    banned_patterns = [
        r"\blinalg\.inv\(",
        r"\bsparse\.linalg\.inv\(",
        r"\bstate\.W\s*(\[[^\]]*\])?\s*[+\-*/]?=(?!=)",
        r"\bstate\.d\s*(\[[^\]]*\])?\s*[+\-*/]?=(?!=)",
    ]

    hits: list[str] = []
    for pat in banned_patterns:
        if re.search(pat, text):
            hits.append(pat)

    assert not hits, f"{path} contains banned patterns: {hits}"
