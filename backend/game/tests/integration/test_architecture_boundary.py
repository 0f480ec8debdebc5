"""Architectural boundary tests enforcing layer dependency rules.

Layer dependency direction (allowed):
  server → session → logic
  server → messaging → logic
  session → messaging (for snapshot view models)

Forbidden (runtime imports):
  logic → session, messaging, server
  messaging → session
  session → server
"""

import ast
from pathlib import Path

import pytest

_GAME_ROOT = Path(__file__).resolve().parents[2]


def _collect_runtime_import_targets(source_dir: Path) -> list[tuple[str, int, str]]:
    """Parse all .py files and return (filename, lineno, module) for runtime imports.

    Skip imports inside `if TYPE_CHECKING:` blocks, those are type-only
    and do not create runtime layer coupling.
    """
    results: list[tuple[str, int, str]] = []
    for py_file in source_dir.rglob("*.py"):
        tree = ast.parse(py_file.read_text(), filename=str(py_file))
        type_checking_ranges = _find_type_checking_ranges(tree)
        for node in ast.walk(tree):
            if not isinstance(node, (ast.Import, ast.ImportFrom)):
                continue
            if any(start <= node.lineno <= end for start, end in type_checking_ranges):
                continue
            if isinstance(node, ast.Import):
                results.extend((py_file.name, node.lineno, alias.name) for alias in node.names)
            elif node.module is not None:
                results.append((py_file.name, node.lineno, node.module))
    return results


def _find_type_checking_ranges(tree: ast.Module) -> list[tuple[int, int]]:
    """Find line ranges of `if TYPE_CHECKING:` blocks."""
    ranges: list[tuple[int, int]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.If) and isinstance(node.test, ast.Name) and node.test.id == "TYPE_CHECKING":
            start = node.lineno
            end = max(child.lineno for child in ast.walk(node) if hasattr(child, "lineno"))
            ranges.append((start, end))
    return ranges


@pytest.mark.parametrize("forbidden", ["game.session", "game.messaging", "game.server"])
def test_game_logic_stays_pure(forbidden):
    """game.logic must not depend on the layers built on top of it."""
    violations = [
        f"{name}:{lineno} {module}"
        for name, lineno, module in _collect_runtime_import_targets(_GAME_ROOT / "logic")
        if module.startswith(forbidden)
    ]
    assert violations == [], f"game.logic imports from {forbidden}: {violations}"


def test_messaging_does_not_import_session():
    """game.messaging must not import from game.session (layer boundary)."""
    violations = [
        f"{name}:{lineno} {module}"
        for name, lineno, module in _collect_runtime_import_targets(_GAME_ROOT / "messaging")
        if module.startswith("game.session")
    ]
    assert violations == [], f"game.messaging imports from game.session: {violations}"


def test_session_does_not_import_server():
    violations = [
        f"{name}:{lineno} {module}"
        for name, lineno, module in _collect_runtime_import_targets(_GAME_ROOT / "session")
        if module.startswith("game.server")
    ]
    assert violations == [], f"game.session imports from game.server: {violations}"
