from __future__ import annotations

import ast
import os
from pathlib import Path

import pytest


def require_arch_checks_enabled() -> None:
    """Skip architecture checks unless explicitly enabled."""
    if os.getenv("REARM_ARCH_CHECKS") != "1":
        pytest.skip("architecture checks are opt-in; set REARM_ARCH_CHECKS=1 to enable")


def package_root() -> Path:
    return Path(__file__).resolve().parents[2]


def iter_source_files() -> list[tuple[str, Path]]:
    """(posix path relative to the package, absolute path), tests excluded."""
    root = package_root()
    files: list[tuple[str, Path]] = []
    for path in sorted(root.rglob("*.py")):
        rel = path.relative_to(root)
        if rel.parts[0] == "test" or "__pycache__" in rel.parts:
            continue
        files.append((rel.as_posix(), path))
    return files


def read_tree(path: Path) -> ast.AST:
    return ast.parse(path.read_text(encoding="utf-8"), filename=str(path))


def imported_modules(tree: ast.AST) -> list[tuple[str, int]]:
    modules: list[tuple[str, int]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            modules.extend((alias.name, node.lineno) for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module and not node.level:
            modules.append((node.module, node.lineno))
    return modules


def matches_prefix(module: str, prefix: str) -> bool:
    return module == prefix or module.startswith(prefix + ".")


def _direct_subprocess_calls(tree: ast.AST) -> list[int]:
    lines: list[int] = []
    for node in ast.walk(tree):
        if not isinstance(node, ast.Call):
            continue
        func = node.func
        if not isinstance(func, ast.Attribute) or not isinstance(func.value, ast.Name):
            continue
        if func.value.id == "subprocess" and func.attr in {"run", "check_output", "Popen", "call"}:
            lines.append(node.lineno)
    return lines


def test_processes_are_only_spawned_by_the_process_module() -> None:
    require_arch_checks_enabled()

    allowlist = {"platform/process.py"}
    offenders: list[str] = []
    for rel, path in iter_source_files():
        if rel in allowlist:
            continue
        for line in _direct_subprocess_calls(read_tree(path)):
            offenders.append(f"{rel}:{line}: direct subprocess call outside allowlist")

    assert not offenders, "Subprocess policy violations:\n" + "\n".join(offenders)


def test_rich_is_only_used_by_the_console() -> None:
    require_arch_checks_enabled()

    allowlist = {"output/console.py"}
    offenders: list[str] = []
    for rel, path in iter_source_files():
        if rel in allowlist:
            continue
        for module, line in imported_modules(read_tree(path)):
            if matches_prefix(module, "rich"):
                offenders.append(f"{rel}:{line}: direct rich import '{module}'")

    assert not offenders, "Direct rich usage policy violations:\n" + "\n".join(offenders)


@pytest.mark.parametrize(
    ("layer", "forbidden"),
    [
        ("core", ("rearm_ci.platform", "rearm_ci.git", "rearm_ci.services", "rearm_ci.cli")),
        ("platform", ("rearm_ci.git", "rearm_ci.services", "rearm_ci.cli")),
        ("tools", ("rearm_ci.services", "rearm_ci.cli")),
        ("pipeline", ("rearm_ci.services", "rearm_ci.cli")),
        ("services", ("rearm_ci.cli",)),
    ],
)
def test_lower_layers_do_not_import_upper_layers(layer: str, forbidden: tuple[str, ...]) -> None:
    require_arch_checks_enabled()

    offenders: list[str] = []
    for rel, path in iter_source_files():
        if not rel.startswith(f"{layer}/"):
            continue
        for module, line in imported_modules(read_tree(path)):
            if any(matches_prefix(module, prefix) for prefix in forbidden):
                offenders.append(f"{rel}:{line}: forbidden import '{module}'")

    assert not offenders, f"{layer} layering violations:\n" + "\n".join(offenders)
