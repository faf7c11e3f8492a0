"""Checks that the package only imports libraries it declares."""

import ast
import re
import sys
import tomllib
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]

# Import name -> distribution name where the two differ
DIST_NAMES = {"yaml": "pyyaml"}


def _declared() -> set[str]:
    project = tomllib.loads((ROOT / "pyproject.toml").read_text())["project"]
    names = set()
    for requirement in project["dependencies"]:
        names.add(re.split(r"[<>=!~\[; ]", requirement, maxsplit=1)[0].lower())
    return names


def _imported() -> set[str]:
    names = set()
    for path in (ROOT / "src" / "taskmate").rglob("*.py"):
        for node in ast.walk(ast.parse(path.read_text())):
            if isinstance(node, ast.Import):
                names.update(alias.name.split(".")[0] for alias in node.names)
            elif isinstance(node, ast.ImportFrom) and node.level == 0 and node.module:
                names.add(node.module.split(".")[0])
    return names


def test_third_party_imports_are_declared():
    third_party = {
        name
        for name in _imported()
        if name not in sys.stdlib_module_names and name not in ("taskmate", "__future__")
    }
    declared = _declared()

    missing = {name for name in third_party if DIST_NAMES.get(name, name) not in declared}
    assert missing == set()
