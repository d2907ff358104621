"""
Unit tests for the project metadata in pyproject.toml.
"""

import pytest
from pathlib import Path

tomllib = pytest.importorskip("tomllib")

ROOT = Path(__file__).parent.parent.parent
CODE_ROOT = ROOT / "lambda" / "tag_inventory"


@pytest.fixture
def pyproject():
    with open(ROOT / "pyproject.toml", "rb") as f:
        return tomllib.load(f)


def test_readme_is_not_a_design_document(pyproject):
    readme = pyproject["project"].get("readme")

    assert readme is None or (ROOT / readme).exists()
    assert readme not in ("SPEC_FULL.md", "DESIGN.md")


def test_every_top_level_module_is_installed(pyproject):
    setuptools = pyproject["tool"]["setuptools"]

    packages = {p.name for p in CODE_ROOT.iterdir() if (p / "__init__.py").exists()}
    modules = {p.stem for p in CODE_ROOT.glob("*.py")}

    assert setuptools["package-dir"] == {"": "lambda/tag_inventory"}
    assert set(setuptools["packages"]) >= packages
    assert set(setuptools["py-modules"]) == modules
