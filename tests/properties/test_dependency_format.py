"""Property-based tests for dependency declarations in pyproject.toml."""

import re
from pathlib import Path

import tomli
from hypothesis import given
from hypothesis import strategies as st

ROOT = Path(__file__).parent.parent.parent

# import name -> distribution name
THIRD_PARTY_IMPORTS = {
    "typer": "typer",
    "rich": "rich",
    "pydantic": "pydantic",
    "kubernetes": "kubernetes",
    "yaml": "pyyaml",
    "urllib3": "urllib3",
}


def load_pyproject_toml():
    """Load the pyproject.toml file."""
    with open(ROOT / "pyproject.toml", "rb") as f:
        return tomli.load(f)


def is_valid_dependency_format(dep: str) -> bool:
    """
    Check if a dependency string is a PEP 508 name with optional extras and
    version constraints, e.g. 'kubernetes>=28.1.0'.
    """
    pattern = re.compile(
        r"^[a-zA-Z0-9]([a-zA-Z0-9._-]*[a-zA-Z0-9])?"  # package name
        r"(\[[a-zA-Z0-9,_-]+\])?"  # optional extras
        r"(([><=!~]+[0-9][a-zA-Z0-9.*+-]*(,[><=!~]+[0-9][a-zA-Z0-9.*+-]*)*)?)?$"  # version specs
    )
    return bool(pattern.match(dep.strip()))


def dependency_name(dep: str) -> str:
    return re.split(r"[><=!~\[]", dep)[0].strip().lower()


def test_dependency_format_compliance():
    """Every declared dependency, optional ones included, is a valid specifier."""
    pyproject = load_pyproject_toml()

    dependencies = pyproject.get("project", {}).get("dependencies", [])
    assert len(dependencies) > 0, "Project should have dependencies defined"
    for dep in dependencies:
        assert is_valid_dependency_format(dep), f"Dependency '{dep}' is not PEP 508 compliant"

    optional_deps = pyproject.get("project", {}).get("optional-dependencies", {})
    for group_name, group_deps in optional_deps.items():
        for dep in group_deps:
            assert is_valid_dependency_format(dep), (
                f"Optional dependency '{dep}' in group '{group_name}' is not PEP 508 compliant"
            )


def test_imported_libraries_are_declared():
    """Every third-party library imported by capi_ops is a declared dependency."""
    pyproject = load_pyproject_toml()
    declared = {dependency_name(d) for d in pyproject["project"]["dependencies"]}

    imported = set()
    for path in (ROOT / "capi_ops").rglob("*.py"):
        for match in re.finditer(r"^\s*(?:from|import)\s+([a-zA-Z_]+)", path.read_text(), re.M):
            imported.add(match.group(1))

    for module, distribution in THIRD_PARTY_IMPORTS.items():
        if module in imported:
            assert distribution in declared, f"'{module}' is imported but '{distribution}' is not declared"


@given(
    package_name=st.from_regex(
        r"^[a-zA-Z0-9]([a-zA-Z0-9._-]*[a-zA-Z0-9])?$", fullmatch=True
    ).filter(lambda x: x.isascii()),
    version=st.from_regex(r"^[0-9]+\.[0-9]+\.[0-9]+$", fullmatch=True).filter(
        lambda x: x.isascii()
    ),
    operator=st.sampled_from([">=", "==", "~=", ">", "<", "!="]),
)
def test_valid_dependency_formats_accepted(package_name, version, operator):
    dep = f"{package_name}{operator}{version}"
    assert is_valid_dependency_format(dep), f"Valid dependency format '{dep}' should be accepted"


@given(
    invalid_dep=st.sampled_from(
        ["", "   ", "-invalid", "invalid-", "invalid package", "package@1.0.0"]
    )
)
def test_invalid_dependency_formats_rejected(invalid_dep):
    assert not is_valid_dependency_format(invalid_dep)


def test_pyproject_toml_has_required_sections():
    pyproject = load_pyproject_toml()

    assert "project" in pyproject
    for field in ("name", "version", "dependencies"):
        assert field in pyproject["project"], f"[project] must have '{field}' field"
    assert pyproject["project"]["scripts"]["capi-ops"] == "capi_ops.cli:app"

    assert "build-system" in pyproject
    assert "requires" in pyproject["build-system"]
    assert "build-backend" in pyproject["build-system"]


def test_dependencies_are_constrained():
    """Runtime dependencies carry a version constraint."""
    pyproject = load_pyproject_toml()

    for dep in pyproject["project"]["dependencies"]:
        assert any(op in dep for op in (">=", "==", "~=", ">", "<", "!=")), (
            f"Dependency '{dependency_name(dep)}' should have a version constraint"
        )
