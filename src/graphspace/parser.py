"""YAML/JSON loading and version checking for workspace files."""

from __future__ import annotations

from pathlib import Path

from pydantic import ValidationError as PydanticValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from graphspace.errors import ParseError
from graphspace.models import WorkspaceSpec
from graphspace.workspace import Workspace

SUPPORTED_MAJOR = 1


def _make_yaml() -> YAML:
    """Create a ruamel.yaml safe loader that errors on duplicate keys."""
    yml = YAML(typ="safe")
    yml.allow_duplicate_keys = False
    return yml


def _read_source_text(source: str | Path) -> str:
    """Read a workspace file from a path, or treat a string as its content."""
    if isinstance(source, Path):
        try:
            return source.read_text(encoding="utf-8")
        except OSError as e:
            raise ParseError(f"Cannot read file: {e}") from e
    return source


def load_workspace_data(source: str | Path) -> dict:
    """Load the raw mapping and check its version, before schema validation.

    JSON documents go through the same loader, since JSON is valid YAML.
    """
    text = _read_source_text(source)
    try:
        data = _make_yaml().load(text)
    except YAMLError as e:
        raise ParseError(f"Invalid YAML: {e}") from e

    if not isinstance(data, dict):
        raise ParseError("Top-level value must be a mapping")

    version = data.get("version")
    if version is not None:
        _check_version(str(version))
        data["version"] = str(version)
    return data


def _check_version(version: str) -> None:
    """Accept ``1`` or ``1.<minor>``."""
    parts = version.split(".")
    if len(parts) > 2:
        raise ParseError(f"Invalid version format: {version!r}")
    try:
        major = int(parts[0])
        if len(parts) == 2:
            int(parts[1])
    except ValueError:
        raise ParseError(f"Invalid version format: {version!r}") from None

    if major != SUPPORTED_MAJOR:
        raise ParseError(f"Unsupported version: {version!r} (supported: {SUPPORTED_MAJOR}.x)")


def load_workspace(source: str | Path) -> WorkspaceSpec:
    """Parse a workspace file from a string or file path.

    Args:
        source: YAML/JSON text or a path to a workspace file.

    Returns:
        Schema-validated WorkspaceSpec.

    Raises:
        ParseError: On syntax errors, duplicate keys, schema violations or an
            unsupported version.
    """
    data = load_workspace_data(source)
    try:
        return WorkspaceSpec(**data)
    except PydanticValidationError as e:
        raise ParseError(f"Schema validation failed:\n{e}") from e


def open_workspace(source: str | Path) -> Workspace:
    """Load a workspace file and compute every visible surface."""
    return Workspace.from_spec(load_workspace(source))
