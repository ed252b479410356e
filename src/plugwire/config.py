"""Project configuration loading, XDG paths, and credential resolution.

This module handles all configuration input for plugwire:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.plugwire/`` on macOS and Windows. Only the data directory is used
  (crash logs); see :func:`get_data_dir`.
* **Project config** -- a single ``plugwire-project.yaml`` file in the
  project directory, deserialised into
  :class:`~plugwire.models.ProjectConfig`. See :func:`load_project_config`.
* **Precedence resolution** -- :func:`resolve_project_dir` picks the
  project directory from the CLI flag, the ``PLUGWIRE_PROJECT``
  environment variable, or the current working directory.
* **Credential resolution** -- :func:`resolve_credential` reads secrets
  from env vars, files, or interactive prompts.
"""

from __future__ import annotations

import getpass
import os
import platform
import sys
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from plugwire.exceptions import ConfigError
from plugwire.models import ProjectConfig

_APP_NAME = "plugwire"
PROJECT_CONFIG_FILENAME = "plugwire-project.yaml"
PROJECT_ENV_VAR = "PLUGWIRE_PROJECT"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/plugwire/`` (default ``~/.local/share/plugwire/``).
    On macOS/Windows: ``~/.plugwire/logs/``.

    Returns:
        Absolute path to the data directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_DATA_HOME", (".local", "share"))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Project config ---


def resolve_project_dir(cli_project: Optional[str] = None) -> Path:
    """Resolve the project directory.

    Precedence (high to low):
        1. CLI flag (``--project``)
        2. Environment variable (``PLUGWIRE_PROJECT``)
        3. Current working directory

    Returns:
        The absolute project directory path. Existence is not checked here;
        :func:`load_project_config` reports a missing directory.
    """
    if cli_project:
        return Path(cli_project).expanduser().resolve()
    env_project = os.environ.get(PROJECT_ENV_VAR)
    if env_project:
        return Path(env_project).expanduser().resolve()
    return Path.cwd()


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in project config at {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Cannot read project config {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Project config at {path} must be a mapping, got {type(data).__name__}"
        )
    return data


def load_project_config(project_dir: Path) -> ProjectConfig:
    """Load the project configuration for *project_dir*.

    A project without a ``plugwire-project.yaml`` file is valid and gets
    the defaults (``modulepath: [modules]``, no plugin options).

    Args:
        project_dir: Directory holding the project.

    Returns:
        The validated :class:`~plugwire.models.ProjectConfig` with
        ``project_dir`` set to *project_dir*.

    Raises:
        ConfigError: If the directory does not exist, or the file contains
            invalid YAML or fails Pydantic validation.
    """
    if not project_dir.is_dir():
        raise ConfigError(f"Project directory not found: {project_dir}")

    path = project_dir / PROJECT_CONFIG_FILENAME
    data = _read_yaml(path) if path.is_file() else {}
    data["project_dir"] = project_dir
    try:
        return ProjectConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid project config at {path}: {exc}") from exc


def resolve_config(cli_project: Optional[str] = None) -> ProjectConfig:
    """Resolve the project directory and load its configuration.

    Args:
        cli_project: Value of the ``--project`` CLI flag, if given.
    """
    return load_project_config(resolve_project_dir(cli_project))


# --- Credential source resolution ---


def resolve_credential(source: str) -> str:
    """Resolve a credential from its source descriptor.

    Supported formats:
        - ``"env:VAR_NAME"`` -- reads ``os.environ["VAR_NAME"]``
        - ``"file:/path/to/file"`` -- reads file content, stripped of whitespace
        - ``"prompt"`` -- prompts user interactively (requires a TTY)

    Args:
        source: The source descriptor string.

    Returns:
        The resolved credential string.

    Raises:
        ConfigError: If the source can't be resolved.
    """
    if source.startswith("env:"):
        var_name = source[4:]
        value = os.environ.get(var_name)
        if value is None:
            raise ConfigError(
                f"Environment variable '{var_name}' is not set (source: {source})"
            )
        return value

    if source.startswith("file:"):
        file_path = source[5:]
        path = Path(file_path).expanduser()
        if not path.is_file():
            raise ConfigError(f"Credential file not found: {path} (source: {source})")
        try:
            return path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise ConfigError(f"Cannot read credential file {path}: {exc}") from exc

    if source == "prompt":
        if not sys.stdin.isatty():
            raise ConfigError(
                "Cannot prompt for credentials: stdin is not a TTY (source: prompt)"
            )
        return getpass.getpass("Enter credential: ")

    raise ConfigError(f"Unknown credential source format: {source}")
