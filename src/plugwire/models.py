"""Canonical Pydantic models shared across all plugwire modules.

This is the single source of truth for data shapes in the project. The
models fall into two groups:

**Configuration models** -- read from ``plugwire-project.yaml`` in the
project directory:
    :class:`PuppetdbConfig` and :class:`ProjectConfig`.

**Task models** -- produced by the task compiler and consumed by the
executor and by plugins running tasks through the execution context:
    :class:`TaskParameter`, :class:`TaskMetadata`, :class:`TaskFile`,
    :class:`TaskSignature`, :class:`Task`, :class:`Target`,
    :class:`TaskResult`, and :class:`ResultSet`.

All models use Pydantic v2. The per-plugin options in
:attr:`ProjectConfig.plugins` are deliberately untyped: each plugin
validates its own configuration.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Project Config ---


class PuppetdbConfig(BaseModel):
    """Connection settings for the PuppetDB client handed to the ``puppetdb`` plugin."""

    server_url: str = Field(description="Base URL, e.g. https://puppetdb.example.com:8081")
    token_source: Optional[str] = Field(
        default=None,
        description="Credential source for an RBAC token: env:VAR, file:/path, prompt",
    )
    cacert: Optional[str] = Field(
        default=None, description="CA bundle used to verify the server certificate"
    )
    timeout: int = Field(default=30, description="Request timeout in seconds")


class ProjectConfig(BaseModel):
    """Project configuration persisted at ``<project>/plugwire-project.yaml``.

    Loaded by :func:`~plugwire.config.load_project_config`. The ``plugins``
    section maps plugin names to arbitrary option mappings; a plugin with no
    entry receives an empty mapping.

    Example::

        ProjectConfig(
            project_dir=Path("/srv/infra"),
            modulepath=["modules", "site-modules"],
            plugins={"vault": {"server_url": "https://vault:8200"}},
        )
    """

    model_config = ConfigDict(extra="allow")

    project_dir: Path = Field(default_factory=Path.cwd)
    modulepath: list[Path] = Field(
        default_factory=lambda: [Path("modules")],
        description="Directories holding content modules, relative to project_dir",
    )
    plugins: dict[str, dict[str, Any]] = Field(default_factory=dict)
    puppetdb: Optional[PuppetdbConfig] = None
    analytics: bool = Field(default=True, description="Record hook usage events")

    def resolved_modulepath(self) -> list[Path]:
        """Return modulepath entries as absolute paths anchored at :attr:`project_dir`."""
        return [
            entry if entry.is_absolute() else self.project_dir / entry
            for entry in self.modulepath
        ]


# --- Task Models ---


class TaskParameter(BaseModel):
    """A single parameter declared in a task's metadata file.

    ``type`` uses the small type vocabulary understood by
    :func:`~plugwire.tasks.params.validate_params` (``String``,
    ``Integer``, ``Boolean``, ``Array``, ``Hash``, ``Any`` and
    ``Optional[...]``).
    """

    type: str = "Any"
    description: Optional[str] = None
    sensitive: bool = False
    default: Any = None

    @property
    def required(self) -> bool:
        """Whether callers must supply this parameter."""
        if self.default is not None:
            return False
        return not (self.type.startswith("Optional[") or self.type == "Any")


class TaskMetadata(BaseModel):
    """Parsed contents of ``tasks/<task>.json``."""

    description: Optional[str] = None
    parameters: dict[str, TaskParameter] = Field(default_factory=dict)
    input_method: str = Field(
        default="both", description="How params reach the task: stdin, environment, both"
    )
    supports_noop: bool = False


class TaskFile(BaseModel):
    """An implementation file belonging to a task."""

    name: str
    path: Path


class TaskSignature(BaseModel):
    """What the compiler knows about a task before it is run.

    See Also:
        :meth:`~plugwire.tasks.compiler.TaskCompiler.task_signature`
    """

    name: str
    metadata: TaskMetadata = Field(default_factory=TaskMetadata)
    files: list[TaskFile] = Field(default_factory=list)

    def to_task(self) -> Task:
        return Task(name=self.name, metadata=self.metadata, files=list(self.files))


class Task(BaseModel):
    """A runnable task descriptor."""

    name: str
    metadata: TaskMetadata = Field(default_factory=TaskMetadata)
    files: list[TaskFile] = Field(default_factory=list)

    @property
    def module_name(self) -> str:
        return self.name.split("::", 1)[0]

    @property
    def executable(self) -> Optional[Path]:
        return self.files[0].path if self.files else None

    @property
    def sensitive_parameters(self) -> set[str]:
        return {
            name for name, param in self.metadata.parameters.items() if param.sensitive
        }


class Target(BaseModel):
    """An addressable endpoint a task can run against."""

    name: str
    transport: str = "local"
    config: dict[str, Any] = Field(default_factory=dict)


class TaskResult(BaseModel):
    """The outcome of running a task on one target.

    ``value`` holds the task's parsed JSON output. Tasks that print
    non-JSON output get it under ``_output``; failures carry an ``_error``
    object with ``kind`` and ``msg`` keys.
    """

    target: str
    action: str = "task"
    object: Optional[str] = None
    status: str = "success"
    value: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "success"

    @property
    def error(self) -> Optional[dict[str, Any]]:
        return self.value.get("_error")


class ResultSet(BaseModel):
    """Results of one task run across every target it was aimed at."""

    results: list[TaskResult] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(result.ok for result in self.results)

    @property
    def error_set(self) -> list[TaskResult]:
        return [result for result in self.results if not result.ok]

    def first(self) -> Optional[TaskResult]:
        return self.results[0] if self.results else None

    def __len__(self) -> int:
        return len(self.results)
