"""Compiler sessions that look up task signatures on the modulepath.

A *compiler session* is the evaluation context plugins need before they
can load or validate a task. Sessions are opened by a :class:`Pal` (the
project abstraction layer) and are short-lived: the plugin execution
context either reuses the session already open around it or opens a
temporary one for a single call.

Tasks live in content modules::

    <modulepath entry>/
        mymod/
            tasks/
                init.json        # metadata, optional
                init.sh          # implementation
                lookup.json
                lookup.py

and are addressed as ``mymod::lookup``. The bare module name ``mymod`` is
shorthand for ``mymod::init``.
"""

from __future__ import annotations

import json
import logging
import re
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from pydantic import ValidationError

from plugwire.exceptions import PlugwireError
from plugwire.models import TaskFile, TaskMetadata, TaskSignature

logger = logging.getLogger(__name__)

_NAME_RE = re.compile(r"^[a-z][a-z0-9_]*$")


class Compiler(ABC):
    """An open compiler session."""

    @abstractmethod
    def task_signature(self, task_name: str) -> Optional[TaskSignature]:
        """Return the signature of *task_name*, or ``None`` if it does not exist."""
        ...


class Pal(ABC):
    """Opens compiler sessions and reports the one currently open, if any."""

    @abstractmethod
    def in_compiler(self) -> Iterator[Compiler]:
        """Context manager yielding a fresh session that is torn down on exit."""
        ...

    def active_compiler(self) -> Optional[Compiler]:
        """Return the innermost session opened by this PAL that is still open."""
        return None


def split_task_name(task_name: str) -> Optional[tuple[str, str]]:
    """Split ``module::task`` into its parts; ``None`` for malformed names."""
    parts = task_name.split("::")
    if len(parts) == 1:
        parts.append("init")
    if len(parts) != 2 or not all(_NAME_RE.match(part) for part in parts):
        return None
    return parts[0], parts[1]


class TaskCompiler(Compiler):
    """Compiler session backed by task files on the modulepath.

    Signatures are cached for the lifetime of the session; closing it drops
    the cache and makes further lookups an error.
    """

    def __init__(self, modulepath: list[Path]) -> None:
        self._modulepath = list(modulepath)
        self._signatures: dict[str, Optional[TaskSignature]] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._signatures.clear()
        self._closed = True

    def task_signature(self, task_name: str) -> Optional[TaskSignature]:
        if self._closed:
            raise PlugwireError("Compiler session is closed", kind="plugwire/compiler-closed")
        if task_name not in self._signatures:
            self._signatures[task_name] = self._load_signature(task_name)
        return self._signatures[task_name]

    def list_tasks(self) -> list[str]:
        """Return the names of every task found on the modulepath, sorted."""
        names: set[str] = set()
        for entry in self._modulepath:
            if not entry.is_dir():
                continue
            for tasks_dir in entry.glob("*/tasks"):
                module = tasks_dir.parent.name
                for path in tasks_dir.iterdir():
                    if path.suffix == ".json" or not path.is_file():
                        continue
                    task = path.stem
                    names.add(module if task == "init" else f"{module}::{task}")
        return sorted(names)

    def _load_signature(self, task_name: str) -> Optional[TaskSignature]:
        parts = split_task_name(task_name)
        if parts is None:
            logger.debug("Malformed task name '%s'", task_name)
            return None
        module, task = parts

        for entry in self._modulepath:
            tasks_dir = entry / module / "tasks"
            if not tasks_dir.is_dir():
                continue
            files = [
                TaskFile(name=f"{module}/tasks/{path.name}", path=path)
                for path in sorted(tasks_dir.iterdir())
                if path.is_file() and path.stem == task and path.suffix != ".json"
            ]
            if not files:
                continue
            metadata = self._load_metadata(tasks_dir / f"{task}.json")
            logger.debug("Found task '%s' in %s", task_name, tasks_dir)
            return TaskSignature(name=task_name, metadata=metadata, files=files)

        return None

    @staticmethod
    def _load_metadata(path: Path) -> TaskMetadata:
        if not path.is_file():
            return TaskMetadata()
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return TaskMetadata.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as exc:
            raise PlugwireError(
                f"Invalid task metadata at {path}: {exc}",
                kind="plugwire/invalid-task-metadata",
            ) from exc


class LocalPal(Pal):
    """PAL that opens :class:`TaskCompiler` sessions over a fixed modulepath.

    Open sessions are tracked per thread, so code running inside
    :meth:`in_compiler` can find the session through
    :meth:`active_compiler` without it being passed down explicitly. A
    session opened on one thread is never reported as active on another.
    """

    def __init__(self, modulepath: list[Path]) -> None:
        self._modulepath = list(modulepath)
        self._local = threading.local()

    @property
    def modulepath(self) -> list[Path]:
        return list(self._modulepath)

    @contextmanager
    def in_compiler(self) -> Iterator[TaskCompiler]:
        compiler = TaskCompiler(self._modulepath)
        active = self._active()
        active.append(compiler)
        try:
            yield compiler
        finally:
            active.remove(compiler)
            compiler.close()

    def _active(self) -> list[TaskCompiler]:
        active = getattr(self._local, "sessions", None)
        if active is None:
            active = self._local.sessions = []
        return active

    def active_compiler(self) -> Optional[TaskCompiler]:
        active = self._active()
        return active[-1] if active else None
