"""Tests for the bundled plugins (task, prompt) and the setup() wiring."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable
from unittest.mock import MagicMock

import pytest

from plugwire.analytics import NoopAnalytics, RecordingAnalytics
from plugwire.exceptions import PluginError, TaskParameterError, UnknownTaskError
from plugwire.models import ProjectConfig, PuppetdbConfig, Target
from plugwire.plugins import HookKind, setup
from plugwire.plugins.context import ExecutionContext
from plugwire.plugins.discovery import CompositeResolver
from plugwire.plugins.prompt import PromptPlugin
from plugwire.plugins.puppetdb import PuppetdbClient, PuppetdbPlugin
from plugwire.plugins.task import TaskPlugin
from plugwire.tasks.compiler import LocalPal


LOOKUP_TASK = """
import json, sys
params = json.load(sys.stdin)
print(json.dumps({"value": "secret-for-" + params["key"]}))
"""

NO_VALUE_TASK = """
import json
print(json.dumps({"answer": 42}))
"""

FAILING_TASK = """
import sys
sys.exit(1)
"""


@pytest.fixture
def modules(tmp_path: Path) -> Path:
    path = tmp_path / "modules"
    path.mkdir()
    return path


@pytest.fixture
def local_context(tmp_path: Path, modules: Path) -> ExecutionContext:
    config = ProjectConfig(project_dir=tmp_path, modulepath=[modules])
    return ExecutionContext(config, LocalPal([modules]))


@pytest.fixture
def task_plugin(
    modules: Path, local_context: ExecutionContext, write_task: Callable[..., Path]
) -> TaskPlugin:
    write_task(modules, "lookup", "init", LOOKUP_TASK, parameters={"key": {"type": "String"}})
    write_task(modules, "lookup", "novalue", NO_VALUE_TASK)
    write_task(modules, "lookup", "broken", FAILING_TASK)
    return TaskPlugin(context=local_context)


# ---------------------------------------------------------------------------
# task
# ---------------------------------------------------------------------------


class TestTaskPlugin:
    def test_hooks(self, task_plugin: TaskPlugin) -> None:
        assert task_plugin.name == "task"
        assert task_plugin.hooks == {
            HookKind.PUPPET_LIBRARY,
            HookKind.RESOLVE_REFERENCE,
            HookKind.VALIDATE_RESOLVE_REFERENCE,
        }

    def test_resolve_reference(self, task_plugin: TaskPlugin) -> None:
        value = task_plugin.resolve_reference(
            {"_plugin": "task", "task": "lookup", "parameters": {"key": "db"}}
        )
        assert value == "secret-for-db"

    def test_resolve_requires_value_key(self, task_plugin: TaskPlugin) -> None:
        with pytest.raises(PluginError, match="did not return 'value'"):
            task_plugin.resolve_reference({"task": "lookup::novalue"})

    def test_failed_task(self, task_plugin: TaskPlugin) -> None:
        with pytest.raises(PluginError, match="Task lookup::broken failed"):
            task_plugin.resolve_reference({"task": "lookup::broken"})

    def test_missing_task_option(self, task_plugin: TaskPlugin) -> None:
        with pytest.raises(PluginError, match="expects a 'task' option"):
            task_plugin.validate_resolve_reference({})

    def test_validate_checks_parameters(self, task_plugin: TaskPlugin) -> None:
        with pytest.raises(TaskParameterError, match="expects a value for parameter 'key'"):
            task_plugin.validate_resolve_reference({"task": "lookup", "parameters": {}})

    def test_validate_unknown_task(self, task_plugin: TaskPlugin) -> None:
        with pytest.raises(PluginError, match="lookup::ghost could not be found"):
            task_plugin.validate_resolve_reference({"task": "lookup::ghost"})

    def test_puppet_library_is_deferred(self, task_plugin: TaskPlugin) -> None:
        apply_prep = MagicMock()
        target = Target(name="web01", transport="ssh")

        install = task_plugin.puppet_library(
            {"task": "lookup", "parameters": {"key": "agent"}}, target, apply_prep
        )
        apply_prep.run_task.assert_not_called()

        install()
        args = apply_prep.run_task.call_args.args
        assert args[0] == [target]
        assert args[1].name == "lookup"
        assert args[2] == {"key": "agent"}

    def test_puppet_library_unknown_task(self, task_plugin: TaskPlugin) -> None:
        with pytest.raises(UnknownTaskError):
            task_plugin.puppet_library({"task": "ghost"}, Target(name="web01"), MagicMock())


# ---------------------------------------------------------------------------
# prompt
# ---------------------------------------------------------------------------


class TestPromptPlugin:
    def test_resolve_reference(self, monkeypatch: pytest.MonkeyPatch) -> None:
        prompts: list[str] = []

        def fake_getpass(prompt: str) -> str:
            prompts.append(prompt)
            return "hunter2"

        monkeypatch.setattr("plugwire.plugins.prompt.plugin.getpass.getpass", fake_getpass)

        assert PromptPlugin().resolve_reference({"message": "Database password"}) == "hunter2"
        assert prompts == ["Database password: "]

    def test_message_required(self) -> None:
        with pytest.raises(PluginError, match="requires a 'message'"):
            PromptPlugin().validate_resolve_reference({})


# ---------------------------------------------------------------------------
# setup()
# ---------------------------------------------------------------------------


class TestSetup:
    def test_builtins_registered_lazily(self, project_config: ProjectConfig, fake_pal) -> None:
        dispatcher = setup(project_config, fake_pal, resolver=CompositeResolver([]))
        registry = dispatcher.registry

        assert registry.names() == ["prompt", "task"]
        assert isinstance(registry.resolve("task"), TaskPlugin)

    def test_puppetdb_registered_from_client(self, project_config: ProjectConfig, fake_pal) -> None:
        client = PuppetdbClient(PuppetdbConfig(server_url="https://pdb:8081"))
        dispatcher = setup(project_config, fake_pal, pdb_client=client, resolver=CompositeResolver([]))

        plugin = dispatcher.registry.resolve("puppetdb")

        assert isinstance(plugin, PuppetdbPlugin)
        assert plugin.client is client

    def test_puppetdb_absent_without_client(self, project_config: ProjectConfig, fake_pal) -> None:
        dispatcher = setup(project_config, fake_pal, resolver=CompositeResolver([]))
        assert dispatcher.registry.resolve("puppetdb") is None

    def test_plugins_share_one_context(self, project_config: ProjectConfig, fake_pal) -> None:
        dispatcher = setup(project_config, fake_pal, resolver=CompositeResolver([]))
        task = dispatcher.registry.resolve("task")
        prompt = dispatcher.registry.resolve("prompt")
        assert task is not None and prompt is not None
        assert task.context is prompt.context is dispatcher.registry.context

    def test_analytics_follows_config(self, tmp_path: Path, fake_pal) -> None:
        enabled = setup(ProjectConfig(project_dir=tmp_path), fake_pal, resolver=CompositeResolver([]))
        disabled = setup(
            ProjectConfig(project_dir=tmp_path, analytics=False),
            fake_pal,
            resolver=CompositeResolver([]),
        )
        assert isinstance(enabled.analytics, RecordingAnalytics)
        assert isinstance(disabled.analytics, NoopAnalytics)

    def test_dispatch_through_setup(
        self, tmp_path: Path, modules: Path, write_task: Callable[..., Path]
    ) -> None:
        write_task(modules, "lookup", "init", LOOKUP_TASK, parameters={"key": {"type": "String"}})
        config = ProjectConfig(project_dir=tmp_path, modulepath=[modules])
        analytics = RecordingAnalytics(["task"])
        dispatcher = setup(config, LocalPal([modules]), analytics=analytics)

        opts: dict[str, Any] = {"task": "lookup", "parameters": {"key": "api"}}
        dispatcher.get_hook("task", HookKind.VALIDATE_RESOLVE_REFERENCE)(opts)
        value = dispatcher.get_hook("task", HookKind.RESOLVE_REFERENCE)(opts)

        assert value == "secret-for-api"
        assert [event.mode for event in analytics.events] == [
            "Plugin validate_resolve_reference",
            "Plugin resolve_reference",
        ]
