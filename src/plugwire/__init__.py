"""plugwire -- named capability plugins for an orchestration tool.

This package resolves pluggable providers by name and dispatches calls to
them through a fixed set of hooks (``resolve_reference``,
``secret_encrypt``, ``puppet_library``, ...). Plugins may be built in,
registered explicitly by the host, or discovered on first use from
installed distributions and content modules on the project's modulepath.

Typical usage::

    from plugwire.plugins import HookKind, setup

    dispatcher = setup(project_config, pal)
    resolve = dispatcher.get_hook("task", HookKind.RESOLVE_REFERENCE)
    value = resolve({"task": "mymod::lookup", "parameters": {"key": "db"}})

Modules:
    app: Typer application factory and CLI entry point.
    models: Pydantic models shared across the package.
    config: Project configuration loading and credential resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
    analytics: Usage reporting for hook dispatch.
"""

__version__ = "0.3.0"
