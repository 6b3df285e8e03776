"""
ola.cli — Command-line interface for ola.

Usage:
    ola                              Interactive structured prompt
    ola prompt -g "..." [-f -w]      Structured prompt (goals / format / warnings)
    ola prompt -g "..." -r 3         Re-run as 3 recursive waves
    ola prompt -g "..." -i 3         Up to 3 rounds with feedback in between
    ola non-think -p "..."           Send a prompt exactly as written
    ola configure                    Choose provider, API key and model
    ola models                       List models for the configured provider
    ola settings                     View or change settings
    ola project ...                  Manage projects (goals, contexts, files)
"""

from __future__ import annotations

import contextlib
import functools
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Iterator

import click

from ola import __version__
from ola.agent.renderer import (
    render_error,
    render_info,
    render_panel,
    render_success,
    render_table,
    render_warning,
)
from ola.core.errors import NetworkError, OlaError, ProjectError
from ola.core.models import (
    ProjectContent,
    PromptRequest,
    ProviderIdentity,
    ProviderName,
    RecursionContext,
)

logger = logging.getLogger("ola.cli")


def _setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s — %(message)s",
        datefmt="%H:%M:%S",
    )


def _fatal_errors(fn: Callable[..., Any]) -> Callable[..., Any]:
    """Render any ``OlaError`` and exit with status 1."""

    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except OlaError as exc:
            logger.debug("Command failed", exc_info=True)
            render_error(str(exc))
            sys.exit(1)

    return wrapper


def _load_settings():
    from ola.core.config import Settings
    return Settings.load_or_default()


@contextlib.contextmanager
def _orchestrator(settings, **kwargs: Any) -> Iterator[Any]:
    """Build an orchestrator for the active provider and close its client afterwards."""
    from ola.agent.llm import ProviderClient
    from ola.agent.prompts import load_hints
    from ola.core.config import Config, resolve_model
    from ola.operations.orchestrator import Orchestrator

    provider = Config.load().get_active_provider()
    model = resolve_model(provider, settings)
    with ProviderClient(provider.identity()) as client:
        yield Orchestrator(client, model, settings, hints=load_hints(), **kwargs)


def _label(prefix: str) -> str:
    # click.prompt appends its own ": "
    return prefix.strip().rstrip(":")


def _read_pipe(enabled: bool) -> str:
    from ola.utils.piping import read_from_stdin
    return read_from_stdin() if enabled else ""


@click.group(invoke_without_command=True)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.version_option(__version__, prog_name="ola")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """ola — a friendly CLI for prompting and optimising reasoning-model calls."""
    _setup_logging(verbose)
    if ctx.invoked_subcommand is None:
        ctx.invoke(prompt_cmd)


# ---------------------------------------------------------------------------
# prompt
# ---------------------------------------------------------------------------

@main.command("prompt")
@click.option("-g", "--goals", default=None, help="What the model should achieve.")
@click.option("-f", "--format", "return_format", default=None, help="Expected return format.")
@click.option("-w", "--warnings", default="", help="Things the model should avoid.")
@click.option("--context", default=None, help="Extra context appended to the prompt.")
@click.option("-c", "--clipboard", is_flag=True, help="Copy the final response to the clipboard.")
@click.option("-q", "--quiet", is_flag=True, help="Suppress informational output.")
@click.option("-p", "--pipe", is_flag=True, help="Read input from stdin.")
@click.option("-t", "--no-thinking", is_flag=True, help="Hide <think> blocks while streaming.")
@click.option("-r", "--recursion", type=click.IntRange(1, 10), default=None,
              help="Run the prompt as N recursive waves.")
@click.option("-i", "--iterations", type=click.IntRange(1, 10), default=None,
              help="Run up to N rounds with feedback in between.")
@_fatal_errors
def prompt_cmd(
    goals: str | None,
    return_format: str | None,
    warnings: str,
    context: str | None,
    clipboard: bool,
    quiet: bool,
    pipe: bool,
    no_thinking: bool,
    recursion: int | None,
    iterations: int | None,
) -> None:
    """Send a structured prompt (goals, return format, warnings)."""
    from ola.operations.orchestrator import AutoFeedback, InteractiveFeedback, wave_arguments
    from ola.utils.piping import is_receiving_pipe

    settings = _load_settings()
    return_format = return_format or settings.defaults.return_format
    clipboard = clipboard or settings.defaults.clipboard
    quiet = quiet or settings.defaults.quiet
    no_thinking = no_thinking or settings.defaults.no_thinking

    piped = _read_pipe(pipe)
    if goals is None:
        if piped:
            goals, piped = piped, ""
        else:
            template = settings.prompt_template
            goals = click.prompt(_label(template.goals_prefix), default="Anonymous")
            return_format = click.prompt(_label(template.return_format_prefix), default=return_format)
            warnings = click.prompt(
                _label(template.warnings_prefix), default=warnings, show_default=False
            )
    if piped:
        context = f"{context}\n{piped}" if context else piped

    request = PromptRequest(
        goals=goals, return_format=return_format, warnings=warnings, context=context
    )
    feedback = AutoFeedback() if is_receiving_pipe() else InteractiveFeedback()

    with _orchestrator(settings, quiet=quiet, hide_thinking=no_thinking, clipboard=clipboard) as orch:
        if recursion:
            wave = RecursionContext.from_env(recursion)
            args = wave_arguments(
                request, recursion,
                clipboard=clipboard, quiet=quiet, no_thinking=no_thinking, iterations=iterations,
            )
            status = orch.run_recursive(request, wave, args, iterations, feedback)
            if status != 0:
                sys.exit(status)
        elif iterations:
            orch.run_iterations(request, iterations, feedback)
        else:
            orch.run_single(request)

    if not quiet:
        if context:
            render_info(f"Context: {len(context)} characters")
        render_success("Prompt executed successfully")


# ---------------------------------------------------------------------------
# non-think
# ---------------------------------------------------------------------------

@main.command("non-think")
@click.option("-p", "--prompt", "prompt_text", default=None, help="The raw prompt to send.")
@click.option("-c", "--clipboard", is_flag=True, help="Copy the response to the clipboard.")
@click.option("-q", "--quiet", is_flag=True, help="Suppress informational output.")
@click.option("-i", "--pipe", is_flag=True, help="Read input from stdin.")
@click.option("-f", "--filter-thinking", is_flag=True, help="Hide <think> blocks while streaming.")
@_fatal_errors
def non_think(
    prompt_text: str | None,
    clipboard: bool,
    quiet: bool,
    pipe: bool,
    filter_thinking: bool,
) -> None:
    """Send a prompt as written, without the goals/format/warnings structure."""
    settings = _load_settings()
    piped = _read_pipe(pipe)
    context = None
    if prompt_text is None:
        prompt_text = piped or click.prompt("Prompt")
    elif piped:
        context = piped

    with _orchestrator(
        settings,
        quiet=quiet,
        hide_thinking=filter_thinking,
        clipboard=clipboard or settings.defaults.clipboard,
    ) as orch:
        orch.run_raw(prompt_text, context=context)

    if not quiet:
        render_success("Non-think prompt executed successfully")


# ---------------------------------------------------------------------------
# configure
# ---------------------------------------------------------------------------

_PROVIDER_CHOICE = click.Choice([p.value for p in ProviderName], case_sensitive=False)


def _choose_model(identity: ProviderIdentity) -> str:
    from ola.adapters import PROVIDER_DEFAULTS, list_models

    default = PROVIDER_DEFAULTS[identity.name]["model"]
    try:
        models = list_models(identity)
    except OlaError as exc:
        render_warning(f"{exc}. Enter the model name manually.")
        models = []
    if models:
        render_table(f"Available {identity.name.value} Models", ["Model"], [[m] for m in models])
        default = default if default in models else models[0]
    return click.prompt("Model", default=default)


@main.command()
@click.option("-p", "--provider", type=_PROVIDER_CHOICE, default=None, help="Provider name.")
@click.option("-a", "--api-key", default=None, help="API key (skips the prompt).")
@click.option("-m", "--model", default=None, help="Model name.")
@click.option("--base-url", default=None, help="Override the provider's base URL.")
@click.option("-y", "--yes", is_flag=True, help="Accept an auto-detected configuration.")
@_fatal_errors
def configure(
    provider: str | None,
    api_key: str | None,
    model: str | None,
    base_url: str | None,
    yes: bool,
) -> None:
    """Configure the LLM provider, API key and model."""
    from ola.adapters.ollama import OllamaAdapter
    from ola.core.config import (
        Config,
        ProviderConfig,
        detect_provider_from_env,
        env_api_key,
        validate_provider_config,
    )

    render_panel("ola", "🤖 Welcome to Ola Interactive Configuration! 🤖")

    if provider is None and api_key is None:
        detected = detect_provider_from_env()
        if detected is not None:
            render_info(f"Auto-detected {detected.provider} ({detected.model}) from environment")
            if yes or click.confirm("Use this configuration?", default=True):
                validate_provider_config(detected)
                config = Config.load()
                config.add_provider(detected)
                path = config.save()
                render_success(f"Auto-detected configuration saved to {path}")
                return

    name = ProviderName.parse(provider or click.prompt("Provider", type=_PROVIDER_CHOICE, default="OpenAI"))

    if api_key is None:
        api_key = env_api_key(name)
        if api_key:
            render_info("Using API key from environment variable")
        elif name == ProviderName.OLLAMA:
            render_info("No API key needed for Ollama (using local instance)")
        else:
            if name == ProviderName.GEMINI:
                render_info("Get a Gemini API key from Google AI Studio (https://aistudio.google.com/)")
            api_key = click.prompt(f"{name.value} API Key", hide_input=True)

    identity = ProviderIdentity(name=name, base_url=base_url or "", api_key=api_key)
    if model is None:
        model = _choose_model(identity)

    entry = ProviderConfig(
        provider=name.value,
        api_key=api_key,
        model=model,
        additional_settings={"base_url": base_url} if base_url else None,
    )
    validate_provider_config(entry)

    if name == ProviderName.OLLAMA:
        with OllamaAdapter(identity) as adapter:
            if not adapter.check_connection():
                raise NetworkError("Failed to connect to Ollama. Is it running?")
        render_success("Successfully connected to Ollama")

    config = Config.load()
    config.add_provider(entry)
    path = config.save()
    render_success(f"Configuration saved for provider: {name.value} ({path})")
    render_info(f"Using model: {model}")


# ---------------------------------------------------------------------------
# models
# ---------------------------------------------------------------------------

@main.command()
@click.option("-p", "--provider", type=_PROVIDER_CHOICE, default=None,
              help="Provider (defaults to the configured one).")
@click.option("-q", "--quiet", is_flag=True, help="Only print model names.")
@_fatal_errors
def models(provider: str | None, quiet: bool) -> None:
    """List available models."""
    from ola.adapters import list_models
    from ola.core.config import Config

    config = Config.load()
    if provider:
        entry = config.find_provider(provider)
        identity = entry.identity() if entry else ProviderIdentity(name=ProviderName.parse(provider))
    else:
        identity = config.get_active_provider().identity()

    names = list_models(identity)
    if quiet:
        for name in names:
            click.echo(name)
        return
    if not names:
        render_warning(f"No models found for {identity.name.value}")
        return
    render_table(f"{identity.name.value} Models", ["Model"], [[n] for n in names])


# ---------------------------------------------------------------------------
# settings
# ---------------------------------------------------------------------------

@main.command("settings")
@click.option("-v", "--view", is_flag=True, help="Show the current settings.")
@click.option("--default-model", default=None, help="Set the default model.")
@click.option("--default-format", default=None, help="Set the default return format.")
@click.option("--logging", "enable_logging", type=bool, default=None,
              help="Enable or disable session logging.")
@click.option("--log-file", default=None, help="Set the session log file.")
@click.option("-r", "--reset", is_flag=True, help="Reset settings to defaults.")
@_fatal_errors
def settings_cmd(
    view: bool,
    default_model: str | None,
    default_format: str | None,
    enable_logging: bool | None,
    log_file: str | None,
    reset: bool,
) -> None:
    """View or modify settings."""
    from ola.core.config import Settings

    if reset:
        path = Settings().save()
        render_success(f"Settings reset to defaults ({path})")
        return

    settings = Settings.load()
    changed = False
    if default_model is not None:
        settings.default_model = default_model
        changed = True
    if default_format is not None:
        settings.defaults.return_format = default_format
        changed = True
    if enable_logging is not None:
        settings.behavior.enable_logging = enable_logging
        changed = True
    if log_file is not None:
        settings.behavior.log_file = log_file
        changed = True

    if changed:
        path = settings.save()
        render_success(f"Settings saved to {path}")
    if view or not changed:
        click.echo(settings.to_yaml(), nl=False)


# ---------------------------------------------------------------------------
# project
# ---------------------------------------------------------------------------

def _store():
    from ola.core.projects import ProjectStore
    return ProjectStore()


def _resolve_project(store, project: str | None):
    if project:
        return store.find_project(project)
    active = store.get_active_project()
    if active is None:
        raise ProjectError("No active project. Use 'ola project set' or pass --project.")
    return store.require_project(active)


_project_option = click.option(
    "-p", "--project", default=None, help="Project name or id (defaults to the active project)."
)


@main.group(invoke_without_command=True)
@click.pass_context
def project(ctx: click.Context) -> None:
    """Manage projects: goals, contexts and files folded into prompts."""
    if ctx.invoked_subcommand is None:
        ctx.invoke(project_list)


@project.command("list")
@_fatal_errors
def project_list() -> None:
    """List all projects."""
    store = _store()
    projects = store.list_projects()
    if not projects:
        render_info("No projects yet. Create one with 'ola project create'.")
        return
    active = store.get_active_project()
    rows = [
        [
            p.name,
            p.id[:8],
            len(p.goals),
            len(p.contexts),
            len(p.files),
            p.updated_at.strftime("%Y-%m-%d %H:%M"),
            "●" if p.id == active else "",
        ]
        for p in projects
    ]
    render_table("Projects", ["Name", "ID", "Goals", "Contexts", "Files", "Updated", "Active"], rows)


@project.command("create")
@click.option("-n", "--name", prompt="Project name", help="Project name.")
@_fatal_errors
def project_create(name: str) -> None:
    """Create a new project."""
    created = _store().create_project(name)
    render_success(f"Created project '{created.name}' ({created.id})")


@project.command("delete")
@_project_option
@click.option("-f", "--force", is_flag=True, help="Delete without confirmation.")
@_fatal_errors
def project_delete(project: str | None, force: bool) -> None:
    """Delete a project and its files."""
    store = _store()
    target = _resolve_project(store, project)
    if not force and not click.confirm(f"Delete project '{target.name}'?", default=False):
        render_info("Cancelled")
        return
    store.delete_project(target.id)
    render_success(f"Deleted project '{target.name}'")


@project.command("edit")
@_project_option
@click.option("-n", "--name", prompt="New name", help="New project name.")
@_fatal_errors
def project_edit(project: str | None, name: str) -> None:
    """Rename a project."""
    store = _store()
    target = _resolve_project(store, project)
    updated = store.edit_project(target.id, name)
    render_success(f"Project renamed to '{updated.name}'")


@project.command("set")
@_project_option
@_fatal_errors
def project_set(project: str | None) -> None:
    """Set the active project."""
    store = _store()
    target = store.find_project(project or click.prompt("Project"))
    store.set_active_project(target.id)
    render_success(f"Active project: {target.name}")


@project.command("show")
@_project_option
@click.option("--json", "as_json", is_flag=True, help="Print the raw project record.")
@_fatal_errors
def project_show(project: str | None, as_json: bool) -> None:
    """Show a project's goals, contexts and files."""
    from ola.core.projects import export_project

    target = _resolve_project(_store(), project)
    if as_json:
        click.echo(export_project(target))
        return
    lines = [f"ID       {target.id}", f"Updated  {target.updated_at:%Y-%m-%d %H:%M}", "", "Goals:"]
    lines += [f"  {g.id[:8]}  {g.text}" for g in target.goals] or ["  (none)"]
    lines += ["", "Contexts:"]
    lines += [f"  {c.id[:8]}  {c.text}" for c in target.contexts] or ["  (none)"]
    lines += ["", "Files:"]
    lines += [f"  {f.id[:8]}  {f.filename} ({f.size} bytes)" for f in target.files] or ["  (none)"]
    render_panel(target.name, "\n".join(lines))


@project.command("upload")
@_project_option
@click.option("-f", "--file", "file_path", required=True,
              type=click.Path(exists=True, dir_okay=False, path_type=Path), help="File to upload.")
@_fatal_errors
def project_upload(project: str | None, file_path: Path) -> None:
    """Upload a file to a project."""
    store = _store()
    target = _resolve_project(store, project)
    record = store.upload_file(target.id, file_path.name, file_path.read_bytes())
    render_success(f"Uploaded {record.filename} ({record.size} bytes) as {record.id}")


@project.command("files")
@_project_option
@_fatal_errors
def project_files(project: str | None) -> None:
    """List a project's files."""
    target = _resolve_project(_store(), project)
    if not target.files:
        render_info(f"No files in project '{target.name}'")
        return
    rows = [[f.id[:8], f.filename, f.size, f.mime_type or "", f"{f.uploaded_at:%Y-%m-%d %H:%M}"]
            for f in target.files]
    render_table(f"Files in {target.name}", ["ID", "Name", "Size", "Type", "Uploaded"], rows)


def _match_id(items, wanted: str, kind: str) -> str:
    """Accept a full id or an unambiguous prefix (as shown by 'project show')."""
    matches = [item.id for item in items if item.id.startswith(wanted)]
    if len(matches) == 1:
        return matches[0]
    if not matches:
        raise ProjectError(f"{kind} '{wanted}' not found")
    raise ProjectError(f"{kind} id '{wanted}' is ambiguous")


@project.command("add-goal")
@_project_option
@click.option("-g", "--goal", required=True, help="Goal text.")
@_fatal_errors
def project_add_goal(project: str | None, goal: str) -> None:
    """Add a goal to a project."""
    store = _store()
    target = _resolve_project(store, project)
    added = store.add_goal(target.id, goal)
    render_success(f"Added goal {added.id[:8]} to '{target.name}'")


@project.command("remove-goal")
@_project_option
@click.option("-g", "--goal-id", required=True, help="Goal id (or prefix).")
@_fatal_errors
def project_remove_goal(project: str | None, goal_id: str) -> None:
    """Remove a goal from a project."""
    store = _store()
    target = _resolve_project(store, project)
    store.remove_goal(target.id, _match_id(target.goals, goal_id, "Goal"))
    render_success("Goal removed")


@project.command("add-context")
@_project_option
@click.option("-c", "--context", required=True, help="Context text.")
@_fatal_errors
def project_add_context(project: str | None, context: str) -> None:
    """Add context to a project."""
    store = _store()
    target = _resolve_project(store, project)
    added = store.add_context(target.id, context)
    render_success(f"Added context {added.id[:8]} to '{target.name}'")


@project.command("remove-context")
@_project_option
@click.option("-c", "--context-id", required=True, help="Context id (or prefix).")
@_fatal_errors
def project_remove_context(project: str | None, context_id: str) -> None:
    """Remove context from a project."""
    store = _store()
    target = _resolve_project(store, project)
    store.remove_context(target.id, _match_id(target.contexts, context_id, "Context"))
    render_success("Context removed")


@project.command("remove-file")
@_project_option
@click.option("-f", "--file-id", required=True, help="File id (or prefix).")
@_fatal_errors
def project_remove_file(project: str | None, file_id: str) -> None:
    """Remove a file from a project."""
    store = _store()
    target = _resolve_project(store, project)
    store.delete_file(target.id, _match_id(target.files, file_id, "File"))
    render_success("File removed")


@project.command("run")
@_project_option
@click.option("-g", "--goals", required=True, help="What the model should achieve.")
@click.option("-f", "--format", "return_format", default=None, help="Expected return format.")
@click.option("-w", "--warnings", default="", help="Things the model should avoid.")
@click.option("-c", "--clipboard", is_flag=True, help="Copy the response to the clipboard.")
@click.option("-t", "--no-thinking", is_flag=True, help="Hide <think> blocks while streaming.")
@_fatal_errors
def project_run(
    project: str | None,
    goals: str,
    return_format: str | None,
    warnings: str,
    clipboard: bool,
    no_thinking: bool,
) -> None:
    """Run a structured prompt with a project's goals, contexts and files."""
    settings = _load_settings()
    store = _store()
    target = _resolve_project(store, project)
    content: ProjectContent = store.project_content(target.id)

    request = PromptRequest(
        goals=goals,
        return_format=return_format or settings.defaults.return_format,
        warnings=warnings,
    )
    with _orchestrator(
        settings, hide_thinking=no_thinking, clipboard=clipboard, project=content
    ) as orch:
        orch.run_single(request)


if __name__ == "__main__":
    main()
