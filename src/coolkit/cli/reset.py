"""
CLI: ``cool-kit reset`` removes a project deployed from the current directory.

Everything ``cdp.json`` links to is deleted in order, each step retried
and reported independently:

1. the application on the platform
2. the platform project (after a short settle delay, with retries)
3. the GitHub repository
4. local files: ``cdp.json``, ``README.md`` and ``.git``
"""

from __future__ import annotations

import shutil
from pathlib import Path

import typer

from coolkit.cli.utils import EXIT_FAILURE, console, fail, open_store, plan_table, print_notice, print_report, settings_from
from coolkit.config.models import PlatformConfig
from coolkit.config.project import PROJECT_FILE, ProjectConfig
from coolkit.core.errors import CoolKitError, MissingConfigError
from coolkit.deploy.teardown import ResourceHandle, TeardownAction

LOCAL_FILES = (PROJECT_FILE, "README.md", ".git")


def _remove_path(path: Path) -> None:
    if path.is_dir():
        shutil.rmtree(path)
    else:
        path.unlink(missing_ok=True)


def _repo_parts(repo: str, github) -> tuple[str, str]:
    """``owner/name`` from the configured repo; bare names belong to the token's user."""
    repo = repo.removeprefix("https://github.com/").removesuffix(".git").strip("/")
    if "/" in repo:
        owner, _, name = repo.partition("/")
        return owner, name
    return github.get_user()["login"], repo


def build_reset_plan(
    project: ProjectConfig,
    platform: PlatformConfig,
    *,
    directory: Path,
    settle_seconds: float,
    platform_client=None,
    github_client=None,
) -> list[TeardownAction]:
    """Ordered teardown actions for everything ``project`` points at.

    Remote steps are only planned when their identifiers and credentials
    exist; local files only when present.
    """
    actions: list[TeardownAction] = []

    if project.app_uuid or project.project_uuid:
        if platform_client is None:
            if not platform.url or not platform.token:
                raise MissingConfigError("platform.token", "Platform URL and token are required (cool-kit config set)")
            from coolkit.api.client import PlatformClient

            platform_client = PlatformClient(platform.url, platform.token)

        if project.app_uuid:
            app_uuid = project.app_uuid
            actions.append(
                TeardownAction(ResourceHandle("application", app_uuid), lambda: platform_client.delete_application(app_uuid))
            )
        if project.project_uuid:
            project_uuid = project.project_uuid
            actions.append(
                TeardownAction(
                    ResourceHandle("project", project_uuid),
                    lambda: platform_client.delete_project(project_uuid),
                    cascading=True,
                    settle_seconds=settle_seconds if project.app_uuid else 0.0,
                )
            )

    if project.github_repo:
        if github_client is None and platform.github_token:
            from coolkit.api.github import GitHubClient

            github_client = GitHubClient(platform.github_token)
        if github_client is not None:
            repo = project.github_repo

            def delete_repo() -> None:
                owner, name = _repo_parts(repo, github_client)
                github_client.delete_repo(owner, name)

            actions.append(TeardownAction(ResourceHandle("github_repo", repo), delete_repo))

    for name in LOCAL_FILES:
        path = directory / name
        if path.exists():
            actions.append(
                TeardownAction(ResourceHandle("local", name), lambda path=path: _remove_path(path), max_attempts=1)
            )
    return actions


def reset(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation prompts."),
) -> None:
    """Delete the deployed app, its project, its GitHub repo and local files."""
    from coolkit.deploy.teardown import ConfirmationGate, TeardownCoordinator

    settings = settings_from(ctx)
    directory = Path.cwd()
    try:
        project = ProjectConfig.load(directory)
    except CoolKitError as exc:
        fail(exc.message)
    if project is None:
        fail(f"No {PROJECT_FILE} in {directory}. Run this from a deployed project directory.")

    store = open_store(settings)
    try:
        actions = build_reset_plan(
            project,
            store.typed("platform", PlatformConfig),
            directory=directory,
            settle_seconds=settings.teardown_settle_seconds,
        )
    except CoolKitError as exc:
        fail(exc.message)

    if project.github_repo and not any(a.handle.kind == "github_repo" for a in actions):
        console.print("[yellow]Warning:[/yellow] platform.github_token is not set; the GitHub repo will be kept.")

    console.print(plan_table(f"Reset {project.name or directory.name}", actions))
    gate = ConfirmationGate(
        lambda text: typer.confirm(text, default=False),
        force=force,
        cascade_prompt="Really delete everything?",
    )
    if not gate.approve(actions):
        console.print("Cancelled. Nothing was deleted.")
        return

    coordinator = TeardownCoordinator.from_settings(settings, provider="platform", notify=print_notice)
    report = coordinator.run(actions)
    print_report(report)
    if not report.success:
        raise typer.Exit(code=EXIT_FAILURE)
