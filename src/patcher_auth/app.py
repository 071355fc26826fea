"""Typer application and CLI entry point for patcher-auth.

The ``patcher-auth`` command exposes the authentication manager to the
rest of the action (shell steps capture ``$(patcher-auth token)``) and to
developers debugging credentials locally:

* ``token`` -- print a token for a scope.
* ``validate`` -- check that a repository is reachable.
* ``provider`` -- print which provider would serve the next request.
* ``release`` -- look up a release and list its assets.

Configuration is read from the Actions ``INPUT_*`` variables unless
``--config`` points at a JSON file. Every command disposes the manager
before it returns, so no token outlives the process in memory.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``.

See Also:
    :mod:`patcher_auth.config`: Input parsing and config file loading.
    :mod:`patcher_auth.output`: Output formatting initialised in
    :func:`main_callback`.
"""

from __future__ import annotations

import asyncio
import signal
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, TypeVar

import typer

from patcher_auth import __version__
from patcher_auth.exit_codes import EXIT_GENERIC_FAILURE
from patcher_auth.models import TokenScope

if TYPE_CHECKING:
    from patcher_auth.auth.manager import AuthenticationManager

T = TypeVar("T")

app = typer.Typer(
    name="patcher-auth",
    help="Obtain and validate GitHub credentials for the Patcher action.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"patcher-auth {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help="JSON config file (default: action inputs)."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~patcher_auth.output.OutputManager` and
    stores the config file path in ``ctx.obj``.
    """
    from patcher_auth.output import OutputManager, set_output

    set_output(OutputManager(no_color=no_color, quiet=quiet, verbose=verbose))

    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file


# ------------------------------------------------------------------ #
# Manager lifecycle
# ------------------------------------------------------------------ #


def _build_manager(config_file: Optional[Path]) -> AuthenticationManager:
    """Load configuration and construct an authentication manager."""
    from patcher_auth.auth import create_manager
    from patcher_auth.config import load_config_file, parse_auth_config

    if config_file is not None:
        config = load_config_file(config_file)
    else:
        config = parse_auth_config()
    return create_manager(config)


def _run(ctx: typer.Context, operation: Callable[[AuthenticationManager], Awaitable[T]]) -> T:
    """Run *operation* against a fresh manager, always disposing it.

    :class:`~patcher_auth.exceptions.PatcherAuthError` is reported and
    converted into the matching exit code.
    """
    from patcher_auth.exceptions import PatcherAuthError
    from patcher_auth.output import error

    manager = None
    try:
        manager = _build_manager(ctx.obj.get("config_file"))
        return asyncio.run(operation(manager))
    except PatcherAuthError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    finally:
        if manager is not None:
            manager.dispose()


# ------------------------------------------------------------------ #
# Commands
# ------------------------------------------------------------------ #


@app.command("token")
def token_command(
    ctx: typer.Context,
    scope: TokenScope = typer.Option(
        TokenScope.READ, "--scope", "-s", help="Intended use of the token."
    ),
) -> None:
    """Print a token for SCOPE to stdout.

    The token is registered with the runner's secret masking before it is
    printed.

    Example::

        GITHUB_TOKEN=$(patcher-auth token --scope write)
    """
    from patcher_auth.output import print_data

    token = _run(ctx, lambda manager: manager.get_token(scope))
    print_data(token)


@app.command("validate")
def validate_command(
    ctx: typer.Context,
    owner: str = typer.Argument(help="Repository owner."),
    repo: str = typer.Argument(help="Repository name."),
) -> None:
    """Check that OWNER/REPO is reachable with a READ token."""
    from patcher_auth.output import success

    _run(ctx, lambda manager: manager.validate_access(owner, repo))
    success(f"Access to {owner}/{repo} validated")


@app.command("provider")
def provider_command(ctx: typer.Context) -> None:
    """Print the provider that serves requests (github-app or pat)."""
    from patcher_auth.output import print_data

    provider_type = _run(ctx, lambda manager: manager.get_provider_type())
    print_data(provider_type.value)


@app.command("release")
def release_command(
    ctx: typer.Context,
    owner: str = typer.Argument(help="Repository owner."),
    repo: str = typer.Argument(help="Repository name."),
    tag: str = typer.Argument(help="Release tag, e.g. v0.9.4."),
) -> None:
    """Look up release TAG of OWNER/REPO and list its assets."""
    from patcher_auth.models import Release
    from patcher_auth.output import print_data

    async def _lookup(manager: AuthenticationManager) -> Release:
        from patcher_auth.client import create_authenticated_client

        client = await create_authenticated_client(
            manager, manager.config.pat_config.github_base_url
        )
        return await client.get_release_by_tag(owner, repo, tag)

    release = _run(ctx, _lookup)
    print_data(release.name or release.tag_name)
    for asset in release.assets:
        print_data(f"  {asset.name}")


# ------------------------------------------------------------------ #
# Entry point
# ------------------------------------------------------------------ #


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def main() -> None:
    """CLI entry point invoked by the ``patcher-auth`` console script.

    Unhandled :class:`~patcher_auth.exceptions.PatcherAuthError` instances
    cause a clean exit with the error's ``exit_code``. Any other exception
    is reported without a traceback, since it may carry request details,
    and exits with a generic failure.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from patcher_auth.exceptions import PatcherAuthError
        from patcher_auth.output import error
        from patcher_auth.redaction import sanitize

        if isinstance(exc, PatcherAuthError):
            error(str(exc))
            sys.exit(exc.exit_code)
        error(f"Unexpected error ({type(exc).__name__}): {sanitize(str(exc))}")
        sys.exit(EXIT_GENERIC_FAILURE)
