"""Diagnostic output with GitHub Actions awareness and secret masking.

Follows `clig.dev <https://clig.dev/>`_ conventions:

* **stdout** -- primary data only (a minted token, a provider label).
  This is what workflow steps capture with ``$(patcher-auth token)``.
* **stderr** -- all diagnostics (status, warnings, errors, debug lines and
  structured telemetry).
* **Actions mode** -- when running inside GitHub Actions, diagnostics are
  written as workflow commands (``::debug::``, ``::warning::``,
  ``::error::``) which the runner parses from both output streams, and
  secrets are registered with ``::add-mask::``.
* **Colour control** -- respects ``NO_COLOR``, ``TERM=dumb``, and the
  ``--no-color`` CLI flag.

Every message is scrubbed of registered secrets before it is written, so a
token that reaches a log line by mistake still appears as ``***``.

The module exposes two layers:

1. :class:`OutputManager` -- a stateful object holding format preferences,
   Rich consoles, the secret registry and quiet/verbose flags. Created once
   in :func:`~patcher_auth.app.main_callback` and installed via
   :func:`set_output`.
2. Module-level convenience functions (:func:`info`, :func:`warning`,
   :func:`debug`, etc.) that delegate to the global ``OutputManager``.
"""

from __future__ import annotations

import os
import sys
from enum import Enum
from typing import Optional

from pydantic import BaseModel
from rich.console import Console
from rich.markup import escape

from patcher_auth.redaction import mask_known


class OutputFormat(str, Enum):
    """Enumeration of supported diagnostic formats.

    ``AUTO`` resolves to ``ACTIONS`` inside GitHub Actions, to ``RICH`` on
    an interactive terminal with colour enabled, and to ``PLAIN`` otherwise.
    """

    AUTO = "auto"
    ACTIONS = "actions"
    PLAIN = "plain"
    RICH = "rich"


class OutputManager:
    """Central manager for all diagnostic output.

    Args:
        format: Desired output format. ``AUTO`` resolves based on the
            environment.
        no_color: Disable all colour and Rich markup.
        quiet: Suppress informational messages.
        verbose: Show debug messages outside Actions mode. In Actions mode
            debug lines are always emitted; the runner hides them unless
            step debugging is enabled.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose
        self._secrets: set[str] = set()

        if format == OutputFormat.AUTO:
            if _running_in_actions():
                self._format = OutputFormat.ACTIONS
            elif _is_tty() and not self._no_color:
                self._format = OutputFormat.RICH
            else:
                self._format = OutputFormat.PLAIN
        else:
            self._format = format

        self._stderr = Console(
            file=sys.stderr,
            no_color=self._no_color,
            stderr=True,
            highlight=False,
        )

    @property
    def format(self) -> OutputFormat:
        """The resolved output format."""
        return self._format

    @property
    def is_quiet(self) -> bool:
        """Whether quiet mode is enabled."""
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        """Whether verbose mode is enabled."""
        return self._verbose

    # ------------------------------------------------------------------ #
    # Secrets
    # ------------------------------------------------------------------ #

    def add_mask(self, value: Optional[str]) -> None:
        """Register *value* as a secret.

        The value is replaced with ``***`` in every later message written
        through this manager. Inside GitHub Actions the runner is also told
        to redact it from the job log. Empty values are ignored.

        Args:
            value: The secret string.
        """
        if not value or value in self._secrets:
            return
        self._secrets.add(value)
        if self._format == OutputFormat.ACTIONS or _running_in_actions():
            _write(f"::add-mask::{_escape_data(value)}")

    def redact(self, message: str) -> str:
        """Return *message* with every registered secret replaced by ``***``."""
        return mask_known(message, self._secrets)

    # ------------------------------------------------------------------ #
    # Data output (stdout)
    # ------------------------------------------------------------------ #

    def print_data(self, text: str) -> None:
        """Print primary data to stdout, unredacted.

        Used by the CLI to hand a token to the calling workflow step; the
        token has already been registered with :meth:`add_mask`, so the
        runner redacts it from the job log.

        Args:
            text: The string to write.
        """
        print(text, file=sys.stdout, flush=True)

    # ------------------------------------------------------------------ #
    # Diagnostics (stderr)
    # ------------------------------------------------------------------ #

    def info(self, message: str) -> None:
        """Print an informational message. Suppressed by ``--quiet``.

        Args:
            message: The message text.
        """
        if self._quiet:
            return
        message = self.redact(message)
        if self._format == OutputFormat.RICH:
            self._stderr.print(escape(message))
        else:
            _write(message)

    def success(self, message: str) -> None:
        """Print a green success message. Suppressed by ``--quiet``.

        Args:
            message: The message text.
        """
        if self._quiet:
            return
        message = self.redact(message)
        if self._format == OutputFormat.RICH:
            self._stderr.print(f"[green]{escape(message)}[/green]")
        else:
            _write(message)

    def warning(self, message: str) -> None:
        """Print a warning. NOT suppressed by ``--quiet``.

        Args:
            message: The warning text.
        """
        message = self.redact(message)
        if self._format == OutputFormat.ACTIONS:
            _write(f"::warning::{_escape_data(message)}")
        elif self._format == OutputFormat.RICH:
            self._stderr.print(f"[yellow]Warning:[/yellow] {escape(message)}")
        else:
            _write(f"Warning: {message}")

    def error(self, message: str) -> None:
        """Print an error. Never suppressed.

        Args:
            message: The error text.
        """
        message = self.redact(message)
        if self._format == OutputFormat.ACTIONS:
            _write(f"::error::{_escape_data(message)}")
        elif self._format == OutputFormat.RICH:
            self._stderr.print(f"[bold red]Error:[/bold red] {escape(message)}")
        else:
            _write(f"Error: {message}")

    def debug(self, message: str) -> None:
        """Print a debug message.

        Always emitted in Actions mode (the runner decides visibility);
        otherwise only shown when ``--verbose`` is active.

        Args:
            message: The debug text.
        """
        message = self.redact(message)
        if self._format == OutputFormat.ACTIONS:
            _write(f"::debug::{_escape_data(message)}")
        elif self._verbose:
            if self._format == OutputFormat.RICH:
                self._stderr.print(f"[dim]\\[debug] {escape(message)}[/dim]")
            else:
                _write(f"[debug] {message}")

    def event(self, name: str, payload: BaseModel) -> None:
        """Emit a structured telemetry event as a debug line.

        The line has the form ``::<name>::{json}`` so that log scrapers can
        pick it up. Payload models must not contain secrets; the output is
        still passed through :meth:`redact`.

        Args:
            name: Event channel, e.g. ``"auth-telemetry"``.
            payload: The event model, serialised with ``exclude_none``.
        """
        self.debug(f"::{name}::{payload.model_dump_json(exclude_none=True)}")


# ------------------------------------------------------------------ #
# Module-level helpers
# ------------------------------------------------------------------ #


def _write(line: str) -> None:
    print(line, file=sys.stderr, flush=True)


def _escape_data(value: str) -> str:
    """Escape a workflow-command payload the way the Actions toolkit does."""
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def _running_in_actions() -> bool:
    """Check if the process runs inside a GitHub Actions job."""
    return os.environ.get("GITHUB_ACTIONS") == "true"


def _is_tty() -> bool:
    """Check if stderr is a TTY."""
    return hasattr(sys.stderr, "isatty") and sys.stderr.isatty()


def _should_disable_color() -> bool:
    """Check if color should be disabled per clig.dev.

    Returns True when NO_COLOR env var is set (any value) or TERM=dumb.
    """
    if os.environ.get("NO_COLOR") is not None:
        return True
    if os.environ.get("TERM") == "dumb":
        return True
    return False


# ------------------------------------------------------------------ #
# Global output instance (set during app startup)
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the global :class:`OutputManager` instance.

    If no instance has been installed via :func:`set_output`, a default
    ``OutputManager`` with ``AUTO`` format is created lazily.

    Returns:
        The active :class:`OutputManager`.
    """
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    """Install *output* as the global :class:`OutputManager` instance.

    Args:
        output: The configured manager to install.
    """
    global _output
    _output = output


def reset_output() -> None:
    """Reset the global :class:`OutputManager` to ``None``.

    Primarily useful in test suites to ensure a clean state between tests.
    """
    global _output
    _output = None


# ------------------------------------------------------------------ #
# Convenience functions that use the global instance
# ------------------------------------------------------------------ #


def print_data(text: str) -> None:
    """Print raw data to stdout via the global OutputManager."""
    get_output().print_data(text)


def add_mask(value: Optional[str]) -> None:
    """Register a secret with the global OutputManager."""
    get_output().add_mask(value)


def info(message: str) -> None:
    """Print info message via the global OutputManager."""
    get_output().info(message)


def error(message: str) -> None:
    """Print error via the global OutputManager."""
    get_output().error(message)


def success(message: str) -> None:
    """Print success message via the global OutputManager."""
    get_output().success(message)


def warning(message: str) -> None:
    """Print warning via the global OutputManager."""
    get_output().warning(message)


def debug(message: str) -> None:
    """Print debug message via the global OutputManager."""
    get_output().debug(message)


def event(name: str, payload: BaseModel) -> None:
    """Emit a telemetry event via the global OutputManager."""
    get_output().event(name, payload)
