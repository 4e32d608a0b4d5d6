"""External command execution and identifier extraction."""

from __future__ import annotations

import logging
import os
import re
import subprocess
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TypeAlias

from cf_provisioner.engine.errors import ExecutionError, ParseError

logger = logging.getLogger(__name__)

# Legacy variable names that would otherwise shadow the injected scoped token.
_SHADOWING_VARS = ("CF_API_TOKEN", "CF_ACCOUNT_ID")


@dataclass(frozen=True)
class CommandResult:
    command: list[str]
    returncode: int
    output: str


def _stream_runner(
    command: Sequence[str],
    env: Mapping[str, str],
    cwd: Path | None,
    echo: Callable[[str], None] | None,
) -> CommandResult:
    """Run *command* with stdout+stderr merged, echoing lines as they arrive."""
    lines: list[str] = []
    with subprocess.Popen(
        list(command),
        stdout=subprocess.PIPE,
        stderr=subprocess.STDOUT,
        stdin=subprocess.DEVNULL,
        text=True,
        env=dict(env),
        cwd=cwd,
    ) as proc:
        assert proc.stdout is not None
        for line in proc.stdout:
            lines.append(line)
            if echo is not None:
                echo(line.rstrip("\n"))
        returncode = proc.wait()
    return CommandResult(command=list(command), returncode=returncode, output="".join(lines))


CommandRunner: TypeAlias = Callable[
    [Sequence[str], Mapping[str, str], Path | None, Callable[[str], None] | None], CommandResult
]


class DeploymentExecutor:
    """Runs an external deploy tool with a per-call environment overlay.

    The overlay is merged over a copy of the ambient environment; the process
    environment itself is never modified.
    """

    def __init__(
        self,
        *,
        verbose: bool = False,
        echo: Callable[[str], None] | None = None,
        cwd: Path | None = None,
        base_env: Mapping[str, str] | None = None,
        runner: CommandRunner | None = None,
    ) -> None:
        self.verbose = verbose
        self._echo = echo or print
        self._cwd = cwd
        self._base_env = base_env
        self._runner = runner or _stream_runner

    def child_env(self, env: Mapping[str, str] | None = None) -> dict[str, str]:
        """Ambient environment with *env* laid over it."""
        merged = dict(os.environ if self._base_env is None else self._base_env)
        overlay = dict(env or {})
        if "CLOUDFLARE_API_TOKEN" in overlay:
            for var in _SHADOWING_VARS:
                merged.pop(var, None)
        merged.update(overlay)
        return merged

    def run(self, command: Sequence[str], env: Mapping[str, str] | None = None) -> str:
        """Run *command* and return its combined output.

        Raises:
            ExecutionError: The command could not be started or exited non-zero.
        """
        logger.debug("Executing: %s", " ".join(command))
        echo = self._echo if self.verbose else None
        try:
            result = self._runner(command, self.child_env(env), self._cwd, echo)
        except OSError as exc:
            raise ExecutionError(command, None, str(exc)) from exc
        if result.returncode != 0:
            logger.debug("Command failed (%d): %s", result.returncode, " ".join(command))
            raise ExecutionError(command, result.returncode, result.output)
        return result.output


def extract_identifier(output: str, key: str) -> str:
    """Extract ``key = "value"`` (TOML) or ``"key": "value"`` (JSON) from *output*.

    Raises:
        ParseError: Neither form is present.
    """
    patterns = (
        rf'(?<![\w-]){re.escape(key)}\s*=\s*"([^"]+)"',
        rf'"{re.escape(key)}"\s*:\s*"([^"]+)"',
    )
    for pattern in patterns:
        match = re.search(pattern, output)
        if match:
            return match.group(1)
    raise ParseError(key, output)
