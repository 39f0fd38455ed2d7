"""
Spawning compiled commands and classifying how they ended.
"""

import asyncio
import logging
import os
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence

from cellar.cellar_exceptions import LaunchFailed
from cellar.cellar_logger import CellarLogger
from cellar.launch.command import CompiledCommand

# Wine and Proton print these on perfectly healthy runs
BENIGN_MARKERS = (
    "fixme:",
    "err:setupapi:create_dest_file",
    "wine-staging",
    "experimental patches",
    "winediag:",
    "stub",
)

INTERESTING_ENV_PREFIXES = ("WINE", "PROTON", "DXVK", "GAMEID", "HOST_LC_ALL")

# Anything outside this set means something to sh and gets quoted
_SHELL_SAFE = re.compile(r"[A-Za-z0-9_@%+=:,./-]+")
_ASSIGNMENT = re.compile(r"([A-Za-z_][A-Za-z0-9_]*)=(.*)", re.DOTALL)


class LaunchOutcome(str, Enum):
    SUCCESS = "success"
    BENIGN_NON_ZERO = "benign_non_zero"
    FAILED = "failed"


@dataclass
class LaunchResult:
    outcome: LaunchOutcome
    return_code: int
    critical_errors: List[str] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return self.outcome == LaunchOutcome.FAILED

    def raise_for_outcome(self) -> None:
        if self.failed:
            raise LaunchFailed(
                "Game launch failed with errors:\n" + "\n".join(self.critical_errors),
                return_code=self.return_code,
            )


def filter_critical_errors(stderr: str) -> List[str]:
    """
    Lines of ``stderr`` that report an error or failure and are not known
    Wine noise.
    """
    critical = []
    for line in stderr.splitlines():
        lowered = line.lower()
        if not line.strip():
            continue
        if "error" not in lowered and "failed" not in lowered:
            continue
        if any(marker in lowered for marker in BENIGN_MARKERS):
            continue
        critical.append(line)
    return critical


def classify_exit(return_code: int, stderr: str) -> LaunchResult:
    if return_code == 0:
        return LaunchResult(LaunchOutcome.SUCCESS, return_code)
    critical = filter_critical_errors(stderr)
    if critical:
        return LaunchResult(LaunchOutcome.FAILED, return_code, critical)
    return LaunchResult(LaunchOutcome.BENIGN_NON_ZERO, return_code)


def needs_shell(argv: Sequence[str]) -> bool:
    """
    True when the first token is an environment assignment such as
    ``DXVK_HUD=fps``, which only a shell understands.
    """
    return bool(argv) and "=" in argv[0]


def shell_quote(arg: str) -> str:
    """
    ``arg`` as one literal shell word. Words made only of safe characters are
    left alone. Everything else is double quoted, escaping the characters sh
    still interprets inside double quotes.
    """
    if _SHELL_SAFE.fullmatch(arg):
        return arg
    escaped = (
        arg.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("$", "\\$")
        .replace("`", "\\`")
    )
    return f'"{escaped}"'


def shell_quote_command(argv: Sequence[str]) -> str:
    """
    Join ``argv`` into a line for ``sh -c``. Leading ``NAME=value`` tokens
    stay assignments with only the value quoted; every other token is quoted
    as a literal word.
    """
    words = []
    in_assignments = True
    for arg in argv:
        match = _ASSIGNMENT.fullmatch(arg) if in_assignments else None
        if match:
            words.append(f"{match.group(1)}={shell_quote(match.group(2))}")
        else:
            in_assignments = False
            words.append(shell_quote(arg))
    return " ".join(words)


class ProcessExecutor:
    """
    Runs a CompiledCommand and waits for it to exit.

    Standard output is inherited; standard error is captured for
    classification. No timeout is applied, games run as long as they run.
    """

    def __init__(self, logger: CellarLogger, shell: str = "sh", base_environment: Optional[Dict[str, str]] = None):
        self.logger = logger
        self.shell = shell
        self.base_environment = base_environment

    def _environment(self, command: CompiledCommand) -> Dict[str, str]:
        env = dict(os.environ if self.base_environment is None else self.base_environment)
        env.update(command.environment)
        return env

    def _log_command(self, command: CompiledCommand, shell_line: Optional[str]) -> None:
        if shell_line is not None:
            self.logger.log(f"Executing shell command: {shell_line}", logging.INFO)
        else:
            self.logger.log(f"Executing {command.program} with arguments {command.args}", logging.INFO)
        interesting = {
            key: value
            for key, value in command.environment.items()
            if key.startswith(INTERESTING_ENV_PREFIXES)
        }
        if interesting:
            self.logger.log(f"Launch environment: {interesting}", logging.DEBUG)

    async def execute(self, command: CompiledCommand) -> LaunchResult:
        """
        Spawn ``command``, directly or through the shell, and classify its exit.

        Raises:
            OSError: The program could not be spawned
        """
        env = self._environment(command)
        cwd = command.working_directory or None

        if needs_shell(command.argv):
            shell_line = shell_quote_command(command.argv)
            self._log_command(command, shell_line)
            process = await asyncio.create_subprocess_exec(
                self.shell, "-c", shell_line,
                env=env, cwd=cwd, stdout=None, stderr=asyncio.subprocess.PIPE,
            )
        else:
            self._log_command(command, None)
            process = await asyncio.create_subprocess_exec(
                command.program, *command.args,
                env=env, cwd=cwd, stdout=None, stderr=asyncio.subprocess.PIPE,
            )

        _, stderr = await process.communicate()
        result = classify_exit(process.returncode, stderr.decode("utf-8", errors="replace"))

        if result.outcome == LaunchOutcome.BENIGN_NON_ZERO:
            self.logger.log(
                f"Game exited with status {result.return_code} but no critical errors detected",
                logging.WARNING,
            )
        elif result.failed:
            self.logger.log(
                f"Game exited with status {result.return_code}: {result.critical_errors}",
                logging.ERROR,
            )
        else:
            self.logger.log("Game exited", logging.INFO)
        return result
