"""Subprocess execution service for helmactions."""

import subprocess
from typing import List, Mapping, Optional

from helmactions.errors import ProcessError
from helmactions.errors_catalog import actionable_error


class CommandRunner:
    """Runs external commands with consistent error handling.

    Output streams are inherited from the caller so the tool's diagnostics
    show up next to our own log lines. ``run`` blocks until the process
    exits and has no timeout; ``spawn`` returns the running process.
    """

    def __init__(self, logger, subprocess_module=subprocess):
        self.logger = logger
        self.subprocess = subprocess_module

    def run(
        self,
        cmd: List[str],
        env: Optional[Mapping[str, str]] = None,
    ) -> subprocess.CompletedProcess:
        cmd_str = " ".join(cmd)
        self.logger.debug("Executing: %s", cmd_str)

        try:
            result = self.subprocess.run(cmd, env=self._build_env(env))
        except FileNotFoundError as exc:
            raise ProcessError(
                actionable_error("tool_not_found", command=cmd[0]),
                command=cmd,
            ) from exc
        except OSError as exc:
            raise ProcessError(f"Failed to execute command: {cmd_str}. {exc}", command=cmd) from exc

        if result.returncode != 0:
            raise ProcessError(
                actionable_error("tool_failed", returncode=str(result.returncode), command=cmd_str),
                command=cmd,
                returncode=result.returncode,
            )

        self.logger.debug("Command finished: %s", cmd_str)
        return result

    def spawn(self, cmd: List[str], env: Optional[Mapping[str, str]] = None):
        cmd_str = " ".join(cmd)
        self.logger.debug("Starting background process: %s", cmd_str)

        try:
            return self.subprocess.Popen(cmd, env=self._build_env(env))
        except FileNotFoundError as exc:
            raise ProcessError(
                actionable_error("tool_not_found", command=cmd[0]),
                command=cmd,
            ) from exc
        except OSError as exc:
            raise ProcessError(f"Failed to start command: {cmd_str}. {exc}", command=cmd) from exc

    @staticmethod
    def _build_env(env: Optional[Mapping[str, str]]):
        if env is None:
            return None
        return {str(key): str(value) for key, value in env.items()}
