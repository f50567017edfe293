"""Subprocess wrapper for invoking the native git binary.

Every git call made by the content store goes through GitCommandRunner so
that timeouts, prompt suppression and credential sanitization are applied in
one place.
"""

import logging
import os
import subprocess
from typing import Iterable, Optional, Sequence, Union

from src.git_integration.errors import GitCommandError
from src.git_integration.models import Secret
from src.git_integration.remote_url import sanitize_credentials

logger = logging.getLogger(__name__)

# Git command timeout in seconds for local operations (config, add, commit...)
GIT_TIMEOUT = 10

# Timeout in seconds for operations that talk to the remote (clone, fetch, push)
GIT_NETWORK_TIMEOUT = 120


class GitCommandRunner:
    """Runs git commands with a timeout and sanitized error reporting.

    Interactive prompts are disabled (GIT_TERMINAL_PROMPT=0) so a rejected
    credential fails fast instead of hanging the calling thread.

    Example:
        >>> runner = GitCommandRunner()
        >>> result = runner.run(["status", "--porcelain"], cwd="/data/p1")
        >>> result.stdout
        ''
    """

    def __init__(self, timeout: float = GIT_TIMEOUT, network_timeout: float = GIT_NETWORK_TIMEOUT):
        """Initialize the runner.

        Args:
            timeout: Timeout for local git commands, in seconds
            network_timeout: Timeout for clone/fetch/push, in seconds
        """
        self.timeout = timeout
        self.network_timeout = network_timeout

    def _env(self) -> dict:
        env = dict(os.environ)
        env["GIT_TERMINAL_PROMPT"] = "0"
        return env

    def run(
        self,
        args: Sequence[str],
        cwd: Optional[Union[str, os.PathLike]] = None,
        network: bool = False,
        check: bool = True,
        secrets: Iterable[Optional[Secret]] = (),
    ) -> subprocess.CompletedProcess:
        """Run a git command.

        Args:
            args: Arguments after "git" (e.g. ["fetch", url, refspec])
            cwd: Working directory for the command
            network: Use the network timeout instead of the local one
            check: Raise GitCommandError on a non-zero exit code
            secrets: Secrets to mask in logged arguments and error output

        Returns:
            CompletedProcess with text stdout/stderr

        Raises:
            GitCommandError: On timeout, missing git binary, or non-zero exit
                (when check is True)
        """
        secret_list = [s for s in secrets if s is not None]
        command = args[0] if args else ""
        timeout = self.network_timeout if network else self.timeout
        printable = sanitize_credentials(" ".join(args), secret_list)
        logger.debug(f"Running: git {printable} (cwd={cwd})")

        try:
            result = subprocess.run(
                ["git", *args],
                cwd=cwd,
                capture_output=True,
                text=True,
                timeout=timeout,
                env=self._env(),
            )
        except subprocess.TimeoutExpired:
            raise GitCommandError(
                command=command,
                message=f"timed out after {timeout} seconds",
                timed_out=True,
            )
        except FileNotFoundError:
            if cwd is not None and not os.path.isdir(cwd):
                raise GitCommandError(
                    command=command,
                    message=f"working directory {cwd} does not exist",
                )
            raise GitCommandError(
                command=command,
                message="Git command not found. Please install git.",
            )

        if check and result.returncode != 0:
            output = sanitize_credentials((result.stderr or result.stdout).strip(), secret_list)
            raise GitCommandError(
                command=command,
                message=output.splitlines()[-1] if output else f"exit code {result.returncode}",
                git_output=output,
            )
        return result
