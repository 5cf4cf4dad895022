# =====================
# 📁 sdk/git_client.py
# =====================
import asyncio
import logging
import os
from typing import List, Optional

from .exceptions import CommandError

logger = logging.getLogger(__name__)

DETACHED_NAMES = {"", "HEAD", "refs/heads/HEAD"}


class GitVcsClient:
    """Branch discovery for the local checkout, via the git CLI."""

    def __init__(self, repo_path: Optional[str] = None, remote: str = "origin", git_binary: str = "git"):
        self.repo_path = repo_path or os.getcwd()
        self.remote = remote
        self.git_binary = git_binary

    async def _run_git(self, *args: str) -> str:
        command = [self.git_binary, *args]
        logger.debug(f"Running: {' '.join(command)} (cwd={self.repo_path})")
        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.repo_path,
            )
        except OSError as e:
            raise CommandError(f"Could not run '{self.git_binary}': {e}") from e
        stdout, stderr = await process.communicate()
        stdout_str = stdout.decode("utf-8").strip() if stdout else ""
        stderr_str = stderr.decode("utf-8").strip() if stderr else ""
        if process.returncode != 0:
            raise CommandError(f"'{' '.join(command)}' failed", exit_code=process.returncode, stderr=stderr_str)
        return stdout_str

    async def current_branch(self) -> Optional[str]:
        branch = await self._run_git("rev-parse", "--abbrev-ref", "HEAD")
        return None if branch in DETACHED_NAMES else branch

    async def discover_branch(self, commit_sha: Optional[str]) -> Optional[str]:
        """
        Finds a branch for a detached checkout: first the local symbolic ref,
        then remote branches containing the commit.
        """
        try:
            branch = await self.current_branch()
            if branch:
                return branch
        except CommandError as e:
            logger.warning(f"git rev-parse failed during branch discovery: {e}")

        target = commit_sha or "HEAD"
        output = await self._run_git("branch", "-r", "--contains", target, "--format=%(refname:short)")
        candidates = self._remote_candidates(output.splitlines())
        if not candidates:
            logger.warning(f"No remote branch contains {target}.")
            return None
        if len(candidates) > 1:
            logger.info(f"Multiple remote branches contain {target}: {candidates}. Using '{candidates[0]}'.")
        return candidates[0]

    def _remote_candidates(self, lines: List[str]) -> List[str]:
        prefix = f"{self.remote}/"
        candidates = []
        for line in lines:
            name = line.strip()
            if not name or "->" in name or name == self.remote or name.endswith("/HEAD"):
                continue
            if name.startswith(prefix):
                name = name[len(prefix):]
            candidates.append(name)
        return sorted(set(candidates))
