"""Publishing obfuscated projects through git, filtered obfuscation and batch runs."""

from __future__ import annotations

import base64
import copy
import fnmatch
import logging
import os
import stat
import subprocess
import tempfile
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Sequence

from repocloak.core import MAPPING_FILE_NAME, ObfuscationError, Obfuscator

logger = logging.getLogger(__name__)

COMMIT_MESSAGE = "Obfuscated code update"
AUTHOR_NAME = "Code Obfuscator"
AUTHOR_EMAIL = "obfuscator@example.com"


class GitError(Exception):
    """Raised when a git operation fails."""


def _git(
    args: Sequence[str],
    action: str,
    cwd: str | None = None,
    config: Iterable[str] = (),
) -> str:
    """Run git with the given arguments and return its standard output."""
    command = ["git"]
    for setting in config:
        command += ["-c", setting]
    command += list(args)
    env = dict(
        os.environ,
        GIT_TERMINAL_PROMPT="0",
        GIT_AUTHOR_NAME=AUTHOR_NAME,
        GIT_AUTHOR_EMAIL=AUTHOR_EMAIL,
        GIT_COMMITTER_NAME=AUTHOR_NAME,
        GIT_COMMITTER_EMAIL=AUTHOR_EMAIL,
    )
    try:
        result = subprocess.run(
            command, cwd=cwd, env=env, capture_output=True, text=True, check=False
        )
    except OSError as exc:
        raise GitError(f"failed to {action}: {exc}") from exc
    if result.returncode != 0:
        detail = (result.stderr or result.stdout or "").strip()
        raise GitError(f"failed to {action}: {detail or f'git exited with status {result.returncode}'}")
    return result.stdout or ""


class GitHubIntegration:
    """Pushes obfuscated projects to a remote and restores them from one."""

    def __init__(self, obfuscator: Obfuscator, username: str, token: str) -> None:
        self.obfuscator = obfuscator
        self.username = username
        self._token = token

    def _auth_config(self) -> list[str]:
        if not (self.username or self._token):
            return []
        credentials = base64.b64encode(f"{self.username}:{self._token}".encode("utf-8")).decode("ascii")
        return [f"http.extraHeader=Authorization: Basic {credentials}"]

    def obfuscate_and_push(
        self,
        local_path: str | os.PathLike[str],
        remote_path: str,
        branch: str,
    ) -> str:
        """Obfuscate local_path, commit it to a fresh repository and push it; return the commit id."""
        with tempfile.TemporaryDirectory(prefix="obfuscated-", ignore_cleanup_errors=True) as temp_dir:
            logger.info("Obfuscating project...")
            try:
                self.obfuscator.obfuscate_project(local_path, temp_dir)
            except ObfuscationError as exc:
                raise ObfuscationError(f"failed to obfuscate: {exc}") from exc

            logger.info("Initializing git repository...")
            _git(["init"], "init repo", cwd=temp_dir)
            _git(["symbolic-ref", "HEAD", f"refs/heads/{branch}"], "init repo", cwd=temp_dir)
            _git(["remote", "add", "origin", os.fspath(remote_path)], "add remote", cwd=temp_dir)

            logger.info("Adding obfuscated files...")
            _git(["add", "--all", "."], "add files", cwd=temp_dir)
            _git(
                ["commit", "-m", COMMIT_MESSAGE, "--author", f"{AUTHOR_NAME} <{AUTHOR_EMAIL}>"],
                "commit",
                cwd=temp_dir,
                config=["commit.gpgsign=false"],
            )
            commit = _git(["rev-parse", "HEAD"], "commit", cwd=temp_dir).strip()

            logger.info("Pushing to remote...")
            _git(
                ["push", "origin", f"refs/heads/{branch}:refs/heads/{branch}"],
                "push",
                cwd=temp_dir,
                config=self._auth_config(),
            )
        logger.info("Pushed obfuscated code to %s (commit %s)", remote_path, commit)
        return commit

    def clone_and_deobfuscate(
        self,
        remote_path: str,
        local_path: str | os.PathLike[str],
        mapping_key: str,
    ) -> list[str]:
        """Clone an obfuscated repository and restore it into local_path.

        mapping_key is not used; decryption uses the obfuscator's key.
        Returns the original paths whose hash did not match.
        """
        with tempfile.TemporaryDirectory(prefix="clone-", ignore_cleanup_errors=True) as temp_dir:
            logger.info("Cloning obfuscated repository...")
            _git(["clone", os.fspath(remote_path), temp_dir], "clone", config=self._auth_config())

            mapping_file = os.path.join(temp_dir, MAPPING_FILE_NAME)
            if not os.path.exists(mapping_file):
                raise GitError("mapping file not found in repository")

            logger.info("Deobfuscating project...")
            try:
                mismatched = self.obfuscator.deobfuscate_project(temp_dir, local_path, mapping_file)
            except ObfuscationError as exc:
                raise ObfuscationError(f"failed to deobfuscate: {exc}") from exc
        logger.info("Deobfuscated to %s", local_path)
        return mismatched


@dataclass
class AdvancedConfig:
    """Options for filtered and time-limited obfuscation."""

    obfuscate_comments: bool = False
    obfuscate_strings: bool = False
    exclude_patterns: list[str] = field(default_factory=list)
    include_only_patterns: list[str] = field(default_factory=list)
    compression_enabled: bool = False
    time_limited_access: bool = False
    expiration_time: datetime | None = None
    max_deobfuscations: int = 0
    deobfuscation_counter: int = 0


class AdvancedObfuscator(Obfuscator):
    """Obfuscator that filters entries by name pattern and can expire."""

    def __init__(self, master_key: str, config: AdvancedConfig | None = None) -> None:
        super().__init__(master_key)
        self.advanced_config = config if config is not None else AdvancedConfig()

    def should_process_file(self, file_path: str | os.PathLike[str]) -> bool:
        """Apply exclude patterns, then include-only patterns, to the base name."""
        path = os.fspath(file_path)
        name = os.path.basename(path.rstrip(os.sep)) or path
        cfg = self.advanced_config
        if any(fnmatch.fnmatchcase(name, pattern) for pattern in cfg.exclude_patterns):
            return False
        if cfg.include_only_patterns:
            return any(fnmatch.fnmatchcase(name, pattern) for pattern in cfg.include_only_patterns)
        return True

    def _expired(self) -> bool:
        cfg = self.advanced_config
        if not cfg.time_limited_access:
            return False
        if cfg.expiration_time is None:
            return True
        return datetime.now(cfg.expiration_time.tzinfo) > cfg.expiration_time

    def _obfuscate_entry(self, source: str, target: str, path: str, info: os.stat_result) -> None:
        if not self.should_process_file(path):
            return
        super()._obfuscate_entry(source, target, path, info)

    def obfuscate_project_advanced(
        self,
        source_path: str | os.PathLike[str],
        target_path: str | os.PathLike[str],
    ) -> None:
        """Obfuscate unless expired, skipping entries the patterns reject."""
        if self._expired():
            raise ObfuscationError("obfuscation expired")
        self.obfuscate_project(source_path, target_path)


@dataclass
class BatchJob:
    """One project to obfuscate in a batch."""

    id: str
    source_path: str
    target_path: str
    status: str = ""
    error: Exception | None = None


class BatchProcessor:
    """Obfuscates several projects concurrently."""

    def __init__(self, obfuscator: Obfuscator, max_workers: int) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.obfuscator = obfuscator
        self.max_workers = max_workers

    def _run(self, job: BatchJob) -> BatchJob:
        job.status = "processing"
        worker = copy.copy(self.obfuscator)
        try:
            worker.obfuscate_project(job.source_path, job.target_path)
        except (ObfuscationError, OSError) as exc:
            job.status = "failed"
            job.error = exc
        else:
            job.status = "completed"
        return job

    def process_batch(self, jobs: Iterable[BatchJob]) -> list[BatchJob]:
        """Run every job and return them in the order they finished."""
        pending = list(jobs)
        if not pending:
            return []
        for job in pending:
            job.status = "pending"
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [executor.submit(self._run, job) for job in pending]
            return [future.result() for future in as_completed(futures)]