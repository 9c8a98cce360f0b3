import base64
import os
import shutil
import subprocess
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest import mock

import pytest

from repocloak.core import MAPPING_FILE_NAME, ObfuscationError, Obfuscator
from repocloak.github import (
    AdvancedConfig,
    AdvancedObfuscator,
    BatchJob,
    BatchProcessor,
    GitError,
    GitHubIntegration,
)

MASTER_KEY = "secret"
REMOTE = "https://example.com/user/repo.git"

FILES = {
    "main.go": 'package main\n\nfunc main() {\n    fmt.Println("Hello, World!")\n}',
    os.path.join("src", "utils", "helper.go"): 'package utils\n\nfunc Helper() string {\n    return "Helper function"\n}',
    "README.md": "# Test Project\n\nThis is a test project for obfuscation.",
}


def _make_project(root: Path) -> Path:
    for rel, content in FILES.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root


def _split(cmd):
    assert cmd[0] == "git"
    configs, rest = [], list(cmd[1:])
    while rest and rest[0] == "-c":
        configs.append(rest[1])
        rest = rest[2:]
    return configs, rest


class FakeGit:
    def __init__(self, fail_on=None, clone_source=None, head="0123abcd"):
        self.fail_on = fail_on
        self.clone_source = clone_source
        self.head = head
        self.calls = []
        self.snapshot = None

    def __call__(self, cmd, **kwargs):
        configs, rest = _split(cmd)
        cwd = kwargs.get("cwd")
        self.calls.append((configs, rest, cwd))
        if rest[0] == self.fail_on:
            return subprocess.CompletedProcess(cmd, 128, stdout="", stderr="fatal: refused")
        if rest[0] == "add":
            self.snapshot = sorted(os.listdir(cwd))
        if rest[0] == "clone" and self.clone_source is not None:
            shutil.copytree(self.clone_source, rest[-1], dirs_exist_ok=True)
        stdout = self.head + "\n" if rest[0] == "rev-parse" else ""
        return subprocess.CompletedProcess(cmd, 0, stdout=stdout, stderr="")

    def find(self, name):
        return next(call for call in self.calls if call[1][0] == name)


def test_obfuscate_and_push_runs_git_sequence(tmp_path):
    project = _make_project(tmp_path / "project")
    fake = FakeGit()
    integration = GitHubIntegration(Obfuscator(MASTER_KEY), "user", "token")
    with mock.patch("repocloak.github.subprocess.run", new=fake):
        commit = integration.obfuscate_and_push(project, REMOTE, "main")

    assert commit == fake.head
    assert [rest[0] for _, rest, _ in fake.calls] == [
        "init", "symbolic-ref", "remote", "add", "commit", "rev-parse", "push",
    ]
    assert fake.find("remote")[1] == ["remote", "add", "origin", REMOTE]
    assert fake.find("push")[1] == ["push", "origin", "refs/heads/main:refs/heads/main"]
    assert MAPPING_FILE_NAME in fake.snapshot
    assert not os.path.exists(fake.find("init")[2])


def test_push_sends_basic_auth_header(tmp_path):
    project = _make_project(tmp_path / "project")
    fake = FakeGit()
    integration = GitHubIntegration(Obfuscator(MASTER_KEY), "user", "token")
    with mock.patch("repocloak.github.subprocess.run", new=fake):
        commit = integration.obfuscate_and_push(project, REMOTE, "main")

    assert commit == fake.head
    configs = fake.find("push")[0]
    prefix = "http.extraHeader=Authorization: Basic "
    headers = [c for c in configs if c.startswith(prefix)]
    assert len(headers) == 1
    assert base64.b64decode(headers[0][len(prefix):]).decode() == "user:token"


def test_push_failure_raises_git_error_and_cleans_up(tmp_path):
    project = _make_project(tmp_path / "project")
    fake = FakeGit(fail_on="push")
    integration = GitHubIntegration(Obfuscator(MASTER_KEY), "user", "token")
    with mock.patch("repocloak.github.subprocess.run", new=fake):
        with pytest.raises(GitError, match="failed to push"):
            integration.obfuscate_and_push(project, REMOTE, "main")
    assert not os.path.exists(fake.find("init")[2])


def test_missing_git_executable_raises_git_error(tmp_path):
    project = _make_project(tmp_path / "project")
    integration = GitHubIntegration(Obfuscator(MASTER_KEY), "user", "token")
    with mock.patch("repocloak.github.subprocess.run", side_effect=FileNotFoundError("git")):
        with pytest.raises(GitError, match="failed to init repo"):
            integration.obfuscate_and_push(project, REMOTE, "main")


def test_obfuscate_and_push_missing_source(tmp_path):
    fake = FakeGit()
    integration = GitHubIntegration(Obfuscator(MASTER_KEY), "user", "token")
    with mock.patch("repocloak.github.subprocess.run", new=fake):
        with pytest.raises(ObfuscationError, match="failed to obfuscate"):
            integration.obfuscate_and_push(tmp_path / "missing", REMOTE, "main")
    assert fake.calls == []


def test_clone_and_deobfuscate_restores_project(tmp_path):
    project = _make_project(tmp_path / "project")
    obfuscator = Obfuscator(MASTER_KEY)
    obfuscated = tmp_path / "obfuscated"
    obfuscator.obfuscate_project(project, obfuscated)

    fake = FakeGit(clone_source=obfuscated)
    restored = tmp_path / "restored"
    integration = GitHubIntegration(Obfuscator(MASTER_KEY), "user", "token")
    with mock.patch("repocloak.github.subprocess.run", new=fake):
        mismatched = integration.clone_and_deobfuscate(REMOTE, restored, "placeholder")

    assert mismatched == []
    assert fake.find("clone")[1][1] == REMOTE
    for rel, content in FILES.items():
        assert (restored / rel).read_text() == content


def test_clone_without_mapping_file_raises(tmp_path):
    fake = FakeGit()
    integration = GitHubIntegration(Obfuscator(MASTER_KEY), "user", "token")
    with mock.patch("repocloak.github.subprocess.run", new=fake):
        with pytest.raises(GitError, match="mapping file not found in repository"):
            integration.clone_and_deobfuscate(REMOTE, tmp_path / "restored", "placeholder")


def test_clone_failure_raises(tmp_path):
    fake = FakeGit(fail_on="clone")
    integration = GitHubIntegration(Obfuscator(MASTER_KEY), "user", "token")
    with mock.patch("repocloak.github.subprocess.run", new=fake):
        with pytest.raises(GitError, match="failed to clone"):
            integration.clone_and_deobfuscate(REMOTE, tmp_path / "restored", "placeholder")


@pytest.mark.parametrize(
    "exclude, include, path, expected",
    [
        ([], [], "a/b/main.go", True),
        (["*.md"], [], "docs/README.md", False),
        (["*.md"], [], "src/main.go", True),
        ([], ["*.go"], "src/main.go", True),
        ([], ["*.go"], "README.md", False),
        (["main.*"], ["*.go"], "src/main.go", False),
    ],
)
def test_should_process_file(exclude, include, path, expected):
    obf = AdvancedObfuscator(
        MASTER_KEY, AdvancedConfig(exclude_patterns=exclude, include_only_patterns=include)
    )
    assert obf.should_process_file(path.replace("/", os.sep)) is expected


def test_expired_obfuscation_is_refused(tmp_path):
    project = _make_project(tmp_path / "project")
    config = AdvancedConfig(
        time_limited_access=True,
        expiration_time=datetime.now(timezone.utc) - timedelta(hours=1),
    )
    with pytest.raises(ObfuscationError, match="obfuscation expired"):
        AdvancedObfuscator(MASTER_KEY, config).obfuscate_project_advanced(project, tmp_path / "out")
    assert not (tmp_path / "out").exists()


def test_time_limit_without_expiration_is_expired(tmp_path):
    project = _make_project(tmp_path / "project")
    config = AdvancedConfig(time_limited_access=True)
    with pytest.raises(ObfuscationError, match="obfuscation expired"):
        AdvancedObfuscator(MASTER_KEY, config).obfuscate_project_advanced(project, tmp_path / "out")


def test_advanced_exclude_round_trip(tmp_path):
    project = _make_project(tmp_path / "project")
    config = AdvancedConfig(
        exclude_patterns=["*.md"],
        time_limited_access=True,
        expiration_time=datetime.now(timezone.utc) + timedelta(hours=1),
    )
    obf = AdvancedObfuscator(MASTER_KEY, config)
    out = tmp_path / "out"
    obf.obfuscate_project_advanced(project, out)
    originals = {m.original_path for m in obf.project_mapping.mappings}
    assert "README.md" not in originals
    assert obf.project_mapping.metadata.total_files == len(FILES) - 1

    restored = tmp_path / "restored"
    obf.deobfuscate_project(out, restored, out / MAPPING_FILE_NAME)
    assert not (restored / "README.md").exists()
    assert (restored / "main.go").read_text() == FILES["main.go"]


def test_advanced_include_only_keeps_nested_files(tmp_path):
    project = _make_project(tmp_path / "project")
    obf = AdvancedObfuscator(MASTER_KEY, AdvancedConfig(include_only_patterns=["*.go"]))
    out = tmp_path / "out"
    obf.obfuscate_project_advanced(project, out)
    assert obf.project_mapping.metadata.total_directories == 0

    restored = tmp_path / "restored"
    obf.deobfuscate_project(out, restored, out / MAPPING_FILE_NAME)
    helper = os.path.join("src", "utils", "helper.go")
    assert (restored / helper).read_text() == FILES[helper]
    assert not (restored / "README.md").exists()


def test_batch_processor_reports_each_job(tmp_path):
    project = _make_project(tmp_path / "project")
    jobs = [
        BatchJob(id="good", source_path=str(project), target_path=str(tmp_path / "good")),
        BatchJob(id="bad", source_path=str(tmp_path / "missing"), target_path=str(tmp_path / "bad")),
    ]
    results = BatchProcessor(Obfuscator(MASTER_KEY), 2).process_batch(jobs)

    by_id = {job.id: job for job in results}
    assert sorted(by_id) == ["bad", "good"]
    assert by_id["good"].status == "completed"
    assert by_id["good"].error is None
    assert (tmp_path / "good" / MAPPING_FILE_NAME).exists()
    assert by_id["bad"].status == "failed"
    assert isinstance(by_id["bad"].error, ObfuscationError)
    assert jobs[0].status == "completed"


def test_batch_outputs_are_independently_restorable(tmp_path):
    project = _make_project(tmp_path / "project")
    obfuscator = Obfuscator(MASTER_KEY)
    jobs = [
        BatchJob(id=str(i), source_path=str(project), target_path=str(tmp_path / f"out{i}"))
        for i in range(3)
    ]
    results = BatchProcessor(obfuscator, 3).process_batch(jobs)
    assert all(job.status == "completed" for job in results)
    for job in jobs:
        restored = tmp_path / f"restored{job.id}"
        Obfuscator(MASTER_KEY).deobfuscate_project(
            job.target_path, restored, Path(job.target_path) / MAPPING_FILE_NAME
        )
        assert (restored / "main.go").read_text() == FILES["main.go"]


def test_batch_processor_needs_a_worker():
    with pytest.raises(ValueError):
        BatchProcessor(Obfuscator(MASTER_KEY), 0)


def test_empty_batch_returns_empty_list():
    assert BatchProcessor(Obfuscator(MASTER_KEY), 2).process_batch([]) == []