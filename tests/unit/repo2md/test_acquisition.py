from __future__ import annotations

import subprocess
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from repo2md import acquisition
from repo2md.acquisition import acquire, clone_command, repository_name, resolve_source
from repo2md.config import LocalSource, RemoteSource
from repo2md.exceptions import CloneFailedError, SourceNotADirectoryError, SourceNotFoundError
from repo2md.settings import Settings

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


@pytest.mark.unit
@pytest.mark.parametrize(
    ("raw", "protocol"),
    [
        ("https://github.com/org/tool.git", "https"),
        ("http://example.com/org/tool", "http"),
        ("ssh://git@example.com:2222/org/tool.git", "ssh"),
        ("git@github.com:org/tool.git", "ssh"),
        ("git://example.com/org/tool.git", "git"),
        ("file:///srv/repos/tool.git", "file"),
        ("hg+custom://user@host:9000/path/tool", "hg+custom"),
    ],
)
def test_resolve_source_recognizes_remote_forms(raw: str, protocol: str) -> None:
    source = resolve_source(raw)

    assert isinstance(source, RemoteSource)
    assert source.url == raw
    assert source.protocol == protocol


@pytest.mark.unit
@pytest.mark.parametrize("raw", [".", "some/dir", "/abs/path/repo", "C:/work/repo", "name@with-at"])
def test_resolve_source_defaults_to_local(raw: str) -> None:
    source = resolve_source(raw)

    assert isinstance(source, LocalSource)
    assert source.path == Path(raw)


@pytest.mark.unit
@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("https://github.com/org/tool.git", "tool"),
        ("https://github.com/org/tool/", "tool"),
        ("git@github.com:org/tool.git", "tool"),
        ("git@github.com:tool.git", "tool"),
        ("ssh://git@example.com:2222/org/my.tool.git", "my-tool"),
        ("file:///srv/repos/tool.git", "tool"),
        ("https://example.com", "repository"),
    ],
)
def test_repository_name_from_url(raw: str, expected: str) -> None:
    assert repository_name(resolve_source(raw)) == expected


@pytest.mark.unit
def test_repository_name_for_local_uses_resolved_directory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    repo = tmp_path / "my project"
    repo.mkdir()
    monkeypatch.chdir(repo)

    assert repository_name(LocalSource(path=Path("."))) == "my-project"


@pytest.mark.unit
def test_clone_command_adds_ssh_options_and_depth(tmp_path: Path) -> None:
    ssh = clone_command(RemoteSource(url="git@host:org/r.git", protocol="ssh"), tmp_path / "r", depth=1)
    https = clone_command(RemoteSource(url="https://host/org/r.git", protocol="https"), tmp_path / "r")

    assert ssh[:4] == ["git", "-c", acquisition.SSH_COMMAND, "clone"]
    assert ["--depth", "1"] == ssh[4:6]
    assert https == ["git", "clone", "--", "https://host/org/r.git", str(tmp_path / "r")]


@pytest.mark.unit
def test_acquire_local_missing_path_raises_not_found(tmp_path: Path) -> None:
    source = LocalSource(path=tmp_path / "missing")

    with pytest.raises(SourceNotFoundError) as exc_info, acquire(source, Settings()):
        pass

    assert exc_info.value.path == tmp_path / "missing"
    assert "not found" in str(exc_info.value)


@pytest.mark.unit
def test_acquire_local_file_raises_not_a_directory(tmp_path: Path) -> None:
    file_path = tmp_path / "file.txt"
    file_path.write_text("x", encoding="utf-8")

    with pytest.raises(SourceNotADirectoryError), acquire(LocalSource(path=file_path), Settings()):
        pass


@pytest.mark.unit
def test_acquire_local_is_not_ephemeral(tmp_path: Path) -> None:
    with acquire(LocalSource(path=tmp_path), Settings()) as tree:
        assert tree.root == tmp_path.resolve()
        assert tree.ephemeral is False

    assert tmp_path.exists()


def _fake_clone(cmd: list[str], **_: object) -> subprocess.CompletedProcess[str]:
    dest = Path(cmd[-1])
    dest.mkdir(parents=True)
    (dest / "README.md").write_text("hello\n", encoding="utf-8")
    return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="Cloning into...\n")


@pytest.mark.unit
def test_acquire_remote_clones_into_temporary_directory_and_cleans_up(mocker: MockerFixture) -> None:
    run_mock = mocker.patch.object(acquisition.subprocess, "run", side_effect=_fake_clone)
    source = RemoteSource(url="https://github.com/org/tool.git", protocol="https")

    with acquire(source, Settings(clone_timeout=12)) as tree:
        root = tree.root
        assert tree.ephemeral is True
        assert tree.name == "tool"
        assert (root / "README.md").read_text(encoding="utf-8") == "hello\n"

    assert not root.exists()
    assert run_mock.call_args.kwargs["timeout"] == 12  # noqa: PLR2004


@pytest.mark.unit
def test_acquire_remote_cleans_up_when_block_fails(mocker: MockerFixture) -> None:
    mocker.patch.object(acquisition.subprocess, "run", side_effect=_fake_clone)
    source = RemoteSource(url="https://github.com/org/tool.git", protocol="https")
    seen: list[Path] = []

    with pytest.raises(RuntimeError), acquire(source, Settings()) as tree:
        seen.append(tree.root)
        raise RuntimeError("boom")

    assert seen
    assert not seen[0].exists()


@pytest.mark.unit
def test_acquire_remote_keeps_clone_dir(tmp_path: Path, mocker: MockerFixture) -> None:
    mocker.patch.object(acquisition.subprocess, "run", side_effect=_fake_clone)
    source = RemoteSource(url="git@github.com:org/tool.git", protocol="ssh")

    with acquire(source, Settings(clone_dir=tmp_path / "clones")) as tree:
        assert tree.ephemeral is False

    assert (tmp_path / "clones" / "tool" / "README.md").exists()


@pytest.mark.unit
def test_clone_non_zero_exit_raises_clone_failed(mocker: MockerFixture) -> None:
    mocker.patch.object(
        acquisition.subprocess,
        "run",
        return_value=subprocess.CompletedProcess([], 128, stdout="", stderr="fatal: repository not found\n"),
    )
    source = RemoteSource(url="https://github.com/org/missing.git", protocol="https")

    with pytest.raises(CloneFailedError) as exc_info, acquire(source, Settings()):
        pass

    assert exc_info.value.reason == "fatal: repository not found"


@pytest.mark.unit
def test_clone_timeout_raises_clone_failed(mocker: MockerFixture) -> None:
    mocker.patch.object(
        acquisition.subprocess,
        "run",
        side_effect=subprocess.TimeoutExpired(cmd="git clone", timeout=1),
    )
    source = RemoteSource(url="https://github.com/org/slow.git", protocol="https")

    with pytest.raises(CloneFailedError) as exc_info, acquire(source, Settings(clone_timeout=1)):
        pass

    assert exc_info.value.reason == "timeout"


@pytest.mark.unit
def test_clone_without_git_raises_clone_failed(mocker: MockerFixture, tmp_path: Path) -> None:
    mocker.patch.object(acquisition.subprocess, "run", side_effect=FileNotFoundError("git"))
    source = RemoteSource(url="https://github.com/org/tool.git", protocol="https")

    with pytest.raises(CloneFailedError, match="git executable not found"):
        acquisition.clone_repository(source, tmp_path / "tool", timeout=5)


@pytest.mark.unit
def test_clone_disables_credential_prompts(mocker: MockerFixture, tmp_path: Path) -> None:
    run_mock = mocker.patch.object(acquisition.subprocess, "run", side_effect=_fake_clone)
    source = RemoteSource(url="https://github.com/org/private.git", protocol="https")

    acquisition.clone_repository(source, tmp_path / "private", timeout=5)

    env = run_mock.call_args.kwargs["env"]
    assert env["GIT_TERMINAL_PROMPT"] == "0"
    assert "PATH" in env


def _partial_clone(cmd: list[str], **_: object) -> subprocess.CompletedProcess[str]:
    dest = Path(cmd[-1])
    (dest / ".git").mkdir(parents=True)
    return subprocess.CompletedProcess(cmd, 128, stdout="", stderr="fatal: early EOF\n")


@pytest.mark.unit
def test_failed_clone_into_clone_dir_leaves_nothing_behind(tmp_path: Path, mocker: MockerFixture) -> None:
    mocker.patch.object(acquisition.subprocess, "run", side_effect=_partial_clone)
    source = RemoteSource(url="https://github.com/org/tool.git", protocol="https")
    settings = Settings(clone_dir=tmp_path / "clones")

    with pytest.raises(CloneFailedError, match="early EOF"), acquire(source, settings):
        pass

    assert not (tmp_path / "clones" / "tool").exists()

    mocker.patch.object(acquisition.subprocess, "run", side_effect=_fake_clone)
    with acquire(source, settings) as tree:
        assert (tree.root / "README.md").exists()
