import pytest

from excelflow.errors import ValidationError
from excelflow.runtime.downloads import (
    LocalDirectoryTarget,
    build_run_download_dir,
    resolve_download_root,
    safe_filename,
)


def test_resolve_download_root_uses_local_default_when_env_unset(tmp_path, monkeypatch):
    monkeypatch.delenv("EXCELFLOW_DOWNLOAD_ROOT", raising=False)
    monkeypatch.chdir(tmp_path)

    root = resolve_download_root()

    assert root == tmp_path / "downloads"
    assert root.exists()


def test_resolve_download_root_uses_env_var(tmp_path, monkeypatch):
    env_root = tmp_path / "custom_root"
    monkeypatch.setenv("EXCELFLOW_DOWNLOAD_ROOT", str(env_root))

    assert resolve_download_root() == env_root


def test_resolve_download_root_falls_back_when_env_invalid(tmp_path, monkeypatch):
    invalid_root = tmp_path / "not_a_dir"
    invalid_root.write_text("nope", encoding="utf-8")
    monkeypatch.setenv("EXCELFLOW_DOWNLOAD_ROOT", str(invalid_root))
    monkeypatch.chdir(tmp_path)

    assert resolve_download_root() == tmp_path / "downloads"


def test_build_run_download_dir_creates_run_dir(tmp_path):
    run_dir = build_run_download_dir("run_123", download_root=tmp_path)

    assert run_dir == tmp_path / "runs" / "run_123"
    assert run_dir.is_dir()


def test_safe_filename_strips_directories():
    assert safe_filename("/srv/out/report.xlsx") == "report.xlsx"
    assert safe_filename("C:\\out\\report.xlsx") == "report.xlsx"
    with pytest.raises(ValidationError):
        safe_filename("../")


def test_local_target_commits_on_success(tmp_path):
    target = LocalDirectoryTarget(tmp_path)

    with target.open("report.xlsx") as sink:
        sink.write(b"abc")
        sink.write(b"def")

    assert (tmp_path / "report.xlsx").read_bytes() == b"abcdef"
    assert sorted(path.name for path in tmp_path.iterdir()) == ["report.xlsx"]


def test_local_target_discards_partial_write(tmp_path):
    target = LocalDirectoryTarget(tmp_path)

    with pytest.raises(RuntimeError):
        with target.open("report.xlsx") as sink:
            sink.write(b"partial")
            raise RuntimeError("connection dropped")

    assert list(tmp_path.iterdir()) == []
