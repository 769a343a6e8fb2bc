import subprocess
from pathlib import Path

import pytest

from modarchiver import file_utils
from modarchiver.tooling import ExternalTool, PackerTool


def _fake_run(returncode, create_archive, calls):
    def run(command, **kwargs):
        calls.append(command)
        if create_archive:
            Path(command[3]).write_bytes(b"BSA")
        return subprocess.CompletedProcess(command, returncode, stdout="line 1\nline 2\n")

    return run


@pytest.fixture
def packer():
    return PackerTool(tool=ExternalTool(executable=Path("bsarch.exe")))


def test_pack_arguments(packer):
    arguments = packer.pack_arguments(Path("src"), Path("out/Weapons.bsa"))

    assert arguments == ["pack", "src", str(Path("out/Weapons.bsa")), "-sse", "-z", "-share", "-mt"]


def test_pack_arguments_respect_flags():
    packer = PackerTool(
        tool=ExternalTool(executable=Path("bsarch.exe")),
        archive_format="fo4",
        compress=False,
        share=False,
        multithreaded=False,
    )

    assert packer.pack_arguments(Path("src"), Path("a.ba2")) == ["pack", "src", "a.ba2", "-fo4"]


def test_pack_succeeds_with_zero_exit_and_archive(tmp_path, monkeypatch, packer):
    calls = []
    monkeypatch.setattr(file_utils.subprocess, "run", _fake_run(0, True, calls))
    archive = tmp_path / "archives" / "Weapons.bsa"

    result = packer.pack(tmp_path / "staging", archive)

    assert result.success
    assert result.returncode == 0
    assert calls[0][:2] == ["bsarch.exe", "pack"]
    assert archive.exists()


def test_pack_fails_without_archive(tmp_path, monkeypatch, packer):
    monkeypatch.setattr(file_utils.subprocess, "run", _fake_run(0, False, []))

    result = packer.pack(tmp_path / "staging", tmp_path / "Weapons.bsa")

    assert not result.success
    assert "line 2" in result.output


def test_pack_fails_on_nonzero_exit(tmp_path, monkeypatch, packer):
    monkeypatch.setattr(file_utils.subprocess, "run", _fake_run(3, True, []))

    result = packer.pack(tmp_path / "staging", tmp_path / "Weapons.bsa")

    assert not result.success
    assert result.returncode == 3


def test_pack_reports_missing_executable(tmp_path, monkeypatch, packer):
    def run(command, **kwargs):
        raise FileNotFoundError(command[0])

    monkeypatch.setattr(file_utils.subprocess, "run", run)

    result = packer.pack(tmp_path / "staging", tmp_path / "Weapons.bsa")

    assert not result.success
    assert result.returncode is None


def test_dry_run_does_not_start_the_packer(tmp_path, monkeypatch, packer):
    calls = []
    monkeypatch.setattr(file_utils.subprocess, "run", _fake_run(0, True, calls))

    result = packer.pack(tmp_path / "staging", tmp_path / "Weapons.bsa", dry_run=True)

    assert result.success
    assert calls == []
