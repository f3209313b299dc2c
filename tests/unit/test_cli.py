"""
Storage CLI tests.

Runs the commands against the local backend rooted in a temp directory.
"""
import json

import pytest

from unified_storage.cli import main
from unified_storage.infrastructure.storage import reset_storage


@pytest.fixture
def storage_root(tmp_path, monkeypatch):
    root = tmp_path / "store"
    root.mkdir()
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("STORAGE_BASE_PATH", str(root))
    monkeypatch.delenv("SECRETS_FILE", raising=False)
    reset_storage()
    return root


@pytest.fixture
def local_file(tmp_path):
    path = tmp_path / "upload.txt"
    path.write_bytes(b"cli content")
    return path


class TestUsage:
    """Test argument handling."""

    def test_no_command(self, capsys):
        assert main([]) == 2
        assert "Usage:" in capsys.readouterr().out

    def test_unknown_command(self, capsys):
        assert main(["frobnicate"]) == 2

    def test_missing_argument(self, storage_root, capsys):
        assert main(["put", "only-path"]) == 2
        assert "put requires" in capsys.readouterr().out

    def test_config_flag_without_value(self, capsys):
        assert main(["ls", "x", "--config"]) == 2


class TestCommands:
    """Test each command on the local backend."""

    def test_put_and_get(self, storage_root, local_file, tmp_path, capsys):
        assert main(["put", "docs/a.txt", str(local_file)]) == 0
        assert (storage_root / "docs" / "a.txt").read_bytes() == b"cli content"

        out_file = tmp_path / "out.txt"
        assert main(["get", "docs/a.txt", str(out_file)]) == 0
        assert out_file.read_bytes() == b"cli content"

    def test_put_existing_requires_overwrite(self, storage_root, local_file, capsys):
        main(["put", "a.txt", str(local_file)])
        capsys.readouterr()

        assert main(["put", "a.txt", str(local_file)]) == 1
        assert "already exists" in capsys.readouterr().out
        assert main(["put", "a.txt", str(local_file), "--overwrite"]) == 0

    def test_put_missing_local_file(self, storage_root, tmp_path):
        assert main(["put", "a.txt", str(tmp_path / "nope")]) == 2

    def test_ls_lists_folders_first(self, storage_root, local_file, capsys):
        main(["put", "dir/z.txt", str(local_file)])
        main(["put", "dir/sub/y.txt", str(local_file)])
        capsys.readouterr()

        assert main(["ls", "dir"]) == 0
        assert capsys.readouterr().out.splitlines() == ["Folder: sub", "File: z.txt"]

    def test_exists(self, storage_root, local_file, capsys):
        main(["put", "a.txt", str(local_file)])

        assert main(["exists", "a.txt"]) == 0
        assert main(["exists", "b.txt"]) == 1

    def test_rm(self, storage_root, local_file):
        main(["put", "a.txt", str(local_file)])

        assert main(["rm", "a.txt"]) == 0
        assert not (storage_root / "a.txt").exists()

    def test_storage_error_exit_code(self, storage_root, capsys):
        assert main(["get", "missing.txt"]) == 1
        assert capsys.readouterr().out.startswith("Error:")


class TestConfigFile:
    """Test --config handling."""

    def test_config_file(self, tmp_path, local_file, monkeypatch):
        monkeypatch.delenv("STORAGE_BACKEND", raising=False)
        root = tmp_path / "from-config"
        config = tmp_path / "storage.json"
        config.write_text(json.dumps({"backend": "local", "base_path": str(root)}))

        assert main(["--config", str(config), "put", "x.txt", str(local_file)]) == 0
        assert (root / "x.txt").read_bytes() == b"cli content"

    def test_invalid_config_file(self, tmp_path, capsys):
        config = tmp_path / "storage.json"
        config.write_text('{"backend": "ftp"}')

        assert main(["--config", str(config), "ls", "x"]) == 1
        assert "Configuration error" in capsys.readouterr().out
