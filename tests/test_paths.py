"""Tests for path naming, generation scanning, pruning, and directory resolution."""

import os
from datetime import date
from pathlib import Path

import pytest

from rotating_log_sink.config import DirectoryDescriptor
from rotating_log_sink.paths import next_generation, path, prune_generations, resolve_directory

DAY = date(2024, 5, 1)


def _touch(directory: Path, name: str) -> Path:
    p = directory / name
    p.write_text("x")
    return p


class TestPath:
    """Tests for :func:`path`."""

    def test_layout(self) -> None:
        assert path("logs", "app", DAY, 3) == os.path.join("logs", "app") + "_2024-05-01.3.log"

    def test_trailing_slash_in_dir(self) -> None:
        assert path("logs/test2/", "app", DAY, 0) == "logs/test2/app_2024-05-01.0.log"

    @pytest.mark.parametrize(
        "args",
        [
            (None, "app", DAY, 0),
            ("logs", None, DAY, 0),
            ("logs", "app", None, 0),
            ("logs", "app", DAY, None),
        ],
    )
    def test_any_missing_part_gives_none(self, args) -> None:
        assert path(*args) is None

    def test_deterministic(self) -> None:
        assert path("d", "f", DAY, 7) == path("d", "f", DAY, 7)


class TestNextGeneration:
    """Tests for :func:`next_generation`."""

    def test_empty_dir(self, tmp_path: Path) -> None:
        assert next_generation(str(tmp_path), "app", DAY) == 0

    def test_missing_dir(self, tmp_path: Path) -> None:
        assert next_generation(str(tmp_path / "nope"), "app", DAY) == 0

    def test_none_dir(self) -> None:
        assert next_generation(None, "app", DAY) == 0

    def test_continues_after_highest(self, tmp_path: Path) -> None:
        for n in (0, 1, 4):
            _touch(tmp_path, f"app_2024-05-01.{n}.log")
        assert next_generation(str(tmp_path), "app", DAY) == 5

    def test_ignores_other_dates_and_names(self, tmp_path: Path) -> None:
        _touch(tmp_path, "app_2024-04-30.9.log")
        _touch(tmp_path, "other_2024-05-01.9.log")
        _touch(tmp_path, "app_2024-05-01.x.log")
        _touch(tmp_path, "app_2024-05-01.2.log")
        assert next_generation(str(tmp_path), "app", DAY) == 3

    def test_filename_is_not_a_regex(self, tmp_path: Path) -> None:
        _touch(tmp_path, "app_2024-05-01.9.log")
        _touch(tmp_path, "a.p_2024-05-01.1.log")
        assert next_generation(str(tmp_path), "a.p", DAY) == 2


class TestPruneGenerations:
    """Tests for :func:`prune_generations`."""

    def test_deletes_below_ceiling_minus_keep(self, tmp_path: Path) -> None:
        for n in range(5):
            _touch(tmp_path, f"app_2024-05-01.{n}.log")

        deleted = prune_generations(str(tmp_path), "app", DAY, 5, 3)

        assert deleted == [2, 1, 0]
        remaining = sorted(p.name for p in tmp_path.iterdir())
        assert remaining == ["app_2024-05-01.3.log", "app_2024-05-01.4.log"]

    def test_keep_none_is_noop(self, tmp_path: Path) -> None:
        _touch(tmp_path, "app_2024-05-01.0.log")
        assert prune_generations(str(tmp_path), "app", DAY, 10, None) == []
        assert (tmp_path / "app_2024-05-01.0.log").exists()

    def test_ceiling_below_keep_is_noop(self, tmp_path: Path) -> None:
        _touch(tmp_path, "app_2024-05-01.0.log")
        assert prune_generations(str(tmp_path), "app", DAY, 2, 4) == []

    def test_missing_files_are_ignored(self, tmp_path: Path) -> None:
        _touch(tmp_path, "app_2024-05-01.1.log")
        assert prune_generations(str(tmp_path), "app", DAY, 4, 1) == [1]

    def test_other_dates_untouched(self, tmp_path: Path) -> None:
        old = _touch(tmp_path, "app_2024-04-30.0.log")
        prune_generations(str(tmp_path), "app", DAY, 5, 1)
        assert old.exists()


class TestResolveDirectory:
    """Tests for :func:`resolve_directory`."""

    def test_plain_paths_pass_through(self, tmp_path: Path) -> None:
        assert resolve_directory("logs") == "logs"
        assert resolve_directory(tmp_path) == str(tmp_path)
        assert resolve_directory(None) is None

    def test_user_data_on_windows(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("rotating_log_sink.paths.sys.platform", "win32")
        monkeypatch.setenv("LOCALAPPDATA", str(tmp_path))
        desc = DirectoryDescriptor("user_data", "MyApp", author="Acme Co", version="20.1.2")
        assert resolve_directory(desc) == os.path.join(str(tmp_path), "Acme Co", "MyApp", "20.1.2")

    def test_user_log_appends_logs(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("rotating_log_sink.paths.sys.platform", "linux")
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))
        desc = DirectoryDescriptor("user_log", "MyApp", author="Acme", version="1.0")
        assert resolve_directory(desc) == os.path.join(str(tmp_path), "Acme", "MyApp", "1.0", "Logs")

    def test_optional_parts_omitted(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("rotating_log_sink.paths.sys.platform", "linux")
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))
        assert resolve_directory(DirectoryDescriptor("user_data", "MyApp")) == os.path.join(
            str(tmp_path), "MyApp"
        )

    def test_bad_kind_rejected(self) -> None:
        with pytest.raises(ValueError):
            DirectoryDescriptor("user_cache", "MyApp")
