"""Tests for bootstrapper.core.garbage module."""

from pathlib import Path
from unittest.mock import patch

from bootstrapper.core.garbage import collect_garbage, retained_names
from bootstrapper.core.types import Artifact

HASH = "c" * 64


def _artifact(name: str, bases: list[str] | None = None) -> Artifact:
    diffs = [
        {"name": f"{b}.diff", "from": b, "fromHash": HASH, "path": "x", "hash": HASH, "size": 1}
        for b in bases or []
    ]
    return Artifact(name=name, path="x", hash=HASH, size=1, diffs=diffs)


class TestCollectGarbage:
    """Test repository pruning."""

    def test_retained_names(self):
        names = retained_names([_artifact("a.jar", ["a-old.jar"]), _artifact("b.jar")])
        assert names == {"a.jar", "a-old.jar", "b.jar"}

    def test_unreferenced_deleted(self, repository):
        for name in ("a.jar", "a-old.jar", "stale.jar", "b.jar"):
            repository.write(name, b"data")

        report = collect_garbage(repository, [_artifact("a.jar", ["a-old.jar"]), _artifact("b.jar")])

        assert [p.name for p in report.deleted] == ["stale.jar"]
        assert sorted(p.name for p in repository.list_files()) == ["a-old.jar", "a.jar", "b.jar"]

    def test_directories_ignored(self, repository):
        (repository.root / "subdir").mkdir()

        report = collect_garbage(repository, [])

        assert report.deleted == []
        assert (repository.root / "subdir").is_dir()

    def test_delete_failure_reported_not_raised(self, repository):
        repository.write("stale.jar", b"data")

        with patch.object(Path, "unlink", side_effect=PermissionError("denied")):
            report = collect_garbage(repository, [])

        assert report.deleted == []
        assert len(report.failures) == 1
        assert report.failures[0].path.endswith("stale.jar")
        assert repository.exists("stale.jar")

    def test_empty_repository(self, app_config):
        from bootstrapper.core.repository import Repository

        report = collect_garbage(Repository(app_config), [_artifact("a.jar")])
        assert report.deleted == []
