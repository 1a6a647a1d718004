"""State registry tests."""
from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from sitectl.state import StateRegistry, StateRegistryError


def test_missing_file_is_an_empty_registry(tmp_path: Path) -> None:
    registry = StateRegistry(tmp_path / "registry")

    assert registry.list_instances() == []
    assert registry.get_instance("blog") is None


def test_write_is_atomic_and_private(tmp_path: Path) -> None:
    """Only the final file remains, readable by owner and group."""
    registry = StateRegistry(tmp_path / "registry")

    registry.write_instances([{"name": "blog", "root": "/srv/blog"}])

    path = tmp_path / "registry" / "instances.yml"
    assert (path.stat().st_mode & 0o777) == 0o640
    assert yaml.safe_load(path.read_text(encoding="utf-8")) == {
        "instances": [{"name": "blog", "root": "/srv/blog"}]
    }
    assert [p.name for p in path.parent.iterdir()] == ["instances.yml"]


def test_invalid_yaml_raises(tmp_path: Path) -> None:
    registry = StateRegistry(tmp_path)
    (tmp_path / "instances.yml").write_text("instances: [\n", encoding="utf-8")

    with pytest.raises(StateRegistryError, match="Failed to parse"):
        registry.list_instances()


def test_wrong_shape_raises(tmp_path: Path) -> None:
    registry = StateRegistry(tmp_path)
    (tmp_path / "instances.yml").write_text("instances: blog\n", encoding="utf-8")

    with pytest.raises(StateRegistryError, match="must map 'instances' to a list"):
        registry.list_instances()


def test_list_instances_skips_malformed_entries(tmp_path: Path) -> None:
    """Entries without a string name are ignored."""
    registry = StateRegistry(tmp_path)
    (tmp_path / "instances.yml").write_text(
        yaml.safe_dump({"instances": [{"name": "blog"}, {"root": "/x"}, "junk", {"name": 3}]}),
        encoding="utf-8",
    )

    assert registry.list_instances() == [{"name": "blog"}]
    assert registry.get_instance("blog") == {"name": "blog"}


def test_update_instance_merges_and_keeps_others(tmp_path: Path) -> None:
    """Updates touch one entry; malformed neighbours survive the rewrite."""
    registry = StateRegistry(tmp_path)
    (tmp_path / "instances.yml").write_text(
        yaml.safe_dump({"instances": ["junk", {"name": "blog", "status": "stopped"}]}),
        encoding="utf-8",
    )

    registry.update_instance("blog", {"status": "running", "enabled": True})

    raw = yaml.safe_load((tmp_path / "instances.yml").read_text(encoding="utf-8"))
    assert raw["instances"] == ["junk", {"name": "blog", "status": "running", "enabled": True}]


def test_update_unknown_instance_raises(tmp_path: Path) -> None:
    registry = StateRegistry(tmp_path)
    registry.write_instances([{"name": "blog"}])

    with pytest.raises(StateRegistryError, match="'ghost' not found"):
        registry.update_instance("ghost", {"status": "running"})


def test_find_instance_by_path_prefers_deepest_root(tmp_path: Path) -> None:
    """Nested roots resolve to the most specific instance."""
    outer = tmp_path / "sites"
    inner = outer / "blog"
    (inner / "content" / "images").mkdir(parents=True)
    registry = StateRegistry(tmp_path / "registry")
    registry.write_instances(
        [
            {"name": "outer", "root": str(outer)},
            {"name": "blog", "root": str(inner)},
            {"name": "rootless"},
        ]
    )

    found = registry.find_instance_by_path(inner / "content" / "images")
    assert found is not None and found["name"] == "blog"
    found = registry.find_instance_by_path(outer)
    assert found is not None and found["name"] == "outer"
    assert registry.find_instance_by_path(tmp_path) is None
