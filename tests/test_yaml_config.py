"""Tests for formation_tracker.yaml_config."""

from formation_tracker.yaml_config import CollectionConfig


def _write(tmp_path, content: str) -> str:
    path = tmp_path / "config.yaml"
    path.write_text(content)
    return str(path)


class TestCollectionConfig:
    def test_missing_file_yields_no_mappings(self, tmp_path):
        config = CollectionConfig(str(tmp_path / "absent.yaml"))
        assert config.mappings == []
        assert config.resolve_database_id("projects") is None

    def test_loads_collections(self, tmp_path):
        path = _write(
            tmp_path,
            "collections:\n"
            "  projects: db-projects\n"
            "  tasks: db-tasks\n"
            "  trainings: db-trainings\n",
        )

        config = CollectionConfig(path)

        assert config.resolve_database_id("projects") == "db-projects"
        assert config.resolve_database_id("tasks") == "db-tasks"
        assert config.resolve_database_id("trainings") == "db-trainings"
        assert len(config.mappings) == 3

    def test_skips_invalid_entries(self, tmp_path):
        path = _write(
            tmp_path,
            "collections:\n"
            "  projects: db-1\n"
            "  tasks: ''\n"
            "  trainings: db-1\n"
            "  expenses: db-2\n",
        )

        config = CollectionConfig(path)

        assert [m.collection for m in config.mappings] == ["projects"]
        assert config.resolve_database_id("trainings") is None

    def test_malformed_yaml_is_ignored(self, tmp_path):
        path = _write(tmp_path, "collections: [unclosed\n")
        assert CollectionConfig(path).mappings == []

    def test_missing_collections_key(self, tmp_path):
        path = _write(tmp_path, "projects:\n  - name: x\n")
        assert CollectionConfig(path).mappings == []

    def test_collections_must_be_a_mapping(self, tmp_path):
        path = _write(tmp_path, "collections:\n  - db-1\n")
        assert CollectionConfig(path).mappings == []
