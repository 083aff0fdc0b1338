"""YAML configuration loader for collection-to-database mappings."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import structlog
import yaml

logger = structlog.get_logger()

COLLECTIONS: tuple[str, ...] = ("projects", "tasks", "trainings")


@dataclass
class CollectionMapping:
    """Mapping between a tracker collection and its Notion database ID."""

    collection: str
    notion_database_id: str


class CollectionConfig:
    """YAML configuration loader for collection mappings.

    Expected layout::

        collections:
          projects: <notion database id>
          tasks: <notion database id>
          trainings: <notion database id>
    """

    def __init__(self, config_path: str = "config.yaml") -> None:
        """Initialize the YAML config loader.

        Args:
            config_path: Path to the YAML configuration file.
        """
        self._mappings: dict[str, CollectionMapping] = {}
        self._load(config_path)

    def _load(self, config_path: str) -> None:
        """Load and validate the YAML configuration file.

        A missing or malformed file leaves the mapping empty.

        Args:
            config_path: Path to the YAML configuration file.
        """
        config_file = Path(config_path)

        if not config_file.exists():
            logger.info("config_file_not_found", path=config_path)
            return

        try:
            with config_file.open("r") as f:
                config_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error("yaml_parse_error", path=config_path, error=str(e))
            return

        if not isinstance(config_data, dict) or "collections" not in config_data:
            logger.warning("missing_collections_key", path=config_path)
            return

        collections = config_data["collections"]
        if not isinstance(collections, dict):
            logger.warning("collections_not_mapping", path=config_path)
            return

        seen_database_ids = set()

        for name, database_id in collections.items():
            if name not in COLLECTIONS:
                logger.warning("unknown_collection", collection=name)
                continue

            if not isinstance(database_id, str) or not database_id.strip():
                logger.warning("missing_or_empty_database_id", collection=name)
                continue

            database_id = database_id.strip()

            # One database cannot back two collections
            if database_id in seen_database_ids:
                logger.warning(
                    "duplicate_notion_database_id",
                    database_id=database_id,
                    collection=name,
                )
                continue

            seen_database_ids.add(database_id)
            self._mappings[name] = CollectionMapping(
                collection=name, notion_database_id=database_id
            )

        logger.info("config_loaded", mapping_count=len(self._mappings))

    def resolve_database_id(self, collection: str) -> str | None:
        """Resolve the Notion database ID for a collection.

        Args:
            collection: One of ``projects``, ``tasks`` or ``trainings``.

        Returns:
            The database ID if configured, None otherwise.
        """
        mapping = self._mappings.get(collection)
        return mapping.notion_database_id if mapping else None

    @property
    def mappings(self) -> list[CollectionMapping]:
        """Return all loaded collection mappings."""
        return list(self._mappings.values())
