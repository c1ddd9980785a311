# backend/crawler/engine/loader.py
"""Load world content (rooms, entities, items, loot tables) from YAML into the document store."""

from __future__ import annotations
import logging
from pathlib import Path
from typing import Any, Dict, Iterator, List

import yaml

from .. import config
from ..store import ENTITIES, ITEMS, LOOT_TABLES, ROOMS, DocumentStore

logger = logging.getLogger(__name__)

# world_data subdirectory -> (collection, id key written into each document)
CONTENT_DIRS = {
    "rooms": (ROOMS, "room_id"),
    "entities": (ENTITIES, "entity_id"),
    "items": (ITEMS, "item_id"),
    "loot_tables": (LOOT_TABLES, "table_id"),
}


def _iter_yaml_docs(directory: Path) -> Iterator[Dict[str, Any]]:
    """Yield every mapping in a directory tree. A file may hold one mapping or a list."""
    for yaml_file in sorted(directory.glob("**/*.yaml")):
        # Skip schema files
        if yaml_file.name.startswith("_"):
            continue
        with open(yaml_file, encoding="utf-8") as f:
            data = yaml.safe_load(f)

        entries: List[Any] = data if isinstance(data, list) else [data]
        for entry in entries:
            if isinstance(entry, dict):
                yield entry
            elif entry is not None:
                logger.warning("Skipping non-mapping entry in %s", yaml_file)


async def load_world_data(
    store: DocumentStore,
    world_data_dir: str | Path | None = None,
    overwrite: bool = False,
) -> Dict[str, int]:
    """
    Seed the store from a world_data directory.

    Existing documents are left alone unless ``overwrite`` is set, so
    re-seeding never resets rooms or entities that play has changed.

    Returns:
        Number of documents written, per collection
    """
    root = Path(world_data_dir or config.WORLD_DATA_DIR)
    counts: Dict[str, int] = {}

    for subdir, (collection, id_key) in CONTENT_DIRS.items():
        directory = root / subdir
        loaded = 0
        if directory.exists():
            for doc in _iter_yaml_docs(directory):
                doc_id = doc.get(id_key) or doc.get("id")
                if not doc_id:
                    logger.warning("Skipping %s entry without an id: %r", subdir, doc)
                    continue
                doc[id_key] = doc_id
                doc.pop("id", None)

                if not overwrite and await store.get(collection, doc_id) is not None:
                    continue
                await store.set(collection, doc_id, doc)
                loaded += 1
        counts[collection] = loaded
        logger.info("Loaded %d %s from %s", loaded, collection, directory)

    return counts
