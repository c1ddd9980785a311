# backend/crawler/engine/migrations.py
"""
Player document schema migrations.

Documents carry a ``schema_version``. Older documents are upgraded one step
at a time when they are loaded, so handlers can rely on every field being
present instead of null-checking legacy shapes.

    v0 -> v1: long stat names, statistics, explored, equipment slots, event_log, stat points
    v1 -> v2: skills
"""
import copy
import logging
from typing import Any, Callable, Dict, Mapping, Tuple

from .systems import rules
from .world import EQUIPMENT_SLOTS, PLAYER_SCHEMA_VERSION

logger = logging.getLogger(__name__)

Doc = Dict[str, Any]
MigrationStep = Callable[[Doc], Doc]


def _v0_to_v1(doc: Doc) -> Doc:
    # Early documents stored stats under their short names ("str", "dex", ...)
    stats = rules.create_starting_stats()
    for key, value in (doc.get("stats") or {}).items():
        stats[rules.STAT_ALIASES.get(key, key)] = value
    doc["stats"] = stats

    statistics = doc.get("statistics") or {}
    statistics.setdefault("entities_killed", 0)
    statistics.setdefault("lootboxes_opened", 0)
    doc["statistics"] = statistics

    if not doc.get("explored"):
        doc["explored"] = [doc["location"]] if doc.get("location") else []

    equipment = doc.get("equipment") or {}
    for slot in EQUIPMENT_SLOTS:
        equipment.setdefault(slot, None)
    doc["equipment"] = equipment

    doc.setdefault("event_log", [])
    doc.setdefault("inventory", [])
    doc.setdefault("stat_points_available", 0)
    doc.setdefault("alive", True)
    return doc


def _v1_to_v2(doc: Doc) -> Doc:
    skills = rules.create_starting_skills()
    skills.update(doc.get("skills") or {})
    doc["skills"] = skills
    return doc


# from_version -> step producing from_version + 1
MIGRATIONS: Dict[int, MigrationStep] = {
    0: _v0_to_v1,
    1: _v1_to_v2,
}


def migrate_player_doc(doc: Mapping[str, Any]) -> Tuple[Doc, bool]:
    """
    Bring a player document up to PLAYER_SCHEMA_VERSION.

    Returns:
        (migrated copy, whether any step ran)
    """
    migrated = copy.deepcopy(dict(doc))
    version = int(migrated.get("schema_version") or 0)
    start = version

    while version < PLAYER_SCHEMA_VERSION:
        step = MIGRATIONS[version]
        migrated = step(migrated)
        version += 1
        migrated["schema_version"] = version

    if version != start:
        logger.info(
            "Migrated player %s from schema v%d to v%d",
            migrated.get("id"), start, version,
        )
    return migrated, version != start
