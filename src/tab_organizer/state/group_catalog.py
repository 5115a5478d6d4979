"""
Persistent catalog of tab group descriptions and AI-edit permissions.

The catalog is stored as two parallel maps keyed by group id:
``groupDescriptions`` (id → description) and ``groupAiControl``
(id → bool). Both are written with read-modify-write of the whole map, so
every mutation goes through a single lock to avoid lost updates when
several pipeline runs interleave.
"""

import asyncio
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from tab_organizer.config import get_logger
from tab_organizer.state.base import KeyValueStore

logger = get_logger(__name__)

DESCRIPTIONS_KEY = "groupDescriptions"
AI_CONTROL_KEY = "groupAiControl"
DEFAULT_DESCRIPTION = "No description"


class AiControl(str, Enum):
    """Explicit three-state view of a group's AI-edit permission."""
    ALLOWED = "allowed"
    DENIED = "denied"
    UNSET = "unset"

    @property
    def permits_ai_updates(self) -> bool:
        """Unset permissions default to allowed."""
        return self is not AiControl.DENIED

    @classmethod
    def from_stored(cls, value: Optional[bool]) -> "AiControl":
        """Map a stored flag (or its absence) to a permission state."""
        if value is None:
            return cls.UNSET
        return cls.ALLOWED if value else cls.DENIED


class GroupRecord(BaseModel):
    """Catalog view of a single group.

    Attributes:
        group_id: Browser tab group id
        description: Latest known description (DEFAULT_DESCRIPTION if never set)
        ai_control: Permission state for automated description updates
    """

    group_id: int
    description: str = DEFAULT_DESCRIPTION
    ai_control: AiControl = AiControl.UNSET

    @property
    def ai_updates_allowed(self) -> bool:
        return self.ai_control.permits_ai_updates


class GroupCatalog:
    """
    Durable mapping from group id to description and AI-control flag.

    Reads are lock-free snapshots. Writes (human edits and pipeline updates)
    are serialized through one asyncio.Lock, so two pipelines updating
    different groups cannot overwrite each other's entries.
    """

    def __init__(self, store: KeyValueStore):
        """
        Initialize the catalog.

        Args:
            store: Durable key-value store holding the two catalog maps
        """
        self.store = store
        self._write_lock = asyncio.Lock()

    async def _load_maps(self) -> tuple[dict[str, str], dict[str, bool]]:
        data = await self.store.get_many([DESCRIPTIONS_KEY, AI_CONTROL_KEY])
        return (
            dict(data.get(DESCRIPTIONS_KEY) or {}),
            dict(data.get(AI_CONTROL_KEY) or {}),
        )

    @staticmethod
    def _build_record(
        group_id: int, descriptions: dict[str, str], controls: dict[str, bool]
    ) -> GroupRecord:
        key = str(group_id)
        return GroupRecord(
            group_id=group_id,
            description=descriptions.get(key) or DEFAULT_DESCRIPTION,
            ai_control=AiControl.from_stored(controls.get(key)),
        )

    async def get_record(self, group_id: int) -> GroupRecord:
        """
        Look up one group.

        Groups unknown to the catalog read as DEFAULT_DESCRIPTION with
        permission unset (which permits AI updates).
        """
        descriptions, controls = await self._load_maps()
        return self._build_record(group_id, descriptions, controls)

    async def get_records(self, group_ids: list[int]) -> dict[int, GroupRecord]:
        """
        Look up several groups with a single read of each map.

        Args:
            group_ids: Group ids to resolve

        Returns:
            Mapping of group id to record, one entry per requested id
        """
        descriptions, controls = await self._load_maps()
        return {
            group_id: self._build_record(group_id, descriptions, controls)
            for group_id in group_ids
        }

    async def all_records(self) -> dict[int, GroupRecord]:
        """Return every group that has a stored description or flag."""
        descriptions, controls = await self._load_maps()
        group_ids = sorted({int(k) for k in descriptions} | {int(k) for k in controls})
        return {
            group_id: self._build_record(group_id, descriptions, controls)
            for group_id in group_ids
        }

    async def set_description(self, group_id: int, description: str) -> None:
        """Store a human-edited description (no permission check)."""
        async with self._write_lock:
            descriptions = dict(await self.store.get(DESCRIPTIONS_KEY) or {})
            descriptions[str(group_id)] = description
            await self.store.set(DESCRIPTIONS_KEY, descriptions)
        logger.info(f"Description of group {group_id} updated by user")

    async def set_ai_control(self, group_id: int, enabled: bool) -> None:
        """Store a human choice for whether AI may update a group's description."""
        async with self._write_lock:
            controls = dict(await self.store.get(AI_CONTROL_KEY) or {})
            controls[str(group_id)] = bool(enabled)
            await self.store.set(AI_CONTROL_KEY, controls)
        logger.info(f"AI updates {'enabled' if enabled else 'disabled'} for group {group_id}")

    async def apply_ai_description(self, group_id: int, description: str) -> bool:
        """
        Overwrite a group's description on behalf of the pipeline.

        The permission flag is re-read under the write lock, so a human
        disabling AI updates is always honored by later writes.

        Args:
            group_id: Target group
            description: Suggested description

        Returns:
            True if the description was written, False if AI updates are denied
        """
        async with self._write_lock:
            descriptions, controls = await self._load_maps()
            control = AiControl.from_stored(controls.get(str(group_id)))
            if not control.permits_ai_updates:
                logger.info(f"AI updates disabled for group {group_id}, keeping its description")
                return False

            descriptions[str(group_id)] = description
            await self.store.set(DESCRIPTIONS_KEY, descriptions)
            return True

    async def register_new_group(self, group_id: int, description: str) -> GroupRecord:
        """
        Record a group created by the pipeline.

        New groups always start with AI updates allowed, regardless of any
        other group's setting.
        """
        async with self._write_lock:
            descriptions, controls = await self._load_maps()
            descriptions[str(group_id)] = description
            controls[str(group_id)] = True
            await self.store.set_many({
                DESCRIPTIONS_KEY: descriptions,
                AI_CONTROL_KEY: controls,
            })
        logger.info(f"Registered new group {group_id} in catalog")
        return GroupRecord(
            group_id=group_id, description=description, ai_control=AiControl.ALLOWED
        )
