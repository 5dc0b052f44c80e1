"""
Visible-field sets per sharing group.

A known group with no stored entry sees the catalog's default visible set.
An entry stored as an empty list means the owner hid everything on purpose.
Writes replace the whole set; two concurrent editors race and the later
write wins.
"""
import logging
from typing import Dict, FrozenSet, Iterable

from errors import CannotDeleteDefaultGroup, InvalidFieldPath, InvalidGroup
from field_catalog import (
    FieldPath,
    default_visible_fields,
    parse_field_path,
    parse_field_paths,
    sorted_paths,
)
from group_registry import GroupRegistry

logger = logging.getLogger(__name__)


def visible_set_from_stored(stored, group_id: str = "") -> FrozenSet[FieldPath]:
    """Turn a stored entry into a visible set.

    ``None`` (no entry) yields the default set. Paths that have left the
    catalog since they were stored are dropped.
    """
    if stored is None:
        return default_visible_fields()
    visible = set()
    for raw in stored:
        try:
            visible.add(parse_field_path(raw))
        except InvalidFieldPath:
            logger.warning("Dropping stale field path %r stored for group %s", raw, group_id)
    return frozenset(visible)


class VisibilitySettings:
    """Group id -> visible field paths for one owner."""

    def __init__(self, groups: GroupRegistry):
        self.groups = groups
        self.storage = groups.storage
        self.owner_id = groups.owner_id

    def _require_known(self, group_id: str) -> None:
        if not self.groups.exists(group_id):
            raise InvalidGroup(group_id)

    def get_visible_fields(self, group_id: str) -> FrozenSet[FieldPath]:
        self._require_known(group_id)
        stored = self.storage.get_visible_fields(self.owner_id, group_id)
        return visible_set_from_stored(stored, group_id)

    def set_visible_fields(self, group_id: str, fields: Iterable) -> FrozenSet[FieldPath]:
        self._require_known(group_id)
        visible = parse_field_paths(fields)
        self.storage.set_visible_fields(self.owner_id, group_id, sorted_paths(visible))
        logger.info("Set %d visible fields for group %s of owner %s",
                    len(visible), group_id, self.owner_id)
        return visible

    def toggle_field(self, group_id: str, field_path) -> FrozenSet[FieldPath]:
        path = parse_field_path(field_path)
        current = set(self.get_visible_fields(group_id))
        if path in current:
            current.remove(path)
        else:
            current.add(path)
        return self.set_visible_fields(group_id, current)

    def remove_entry(self, group_id: str) -> bool:
        return self.storage.delete_visible_fields(self.owner_id, group_id)

    def all_settings(self) -> Dict[str, FrozenSet[FieldPath]]:
        """Effective visible set of every group, defaults filled in."""
        stored = self.storage.list_visible_fields(self.owner_id)
        return {
            g.id: visible_set_from_stored(stored.get(g.id), g.id)
            for g in self.groups.list_groups()
        }

    def collect_orphans(self) -> int:
        """Delete entries whose group no longer exists."""
        known = {g.id for g in self.groups.list_groups()}
        removed = 0
        for group_id in self.storage.list_visible_fields(self.owner_id):
            if group_id not in known:
                self.storage.delete_visible_fields(self.owner_id, group_id)
                removed += 1
        if removed:
            logger.info("Removed %d orphaned settings entries for owner %s", removed, self.owner_id)
        return removed


def delete_group_cascade(settings: VisibilitySettings, group_id: str) -> None:
    """Delete a custom group together with its settings entry.

    The settings entry goes first, so a failure between the two writes never
    leaves an entry pointing at a deleted group. The error propagates and the
    surviving group resolves to the default set until the delete is retried.
    """
    groups = settings.groups
    group = groups.require_group(group_id)
    if group.is_default:
        raise CannotDeleteDefaultGroup(group_id)
    settings.remove_entry(group_id)
    groups.delete_group(group_id)
