"""
View-time resolution: which version of a card a visitor gets.

``load_snapshot`` reads everything one owner's card needs from storage.
``resolve_view`` is a pure function over that snapshot: it picks the
sharing group, attributes the tracked contact and redacts a copy of the
record. Stale or unknown codes never raise; they fall back to the public
group.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional

from contact_registry import find_contact_by_code
from errors import ProfileNotFound
from field_catalog import (
    FieldPath,
    accessor,
    all_fields,
    default_visible_fields,
    sorted_paths,
)
from group_registry import find_public_group, resolve_group
from schemas import Contact, Group, ProfileRecord
from stores import Storage
from visibility_settings import visible_set_from_stored

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ViewRequest:
    owner_id: str
    group_code_or_id: Optional[str] = None
    contact_code: Optional[str] = None
    viewer_id: Optional[str] = None


@dataclass
class OwnerSnapshot:
    """Everything needed to resolve views of one owner's card, read at one point in time."""

    owner_id: str
    record: Optional[ProfileRecord]
    groups: List[Group] = field(default_factory=list)
    settings: Dict[str, List[str]] = field(default_factory=dict)
    contacts: List[Contact] = field(default_factory=list)


@dataclass
class ResolvedView:
    record: ProfileRecord
    group_id: Optional[str]
    visible_fields: FrozenSet[FieldPath]
    contact_id: Optional[str] = None
    is_owner_view: bool = False

    def to_dict(self) -> dict:
        return {
            "card": self.record.to_wire(),
            "groupId": self.group_id,
            "visibleFields": sorted_paths(self.visible_fields),
            "contactId": self.contact_id,
            "isOwnerView": self.is_owner_view,
        }


def load_snapshot(storage: Storage, owner_id: str) -> OwnerSnapshot:
    return OwnerSnapshot(
        owner_id=owner_id,
        record=storage.get_record(owner_id),
        groups=storage.list_groups(owner_id),
        settings=storage.list_visible_fields(owner_id),
        contacts=storage.list_contacts(owner_id),
    )


def redact(record: ProfileRecord, visible: FrozenSet[FieldPath]) -> ProfileRecord:
    """Return a copy of ``record`` with every field outside ``visible`` cleared."""
    redacted = record.model_copy(deep=True)
    for path in all_fields():
        if path in visible:
            continue
        accessor(path).clear(redacted)
    redacted.ai_agent_visible = FieldPath.CONTACT_AI_AGENT in visible
    return redacted


def _pick_group(snapshot: OwnerSnapshot, code_or_id: Optional[str]) -> Optional[Group]:
    """The requested group, else the public fallback. None only when the owner has no groups."""
    group = resolve_group(snapshot.groups, code_or_id)
    if group is not None:
        return group
    if code_or_id:
        logger.warning("Unknown group code %r for owner %s, using public view",
                       code_or_id, snapshot.owner_id)
    return find_public_group(snapshot.groups)


def resolve_view(snapshot: OwnerSnapshot, request: ViewRequest) -> ResolvedView:
    if snapshot.record is None:
        raise ProfileNotFound(request.owner_id)

    if request.viewer_id is not None and request.viewer_id == request.owner_id:
        full = snapshot.record.model_copy(deep=True)
        full.ai_agent_visible = True
        return ResolvedView(record=full, group_id=None, visible_fields=all_fields(), is_owner_view=True)

    group = _pick_group(snapshot, request.group_code_or_id)
    if group is None:
        logger.debug("Owner %s has no groups, using default visible set", snapshot.owner_id)
        visible = default_visible_fields()
        group_id = None
    else:
        group_id = group.id
        visible = visible_set_from_stored(snapshot.settings.get(group_id), group_id)

    contact_id = None
    if request.contact_code:
        contact = find_contact_by_code(snapshot.contacts, request.contact_code)
        if contact is not None and contact.group == group_id:
            contact_id = contact.id
        else:
            logger.warning("Contact code %r not attributed for owner %s group %s",
                           request.contact_code, snapshot.owner_id, group_id)

    return ResolvedView(
        record=redact(snapshot.record, visible),
        group_id=group_id,
        visible_fields=visible,
        contact_id=contact_id,
    )
