"""
Individually tracked recipients.

Each contact is bound to exactly one group and, when tracked individually,
gets a short code used as the last segment of its link
(``/{owner}/{groupShareCode}/{contactCode}``). The code only attributes
views; what the recipient sees is decided by the group.
"""
import logging
import uuid
from typing import Dict, List, Optional

from errors import CodeSpaceExhausted, ContactNotFound, InvalidGroup
from group_registry import MAX_CODE_ATTEMPTS, GroupRegistry
from schemas import Contact

logger = logging.getLogger(__name__)

CONTACT_CODE_LENGTH = 8
CONTACT_FIELDS = ("group", "name", "title", "email", "phone", "company", "notes")


def generate_contact_code() -> str:
    return uuid.uuid4().hex[:CONTACT_CODE_LENGTH]


def find_contact_by_code(contacts: List[Contact], code: Optional[str]) -> Optional[Contact]:
    if not code:
        return None
    for contact in contacts:
        if contact.contact_code == code:
            return contact
    return None


class ContactRegistry:
    """Tracked recipients of one owner."""

    def __init__(self, groups: GroupRegistry):
        self.groups = groups
        self.storage = groups.storage
        self.owner_id = groups.owner_id

    def _require_group(self, group_id: str) -> None:
        if not self.groups.exists(group_id):
            raise InvalidGroup(group_id)

    def _new_code(self) -> str:
        taken = {c.contact_code for c in self.list_contacts() if c.contact_code}
        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate_contact_code()
            if code not in taken:
                return code
        raise CodeSpaceExhausted(MAX_CODE_ATTEMPTS)

    def create_contact(self, group_id: str, metadata: Optional[Dict] = None,
                       track_individually: bool = True) -> Contact:
        self._require_group(group_id)
        metadata = {k: v for k, v in (metadata or {}).items() if k in CONTACT_FIELDS and k != "group"}
        contact = Contact(
            id=str(uuid.uuid4()),
            group=group_id,
            contact_code=self._new_code() if track_individually else None,
            **metadata,
        )
        if not contact.title:
            contact.title = contact.company or "Contact"
        self.storage.save_contact(self.owner_id, contact)
        logger.info("Created contact %s in group %s for owner %s", contact.id, group_id, self.owner_id)
        return contact

    def create_group_share(self, group_id: str) -> Contact:
        """Anonymous group-wide link entry. It never carries a contact code."""
        group = self.groups.get_group(group_id)
        if group is None:
            raise InvalidGroup(group_id)
        contact = Contact(
            id=str(uuid.uuid4()),
            group=group_id,
            name=group.label,
            title="Group share",
            is_group_share=True,
        )
        self.storage.save_contact(self.owner_id, contact)
        return contact

    def list_contacts(self, group_id: Optional[str] = None, query: Optional[str] = None) -> List[Contact]:
        contacts = self.storage.list_contacts(self.owner_id)
        if group_id is not None:
            contacts = [c for c in contacts if c.group == group_id]
        if query:
            needle = query.lower()
            contacts = [
                c for c in contacts
                if any(needle in (v or "").lower() for v in (c.name, c.email, c.company, c.phone))
            ]
        return contacts

    def get_contact(self, contact_id: str) -> Optional[Contact]:
        return self.storage.get_contact(self.owner_id, contact_id)

    def find_by_code(self, code: Optional[str]) -> Optional[Contact]:
        return find_contact_by_code(self.list_contacts(), code)

    def update_contact(self, contact_id: str, **fields) -> Contact:
        contact = self.get_contact(contact_id)
        if contact is None:
            raise ContactNotFound(contact_id)
        changes = {k: v for k, v in fields.items() if k in CONTACT_FIELDS and v is not None}
        if "group" in changes:
            self._require_group(changes["group"])
        updated = contact.model_copy(update=changes)
        self.storage.save_contact(self.owner_id, updated)
        return updated

    def delete_contact(self, contact_id: str) -> None:
        if not self.storage.delete_contact(self.owner_id, contact_id):
            raise ContactNotFound(contact_id)
        logger.info("Deleted contact %s for owner %s", contact_id, self.owner_id)

    def count_by_group(self) -> Dict[str, int]:
        """Tracked contacts per existing group.

        Contacts left behind by a deleted group keep their old group id; they
        are not counted and their links resolve to the public group.
        """
        counts = {g.id: 0 for g in self.groups.list_groups()}
        for contact in self.list_contacts():
            if contact.is_group_share or contact.group not in counts:
                continue
            counts[contact.group] += 1
        return counts
