"""
Storage layer.

``Storage`` is the interface every component is written against. Two
implementations are provided: ``MemoryStorage`` for tests and local runs,
and ``MongoStorage`` backed by a pymongo database. Every read returns a copy;
callers never hold references into the store.
"""
import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from schemas import Contact, Delegate, Group, ProfileRecord

logger = logging.getLogger(__name__)


class Storage(ABC):
    """Persistence interface for records, groups, settings, contacts and delegates.

    Everything except profile records and delegate lookups is scoped by
    ``owner_id``; there is no state shared between owners.
    """

    # Profile records
    @abstractmethod
    def get_record(self, account_id: str) -> Optional[ProfileRecord]:
        pass

    @abstractmethod
    def save_record(self, account_id: str, record: ProfileRecord) -> None:
        pass

    # Groups
    @abstractmethod
    def list_groups(self, owner_id: str) -> List[Group]:
        pass

    @abstractmethod
    def get_group(self, owner_id: str, group_id: str) -> Optional[Group]:
        pass

    @abstractmethod
    def save_group(self, owner_id: str, group: Group) -> None:
        """Insert or fully replace a group."""

    @abstractmethod
    def delete_group(self, owner_id: str, group_id: str) -> bool:
        pass

    # Visibility settings
    @abstractmethod
    def get_visible_fields(self, owner_id: str, group_id: str) -> Optional[List[str]]:
        """Stored paths for a group, or None when the group has no entry."""

    @abstractmethod
    def set_visible_fields(self, owner_id: str, group_id: str, fields: List[str]) -> None:
        pass

    @abstractmethod
    def delete_visible_fields(self, owner_id: str, group_id: str) -> bool:
        pass

    @abstractmethod
    def list_visible_fields(self, owner_id: str) -> Dict[str, List[str]]:
        pass

    # Contacts
    @abstractmethod
    def list_contacts(self, owner_id: str) -> List[Contact]:
        pass

    @abstractmethod
    def get_contact(self, owner_id: str, contact_id: str) -> Optional[Contact]:
        pass

    @abstractmethod
    def save_contact(self, owner_id: str, contact: Contact) -> None:
        pass

    @abstractmethod
    def delete_contact(self, owner_id: str, contact_id: str) -> bool:
        pass

    # Delegates
    @abstractmethod
    def list_delegates(self, owner_id: str) -> List[Delegate]:
        pass

    @abstractmethod
    def get_delegate(self, owner_id: str, delegate_id: str) -> Optional[Delegate]:
        pass

    @abstractmethod
    def find_delegate(self, delegate_id: str) -> Optional[Delegate]:
        """Membership of an account under any owner, if it is a delegate."""

    @abstractmethod
    def save_delegate(self, delegate: Delegate) -> None:
        pass

    @abstractmethod
    def delete_delegate(self, owner_id: str, delegate_id: str) -> bool:
        pass


def _group_order(group: Group):
    return (group.display_order, group.created_at)


class MemoryStorage(Storage):
    """Process-local storage. Used by the test suite and when no database is configured."""

    def __init__(self):
        self._lock = threading.Lock()
        self._records: Dict[str, ProfileRecord] = {}
        self._groups: Dict[Tuple[str, str], Group] = {}
        self._settings: Dict[Tuple[str, str], List[str]] = {}
        self._contacts: Dict[Tuple[str, str], Contact] = {}
        self._delegates: Dict[Tuple[str, str], Delegate] = {}

    def get_record(self, account_id):
        with self._lock:
            record = self._records.get(account_id)
            return record.model_copy(deep=True) if record else None

    def save_record(self, account_id, record):
        with self._lock:
            stored = record.model_copy(deep=True)
            stored.ai_agent_visible = None
            self._records[account_id] = stored

    def list_groups(self, owner_id):
        with self._lock:
            groups = [g.model_copy() for (o, _), g in self._groups.items() if o == owner_id]
        return sorted(groups, key=_group_order)

    def get_group(self, owner_id, group_id):
        with self._lock:
            group = self._groups.get((owner_id, group_id))
            return group.model_copy() if group else None

    def save_group(self, owner_id, group):
        with self._lock:
            self._groups[(owner_id, group.id)] = group.model_copy()

    def delete_group(self, owner_id, group_id):
        with self._lock:
            return self._groups.pop((owner_id, group_id), None) is not None

    def get_visible_fields(self, owner_id, group_id):
        with self._lock:
            fields = self._settings.get((owner_id, group_id))
            return list(fields) if fields is not None else None

    def set_visible_fields(self, owner_id, group_id, fields):
        with self._lock:
            self._settings[(owner_id, group_id)] = list(fields)

    def delete_visible_fields(self, owner_id, group_id):
        with self._lock:
            return self._settings.pop((owner_id, group_id), None) is not None

    def list_visible_fields(self, owner_id):
        with self._lock:
            return {g: list(f) for (o, g), f in self._settings.items() if o == owner_id}

    def list_contacts(self, owner_id):
        with self._lock:
            contacts = [c.model_copy() for (o, _), c in self._contacts.items() if o == owner_id]
        return sorted(contacts, key=lambda c: c.created_at)

    def get_contact(self, owner_id, contact_id):
        with self._lock:
            contact = self._contacts.get((owner_id, contact_id))
            return contact.model_copy() if contact else None

    def save_contact(self, owner_id, contact):
        with self._lock:
            self._contacts[(owner_id, contact.id)] = contact.model_copy()

    def delete_contact(self, owner_id, contact_id):
        with self._lock:
            return self._contacts.pop((owner_id, contact_id), None) is not None

    def list_delegates(self, owner_id):
        with self._lock:
            delegates = [d.model_copy(deep=True) for (o, _), d in self._delegates.items() if o == owner_id]
        return sorted(delegates, key=lambda d: d.created_at)

    def get_delegate(self, owner_id, delegate_id):
        with self._lock:
            delegate = self._delegates.get((owner_id, delegate_id))
            return delegate.model_copy(deep=True) if delegate else None

    def find_delegate(self, delegate_id):
        with self._lock:
            for (_, d_id), delegate in self._delegates.items():
                if d_id == delegate_id:
                    return delegate.model_copy(deep=True)
        return None

    def save_delegate(self, delegate):
        with self._lock:
            self._delegates[(delegate.owner_id, delegate.delegate_id)] = delegate.model_copy(deep=True)

    def delete_delegate(self, owner_id, delegate_id):
        with self._lock:
            return self._delegates.pop((owner_id, delegate_id), None) is not None


class MongoStorage(Storage):
    """pymongo-backed storage.

    Collections: ``profile`` (one document per account), ``share_group``,
    ``share_settings``, ``share_contact`` and ``delegate``, each keyed by
    ``owner_id`` plus the entity id.
    """

    def __init__(self, db):
        self.db = db
        # one membership per account
        self.db["delegate"].create_index("delegate_id", unique=True)

    @staticmethod
    def _strip(doc: Optional[dict]) -> Optional[dict]:
        if doc is None:
            return None
        doc = dict(doc)
        doc.pop("_id", None)
        return doc

    def get_record(self, account_id):
        doc = self._strip(self.db["profile"].find_one({"user_id": account_id}))
        if not doc:
            return None
        return ProfileRecord.model_validate(doc.get("card") or {})

    def save_record(self, account_id, record):
        self.db["profile"].update_one(
            {"user_id": account_id},
            {"$set": {"user_id": account_id, "card": record.to_document()}},
            upsert=True,
        )

    def list_groups(self, owner_id):
        docs = self.db["share_group"].find({"owner_id": owner_id})
        groups = [Group.model_validate(self._strip(d)) for d in docs]
        return sorted(groups, key=_group_order)

    def get_group(self, owner_id, group_id):
        doc = self._strip(self.db["share_group"].find_one({"owner_id": owner_id, "id": group_id}))
        return Group.model_validate(doc) if doc else None

    def save_group(self, owner_id, group):
        doc = group.model_dump()
        doc["owner_id"] = owner_id
        self.db["share_group"].replace_one({"owner_id": owner_id, "id": group.id}, doc, upsert=True)

    def delete_group(self, owner_id, group_id):
        res = self.db["share_group"].delete_one({"owner_id": owner_id, "id": group_id})
        return res.deleted_count > 0

    def get_visible_fields(self, owner_id, group_id):
        doc = self.db["share_settings"].find_one({"owner_id": owner_id, "group_id": group_id})
        if not doc:
            return None
        return list(doc.get("visible_fields") or [])

    def set_visible_fields(self, owner_id, group_id, fields):
        self.db["share_settings"].update_one(
            {"owner_id": owner_id, "group_id": group_id},
            {"$set": {"owner_id": owner_id, "group_id": group_id, "visible_fields": list(fields)}},
            upsert=True,
        )

    def delete_visible_fields(self, owner_id, group_id):
        res = self.db["share_settings"].delete_one({"owner_id": owner_id, "group_id": group_id})
        return res.deleted_count > 0

    def list_visible_fields(self, owner_id):
        docs = self.db["share_settings"].find({"owner_id": owner_id})
        return {d["group_id"]: list(d.get("visible_fields") or []) for d in docs}

    def list_contacts(self, owner_id):
        docs = self.db["share_contact"].find({"owner_id": owner_id})
        contacts = [Contact.model_validate(self._strip(d)) for d in docs]
        return sorted(contacts, key=lambda c: c.created_at)

    def get_contact(self, owner_id, contact_id):
        doc = self._strip(self.db["share_contact"].find_one({"owner_id": owner_id, "id": contact_id}))
        return Contact.model_validate(doc) if doc else None

    def save_contact(self, owner_id, contact):
        doc = contact.model_dump()
        doc["owner_id"] = owner_id
        self.db["share_contact"].replace_one({"owner_id": owner_id, "id": contact.id}, doc, upsert=True)

    def delete_contact(self, owner_id, contact_id):
        res = self.db["share_contact"].delete_one({"owner_id": owner_id, "id": contact_id})
        return res.deleted_count > 0

    def list_delegates(self, owner_id):
        docs = self.db["delegate"].find({"owner_id": owner_id})
        delegates = [Delegate.model_validate(self._strip(d)) for d in docs]
        return sorted(delegates, key=lambda d: d.created_at)

    def get_delegate(self, owner_id, delegate_id):
        doc = self._strip(self.db["delegate"].find_one({"owner_id": owner_id, "delegate_id": delegate_id}))
        return Delegate.model_validate(doc) if doc else None

    def find_delegate(self, delegate_id):
        doc = self._strip(self.db["delegate"].find_one({"delegate_id": delegate_id}))
        return Delegate.model_validate(doc) if doc else None

    def save_delegate(self, delegate):
        doc = delegate.model_dump(mode="json")
        doc["created_at"] = delegate.created_at
        self.db["delegate"].replace_one(
            {"owner_id": delegate.owner_id, "delegate_id": delegate.delegate_id}, doc, upsert=True
        )

    def delete_delegate(self, owner_id, delegate_id):
        res = self.db["delegate"].delete_one({"owner_id": owner_id, "delegate_id": delegate_id})
        return res.deleted_count > 0


def build_storage(db=None) -> Storage:
    if db is None:
        logger.warning("No database configured, using in-memory storage")
        return MemoryStorage()
    return MongoStorage(db)
