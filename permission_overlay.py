"""
Field-level write permissions for delegates.

An owner can lock a small fixed set of company fields (business name and
title) on the cards of the delegates working under them. Locking a field
also overwrites the delegate's value with the canonical one: the owner's
business name, or the role the owner assigned to the delegate.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Mapping, Optional

from errors import (
    DelegateNotFound,
    DelegateOfAnotherOwner,
    FieldReadOnly,
    InvalidPermissionLevel,
    UncontrollableField,
)
from field_catalog import FieldPath, accessor, is_controllable, parse_field_path, sorted_paths
from schemas import Delegate, PermissionLevel, ProfileRecord
from stores import Storage

logger = logging.getLogger(__name__)

DELEGATE_FIELDS = ("name", "role", "department", "is_active")


def _owner_business_name(owner_record: Optional[ProfileRecord], delegate: Delegate) -> Optional[str]:
    if owner_record is None:
        return None
    return owner_record.personal.business_name


def _delegate_role(owner_record: Optional[ProfileRecord], delegate: Delegate) -> Optional[str]:
    return delegate.role


CANONICAL_SOURCES: Dict[FieldPath, Callable[[Optional[ProfileRecord], Delegate], Optional[str]]] = {
    FieldPath.PERSONAL_BUSINESS_NAME: _owner_business_name,
    FieldPath.PERSONAL_TITLE: _delegate_role,
}


def parse_permission_level(value) -> PermissionLevel:
    try:
        return PermissionLevel(value)
    except ValueError:
        raise InvalidPermissionLevel(value)


def parse_permissions(permissions: Mapping) -> Dict[FieldPath, PermissionLevel]:
    """Validate a raw ``{path: level}`` map. Nothing is written on failure."""
    parsed = {}
    for raw_path, raw_level in permissions.items():
        path = parse_field_path(raw_path)
        if not is_controllable(path):
            raise UncontrollableField(path.value)
        parsed[path] = parse_permission_level(raw_level)
    return parsed


@dataclass
class RepopulationOutcome:
    delegate_id: str
    fields: List[str]
    success: bool
    error: Optional[str] = None


@dataclass
class PermissionUpdateResult:
    delegate_ids: List[str]
    permissions: Dict[str, str]
    repopulation: List[RepopulationOutcome] = field(default_factory=list)

    @property
    def failures(self) -> List[RepopulationOutcome]:
        return [o for o in self.repopulation if not o.success]

    def to_dict(self) -> dict:
        return {
            "delegateIds": list(self.delegate_ids),
            "permissions": dict(self.permissions),
            "repopulation": [
                {"delegateId": o.delegate_id, "fields": o.fields, "success": o.success, "error": o.error}
                for o in self.repopulation
            ],
        }


class PermissionOverlay:
    """Delegates of one owner and their controllable-field permissions."""

    def __init__(self, storage: Storage, owner_id: str):
        self.storage = storage
        self.owner_id = owner_id

    # ------------------------------
    # Delegates
    # ------------------------------

    def add_delegate(self, delegate_id: str, name: str = "", role: Optional[str] = None,
                     department: Optional[str] = None) -> Delegate:
        existing = self.storage.get_delegate(self.owner_id, delegate_id)
        if existing is not None:
            return existing
        membership = self.storage.find_delegate(delegate_id)
        if membership is not None:
            # an account edits its card under exactly one owner
            raise DelegateOfAnotherOwner(delegate_id)
        delegate = Delegate(
            owner_id=self.owner_id,
            delegate_id=delegate_id,
            name=name,
            role=role,
            department=department,
        )
        self.storage.save_delegate(delegate)
        logger.info("Added delegate %s to owner %s", delegate_id, self.owner_id)
        return delegate

    def get_delegate(self, delegate_id: str) -> Optional[Delegate]:
        return self.storage.get_delegate(self.owner_id, delegate_id)

    def require_delegate(self, delegate_id: str) -> Delegate:
        delegate = self.get_delegate(delegate_id)
        if delegate is None:
            raise DelegateNotFound(delegate_id)
        return delegate

    def list_delegates(self, active_only: bool = False) -> List[Delegate]:
        delegates = self.storage.list_delegates(self.owner_id)
        if active_only:
            delegates = [d for d in delegates if d.is_active]
        return delegates

    def filter_delegates(self, query: Optional[str]) -> List[Delegate]:
        """Delegates whose name, role or department contains ``query``."""
        delegates = self.list_delegates()
        if not query:
            return delegates
        needle = query.lower()
        return [
            d for d in delegates
            if any(needle in (value or "").lower() for value in (d.name, d.role, d.department, d.delegate_id))
        ]

    def update_delegate(self, delegate_id: str, **fields) -> Delegate:
        delegate = self.require_delegate(delegate_id)
        changes = {k: v for k, v in fields.items() if k in DELEGATE_FIELDS and v is not None}
        updated = delegate.model_copy(update=changes)
        self.storage.save_delegate(updated)
        return updated

    def remove_delegate(self, delegate_id: str) -> None:
        if not self.storage.delete_delegate(self.owner_id, delegate_id):
            raise DelegateNotFound(delegate_id)
        logger.info("Removed delegate %s from owner %s", delegate_id, self.owner_id)

    # ------------------------------
    # Permissions
    # ------------------------------

    def get_permission(self, delegate_id: str, field_path) -> PermissionLevel:
        path = parse_field_path(field_path)
        if not is_controllable(path):
            return PermissionLevel.EDITABLE
        delegate = self.require_delegate(delegate_id)
        return delegate.field_permissions.get(path.value, PermissionLevel.EDITABLE)

    def permissions_for(self, delegate_id: str) -> Dict[str, PermissionLevel]:
        delegate = self.require_delegate(delegate_id)
        return dict(delegate.field_permissions)

    def check_write(self, delegate_id: str, field_path) -> None:
        if self.get_permission(delegate_id, field_path) is PermissionLevel.READONLY:
            raise FieldReadOnly(parse_field_path(field_path).value)

    def set_permissions(self, delegate_ids: Iterable[str], permissions: Mapping) -> PermissionUpdateResult:
        """Apply the same permission changes to every listed delegate.

        All permission writes happen first. Then every delegate with a field
        set to readonly is repopulated on its own; a failure there is
        reported in the result and does not affect the others.
        """
        parsed = parse_permissions(permissions)
        delegates = [self.require_delegate(d_id) for d_id in dict.fromkeys(delegate_ids)]

        for delegate in delegates:
            merged = dict(delegate.field_permissions)
            for path, level in parsed.items():
                if level is PermissionLevel.EDITABLE:
                    merged.pop(path.value, None)
                else:
                    merged[path.value] = level
            delegate.field_permissions = merged
            self.storage.save_delegate(delegate)

        result = PermissionUpdateResult(
            delegate_ids=[d.delegate_id for d in delegates],
            permissions={p.value: level.value for p, level in parsed.items()},
        )
        logger.info("Applied permissions %s to %d delegates of owner %s",
                    result.permissions, len(delegates), self.owner_id)

        locked = [p for p, level in parsed.items() if level is PermissionLevel.READONLY]
        if not locked or not delegates:
            return result

        owner_record = None
        if FieldPath.PERSONAL_BUSINESS_NAME in locked:
            owner_record = self.storage.get_record(self.owner_id)

        for delegate in delegates:
            result.repopulation.append(self._repopulate(delegate, locked, owner_record))
        return result

    def set_permissions_for_all(self, permissions: Mapping, active_only: bool = False) -> PermissionUpdateResult:
        ids = [d.delegate_id for d in self.list_delegates(active_only=active_only)]
        return self.set_permissions(ids, permissions)

    def set_permissions_for_filtered(self, permissions: Mapping, query: Optional[str]) -> PermissionUpdateResult:
        ids = [d.delegate_id for d in self.filter_delegates(query)]
        return self.set_permissions(ids, permissions)

    def _repopulate(self, delegate: Delegate, locked: List[FieldPath],
                    owner_record: Optional[ProfileRecord]) -> RepopulationOutcome:
        fields = sorted_paths(locked)
        try:
            record = self.storage.get_record(delegate.delegate_id)
            if record is None:
                return RepopulationOutcome(delegate.delegate_id, fields, False, "profile not found")

            missing = []
            for path in locked:
                value = CANONICAL_SOURCES[path](owner_record, delegate)
                if value is None:
                    missing.append(path.value)
                    continue
                accessor(path).write(record, value)

            self.storage.save_record(delegate.delegate_id, record)
        except Exception as e:
            logger.warning("Repopulation failed for delegate %s: %s", delegate.delegate_id, e)
            return RepopulationOutcome(delegate.delegate_id, fields, False, str(e))

        if missing:
            logger.warning("No canonical value for %s of delegate %s", missing, delegate.delegate_id)
            return RepopulationOutcome(
                delegate.delegate_id, fields, False, f"no canonical value for {', '.join(missing)}"
            )
        return RepopulationOutcome(delegate.delegate_id, fields, True)


def check_account_write(storage: Storage, account_id: str, field_path) -> None:
    """Raise ``FieldReadOnly`` if ``account_id`` is a delegate and the field is locked for it."""
    path = parse_field_path(field_path)
    if not is_controllable(path):
        return
    membership = storage.find_delegate(account_id)
    if membership is None:
        return
    if membership.field_permissions.get(path.value) is PermissionLevel.READONLY:
        raise FieldReadOnly(path.value)
