"""
Profile record writes and account provisioning.

Every edit of a record goes through ``ProfileEditor`` so that delegate
accounts cannot change a company field their owner has locked.
"""
import logging
from typing import Dict, Mapping, Optional

from errors import ProfileNotFound, ValidationError
from field_catalog import FieldKind, accessor, controllable_fields, parse_field_path
from group_registry import GroupRegistry
from permission_overlay import check_account_write
from schemas import PermissionLevel, ProfileRecord
from stores import Storage

logger = logging.getLogger(__name__)


def provision_account(storage: Storage, account_id: str,
                      record: Optional[ProfileRecord] = None) -> ProfileRecord:
    """Create the account's record (if missing) and its four default groups."""
    existing = storage.get_record(account_id)
    if existing is None:
        existing = record or ProfileRecord()
        storage.save_record(account_id, existing)
        logger.info("Provisioned profile record for %s", account_id)
    GroupRegistry(storage, account_id).provision_defaults()
    return existing


class ProfileEditor:
    def __init__(self, storage: Storage):
        self.storage = storage

    def get_record(self, account_id: str) -> ProfileRecord:
        record = self.storage.get_record(account_id)
        if record is None:
            raise ProfileNotFound(account_id)
        return record

    def save_record(self, account_id: str, record: ProfileRecord) -> ProfileRecord:
        """Replace the whole record.

        Controllable fields whose value changes are checked against the
        account's delegate permissions first; a locked one rejects the whole
        save.
        """
        stored = self.get_record(account_id)
        for path in controllable_fields():
            field = accessor(path)
            if field.read(stored) != field.read(record):
                check_account_write(self.storage, account_id, path)

        record = record.model_copy(deep=True)
        record.ai_agent_visible = None
        self.storage.save_record(account_id, record)
        return record

    def update_fields(self, account_id: str, changes: Mapping[str, str]) -> ProfileRecord:
        """Set text fields by dotted path. All paths are checked before anything is written."""
        parsed = {}
        for raw_path, value in changes.items():
            path = parse_field_path(raw_path)
            if accessor(path).kind is not FieldKind.TEXT:
                raise ValidationError(f"Field cannot be set by path: {path.value}")
            check_account_write(self.storage, account_id, path)
            parsed[path] = value

        record = self.get_record(account_id)
        for path, value in parsed.items():
            accessor(path).write(record, value)
        self.storage.save_record(account_id, record)
        return record

    def editable_fields(self, account_id: str) -> Dict[str, bool]:
        """Controllable field -> whether this account may currently edit it."""
        membership = self.storage.find_delegate(account_id)
        result = {}
        for path in controllable_fields():
            locked = (
                membership is not None
                and membership.field_permissions.get(path.value) is PermissionLevel.READONLY
            )
            result[path.value] = not locked
        return result
