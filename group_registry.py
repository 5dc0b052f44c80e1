"""
Sharing groups for one owner.

Every owner has the four default groups (public, private, business,
personal), which can be edited but never deleted, plus any number of custom
groups. Each group carries a share code that is unique within the owner's
groups and is used in public links.
"""
import logging
import re
import secrets
import uuid
from typing import List, Optional

from errors import (
    CannotDeleteDefaultGroup,
    CodeSpaceExhausted,
    DuplicateShareCode,
    GroupNotFound,
    ImmutableGroupField,
    InvalidShareCode,
)
from schemas import Group
from stores import Storage

logger = logging.getLogger(__name__)

SHARE_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
SHARE_CODE_LENGTH = 6
SHARE_CODE_PATTERN = re.compile(r"^[A-Z0-9]{6,8}$")
MAX_CODE_ATTEMPTS = 100

PUBLIC_GROUP_ID = "public"

DEFAULT_GROUP_SEEDS = [
    {
        "id": "public",
        "label": "Public",
        "description": "Anyone with your public link can see this information",
        "icon": "Users",
        "color": "blue",
    },
    {
        "id": "private",
        "label": "Private",
        "description": "Only trusted contacts with your private link can access",
        "icon": "Shield",
        "color": "purple",
    },
    {
        "id": "business",
        "label": "Business",
        "description": "Professional contacts with your business link",
        "icon": "Briefcase",
        "color": "green",
    },
    {
        "id": "personal",
        "label": "Personal",
        "description": "Close personal contacts with your personal link",
        "icon": "Heart",
        "color": "pink",
    },
]

DEFAULT_GROUP_IDS = tuple(seed["id"] for seed in DEFAULT_GROUP_SEEDS)

MUTABLE_GROUP_FIELDS = ("label", "description", "icon", "color", "share_code")


def generate_share_code(length: int = SHARE_CODE_LENGTH) -> str:
    return "".join(secrets.choice(SHARE_CODE_ALPHABET) for _ in range(length))


def is_valid_share_code(code) -> bool:
    return isinstance(code, str) and bool(SHARE_CODE_PATTERN.match(code))


def validate_share_code(code) -> str:
    if not is_valid_share_code(code):
        raise InvalidShareCode(code)
    return code


class GroupRegistry:
    """CRUD over one owner's sharing groups."""

    def __init__(self, storage: Storage, owner_id: str):
        self.storage = storage
        self.owner_id = owner_id

    def list_groups(self) -> List[Group]:
        return self.storage.list_groups(self.owner_id)

    def get_group(self, group_id: str) -> Optional[Group]:
        return self.storage.get_group(self.owner_id, group_id)

    def require_group(self, group_id: str) -> Group:
        group = self.get_group(group_id)
        if group is None:
            raise GroupNotFound(group_id)
        return group

    def exists(self, group_id: str) -> bool:
        return self.get_group(group_id) is not None

    def resolve(self, code_or_id: Optional[str]) -> Optional[Group]:
        """Find a group by id first, then by exact share code."""
        return resolve_group(self.list_groups(), code_or_id)

    def _codes_in_use(self, exclude_group_id: Optional[str] = None) -> set:
        return {g.share_code for g in self.list_groups() if g.id != exclude_group_id}

    def _unique_code(self, taken: set) -> str:
        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate_share_code()
            if code not in taken:
                return code
        raise CodeSpaceExhausted(MAX_CODE_ATTEMPTS)

    def _claim_code(self, code: Optional[str], exclude_group_id: Optional[str] = None) -> str:
        taken = self._codes_in_use(exclude_group_id)
        if code is None:
            return self._unique_code(taken)
        validate_share_code(code)
        if code in taken:
            raise DuplicateShareCode(code)
        return code

    def create_group(self, label: str, description: str = "", icon: str = "Users",
                     color: str = "blue", share_code: Optional[str] = None) -> Group:
        code = self._claim_code(share_code)
        groups = self.list_groups()
        group = Group(
            id=f"custom-{uuid.uuid4().hex[:12]}",
            label=label,
            description=description,
            icon=icon,
            color=color,
            share_code=code,
            is_default=False,
            display_order=max((g.display_order for g in groups), default=-1) + 1,
        )
        self.storage.save_group(self.owner_id, group)
        logger.info("Created group %s (%s) for owner %s", group.id, label, self.owner_id)
        return group

    def update_group(self, group_id: str, **fields) -> Group:
        for name in fields:
            if name not in MUTABLE_GROUP_FIELDS:
                raise ImmutableGroupField(name)

        group = self.require_group(group_id)
        changes = {k: v for k, v in fields.items() if v is not None}
        if "share_code" in changes and changes["share_code"] != group.share_code:
            changes["share_code"] = self._claim_code(changes["share_code"], exclude_group_id=group_id)

        updated = group.model_copy(update=changes)
        self.storage.save_group(self.owner_id, updated)
        logger.info("Updated group %s for owner %s: %s", group_id, self.owner_id, sorted(changes))
        return updated

    def delete_group(self, group_id: str) -> None:
        """Remove a custom group.

        Callers that also own visibility settings should use
        ``delete_group_cascade`` so the settings entry goes with it.
        """
        group = self.require_group(group_id)
        if group.is_default:
            raise CannotDeleteDefaultGroup(group_id)
        self.storage.delete_group(self.owner_id, group_id)
        logger.info("Deleted group %s for owner %s", group_id, self.owner_id)

    def provision_defaults(self) -> List[Group]:
        """Create whichever default groups the owner is missing."""
        existing = {g.id for g in self.list_groups()}
        created = []
        for order, seed in enumerate(DEFAULT_GROUP_SEEDS):
            if seed["id"] in existing:
                continue
            group = Group(
                share_code=self._unique_code(self._codes_in_use()),
                is_default=True,
                display_order=order,
                **seed,
            )
            self.storage.save_group(self.owner_id, group)
            created.append(group)
        if created:
            logger.info("Provisioned default groups %s for owner %s",
                        [g.id for g in created], self.owner_id)
        return created


def resolve_group(groups: List[Group], code_or_id: Optional[str]) -> Optional[Group]:
    if not code_or_id:
        return None
    for group in groups:
        if group.id == code_or_id:
            return group
    for group in groups:
        if group.share_code == code_or_id:
            return group
    return None


def find_public_group(groups: List[Group]) -> Optional[Group]:
    """The group a link without (or with a stale) group code falls back to."""
    defaults = [g for g in groups if g.is_default]
    for group in defaults:
        if group.id == PUBLIC_GROUP_ID or group.label.lower() == "public":
            return group
    if defaults:
        return defaults[0]
    if groups:
        return groups[0]
    return None
