"""
Public card paths.

    /{ownerId}
    /{ownerId}/{screen}
    /{ownerId}/{groupCodeOrId}
    /{ownerId}/{groupCodeOrId}/{screen}
    /{ownerId}/{groupCodeOrId}/{contactCode}
    /{ownerId}/{groupCodeOrId}/{contactCode}/{screen}

Screens only select a page of the card; they never influence resolution.
"""
from dataclasses import dataclass
from typing import Optional

SCREENS = ("contact", "profile", "portfolio")

# Short codes used by links created before share codes existed
LEGACY_GROUP_CODES = {
    "pub": "public",
    "prv": "private",
    "biz": "business",
    "per": "personal",
}


@dataclass(frozen=True)
class ProfilePath:
    owner_id: Optional[str]
    group_code: Optional[str] = None
    contact_code: Optional[str] = None
    screen: Optional[str] = None


def parse_profile_path(path: str) -> ProfilePath:
    parts = [p for p in (path or "").split("/") if p]
    if not parts:
        return ProfilePath(owner_id=None)

    owner_id = parts[0]
    if len(parts) == 1:
        return ProfilePath(owner_id=owner_id)

    second = parts[1]
    if second in SCREENS:
        return ProfilePath(owner_id=owner_id, screen=second)

    group_code = LEGACY_GROUP_CODES.get(second, second)
    if len(parts) == 2:
        return ProfilePath(owner_id=owner_id, group_code=group_code)

    third = parts[2]
    if third in SCREENS:
        return ProfilePath(owner_id=owner_id, group_code=group_code, screen=third)

    screen = parts[3] if len(parts) > 3 and parts[3] in SCREENS else None
    return ProfilePath(owner_id=owner_id, group_code=group_code, contact_code=third, screen=screen)


def build_share_path(owner_id: str, group_code: Optional[str] = None,
                     contact_code: Optional[str] = None, screen: Optional[str] = None) -> str:
    path = f"/{owner_id}"
    if group_code:
        path += f"/{group_code}"
        if contact_code:
            path += f"/{contact_code}"
    if screen and screen in SCREENS:
        path += f"/{screen}"
    return path
