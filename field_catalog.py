"""
Field catalog: every shareable field path of a profile record.

Paths are a closed enumeration. Code that receives a path from the outside
parses it once with ``parse_field_path`` and works with ``FieldPath``
members from then on. Each member maps to a typed accessor bound to one
namespace of ``ProfileRecord``.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterable, List

from errors import InvalidFieldPath
from schemas import ProfileRecord

CATALOG_VERSION = 3


class FieldPath(str, Enum):
    PERSONAL_NAME = "personal.name"
    PERSONAL_TITLE = "personal.title"
    PERSONAL_BUSINESS_NAME = "personal.businessName"
    PERSONAL_BIO = "personal.bio"
    PERSONAL_PROFILE_IMAGE = "personal.profileImage"

    CONTACT_PHONE = "contact.phone"
    CONTACT_EMAIL = "contact.email"
    CONTACT_ADDRESS = "contact.address"
    CONTACT_AI_AGENT = "contact.aiAgent"

    MESSAGING_ZALO = "socialMessaging.zalo"
    MESSAGING_MESSENGER = "socialMessaging.messenger"
    MESSAGING_TELEGRAM = "socialMessaging.telegram"
    MESSAGING_WHATSAPP = "socialMessaging.whatsapp"
    MESSAGING_KAKAO = "socialMessaging.kakao"
    MESSAGING_DISCORD = "socialMessaging.discord"
    MESSAGING_WECHAT = "socialMessaging.wechat"

    CHANNEL_FACEBOOK = "socialChannels.facebook"
    CHANNEL_LINKEDIN = "socialChannels.linkedin"
    CHANNEL_TWITTER = "socialChannels.twitter"
    CHANNEL_YOUTUBE = "socialChannels.youtube"
    CHANNEL_TIKTOK = "socialChannels.tiktok"

    PROFILE_ABOUT = "profile.about"
    PROFILE_SERVICE_AREAS = "profile.serviceAreas"
    PROFILE_SPECIALTIES = "profile.specialties"
    PROFILE_EXPERIENCE = "profile.experience"
    PROFILE_LANGUAGES = "profile.languages"
    PROFILE_CERTIFICATIONS = "profile.certifications"

    PORTFOLIO = "portfolio"

    def __str__(self) -> str:
        return self.value


class FieldKind(str, Enum):
    TEXT = "text"
    COLLECTION = "collection"
    SENTINEL = "sentinel"


@dataclass(frozen=True)
class FieldAccessor:
    kind: FieldKind
    read: Callable[[ProfileRecord], Any]
    clear: Callable[[ProfileRecord], None]
    write: Callable[[ProfileRecord, Any], None]


def _text(namespace: str, attr: str) -> FieldAccessor:
    def read(record):
        return getattr(getattr(record, namespace), attr)

    def write(record, value):
        setattr(getattr(record, namespace), attr, "" if value is None else str(value))

    return FieldAccessor(FieldKind.TEXT, read, lambda record: write(record, ""), write)


def _clear_portfolio(record: ProfileRecord) -> None:
    # items and categories are always cleared together
    record.portfolio = []
    record.portfolio_categories = []


def _write_portfolio(record: ProfileRecord, value) -> None:
    record.portfolio = list(value or [])
    if not record.portfolio:
        record.portfolio_categories = []


def _no_write(record, value):
    raise InvalidFieldPath(FieldPath.CONTACT_AI_AGENT.value)


ACCESSORS: Dict[FieldPath, FieldAccessor] = {
    FieldPath.PERSONAL_NAME: _text("personal", "name"),
    FieldPath.PERSONAL_TITLE: _text("personal", "title"),
    FieldPath.PERSONAL_BUSINESS_NAME: _text("personal", "business_name"),
    FieldPath.PERSONAL_BIO: _text("personal", "bio"),
    FieldPath.PERSONAL_PROFILE_IMAGE: _text("personal", "profile_image"),

    FieldPath.CONTACT_PHONE: _text("contact", "phone"),
    FieldPath.CONTACT_EMAIL: _text("contact", "email"),
    FieldPath.CONTACT_ADDRESS: _text("contact", "address"),
    FieldPath.CONTACT_AI_AGENT: FieldAccessor(
        FieldKind.SENTINEL, lambda record: None, lambda record: None, _no_write
    ),

    FieldPath.MESSAGING_ZALO: _text("social_messaging", "zalo"),
    FieldPath.MESSAGING_MESSENGER: _text("social_messaging", "messenger"),
    FieldPath.MESSAGING_TELEGRAM: _text("social_messaging", "telegram"),
    FieldPath.MESSAGING_WHATSAPP: _text("social_messaging", "whatsapp"),
    FieldPath.MESSAGING_KAKAO: _text("social_messaging", "kakao"),
    FieldPath.MESSAGING_DISCORD: _text("social_messaging", "discord"),
    FieldPath.MESSAGING_WECHAT: _text("social_messaging", "wechat"),

    FieldPath.CHANNEL_FACEBOOK: _text("social_channels", "facebook"),
    FieldPath.CHANNEL_LINKEDIN: _text("social_channels", "linkedin"),
    FieldPath.CHANNEL_TWITTER: _text("social_channels", "twitter"),
    FieldPath.CHANNEL_YOUTUBE: _text("social_channels", "youtube"),
    FieldPath.CHANNEL_TIKTOK: _text("social_channels", "tiktok"),

    FieldPath.PROFILE_ABOUT: _text("profile", "about"),
    FieldPath.PROFILE_SERVICE_AREAS: _text("profile", "service_areas"),
    FieldPath.PROFILE_SPECIALTIES: _text("profile", "specialties"),
    FieldPath.PROFILE_EXPERIENCE: _text("profile", "experience"),
    FieldPath.PROFILE_LANGUAGES: _text("profile", "languages"),
    FieldPath.PROFILE_CERTIFICATIONS: _text("profile", "certifications"),

    FieldPath.PORTFOLIO: FieldAccessor(
        FieldKind.COLLECTION, lambda record: record.portfolio, _clear_portfolio, _write_portfolio
    ),
}

FIELD_LABELS: Dict[FieldPath, str] = {
    FieldPath.PERSONAL_NAME: "Name",
    FieldPath.PERSONAL_TITLE: "Title/Position",
    FieldPath.PERSONAL_BUSINESS_NAME: "Business Name",
    FieldPath.PERSONAL_BIO: "Bio",
    FieldPath.PERSONAL_PROFILE_IMAGE: "Profile Image",
    FieldPath.CONTACT_PHONE: "Phone Number",
    FieldPath.CONTACT_EMAIL: "Email Address",
    FieldPath.CONTACT_ADDRESS: "Physical Address",
    FieldPath.CONTACT_AI_AGENT: "AI Agent",
    FieldPath.MESSAGING_ZALO: "Zalo",
    FieldPath.MESSAGING_MESSENGER: "Messenger",
    FieldPath.MESSAGING_TELEGRAM: "Telegram",
    FieldPath.MESSAGING_WHATSAPP: "WhatsApp",
    FieldPath.MESSAGING_KAKAO: "KakaoTalk",
    FieldPath.MESSAGING_DISCORD: "Discord",
    FieldPath.MESSAGING_WECHAT: "WeChat",
    FieldPath.CHANNEL_FACEBOOK: "Facebook",
    FieldPath.CHANNEL_LINKEDIN: "LinkedIn",
    FieldPath.CHANNEL_TWITTER: "Twitter",
    FieldPath.CHANNEL_YOUTUBE: "YouTube",
    FieldPath.CHANNEL_TIKTOK: "TikTok",
    FieldPath.PROFILE_ABOUT: "About Me",
    FieldPath.PROFILE_SERVICE_AREAS: "Service Areas",
    FieldPath.PROFILE_SPECIALTIES: "Specialties",
    FieldPath.PROFILE_EXPERIENCE: "Experience",
    FieldPath.PROFILE_LANGUAGES: "Languages",
    FieldPath.PROFILE_CERTIFICATIONS: "Certifications",
    FieldPath.PORTFOLIO: "Portfolio",
}

_ALL_FIELDS: FrozenSet[FieldPath] = frozenset(FieldPath)

# Company fields an owner may lock for delegates
_CONTROLLABLE_FIELDS: FrozenSet[FieldPath] = frozenset({
    FieldPath.PERSONAL_BUSINESS_NAME,
    FieldPath.PERSONAL_TITLE,
})

_DEFAULT_VISIBLE_FIELDS: FrozenSet[FieldPath] = frozenset({
    FieldPath.PERSONAL_NAME,
    FieldPath.PERSONAL_TITLE,
    FieldPath.PERSONAL_BUSINESS_NAME,
    FieldPath.PERSONAL_PROFILE_IMAGE,
    FieldPath.CONTACT_PHONE,
    FieldPath.CONTACT_EMAIL,
})

_BY_VALUE: Dict[str, FieldPath] = {member.value: member for member in FieldPath}


def all_fields() -> FrozenSet[FieldPath]:
    return _ALL_FIELDS


def controllable_fields() -> FrozenSet[FieldPath]:
    return _CONTROLLABLE_FIELDS


def default_visible_fields() -> FrozenSet[FieldPath]:
    return _DEFAULT_VISIBLE_FIELDS


def is_controllable(path: FieldPath) -> bool:
    return path in _CONTROLLABLE_FIELDS


def parse_field_path(value) -> FieldPath:
    """Validate a raw path against the catalog.

    Accepts a ``FieldPath`` or its exact string value. Anything else raises
    ``InvalidFieldPath``.
    """
    if isinstance(value, FieldPath):
        return value
    if isinstance(value, str) and value in _BY_VALUE:
        return _BY_VALUE[value]
    raise InvalidFieldPath(value)


def parse_field_paths(values: Iterable) -> FrozenSet[FieldPath]:
    return frozenset(parse_field_path(v) for v in values)


def sorted_paths(paths: Iterable[FieldPath]) -> List[str]:
    """Catalog order, as strings. Used for storage and responses."""
    wanted = set(paths)
    return [member.value for member in FieldPath if member in wanted]


def accessor(path: FieldPath) -> FieldAccessor:
    return ACCESSORS[path]
