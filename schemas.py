"""
Database Schemas for the Digital Business Card Platform

Each top-level Pydantic model maps to one MongoDB collection:
profile records, share groups, share settings, share contacts and delegates.
Field names are snake_case in Python and camelCase on the wire.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CardModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


# ------------------------------
# Profile record
# ------------------------------

class PersonalInfo(CardModel):
    name: str = ""
    title: str = ""
    business_name: str = ""
    bio: str = ""
    profile_image: str = Field("", description="JSON-encoded image data or empty")


class ContactInfo(CardModel):
    phone: str = ""
    email: str = ""
    address: str = ""


class SocialMessaging(CardModel):
    zalo: str = ""
    messenger: str = ""
    telegram: str = ""
    whatsapp: str = ""
    kakao: str = ""
    discord: str = ""
    wechat: str = ""


class SocialChannels(CardModel):
    facebook: str = ""
    linkedin: str = ""
    twitter: str = ""
    youtube: str = ""
    tiktok: str = ""


class NarrativeProfile(CardModel):
    about: str = ""
    service_areas: str = ""
    specialties: str = ""
    experience: str = ""
    languages: str = ""
    certifications: str = ""


class PortfolioCategory(CardModel):
    id: str
    name: str


class PortfolioItem(CardModel):
    id: str
    type: str = Field("images", description="images, video or virtual-tour")
    title: str = ""
    description: str = ""
    category_id: str = ""
    images: List[str] = Field(default_factory=list)
    video_url: Optional[str] = None
    tour_url: Optional[str] = None


class ProfileRecord(CardModel):
    personal: PersonalInfo = Field(default_factory=PersonalInfo)
    contact: ContactInfo = Field(default_factory=ContactInfo)
    social_messaging: SocialMessaging = Field(default_factory=SocialMessaging)
    social_channels: SocialChannels = Field(default_factory=SocialChannels)
    profile: NarrativeProfile = Field(default_factory=NarrativeProfile)
    portfolio_categories: List[PortfolioCategory] = Field(default_factory=list)
    portfolio: List[PortfolioItem] = Field(default_factory=list)
    custom_labels: Dict[str, str] = Field(default_factory=dict)
    ai_agent_visible: Optional[bool] = Field(None, description="Derived per view, never stored")

    def to_document(self) -> dict:
        return self.model_dump(exclude={"ai_agent_visible"})


# ------------------------------
# Sharing groups and recipients
# ------------------------------

class Group(CardModel):
    id: str = Field(..., description="Stable id: 'public', 'private', ... or 'custom-<hex>'")
    label: str
    description: str = ""
    icon: str = "Users"
    color: str = "blue"
    share_code: str = Field(..., description="6-8 uppercase alphanumerics, unique per owner")
    is_default: bool = False
    display_order: int = 0
    created_at: datetime = Field(default_factory=utc_now)


class Contact(CardModel):
    id: str
    group: str = Field(..., description="Group id this recipient is bound to")
    name: str = ""
    title: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    notes: Optional[str] = None
    contact_code: Optional[str] = None
    is_group_share: bool = False
    created_at: datetime = Field(default_factory=utc_now)


# ------------------------------
# Delegates
# ------------------------------

class PermissionLevel(str, Enum):
    EDITABLE = "editable"
    READONLY = "readonly"


class Delegate(CardModel):
    owner_id: str
    delegate_id: str
    name: str = ""
    role: Optional[str] = None
    department: Optional[str] = None
    is_active: bool = True
    field_permissions: Dict[str, PermissionLevel] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)


# ------------------------------
# Request payloads
# ------------------------------

class GroupCreate(CardModel):
    label: str
    description: str = ""
    icon: str = "Users"
    color: str = "blue"
    share_code: Optional[str] = None


class GroupUpdate(CardModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    label: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    share_code: Optional[str] = None


class VisibleFieldsUpdate(CardModel):
    fields: List[str]


class FieldToggle(CardModel):
    field: str


class ContactCreate(CardModel):
    group: str
    name: str = ""
    title: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    notes: Optional[str] = None
    track_individually: bool = True


class ContactUpdate(CardModel):
    group: Optional[str] = None
    name: Optional[str] = None
    title: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    company: Optional[str] = None
    notes: Optional[str] = None


class DelegateCreate(CardModel):
    delegate_id: str
    name: str = ""
    role: Optional[str] = None
    department: Optional[str] = None


class DelegateUpdate(CardModel):
    name: Optional[str] = None
    role: Optional[str] = None
    department: Optional[str] = None
    is_active: Optional[bool] = None


class PermissionsUpdate(CardModel):
    permissions: Dict[str, str]
    delegate_ids: List[str] = Field(default_factory=list)
    apply_to: str = Field("selected", description="selected, filtered or all")
    query: Optional[str] = None


class FieldChanges(CardModel):
    changes: Dict[str, str]
