import pytest

from contact_registry import ContactRegistry
from group_registry import GroupRegistry
from permission_overlay import PermissionOverlay
from profile_editor import provision_account
from schemas import (
    ContactInfo,
    NarrativeProfile,
    PersonalInfo,
    PortfolioCategory,
    PortfolioItem,
    ProfileRecord,
    SocialChannels,
    SocialMessaging,
)
from stores import MemoryStorage
from visibility_settings import VisibilitySettings

OWNER_ID = "christine"


def make_record(name="Christine Nguyen", title="Interior Designer", business_name="Design Solutions"):
    return ProfileRecord(
        personal=PersonalInfo(
            name=name,
            title=title,
            business_name=business_name,
            bio="Transforming spaces into works of art.",
            profile_image='{"imageUrl": "https://cdn.example.com/avatar.jpg"}',
        ),
        contact=ContactInfo(
            phone="+84 123 456 789",
            email="christine@example.com",
            address="123 Design Street, District 1",
        ),
        social_messaging=SocialMessaging(telegram="christinenguyen", whatsapp="84123456789"),
        social_channels=SocialChannels(linkedin="christinenguyen", youtube="christinenguyen"),
        profile=NarrativeProfile(
            about="It is my pleasure to assist you.",
            languages="Vietnamese • English",
            certifications="HN-1108",
        ),
        portfolio_categories=[PortfolioCategory(id="cat-1", name="Kitchens")],
        portfolio=[
            PortfolioItem(id="item-1", title="Loft kitchen", category_id="cat-1", images=["a.jpg", "b.jpg"]),
        ],
        custom_labels={"personal.name": "Designer"},
    )


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def owner_record():
    return make_record()


@pytest.fixture
def provisioned(storage, owner_record):
    provision_account(storage, OWNER_ID, owner_record)
    return storage


@pytest.fixture
def groups(provisioned):
    return GroupRegistry(provisioned, OWNER_ID)


@pytest.fixture
def settings(groups):
    return VisibilitySettings(groups)


@pytest.fixture
def contacts(groups):
    return ContactRegistry(groups)


@pytest.fixture
def overlay(provisioned):
    return PermissionOverlay(provisioned, OWNER_ID)
