import logging
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import configure_logging, settings
from contact_registry import ContactRegistry
from database import db
from errors import CardEngineError, NotAuthenticated
from field_catalog import CATALOG_VERSION, FIELD_LABELS, FieldPath, controllable_fields, default_visible_fields, sorted_paths
from group_registry import GroupRegistry
from permission_overlay import PermissionOverlay
from profile_editor import ProfileEditor, provision_account
from resolution import ViewRequest, load_snapshot, resolve_view
from schemas import (
    ContactCreate,
    ContactUpdate,
    DelegateCreate,
    DelegateUpdate,
    FieldChanges,
    FieldToggle,
    GroupCreate,
    GroupUpdate,
    PermissionsUpdate,
    ProfileRecord,
    VisibleFieldsUpdate,
)
from share_paths import build_share_path, parse_profile_path
from stores import build_storage
from view_cache import SnapshotCache
from visibility_settings import VisibilitySettings, delete_group_cascade

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

storage = build_storage(db)
snapshot_cache = SnapshotCache(lambda owner_id: load_snapshot(storage, owner_id),
                               ttl_seconds=settings.snapshot_ttl_seconds)


@app.exception_handler(CardEngineError)
async def handle_engine_error(request: Request, exc: CardEngineError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

# ------------------------------
# Dependencies (demo auth placeholder)
# ------------------------------

def get_storage():
    return storage


def get_snapshot_cache():
    return snapshot_cache


def get_current_account(x_account_id: Optional[str] = Header(None)) -> str:
    """Demo identity placeholder for edit routes. Real session handling lives outside this service.

    Public view routes never read it: a visitor is always anonymous there.
    """
    if not x_account_id:
        raise NotAuthenticated("Authentication required")
    return x_account_id

# ------------------------------
# Utility
# ------------------------------

def serialize_group(owner_id: str, group, visible=None, contact_count=None):
    data = group.to_wire()
    data["sharePath"] = build_share_path(owner_id, group.share_code)
    if visible is not None:
        data["visibleFields"] = sorted_paths(visible)
    if contact_count is not None:
        data["contactCount"] = contact_count
    return data


def serialize_contact(owner_id: str, contact, groups_by_id):
    data = contact.to_wire()
    group = groups_by_id.get(contact.group)
    if group is not None:
        data["sharePath"] = build_share_path(owner_id, group.share_code, contact.contact_code)
    return data


def resolve_card_view(owner_id: str, group_code: Optional[str], contact_code: Optional[str],
                      cache: SnapshotCache, viewer_id: Optional[str] = None):
    request = ViewRequest(
        owner_id=owner_id,
        group_code_or_id=group_code,
        contact_code=contact_code,
        viewer_id=viewer_id,
    )
    view = resolve_view(cache.get(owner_id), request)
    logger.info("Card view owner=%s group=%s contact=%s owner_view=%s",
                owner_id, view.group_id, view.contact_id, view.is_owner_view)
    return view.to_dict()

# ------------------------------
# Public routes
# ------------------------------

@app.get("/")
def root():
    return {"message": "Digital Business Card API"}


@app.get("/health")
def health():
    response = {
        "backend": "running",
        "database": "in-memory",
        "snapshot_cache_ttl": settings.snapshot_ttl_seconds,
    }
    if db is not None:
        try:
            db.list_collection_names()
            response["database"] = "connected"
        except Exception as e:
            response["database"] = f"error: {str(e)[:50]}"
    return response


@app.get("/api/catalog")
def get_catalog():
    return {
        "version": CATALOG_VERSION,
        "fields": [{"path": p.value, "label": FIELD_LABELS[p]} for p in FieldPath],
        "controllable": sorted_paths(controllable_fields()),
        "defaultVisible": sorted_paths(default_visible_fields()),
    }


@app.get("/api/p/{owner_id}")
def get_public_card(owner_id: str, group: Optional[str] = None, contact: Optional[str] = None,
                    cache: SnapshotCache = Depends(get_snapshot_cache)):
    return resolve_card_view(owner_id, group, contact, cache)


@app.get("/api/p/{owner_id}/{group_code}")
def get_group_card(owner_id: str, group_code: str,
                   cache: SnapshotCache = Depends(get_snapshot_cache)):
    return resolve_card_view(owner_id, group_code, None, cache)


@app.get("/api/p/{owner_id}/{group_code}/{contact_code}")
def get_contact_card(owner_id: str, group_code: str, contact_code: str,
                     cache: SnapshotCache = Depends(get_snapshot_cache)):
    return resolve_card_view(owner_id, group_code, contact_code, cache)


@app.get("/api/view")
def get_card_by_path(path: str,
                     cache: SnapshotCache = Depends(get_snapshot_cache)):
    parsed = parse_profile_path(path)
    if not parsed.owner_id:
        raise HTTPException(status_code=404, detail="Profile not found")
    data = resolve_card_view(parsed.owner_id, parsed.group_code, parsed.contact_code, cache)
    data["screen"] = parsed.screen
    return data

# ------------------------------
# Account and card (authenticated)
# ------------------------------

@app.post("/api/account")
def create_account(account_id: str = Depends(get_current_account), store=Depends(get_storage),
                   cache: SnapshotCache = Depends(get_snapshot_cache)):
    record = provision_account(store, account_id)
    cache.invalidate(account_id)
    groups = GroupRegistry(store, account_id).list_groups()
    return {
        "card": record.to_wire(),
        "groups": [serialize_group(account_id, g) for g in groups],
    }


@app.get("/api/card")
def get_my_card(account_id: str = Depends(get_current_account), store=Depends(get_storage)):
    editor = ProfileEditor(store)
    return {"card": editor.get_record(account_id).to_wire(), "editable": editor.editable_fields(account_id)}


@app.get("/api/card/view")
def preview_my_card(group: Optional[str] = None, account_id: str = Depends(get_current_account),
                    store=Depends(get_storage)):
    """Owner preview: the full card, or the card as members of ``group`` see it."""
    request = ViewRequest(
        owner_id=account_id,
        group_code_or_id=group,
        viewer_id=None if group else account_id,
    )
    return resolve_view(load_snapshot(store, account_id), request).to_dict()


@app.put("/api/card")
def save_my_card(payload: ProfileRecord, account_id: str = Depends(get_current_account),
                 store=Depends(get_storage), cache: SnapshotCache = Depends(get_snapshot_cache)):
    record = ProfileEditor(store).save_record(account_id, payload)
    cache.invalidate(account_id)
    return {"card": record.to_wire()}


@app.patch("/api/card/fields")
def update_my_card_fields(payload: FieldChanges, account_id: str = Depends(get_current_account),
                          store=Depends(get_storage), cache: SnapshotCache = Depends(get_snapshot_cache)):
    record = ProfileEditor(store).update_fields(account_id, payload.changes)
    cache.invalidate(account_id)
    return {"card": record.to_wire()}

# ------------------------------
# Groups and visibility settings
# ------------------------------

@app.get("/api/groups")
def list_groups(account_id: str = Depends(get_current_account), store=Depends(get_storage)):
    groups = GroupRegistry(store, account_id)
    visible = VisibilitySettings(groups).all_settings()
    counts = ContactRegistry(groups).count_by_group()
    return [
        serialize_group(account_id, g, visible.get(g.id), counts.get(g.id, 0))
        for g in groups.list_groups()
    ]


@app.post("/api/groups")
def create_group(payload: GroupCreate, account_id: str = Depends(get_current_account),
                 store=Depends(get_storage), cache: SnapshotCache = Depends(get_snapshot_cache)):
    group = GroupRegistry(store, account_id).create_group(
        payload.label, payload.description, payload.icon, payload.color, payload.share_code
    )
    cache.invalidate(account_id)
    return serialize_group(account_id, group)


@app.put("/api/groups/{group_id}")
def update_group(group_id: str, payload: GroupUpdate, account_id: str = Depends(get_current_account),
                 store=Depends(get_storage), cache: SnapshotCache = Depends(get_snapshot_cache)):
    fields = payload.model_dump(exclude_none=True)
    group = GroupRegistry(store, account_id).update_group(group_id, **fields)
    cache.invalidate(account_id)
    return serialize_group(account_id, group)


@app.delete("/api/groups/{group_id}")
def delete_group(group_id: str, account_id: str = Depends(get_current_account),
                 store=Depends(get_storage), cache: SnapshotCache = Depends(get_snapshot_cache)):
    delete_group_cascade(VisibilitySettings(GroupRegistry(store, account_id)), group_id)
    cache.invalidate(account_id)
    return {"status": "deleted"}


@app.get("/api/groups/{group_id}/fields")
def get_group_fields(group_id: str, account_id: str = Depends(get_current_account),
                     store=Depends(get_storage)):
    visible = VisibilitySettings(GroupRegistry(store, account_id)).get_visible_fields(group_id)
    return {"groupId": group_id, "visibleFields": sorted_paths(visible)}


@app.put("/api/groups/{group_id}/fields")
def set_group_fields(group_id: str, payload: VisibleFieldsUpdate,
                     account_id: str = Depends(get_current_account),
                     store=Depends(get_storage), cache: SnapshotCache = Depends(get_snapshot_cache)):
    visible = VisibilitySettings(GroupRegistry(store, account_id)).set_visible_fields(group_id, payload.fields)
    cache.invalidate(account_id)
    return {"groupId": group_id, "visibleFields": sorted_paths(visible)}


@app.post("/api/groups/{group_id}/fields/toggle")
def toggle_group_field(group_id: str, payload: FieldToggle,
                       account_id: str = Depends(get_current_account),
                       store=Depends(get_storage), cache: SnapshotCache = Depends(get_snapshot_cache)):
    visible = VisibilitySettings(GroupRegistry(store, account_id)).toggle_field(group_id, payload.field)
    cache.invalidate(account_id)
    return {"groupId": group_id, "visibleFields": sorted_paths(visible)}

# ------------------------------
# Contacts
# ------------------------------

@app.get("/api/contacts")
def list_contacts(group: Optional[str] = None, q: Optional[str] = None,
                  account_id: str = Depends(get_current_account), store=Depends(get_storage)):
    groups = GroupRegistry(store, account_id)
    by_id = {g.id: g for g in groups.list_groups()}
    contacts = ContactRegistry(groups).list_contacts(group_id=group, query=q)
    return [serialize_contact(account_id, c, by_id) for c in contacts]


@app.post("/api/contacts")
def create_contact(payload: ContactCreate, account_id: str = Depends(get_current_account),
                   store=Depends(get_storage), cache: SnapshotCache = Depends(get_snapshot_cache)):
    groups = GroupRegistry(store, account_id)
    metadata = payload.model_dump(exclude={"group", "track_individually"}, exclude_none=True)
    contact = ContactRegistry(groups).create_contact(payload.group, metadata, payload.track_individually)
    cache.invalidate(account_id)
    return serialize_contact(account_id, contact, {g.id: g for g in groups.list_groups()})


@app.put("/api/contacts/{contact_id}")
def update_contact(contact_id: str, payload: ContactUpdate, account_id: str = Depends(get_current_account),
                   store=Depends(get_storage), cache: SnapshotCache = Depends(get_snapshot_cache)):
    groups = GroupRegistry(store, account_id)
    contact = ContactRegistry(groups).update_contact(contact_id, **payload.model_dump(exclude_none=True))
    cache.invalidate(account_id)
    return serialize_contact(account_id, contact, {g.id: g for g in groups.list_groups()})


@app.delete("/api/contacts/{contact_id}")
def delete_contact(contact_id: str, account_id: str = Depends(get_current_account),
                   store=Depends(get_storage), cache: SnapshotCache = Depends(get_snapshot_cache)):
    ContactRegistry(GroupRegistry(store, account_id)).delete_contact(contact_id)
    cache.invalidate(account_id)
    return {"status": "deleted"}

# ------------------------------
# Delegates and field permissions
# ------------------------------

@app.get("/api/delegates")
def list_delegates(q: Optional[str] = None, account_id: str = Depends(get_current_account),
                   store=Depends(get_storage)):
    delegates = PermissionOverlay(store, account_id).filter_delegates(q)
    return [d.to_wire() for d in delegates]


@app.post("/api/delegates")
def add_delegate(payload: DelegateCreate, account_id: str = Depends(get_current_account),
                 store=Depends(get_storage)):
    delegate = PermissionOverlay(store, account_id).add_delegate(
        payload.delegate_id, payload.name, payload.role, payload.department
    )
    return delegate.to_wire()


@app.put("/api/delegates/permissions")
def update_delegate_permissions(payload: PermissionsUpdate, account_id: str = Depends(get_current_account),
                                store=Depends(get_storage), cache: SnapshotCache = Depends(get_snapshot_cache)):
    overlay = PermissionOverlay(store, account_id)
    if payload.apply_to == "selected":
        result = overlay.set_permissions(payload.delegate_ids, payload.permissions)
    elif payload.apply_to == "all":
        result = overlay.set_permissions_for_all(payload.permissions)
    elif payload.apply_to == "filtered":
        result = overlay.set_permissions_for_filtered(payload.permissions, payload.query)
    else:
        raise HTTPException(status_code=400, detail=f"Unknown apply_to: {payload.apply_to}")
    for delegate_id in result.delegate_ids:
        cache.invalidate(delegate_id)
    return result.to_dict()


@app.put("/api/delegates/{delegate_id}")
def update_delegate(delegate_id: str, payload: DelegateUpdate, account_id: str = Depends(get_current_account),
                    store=Depends(get_storage)):
    delegate = PermissionOverlay(store, account_id).update_delegate(
        delegate_id, **payload.model_dump(exclude_none=True)
    )
    return delegate.to_wire()


@app.delete("/api/delegates/{delegate_id}")
def remove_delegate(delegate_id: str, account_id: str = Depends(get_current_account),
                    store=Depends(get_storage)):
    PermissionOverlay(store, account_id).remove_delegate(delegate_id)
    return {"status": "deleted"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
