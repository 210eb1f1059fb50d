from __future__ import annotations

from typing import Any, List, Optional, Generator

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from db.session import get_session
from db import models
from taxonomy import (
    ROD_FIELDS,
    DuplicateMetadata,
    InvalidMetadataReference,
    MetadataNotFound,
    MetadataRegistry,
    MetadataResolver,
    RegistryConflict,
)
from taxonomy.pending import link_pending_brand, list_pending_brands


def get_db() -> Generator[Session, None, None]:
    # Wrap the existing contextmanager for FastAPI dependency injection
    with get_session() as s:
        yield s


def get_registry(db: Session = Depends(get_db)) -> MetadataRegistry:
    return MetadataRegistry(db, actor="admin")


class MetadataOption(BaseModel):
    id: int
    value: str
    label: str
    extra: Optional[Any] = None


class MetadataOut(MetadataOption):
    category: str
    aliases: List[str] = []
    sort_order: int = 0
    is_active: bool = True


class MetadataCreate(BaseModel):
    category: str
    value: str
    label: str
    aliases: Optional[List[str]] = None
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None
    extra: Optional[Any] = None


class MetadataUpdate(BaseModel):
    label: Optional[str] = None
    aliases: Optional[List[str]] = None
    sort_order: Optional[int] = None
    is_active: Optional[bool] = None
    extra: Optional[Any] = None


class CollisionOut(BaseModel):
    category: str
    key: str
    kept_id: int
    shadowed_id: int


class PendingBrandOut(BaseModel):
    type: str
    raw_brand: str
    display_brand: str
    count: int


class PendingBrandLink(BaseModel):
    type: str
    brand: str
    metadata_id: int


class PendingBrandLinkResult(BaseModel):
    updated: int


class RodIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=60)
    length: Optional[float] = Field(None, gt=0, le=10)
    note: Optional[str] = Field(None, max_length=500)
    brand: Optional[str] = Field(None, max_length=40)
    brand_metadata_id: Optional[int] = None
    power: Optional[str] = Field(None, max_length=20)
    power_metadata_id: Optional[int] = None
    length_unit: Optional[str] = Field(None, max_length=16)
    length_unit_metadata_id: Optional[int] = None


class RodPatch(RodIn):
    name: Optional[str] = Field(None, min_length=1, max_length=60)


class RodOut(BaseModel):
    id: int
    name: str
    length: Optional[float] = None
    note: Optional[str] = None
    brand: Optional[str] = None
    brand_metadata_id: Optional[int] = None
    power: Optional[str] = None
    power_metadata_id: Optional[int] = None
    length_unit: Optional[str] = None
    length_unit_metadata_id: Optional[int] = None


app = FastAPI(title="catchlog metadata API", version="0.1.0")

# CORS for local dev (adjust later as needed)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


def _to_out(rec: models.Metadata) -> MetadataOut:
    return MetadataOut(
        id=rec.id,
        category=rec.category,
        value=rec.value,
        label=rec.label,
        aliases=list(rec.aliases or []),
        sort_order=rec.sort_order or 0,
        is_active=bool(rec.is_active),
        extra=rec.extra,
    )


def _rod_out(rod: models.Rod) -> RodOut:
    return RodOut(
        id=rod.id,
        name=rod.name,
        length=rod.length,
        note=rod.note,
        brand=rod.brand,
        brand_metadata_id=rod.brand_metadata_id,
        power=rod.power,
        power_metadata_id=rod.power_metadata_id,
        length_unit=rod.length_unit,
        length_unit_metadata_id=rod.length_unit_metadata_id,
    )


# ---- picker read path ----


@app.get("/metadata", response_model=List[MetadataOption])
def list_suggestions(
    category: Optional[str] = Query(None, description="Metadata category, e.g. rod_brand"),
    registry: MetadataRegistry = Depends(get_registry),
):
    if not category:
        raise HTTPException(status_code=400, detail="Missing category parameter")
    return [
        MetadataOption(id=r.id, value=r.value, label=r.label, extra=r.extra)
        for r in registry.suggestions(category)
    ]


# ---- admin curation ----


@app.get("/admin/metadata", response_model=List[MetadataOut])
def admin_list_metadata(
    category: Optional[str] = Query(None, description="Restrict to one category"),
    registry: MetadataRegistry = Depends(get_registry),
):
    return [_to_out(r) for r in registry.list_all(category)]


@app.post("/admin/metadata", response_model=MetadataOut, status_code=201)
def admin_create_metadata(body: MetadataCreate, registry: MetadataRegistry = Depends(get_registry)):
    db = registry.session
    try:
        rec = registry.create(
            body.category,
            body.value,
            body.label,
            aliases=body.aliases,
            sort_order=body.sort_order or 0,
            is_active=body.is_active,
            extra=body.extra,
        )
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    except DuplicateMetadata as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.message)
    db.commit()
    return _to_out(rec)


@app.patch("/admin/metadata/{metadata_id}", response_model=MetadataOut)
def admin_update_metadata(
    metadata_id: int,
    body: MetadataUpdate,
    registry: MetadataRegistry = Depends(get_registry),
):
    db = registry.session
    try:
        rec = registry.update(metadata_id, **body.model_dump(exclude_unset=True))
    except MetadataNotFound as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    db.commit()
    return _to_out(rec)


@app.delete("/admin/metadata/{metadata_id}")
def admin_delete_metadata(metadata_id: int, registry: MetadataRegistry = Depends(get_registry)):
    db = registry.session
    try:
        registry.delete(metadata_id)
    except (MetadataNotFound, RegistryConflict) as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.message)
    db.commit()
    return {"success": True}


@app.get("/admin/metadata/collisions", response_model=List[CollisionOut])
def admin_metadata_collisions(registry: MetadataRegistry = Depends(get_registry)):
    return [CollisionOut(**c.to_dict()) for c in registry.build_index().collisions]


@app.get("/admin/metadata/pending-brands", response_model=List[PendingBrandOut])
def admin_pending_brands(
    type: str = Query("all", description="all, rod or reel"),
    db: Session = Depends(get_db),
):
    try:
        items = list_pending_brands(db, type)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return [PendingBrandOut(**p.to_dict()) for p in items]


@app.post("/admin/metadata/pending-brands", response_model=PendingBrandLinkResult)
def admin_link_pending_brand(body: PendingBrandLink, registry: MetadataRegistry = Depends(get_registry)):
    db = registry.session
    try:
        updated = link_pending_brand(db, registry, body.type, body.brand, body.metadata_id)
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))
    except MetadataNotFound:
        db.rollback()
        raise HTTPException(status_code=404, detail="Metadata not found or category mismatch")
    db.commit()
    return PendingBrandLinkResult(updated=updated)


# ---- entity writes (metadata-linked fields) ----


@app.post("/rods", response_model=RodOut, status_code=201)
def create_rod(body: RodIn, registry: MetadataRegistry = Depends(get_registry)):
    db = registry.session
    payload = body.model_dump(exclude_unset=True)
    rod = models.Rod(name=payload["name"], length=payload.get("length"), note=payload.get("note"))
    try:
        MetadataResolver(registry).apply(payload, rod, ROD_FIELDS)
    except InvalidMetadataReference as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if rod.length_unit is None:
        rod.length_unit = "m"
    db.add(rod)
    db.commit()
    return _rod_out(rod)


@app.patch("/rods/{rod_id}", response_model=RodOut)
def update_rod(rod_id: int, body: RodPatch, registry: MetadataRegistry = Depends(get_registry)):
    db = registry.session
    rod = db.get(models.Rod, rod_id)
    if rod is None:
        raise HTTPException(status_code=404, detail="Rod not found")
    payload = body.model_dump(exclude_unset=True)
    try:
        MetadataResolver(registry).apply(payload, rod, ROD_FIELDS)
    except InvalidMetadataReference as e:
        db.rollback()
        raise HTTPException(status_code=e.status_code, detail=e.message)
    if payload.get("name"):
        rod.name = payload["name"]
    for key in ("length", "note"):
        if key in payload:
            setattr(rod, key, payload[key])
    db.commit()
    return _rod_out(rod)
