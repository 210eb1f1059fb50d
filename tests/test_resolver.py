from __future__ import annotations

import pytest

from db.models import Combo, ComboSceneMetadata, Rod
from taxonomy.errors import InvalidMetadataReference
from taxonomy.resolver import (
    REEL_FIELDS,
    ROD_FIELDS,
    TRIP_FIELDS,
    UNSET,
    MetadataResolver,
    Resolution,
    apply_scene_tags,
)


@pytest.fixture
def resolver(registry) -> MetadataResolver:
    return MetadataResolver(registry)


# ---- single field precedence ----


def test_id_overwrites_client_label(resolver, catalog):
    rec = catalog["rod_daiwa"]
    res = resolver.resolve("rod_brand", metadata_id=rec.id, free_text="some stale guess")
    assert res == Resolution(metadata_id=rec.id, free_text="Daiwa")


def test_resolved_text_equals_registry_label_for_every_record(resolver, registry, catalog):
    for rec in catalog.values():
        res = resolver.resolve(rec.category, metadata_id=rec.id)
        assert res.free_text == registry.find_by_id(rec.id, rec.category).label


def test_cross_category_id_rejected(resolver, catalog):
    with pytest.raises(InvalidMetadataReference) as exc:
        resolver.resolve("rod_brand", metadata_id=catalog["reel_daiwa"].id)
    assert exc.value.category == "rod_brand"
    assert exc.value.status_code == 400
    assert "refresh" in exc.value.message


@pytest.mark.parametrize("bad_id", [987654, "abc", -1])
def test_unknown_id_rejected(resolver, catalog, bad_id):
    with pytest.raises(InvalidMetadataReference):
        resolver.resolve("rod_brand", metadata_id=bad_id, free_text="Daiwa")


def test_fractional_id_is_not_truncated(resolver, catalog):
    with pytest.raises(InvalidMetadataReference):
        resolver.resolve("rod_brand", metadata_id=catalog["rod_daiwa"].id + 0.9)
    with pytest.raises(InvalidMetadataReference):
        resolver.resolve_scene_tags(metadata_ids=[catalog["river"].id + 0.5])


def test_integer_like_ids_accepted(resolver, catalog):
    rid = catalog["rod_daiwa"].id
    assert resolver.resolve("rod_brand", metadata_id=str(rid)).metadata_id == rid
    assert resolver.resolve("rod_brand", metadata_id=float(rid)).metadata_id == rid


def test_deactivated_record_cannot_be_newly_selected(resolver, registry, catalog, session):
    registry.deactivate(catalog["rod_shimano"].id)
    session.commit()
    with pytest.raises(InvalidMetadataReference):
        resolver.resolve("rod_brand", metadata_id=catalog["rod_shimano"].id)


def test_explicit_null_detaches_and_keeps_text(resolver):
    assert resolver.resolve("rod_brand", metadata_id=None, free_text="My own brand") == Resolution(None, "My own brand")
    assert resolver.resolve("rod_brand", metadata_id=None) == Resolution(None, UNSET)


def test_text_without_id_is_uncontrolled(resolver, catalog):
    # no implicit matching even when the text is a known alias
    res = resolver.resolve("rod_brand", free_text="达瓦")
    assert res == Resolution(metadata_id=None, free_text="达瓦")


def test_both_omitted_is_noop(resolver):
    res = resolver.resolve("rod_brand")
    assert res.is_noop
    assert not UNSET


# ---- whole-entity writes ----


def test_apply_new_rod(resolver, catalog):
    rod = Rod(name="Bass 662")
    payload = {
        "brand": "whatever the client typed",
        "brand_metadata_id": catalog["rod_daiwa"].id,
        "power": "ML-ish",
        "length_unit_metadata_id": catalog["unit_ft"].id,
    }
    changes = resolver.apply(payload, rod, ROD_FIELDS)
    assert rod.brand == "Daiwa" and rod.brand_metadata_id == catalog["rod_daiwa"].id
    assert rod.power == "ML-ish" and rod.power_metadata_id is None
    assert rod.length_unit == "ft" and rod.length_unit_metadata_id == catalog["unit_ft"].id
    assert changes["brand"] == "Daiwa"
    assert "length" not in changes


def test_apply_is_all_or_nothing(resolver, catalog):
    rod = Rod(name="Untouched", brand="Old", brand_metadata_id=None, power="M")
    payload = {
        "brand_metadata_id": catalog["rod_daiwa"].id,
        "power_metadata_id": catalog["reel_daiwa"].id,  # wrong category
    }
    with pytest.raises(InvalidMetadataReference):
        resolver.apply(payload, rod, ROD_FIELDS)
    assert rod.brand == "Old"
    assert rod.brand_metadata_id is None
    assert rod.power == "M"


def test_partial_update_leaves_other_fields(resolver, catalog, session):
    rod = Rod(name="Linked", brand="Daiwa", brand_metadata_id=catalog["rod_daiwa"].id, power="ML",
              power_metadata_id=catalog["power_ml"].id)
    session.add(rod)
    session.commit()

    resolver.apply({"brand": "Custom build"}, rod, ROD_FIELDS)
    session.commit()
    assert rod.brand == "Custom build"
    assert rod.brand_metadata_id is None  # text edited by hand, link no longer describes it
    assert rod.power == "ML"
    assert rod.power_metadata_id == catalog["power_ml"].id


def test_link_text_frozen_after_label_change(resolver, registry, catalog, session):
    rod = Rod(name="Frozen")
    resolver.apply({"brand_metadata_id": catalog["rod_daiwa"].id}, rod, ROD_FIELDS)
    session.add(rod)
    session.commit()
    registry.update(catalog["rod_daiwa"].id, label="Daiwa Seiko")
    registry.deactivate(catalog["rod_daiwa"].id)
    session.commit()
    session.refresh(rod)
    assert rod.brand == "Daiwa"
    assert rod.brand_metadata_id == catalog["rod_daiwa"].id


def test_field_tuples_cover_expected_columns():
    assert [f.id_attr for f in ROD_FIELDS] == ["brand_metadata_id", "power_metadata_id", "length_unit_metadata_id"]
    assert [f.category for f in REEL_FIELDS] == ["reel_brand"]
    assert [(f.text_attr, f.category) for f in TRIP_FIELDS] == [("weather_type", "weather_type")]


# ---- scene tags ----


def test_scene_tags_from_ids_and_custom(resolver, catalog):
    sel = resolver.resolve_scene_tags(
        metadata_ids=[catalog["river"].id, catalog["lake"].id, catalog["river"].id],
        custom_tags=[" night ", "", "River", "night"],
    )
    assert sel.metadata_ids == (catalog["river"].id, catalog["lake"].id)
    assert sel.labels == ("River", "Lake")
    assert sel.custom_tags == ("night", "River")
    assert sel.scene_tags == ["River", "Lake", "night"]


def test_scene_tags_invalid_id_fails_whole_set(resolver, catalog):
    with pytest.raises(InvalidMetadataReference) as exc:
        resolver.resolve_scene_tags(metadata_ids=[catalog["river"].id, catalog["rod_daiwa"].id])
    assert exc.value.metadata_id == catalog["rod_daiwa"].id


def test_scene_tags_inactive_id_rejected(resolver, registry, catalog, session):
    registry.deactivate(catalog["lake"].id)
    session.commit()
    with pytest.raises(InvalidMetadataReference):
        resolver.resolve_scene_tags(metadata_ids=[catalog["lake"].id])


def test_scene_tags_omitted_parts_keep_stored_state(resolver, catalog):
    river = catalog["river"].id
    # only custom tags sent: stored links survive
    sel = resolver.resolve_scene_tags(custom_tags=["dawn"], current_ids=[river], current_tags=["River", "old"])
    assert sel.metadata_ids == (river,)
    assert sel.scene_tags == ["River", "dawn"]
    # only ids sent: stored custom tags survive, stored link labels do not
    sel = resolver.resolve_scene_tags(metadata_ids=[catalog["lake"].id], current_ids=[river], current_tags=["River", "old"])
    assert sel.metadata_ids == (catalog["lake"].id,)
    assert sel.custom_tags == ("old",)
    assert sel.scene_tags == ["Lake", "old"]


def test_apply_scene_tags_syncs_links(resolver, catalog, session):
    combo = Combo(name="Kit", scene_tags=[])
    session.add(combo)
    apply_scene_tags(session, combo, resolver.resolve_scene_tags(metadata_ids=[catalog["river"].id], custom_tags=["dusk"]))
    session.commit()
    assert combo.scene_tags == ["River", "dusk"]
    assert [l.metadata_id for l in combo.scene_links] == [catalog["river"].id]

    sel = resolver.resolve_scene_tags(
        metadata_ids=[catalog["lake"].id],
        current_ids=[l.metadata_id for l in combo.scene_links],
        current_tags=combo.scene_tags,
    )
    apply_scene_tags(session, combo, sel)
    session.commit()
    links = session.query(ComboSceneMetadata).filter_by(combo_id=combo.id).all()
    assert [l.metadata_id for l in links] == [catalog["lake"].id]
    assert combo.scene_tags == ["Lake", "dusk"]
