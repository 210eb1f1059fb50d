from __future__ import annotations

import sys
from pathlib import Path

import pytest
from sqlalchemy.orm import sessionmaker

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from db.models import Base
from db.session import make_engine
from taxonomy.registry import MetadataRegistry


@pytest.fixture
def engine(tmp_path: Path):
    # File-backed so every NullPool connection sees the same database
    eng = make_engine(f"sqlite:///{(tmp_path / 'catchlog_test.db').as_posix()}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, future=True)


@pytest.fixture
def session(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def registry(session) -> MetadataRegistry:
    return MetadataRegistry(session, actor="test")


@pytest.fixture
def catalog(registry, session) -> dict:
    """A small committed registry: the records most tests reference by name."""
    recs = {
        "rod_daiwa": registry.create("rod_brand", "daiwa", "Daiwa", aliases=["达瓦", "DAIWA"], sort_order=10),
        "rod_shimano": registry.create("rod_brand", "shimano", "Shimano", aliases=["禧玛诺"], sort_order=20),
        "reel_daiwa": registry.create("reel_brand", "daiwa", "Daiwa", aliases=["达瓦"]),
        "power_ml": registry.create("rod_power", "ml", "ML", aliases=["Medium Light", "中软"]),
        "unit_m": registry.create("length_unit", "m", "m", aliases=["米", "meter"]),
        "unit_ft": registry.create("length_unit", "ft", "ft", aliases=["英尺", "feet"]),
        "sunny": registry.create("weather_type", "sunny", "Sunny", aliases=["晴", "晴天"]),
        "river": registry.create("combo_scene_tag", "river", "River", aliases=["河流"]),
        "lake": registry.create("combo_scene_tag", "lake", "Lake", aliases=["湖库", "水库"]),
    }
    session.commit()
    return recs
