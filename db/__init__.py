"""Database layer: ORM models plus engine/session helpers.

Scripts usually need just `from db import get_session`; tests build their own
engines with `make_engine` against a temp file.
"""
from .models import Base  # noqa: F401
from .session import get_session, make_engine, reconfigure  # noqa: F401

__all__ = ["Base", "get_session", "make_engine", "reconfigure"]
