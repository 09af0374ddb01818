from __future__ import annotations

from .sqlalchemy_source import SqlAlchemyConnection, build_engine

__all__ = ["SqlAlchemyConnection", "build_engine"]
