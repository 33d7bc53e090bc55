from checkout_guard.database.base import Base, DateTimeMixin, utcnow
from checkout_guard.database.engine import create_engine, create_session_factory

__all__ = ["Base", "DateTimeMixin", "create_engine", "create_session_factory", "utcnow"]
