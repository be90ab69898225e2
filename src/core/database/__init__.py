from src.core.database.session import async_session, engine, get_db, session_scope
from src.core.database.base import Base, BaseModel, BigIntPK

__all__ = ["async_session", "engine", "get_db", "session_scope", "Base", "BaseModel", "BigIntPK"]
