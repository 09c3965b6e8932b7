from .base import ConversationRepository, UserRepository
from .sql_repo import AsyncSqlRepo

__all__ = ["AsyncSqlRepo", "ConversationRepository", "UserRepository"]
