"""Repository interfaces and the SQL-backed implementation."""

from repositories.base import (
    LeadsRepository, EmailsRepository, LogsRepository, Repositories
)
from repositories.sql import (
    Database, SQLLeadsRepository, SQLEmailsRepository, SQLLogsRepository,
    create_repositories
)

__all__ = [
    "LeadsRepository", "EmailsRepository", "LogsRepository", "Repositories",
    "Database", "SQLLeadsRepository", "SQLEmailsRepository", "SQLLogsRepository",
    "create_repositories"
]
