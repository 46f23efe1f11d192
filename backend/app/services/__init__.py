from app.services.directory import DirectoryService, directory_service
from app.services.email_service import EmailService, email_service
from app.services.sync_service import SyncService

__all__ = [
    # Upstream facades
    "DirectoryService",
    "directory_service",
    "EmailService",
    "email_service",
    # Password synchronization
    "SyncService",
]
