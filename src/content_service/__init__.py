"""Content service facade.

This package ties the git connection registry and the sandboxed file store
together into the operations exposed to the HTTP layer and the CLI:
configure, list, create, read, update, delete and publish posts.
"""

from src.content_service.config_loader import ProjectConfigLoader
from src.content_service.content_service import ContentService
from src.content_service.models import (
    ConfigureResult,
    CreatePostResult,
    DeletePostResult,
    PostDocument,
    PublishOutcome,
    UpdatePostResult,
)
from src.content_service.settings import Settings

__all__ = [
    'ContentService',
    'ProjectConfigLoader',
    'Settings',
    'ConfigureResult',
    'CreatePostResult',
    'DeletePostResult',
    'PostDocument',
    'PublishOutcome',
    'UpdatePostResult',
]
