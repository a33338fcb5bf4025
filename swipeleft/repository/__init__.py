from swipeleft.repository.base import StatusRepository
from swipeleft.repository.local import LocalStatusStore
from swipeleft.repository.remote import ImageCache, PublicFeedUploader, RemoteStatusStore

__all__ = [
    "ImageCache",
    "LocalStatusStore",
    "PublicFeedUploader",
    "RemoteStatusStore",
    "StatusRepository",
]
