"""
Review media storage.

Talents upload review images/videos straight to object storage. The
settlement workflow only asks for deletion when a founder rejects a
review.
"""

import logging
from typing import Protocol

from supabase import Client

logger = logging.getLogger(__name__)

DEFAULT_BUCKET = "review-submissions"


class MediaStorage(Protocol):
    """Protocol for review media backends."""

    def delete(self, url: str) -> None:
        """Delete the blob behind a public URL. Raises on failure."""
        ...


def object_path_from_url(url: str, bucket: str = DEFAULT_BUCKET) -> str:
    """Extract the object path from a public storage URL.

    Raises:
        ValueError: If the URL does not point into ``bucket``
    """
    marker = f"/storage/v1/object/public/{bucket}/"
    index = url.find(marker)
    if index < 0:
        raise ValueError(f"URL is not in bucket {bucket}: {url}")
    path = url[index + len(marker) :].split("?", 1)[0]
    if not path:
        raise ValueError(f"URL has no object path: {url}")
    return path


class SupabaseMediaStorage:
    """Review media in a Supabase storage bucket."""

    def __init__(self, client: Client, bucket: str = DEFAULT_BUCKET):
        self.client = client
        self.bucket = bucket

    def delete(self, url: str) -> None:
        path = object_path_from_url(url, self.bucket)
        self.client.storage.from_(self.bucket).remove([path])
        logger.info(f"Deleted review media | path={path}")
