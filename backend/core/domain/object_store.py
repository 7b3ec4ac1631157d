"""
core.domain.object_store — Binary attachment storage.

Thin wrapper over Django's storage API: ``put`` writes a blob under a
unique name and returns its public URL.  Any backend configured through
``STORAGES["default"]`` (filesystem locally, S3 etc. in production) works
without changes here.
"""

from __future__ import annotations

import logging
import mimetypes
import posixpath
import uuid

from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import Storage, default_storage

from core import constants
from core.domain.exceptions import DependencyUnavailable

logger = logging.getLogger(__name__)


class ObjectStoreClient:
    """
    Upload blobs and hand back durable public references.

    Instances are stateless apart from the storage backend, so a single
    instance may be shared across threads.
    """

    def __init__(self, storage: Storage | None = None, prefix: str | None = None) -> None:
        self.storage = storage or default_storage
        self.prefix = prefix or settings.REPORTS.get(
            "ATTACHMENT_PREFIX", constants.ATTACHMENT_PREFIX,
        )

    def _object_name(self, filename: str, content_type: str | None) -> str:
        extension = posixpath.splitext(filename or "")[1].lower()
        if not extension and content_type:
            extension = mimetypes.guess_extension(content_type) or ""
        return posixpath.join(self.prefix, f"{uuid.uuid4().hex}{extension}")

    def put(
        self,
        content: bytes,
        *,
        filename: str = "",
        content_type: str | None = None,
    ) -> str:
        """
        Store ``content`` and return its public URL.

        Raises:
            DependencyUnavailable: The storage backend rejected or failed
                the write.
        """
        name = self._object_name(filename, content_type)
        try:
            stored_name = self.storage.save(name, ContentFile(content))
            url = self.storage.url(stored_name)
        except (OSError, ValueError) as exc:
            logger.error("Object store write failed for %s: %s", name, exc)
            raise DependencyUnavailable(
                f"Could not store attachment '{filename or name}'.",
                dependency="object_store",
            ) from exc

        logger.debug("Stored attachment %s (%d bytes)", stored_name, len(content))
        return url
