"""
Media service: validates post images and pushes them to the image host.

Validation (content type, size) happens before any bytes leave the
process, so a bad upload is reported as a 400 without touching either
the image host or the database.
"""
import logging

from fastapi import UploadFile

from blog_api.config import settings
from blog_api.errors import ImageTooLargeError, UnsupportedImageTypeError, UploadError
from blog_api.storage import ImageStorage, get_storage

logger = logging.getLogger(__name__)

BANNER_FOLDER = "banner"
SOCIAL_FOLDER = "social"


class MediaService:
    def __init__(self, storage: ImageStorage | None = None) -> None:
        self.storage = storage or get_storage()
        self.max_size_bytes = settings.IMAGE_MAX_SIZE_MB * 1024 * 1024
        self.allowed_types = settings.IMAGE_ALLOWED_TYPES

    def validate_type(self, file: UploadFile) -> None:
        if not file.content_type or file.content_type not in self.allowed_types:
            raise UnsupportedImageTypeError(file.content_type, self.allowed_types)

    async def read_image(self, file: UploadFile) -> bytes:
        """Return the validated bytes of *file*."""
        self.validate_type(file)
        data = await file.read()
        if len(data) > self.max_size_bytes:
            raise ImageTooLargeError(settings.IMAGE_MAX_SIZE_MB, len(data))
        return data

    async def upload_images(self, files: dict[str, UploadFile | None]) -> dict[str, str]:
        """
        Upload every non-empty entry of *files* (folder -> file) and
        return folder -> hosted URL.

        All files are read and validated before the first upload starts.
        Host failures are re-raised as ``UploadError`` so the enclosing
        create/update aborts before it writes anything.
        """
        pending: list[tuple[str, UploadFile, bytes]] = []
        for folder, file in files.items():
            if file is None:
                continue
            pending.append((folder, file, await self.read_image(file)))

        urls: dict[str, str] = {}
        for folder, file, data in pending:
            try:
                url = await self.storage.upload_image(data, folder, file.content_type)
            except Exception as exc:
                logger.error("Upload of %r to %s failed: %s", file.filename, folder, exc)
                raise UploadError(str(exc)) from exc
            logger.info("Uploaded %r (%d bytes) to %s", file.filename, len(data), url)
            urls[folder] = url
        return urls

def get_media_service() -> MediaService:
    return MediaService()
