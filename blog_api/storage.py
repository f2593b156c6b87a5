"""
Image hosting backends.

The post service only needs one thing from a host: take raw image bytes
and a destination folder, hand back a durable URL.  ``ImageStorage``
captures that contract; ``CloudinaryStorage`` is the production
implementation.
"""

import asyncio
from abc import abstractmethod
from functools import partial
from typing import Protocol

import cloudinary
import cloudinary.uploader

from blog_api.config import settings


class ImageStorage(Protocol):
    """Interface every image host implements."""

    @abstractmethod
    async def upload_image(
        self,
        file_data: bytes,
        folder: str,
        content_type: str,
    ) -> str:
        """
        Upload *file_data* into *folder*.

        Args:
            file_data: Raw image bytes
            folder: Destination folder on the host
            content_type: MIME type of the image

        Returns:
            str: Public URL of the stored image
        """
        ...


class CloudinaryStorage:
    """
    Cloudinary-backed image storage.

    The Cloudinary SDK is synchronous, so uploads run in the default
    thread-pool executor and only the calling request waits on them.
    """

    def __init__(self) -> None:
        cloudinary.config(
            cloud_name=settings.CLOUDINARY_CLOUD_NAME,
            api_key=settings.CLOUDINARY_API_KEY,
            api_secret=settings.CLOUDINARY_API_SECRET,
            secure=True,
        )
        self.root_folder = settings.CLOUDINARY_FOLDER

    async def upload_image(
        self,
        file_data: bytes,
        folder: str,
        content_type: str,
    ) -> str:
        loop = asyncio.get_running_loop()
        result = await loop.run_in_executor(
            None,
            partial(
                cloudinary.uploader.upload,
                file_data,
                folder=f"{self.root_folder}/{folder}",
                resource_type="image",
                use_filename=False,
                unique_filename=True,
            ),
        )
        return result["secure_url"]


def get_storage() -> ImageStorage:
    return CloudinaryStorage()
