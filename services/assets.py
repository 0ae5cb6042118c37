import logging
from pathlib import Path
from typing import Protocol

import config

logger = logging.getLogger(__name__)


class AssetStorage(Protocol):
    """Deletes stored product images by their opaque asset name."""

    async def delete(self, asset_name: str) -> bool:
        ...


class LocalAssetStorage:
    """
    Product images stored as plain files in the uploads folder.

    Only file names are ever accepted, so a stored name cannot point outside
    the uploads folder.
    """

    def __init__(self, uploads_folder: str | None = None):
        self.uploads_folder = Path(uploads_folder or config.UPLOADS_FOLDER)

    def path_for(self, asset_name: str) -> Path:
        safe_name = Path(asset_name).name
        if safe_name != asset_name or safe_name in ("", ".", ".."):
            raise ValueError(f"Invalid asset name: '{asset_name}'")
        return self.uploads_folder / safe_name

    async def delete(self, asset_name: str) -> bool:
        """
        Returns:
            True if the file was removed, False if it did not exist
        """
        path = self.path_for(asset_name)
        if not path.exists():
            logger.warning(f"Asset {asset_name} not found in {self.uploads_folder}")
            return False
        path.unlink()
        logger.info(f"Asset deleted: {asset_name}")
        return True
