"""Resolve public image URLs for destination cards."""

from typing import Optional

from apps.destinations.dto import DestinationRecord


class ImageUrlResolver:
    """Picks the main image of a destination and makes its URL absolute."""

    def __init__(self, base_url: str = ""):
        self.base_url = (base_url or "").rstrip("/")

    def absolute(self, url: Optional[str]) -> Optional[str]:
        if not url:
            return None
        if url.startswith(("http://", "https://", "//")) or not self.base_url:
            return url
        return f"{self.base_url}/{url.lstrip('/')}"

    def main_image(self, record: DestinationRecord, allow_first: bool = False) -> Optional[str]:
        """URL of the image flagged as main.

        With ``allow_first`` the image in first position is used when none is flagged.
        """
        main = next((i for i in record.images if i.is_main), None)
        if main is None and allow_first and record.images:
            main = min(record.images, key=lambda i: i.order)
        return self.absolute(main.url) if main else None


def create_image_resolver() -> ImageUrlResolver:
    from apps.core.config import settings

    return ImageUrlResolver(settings.media_base_url)
