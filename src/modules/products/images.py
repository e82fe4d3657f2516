"""URL helpers for images served by the hosted media service."""

from __future__ import annotations

from django.conf import settings

UPLOAD_MARKER = "/upload/"


def get_optimized_image_url(url: str, width: int = 500) -> str:
    """Insert a resize/quality/format transformation into a media-service URL.

    ``https://res.cloudinary.com/demo/image/upload/v1/ring.jpg`` becomes
    ``https://res.cloudinary.com/demo/image/upload/w_500,q_auto,f_auto/v1/ring.jpg``.
    URLs from any other host are returned untouched.
    """
    if not url:
        return ""
    if settings.MEDIA_UPLOAD_HOST not in url:
        return url
    index = url.find(UPLOAD_MARKER)
    if index == -1:
        return url
    cut = index + len(UPLOAD_MARKER)
    return f"{url[:cut]}w_{width},q_auto,f_auto/{url[cut:]}"
