"""
Resume storage resolver.

Maps a stored resume URL onto a locally readable path. Upload URLs look like
``http://host/uploads/cv/123.pdf`` and are served from the local uploads
directory; plain paths are used as-is.
"""
import logging
import os
from urllib.parse import urlparse, unquote

from core.exceptions import InvalidResumeLocationError

logger = logging.getLogger(__name__)

UPLOADS_SEGMENT = "uploads"


def resolve_resume_path(resume_url: str, uploads_dir: str = "./uploads") -> str:
    """
    Resolve a resume URL or path to a local file path.

    Args:
        resume_url: Stored resume URL or a local path
        uploads_dir: Local directory backing the ``/uploads`` URL prefix

    Returns:
        Local file path

    Raises:
        InvalidResumeLocationError: URL does not point into the uploads area
    """
    if not resume_url or not resume_url.strip():
        raise InvalidResumeLocationError("Empty resume location")

    location = resume_url.strip()
    if not location.lower().startswith(("http://", "https://")):
        return location

    segments = [s for s in urlparse(location).path.split("/") if s]
    if UPLOADS_SEGMENT not in segments:
        raise InvalidResumeLocationError(f"Invalid file URL format: {resume_url}")

    rest = segments[segments.index(UPLOADS_SEGMENT) + 1:]
    if not rest or ".." in rest:
        raise InvalidResumeLocationError(f"Invalid file URL format: {resume_url}")

    local_path = os.path.join(uploads_dir, *[unquote(s) for s in rest])
    logger.debug(f"Resolved resume URL {resume_url} -> {local_path}")
    return local_path
