"""
Local filesystem storage for uploaded post images.

Files live flat under FILE_UPLOAD_PATH and are served from /uploads.
"""

from pathlib import Path

from config import get_logger, get_settings
from schemas import DEFAULT_POST_IMAGE

logger = get_logger("storage")


def upload_dir() -> Path:
    path = Path(get_settings().file_upload_path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def post_image_name(post_id, original_filename: str) -> str:
    """Deterministic name: post_<id><original extension>."""
    return f"post_{post_id}{Path(original_filename or '').suffix.lower()}"


def save_image(filename: str, content: bytes) -> Path:
    target = upload_dir() / Path(filename).name
    target.write_bytes(content)
    logger.info("Stored upload %s (%d bytes)", target.name, len(content))
    return target


def delete_image(filename: str) -> bool:
    """Remove a stored image unless it is the default placeholder. True if a file was removed."""
    if not filename or filename == DEFAULT_POST_IMAGE:
        return False
    target = Path(get_settings().file_upload_path) / Path(filename).name
    if not target.is_file():
        return False
    target.unlink()
    logger.info("Deleted upload %s", target.name)
    return True
