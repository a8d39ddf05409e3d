"""
Disk storage for images embedded in post content.

Uploads land in ``{root}/temp`` first.  Once the post exists they are moved
to ``{root}/images/{post_id}`` and the content markers are rewritten, so the
permanent location depends on the generated post id.

The storage object is provided by the ``get_storage`` dependency; tests
override it with an instance rooted in a temporary directory.

The methods do blocking disk I/O; async callers run them with
``run_in_threadpool``.
"""
import logging
import shutil
import uuid
from pathlib import Path

from blog_api.config import settings

logger = logging.getLogger(__name__)


def temp_url_prefix() -> str:
    """URL prefix under which freshly uploaded images are served."""
    return f"{settings.STATIC_URL}/{settings.TEMP_DIR_NAME}/"


def post_images_url_prefix(post_id: int) -> str:
    """URL prefix under which a post's permanent images are served."""
    return f"{settings.STATIC_URL}/{settings.IMAGES_DIR_NAME}/{post_id}/"


def _check_name(name: str) -> None:
    # Reject anything that could escape the temp directory.
    if not name or Path(name).name != name or name in (".", ".."):
        raise ValueError(f"Invalid image file name: {name!r}")


class LocalFileStorage:
    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    @property
    def temp_dir(self) -> Path:
        return self.root / settings.TEMP_DIR_NAME

    @property
    def images_dir(self) -> Path:
        return self.root / settings.IMAGES_DIR_NAME

    def post_dir(self, post_id: int) -> Path:
        return self.images_dir / str(post_id)

    def ensure_dirs(self) -> None:
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        self.images_dir.mkdir(parents=True, exist_ok=True)

    def save_temp_image(self, data: bytes, suffix: str) -> str:
        """Write *data* to the temp directory under a fresh uuid name."""
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        name = f"{uuid.uuid4().hex}{suffix.lower()}"
        (self.temp_dir / name).write_bytes(data)
        logger.info("Stored temp image %s (%d bytes)", name, len(data))
        return name

    def move_post_image(self, temp_name: str, post_id: int) -> str:
        """
        Move a temp upload into the post's folder and return its path
        relative to the storage root.

        Raises ``FileNotFoundError`` when the temp file does not exist.
        """
        _check_name(temp_name)
        source = self.temp_dir / temp_name
        if not source.is_file():
            raise FileNotFoundError(temp_name)
        destination = self.post_dir(post_id)
        destination.mkdir(parents=True, exist_ok=True)
        shutil.move(str(source), str(destination / temp_name))
        logger.info("Moved image %s to post %d", temp_name, post_id)
        return f"{settings.IMAGES_DIR_NAME}/{post_id}/{temp_name}"

    def restore_post_image(self, temp_name: str, post_id: int) -> None:
        """
        Move an image back from the post's folder to the temp directory.

        Used to undo ``move_post_image`` when the surrounding write fails.
        Best effort: failures are logged, not raised, because the caller is
        already propagating the original error.
        """
        source = self.post_dir(post_id) / temp_name
        try:
            self.temp_dir.mkdir(parents=True, exist_ok=True)
            shutil.move(str(source), str(self.temp_dir / temp_name))
            logger.info("Restored image %s from post %d", temp_name, post_id)
        except OSError:
            logger.exception("Failed to restore image %s for post %d", temp_name, post_id)

    def delete_post_images(self, post_id: int) -> None:
        directory = self.post_dir(post_id)
        if not directory.exists():
            return
        shutil.rmtree(directory)
        logger.info("Deleted images of post %d", post_id)
