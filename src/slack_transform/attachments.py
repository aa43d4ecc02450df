"""Copy uploaded files out of the Slack export into the attachments directory"""

import logging
import shutil
import unicodedata
import zipfile
from pathlib import Path
from typing import Dict, Optional

from .exceptions import AttachmentError
from .slack_export import SlackFile

logger = logging.getLogger(__name__)


def get_normalised_file_path(file: SlackFile, attachments_dir: str) -> str:
    """Destination path for an upload, NFC-normalised

    Example:
        >>> get_normalised_file_path(SlackFile(id="F1", name="a.png"), "attachments")
        'attachments/F1_a.png'
    """
    file_path = str(Path(attachments_dir) / f"{file.id}_{file.name}")
    return unicodedata.normalize("NFC", file_path)


def copy_attachment(
    file: SlackFile,
    uploads: Dict[str, zipfile.ZipInfo],
    archive: Optional[zipfile.ZipFile],
    attachments_dir: str,
) -> Optional[str]:
    """Extract one upload from the export

    Args:
        file: File referenced by the message
        uploads: Upload entries of the export, keyed by file id
        archive: Open export archive
        attachments_dir: Directory receiving the copies

    Returns:
        Path of the copied file, or None if the export does not contain it

    Raises:
        AttachmentError: If the upload cannot be read or the copy written
    """
    upload = uploads.get(file.id)
    if upload is None or archive is None:
        logger.warning(f"Failed to retrieve file with id {file.id}")
        return None

    dest_path = get_normalised_file_path(file, attachments_dir)
    try:
        with archive.open(upload) as src, open(dest_path, "wb") as dest:
            shutil.copyfileobj(src, dest)
    except (OSError, zipfile.BadZipFile) as e:
        raise AttachmentError(
            f"Failed to copy file {file.id} to {dest_path}: {e}"
        ) from e

    logger.debug(f"Copied file {file.id} to {dest_path}")
    return dest_path
