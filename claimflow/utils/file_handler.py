"""
File Handler Utilities
Receipt upload validation and storage
"""

import os
import shutil
from pathlib import Path
from typing import Optional, Tuple
from fastapi import UploadFile
from datetime import datetime
import uuid

from claimflow.config.settings import settings
from claimflow.utils.exceptions import ValidationError
from claimflow.utils.logger import setup_logger

logger = setup_logger()


def _extension(filename: str) -> str:
    return filename.rsplit(".", 1)[-1].lower() if "." in filename else ""


def validate_file(file: UploadFile, allowed_extensions: Optional[list] = None) -> Tuple[bool, Optional[str]]:
    """
    Validate uploaded file

    Args:
        file: Uploaded file
        allowed_extensions: Overrides the configured extensions

    Returns:
        Tuple[bool, Optional[str]]: (is_valid, error_message)
    """
    allowed = allowed_extensions or settings.allowed_extensions_list

    file_ext = _extension(file.filename or "")
    if file_ext not in allowed:
        return False, f"File type '{file_ext}' not allowed. Allowed types: {', '.join(allowed)}"

    file.file.seek(0, 2)
    file_size = file.file.tell()
    file.file.seek(0)

    if file_size > settings.MAX_FILE_SIZE:
        max_size_mb = settings.MAX_FILE_SIZE / (1024 * 1024)
        return False, f"File size exceeds maximum allowed size of {max_size_mb}MB"

    if file_size == 0:
        return False, "File is empty"

    return True, None


def validate_receipt(file: UploadFile, field_name: str, pdf_only: bool = False):
    """
    Raises:
        ValidationError: If the upload is not an acceptable receipt
    """
    if pdf_only and _extension(file.filename or "") != "pdf":
        raise ValidationError(f"{field_name} must be a PDF file")
    is_valid, error_message = validate_file(file, ["pdf"] if pdf_only else None)
    if not is_valid:
        raise ValidationError(f"{field_name}: {error_message}")


def save_upload_file(file: UploadFile, employee_id: int) -> str:
    """
    Save a validated upload to disk

    Args:
        file: Uploaded file
        employee_id: Employee who uploaded the file

    Returns:
        str: Stored file path
    """
    employee_dir = Path(settings.UPLOAD_DIRECTORY) / str(employee_id)
    employee_dir.mkdir(parents=True, exist_ok=True)

    file_ext = _extension(file.filename or "")
    unique_filename = f"{datetime.now().strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}.{file_ext}"
    file_path = employee_dir / unique_filename

    try:
        with file_path.open("wb") as buffer:
            shutil.copyfileobj(file.file, buffer)
        logger.info(f"File saved: {file_path} by employee {employee_id}")
        return str(file_path)
    finally:
        file.file.close()


def delete_file(file_path: Optional[str]) -> bool:
    """
    Delete a file from disk

    Args:
        file_path: Path to file

    Returns:
        bool: True if deleted
    """
    if not file_path:
        return False
    try:
        if os.path.exists(file_path):
            os.remove(file_path)
            logger.info(f"File deleted: {file_path}")
            return True
        return False
    except OSError as e:
        logger.error(f"Error deleting file {file_path}: {str(e)}")
        return False
