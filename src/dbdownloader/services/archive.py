"""Archive extraction helpers for dbdownloader."""

import gzip
import os
import shutil
import zipfile
from pathlib import Path
from typing import List

from dbdownloader.constants import GZIP_SQL_EXTENSION, SQL_EXTENSION
from dbdownloader.errors import InvalidInput


class ArchiveService:
    """Encapsulates safe zip extraction and gzip decompression."""

    def is_within_dir(self, base_dir: Path, candidate: Path) -> bool:
        try:
            return os.path.commonpath([str(base_dir), str(candidate)]) == str(base_dir)
        except ValueError:
            return False

    def safe_extract_zip(self, zip_path: str, destination_dir: str) -> List[str]:
        """Extracts ``zip_path`` and returns the extracted file paths in archive order."""
        base = Path(destination_dir).resolve()
        extracted: List[str] = []

        try:
            with zipfile.ZipFile(zip_path, "r") as zip_ref:
                for member in zip_ref.infolist():
                    normalized_name = member.filename.replace("\\", "/")
                    target_path = (base / normalized_name).resolve()

                    if not self.is_within_dir(base, target_path):
                        raise InvalidInput(
                            f"Unsafe ZIP entry detected: `{member.filename}`. "
                            "Archive extraction aborted to prevent path traversal."
                        )

                    file_type = (member.external_attr >> 16) & 0o170000
                    if file_type == 0o120000:
                        raise InvalidInput(
                            f"Unsafe ZIP entry detected: `{member.filename}` is a symbolic link."
                        )

                for member in zip_ref.infolist():
                    normalized_name = member.filename.replace("\\", "/")
                    target_path = (base / normalized_name).resolve()

                    if member.is_dir() or normalized_name.endswith("/"):
                        target_path.mkdir(parents=True, exist_ok=True)
                        continue

                    target_path.parent.mkdir(parents=True, exist_ok=True)
                    with zip_ref.open(member, "r") as src, open(target_path, "wb") as dst:
                        shutil.copyfileobj(src, dst)
                    extracted.append(str(target_path))
        except zipfile.BadZipFile as exc:
            raise InvalidInput(f"Invalid ZIP archive: {zip_path}") from exc

        return extracted

    def gunzip(self, gz_path: str) -> str:
        """Decompresses ``x.sql.gz`` into ``x.sql`` and removes the archive, like ``gunzip -f``."""
        if not gz_path.endswith(GZIP_SQL_EXTENSION):
            raise InvalidInput(f"Expected a `{GZIP_SQL_EXTENSION}` file: {gz_path}")

        target_path = gz_path[: -len(GZIP_SQL_EXTENSION)] + SQL_EXTENSION
        try:
            with gzip.open(gz_path, "rb") as src, open(target_path, "wb") as dst:
                shutil.copyfileobj(src, dst)
        except (OSError, EOFError) as exc:
            if os.path.exists(target_path):
                os.remove(target_path)
            raise InvalidInput(f"Invalid gzip archive: {gz_path}. {exc}") from exc

        os.remove(gz_path)
        return target_path
