# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Staging Collaborators

Single responsibility: turn an install source into an unpacked directory,
and fingerprint an unpacked directory.

Both are pluggable: the installer only depends on the Stager and
Checksummer protocols.
"""

import hashlib
import logging
import os
import shutil
import tarfile
import zipfile
from pathlib import Path
from typing import Optional, Protocol

from apppm.core.errors import IllegalStateError
from apppm.signing import gpg

logger = logging.getLogger(__name__)

ZIP_SUFFIXES = (".rpk", ".zip")
TAR_SUFFIXES = (".tar.gz", ".tgz", ".tar")


class Stager(Protocol):
    """Unpacks an install source into a private directory"""

    def stage(self, source: Path, destination: Path) -> None:
        """
        Raises:
            IllegalStateError: If the source cannot be verified or unpacked
        """
        ...


class Checksummer(Protocol):
    """Computes an opaque digest of an unpacked package"""

    def checksum(self, directory: Path) -> str:
        ...


def staging_name(source: Path) -> str:
    """
    Name of the staging directory for a source.

    'com.demo.app.rpk' -> 'com.demo.app', 'bundle.tar.gz' -> 'bundle'.
    """
    name = source.name
    for suffix in TAR_SUFFIXES + ZIP_SUFFIXES:
        if name.endswith(suffix) and len(name) > len(suffix):
            return name[: -len(suffix)]
    return source.stem or name


def _is_within(base: Path, target: Path) -> bool:
    base = base.resolve()
    try:
        target.resolve().relative_to(base)
        return True
    except ValueError:
        return False


class ArchiveStager:
    """
    Default stager.

    Classifies the source by type:
    - directory: copied as-is
    - .rpk / .zip: zip archive
    - .tar / .tar.gz / .tgz: tar archive

    With gpgcheck enabled, archive sources must carry a detached
    '<source>.asc' signature that verifies against the keyring.
    """

    def __init__(self, gpgcheck: bool = False, keyring_dir: Optional[str] = None):
        self.gpgcheck = gpgcheck
        self.keyring_dir = keyring_dir

    def stage(self, source: Path, destination: Path) -> None:
        source = Path(source)
        destination = Path(destination)

        if source.is_dir():
            self._copy_directory(source, destination)
            return

        if self.gpgcheck:
            self._verify(source)

        name = source.name.lower()
        if name.endswith(ZIP_SUFFIXES):
            self._extract_zip(source, destination)
        elif name.endswith(TAR_SUFFIXES):
            self._extract_tar(source, destination)
        else:
            raise IllegalStateError(f"Unsupported package type: {source.name}")

    def _verify(self, source: Path) -> None:
        signature = gpg.signature_path_for(str(source))
        if not signature.exists():
            raise IllegalStateError(f"Missing signature for {source.name}: {signature.name}")

        try:
            valid, error = gpg.verify_signature(str(source), str(signature), self.keyring_dir)
        except (gpg.GPGNotFoundError, FileNotFoundError) as e:
            raise IllegalStateError(f"Cannot verify {source.name}: {e}")

        if not valid:
            raise IllegalStateError(f"Signature check failed for {source.name}: {error}")

        logger.info(f"Verified signature for {source.name}")

    def _copy_directory(self, source: Path, destination: Path) -> None:
        try:
            shutil.copytree(source, destination, symlinks=True)
        except (OSError, shutil.Error) as e:
            raise IllegalStateError(f"Failed to copy {source}: {e}")

    def _extract_zip(self, source: Path, destination: Path) -> None:
        try:
            with zipfile.ZipFile(source, 'r') as zip_file:
                for member in zip_file.namelist():
                    if not _is_within(destination, destination / member):
                        raise IllegalStateError(f"Archive member escapes staging dir: {member}")
                destination.mkdir(parents=True, exist_ok=True)
                zip_file.extractall(destination)
        except (zipfile.BadZipFile, OSError) as e:
            raise IllegalStateError(f"Failed to decompress {source.name}: {e}")

    def _extract_tar(self, source: Path, destination: Path) -> None:
        try:
            with tarfile.open(source, 'r:*') as tar:
                for member in tar.getmembers():
                    if not _is_within(destination, destination / member.name):
                        raise IllegalStateError(f"Archive member escapes staging dir: {member.name}")
                destination.mkdir(parents=True, exist_ok=True)
                if hasattr(tarfile, "data_filter"):
                    tar.extractall(destination, filter="data")
                else:
                    tar.extractall(destination)
        except (tarfile.TarError, OSError) as e:
            raise IllegalStateError(f"Failed to decompress {source.name}: {e}")


class TreeChecksummer:
    """SHA-256 over every file's relative path and content, in sorted order"""

    def checksum(self, directory: Path) -> str:
        directory = Path(directory)
        digest = hashlib.sha256()
        try:
            files = sorted(
                Path(root) / name
                for root, _dirs, names in os.walk(directory)
                for name in names
            )
            for file_path in files:
                if file_path.is_symlink() or not file_path.is_file():
                    continue
                digest.update(file_path.relative_to(directory).as_posix().encode("utf-8"))
                with open(file_path, "rb") as f:
                    for chunk in iter(lambda: f.read(65536), b""):
                        digest.update(chunk)
        except OSError as e:
            logger.warning(f"Checksum of {directory} failed, recording empty digest: {e}")
            return ""
        return digest.hexdigest()


class NullChecksummer:
    """Checksummer that records no digest"""

    def checksum(self, directory: Path) -> str:
        return ""
