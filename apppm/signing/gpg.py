# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
GPG Wrapper Module for Package Verification

Provides Python wrapper for GPG operations using python-gnupg library.
Verifies YUM-style detached signatures shipped next to package archives.
"""

import gnupg
from pathlib import Path
from typing import Tuple, Optional


class GPGNotFoundError(Exception):
    """Raised when GPG executable is not found on the system"""
    pass


def _get_gpg_instance(keyring_dir: Optional[str] = None) -> gnupg.GPG:
    """
    Get GPG instance with optional custom keyring directory.

    Args:
        keyring_dir: Optional path to custom GPG keyring directory.
                    If None, uses system default (~/.gnupg)

    Returns:
        gnupg.GPG instance

    Raises:
        GPGNotFoundError: If GPG executable is not found
    """
    try:
        if keyring_dir:
            Path(keyring_dir).mkdir(parents=True, exist_ok=True)
            gpg = gnupg.GPG(gnupghome=keyring_dir)
        else:
            gpg = gnupg.GPG()

        # Test if GPG is available
        gpg.list_keys()
        return gpg
    except Exception as e:
        raise GPGNotFoundError(
            f"GPG not found or not properly configured. "
            f"Please install GPG (gpg or gnupg). Error: {str(e)}"
        )


def signature_path_for(filepath: str) -> Path:
    """Detached signature location for a package archive"""
    filepath = Path(filepath)
    return filepath.with_suffix(filepath.suffix + '.asc')


def verify_signature(
    filepath: str,
    signature_path: str,
    keyring_dir: Optional[str] = None
) -> Tuple[bool, str]:
    """
    Verifies a detached GPG signature against a file.

    Args:
        filepath: Path to the signed file
        signature_path: Path to the .asc signature file
        keyring_dir: Optional custom keyring directory

    Returns:
        (is_valid, error_message): Tuple of verification result and error message.
                                   error_message is empty string if valid.

    Raises:
        GPGNotFoundError: If GPG is not installed
        FileNotFoundError: If file or signature doesn't exist
    """
    gpg = _get_gpg_instance(keyring_dir)

    filepath = Path(filepath)
    signature_path = Path(signature_path)

    if not filepath.exists():
        raise FileNotFoundError(f"File not found: {filepath}")

    if not signature_path.exists():
        raise FileNotFoundError(f"Signature file not found: {signature_path}")

    with open(signature_path, 'rb') as sig_file:
        verified = gpg.verify_file(sig_file, str(filepath))

    if verified.valid:
        return (True, "")

    error_parts = []

    if verified.status == 'signature bad':
        error_parts.append("Signature does not match package content")
    elif verified.status == 'no public key':
        error_parts.append(f"Public key not found: {verified.key_id}")
        error_parts.append("Publisher may not be trusted")
    elif verified.status:
        error_parts.append(f"Verification failed: {verified.status}")

    error_message = ". ".join(error_parts) if error_parts else "Signature verification failed"
    return (False, error_message)
