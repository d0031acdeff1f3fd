"""Password-protected project archives.

A staging directory is packed into a ZIP (deflated) and the whole ZIP is
encrypted as a single blob:

- PBKDF2-SHA256 for key derivation (iteration count stored in the header)
- AES-256-GCM for authenticated encryption
- Random 32-byte salt + 12-byte nonce per archive

Archive format: magic(4) + iterations(4, big endian) + salt(32) + nonce(12)
+ ciphertext+tag
"""

import io
import os
import struct
import zipfile
from pathlib import Path, PurePosixPath
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..errors import ArchiveError

ARCHIVE_SUFFIX = ".pvault"


class ArchiveCodec:
    """Seal a directory into an encrypted archive, and unseal it back."""

    MAGIC = b"PVX1"
    KEY_LENGTH = 32              # 256 bits for AES-256
    SALT_LENGTH = 32             # 256-bit salt
    NONCE_LENGTH = 12            # 96-bit nonce for GCM
    MAX_ITERATIONS = 10_000_000

    _PREFIX_SIZE = len(MAGIC) + 4
    _HEADER_SIZE = _PREFIX_SIZE + SALT_LENGTH + NONCE_LENGTH

    def __init__(self, iterations: Optional[int] = None):
        if iterations is None:
            from ..config import get_settings
            iterations = get_settings().kdf_iterations
        self.iterations = iterations

    @classmethod
    def derive_key(cls, password: str, salt: bytes, iterations: int) -> bytes:
        """Derive a 256-bit key from password + salt via PBKDF2-SHA256."""
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=cls.KEY_LENGTH,
            salt=salt,
            iterations=iterations,
            backend=default_backend(),
        )
        return kdf.derive(password.encode("utf-8"))

    def encrypt_bytes(self, data: bytes, password: str) -> bytes:
        salt = os.urandom(self.SALT_LENGTH)
        nonce = os.urandom(self.NONCE_LENGTH)
        key = self.derive_key(password, salt, self.iterations)
        ciphertext = AESGCM(key).encrypt(nonce, data, self.MAGIC)
        return self.MAGIC + struct.pack(">I", self.iterations) + salt + nonce + ciphertext

    def decrypt_bytes(self, blob: bytes, password: str) -> bytes:
        """Decrypt an archive blob.

        Raises:
            ArchiveError: Wrong password, truncated or foreign data.
        """
        if len(blob) < self._HEADER_SIZE or not blob.startswith(self.MAGIC):
            raise ArchiveError("Cannot decrypt the archive: not a project archive.")
        (iterations,) = struct.unpack(">I", blob[len(self.MAGIC):self._PREFIX_SIZE])
        if not 0 < iterations <= self.MAX_ITERATIONS:
            raise ArchiveError("Cannot decrypt the archive: corrupt header.")
        salt_end = self._PREFIX_SIZE + self.SALT_LENGTH
        salt = blob[self._PREFIX_SIZE:salt_end]
        nonce = blob[salt_end:self._HEADER_SIZE]
        key = self.derive_key(password, salt, iterations)
        try:
            return AESGCM(key).decrypt(nonce, blob[self._HEADER_SIZE:], self.MAGIC)
        except InvalidTag:
            raise ArchiveError("Cannot decrypt the archive: wrong password or corrupt data.")

    def seal(self, source_dir: Path, password: str) -> bytes:
        """Pack every file below ``source_dir`` and encrypt the result."""
        source_dir = Path(source_dir)
        if not source_dir.is_dir():
            raise ArchiveError(f"Cannot create the archive: {source_dir} is not a directory.")
        zip_buf = io.BytesIO()
        try:
            with zipfile.ZipFile(zip_buf, "w", zipfile.ZIP_DEFLATED) as zf:
                for path in sorted(source_dir.rglob("*")):
                    if path.is_file():
                        zf.write(path, path.relative_to(source_dir).as_posix())
        except OSError as e:
            raise ArchiveError(f"Cannot create the archive: {e}") from e
        return self.encrypt_bytes(zip_buf.getvalue(), password)

    def unseal(self, blob: bytes, password: str, dest_dir: Path) -> Path:
        """Decrypt ``blob`` and extract its files into ``dest_dir``."""
        dest_dir = Path(dest_dir)
        zip_bytes = self.decrypt_bytes(blob, password)
        try:
            with zipfile.ZipFile(io.BytesIO(zip_bytes), "r") as zf:
                for name in zf.namelist():
                    member = PurePosixPath(name)
                    if member.is_absolute() or ".." in member.parts:
                        raise ArchiveError(f"Cannot extract the archive: unsafe entry {name!r}.")
                zf.extractall(dest_dir)
        except zipfile.BadZipFile as e:
            raise ArchiveError(f"Cannot extract the archive: {e}") from e
        except OSError as e:
            raise ArchiveError(f"Cannot extract the archive: {e}") from e
        return dest_dir
