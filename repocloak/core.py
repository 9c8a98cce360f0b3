"""Project obfuscation: encrypted file contents, hashed names and an encrypted mapping."""

from __future__ import annotations

import base64
import hashlib
import json
import logging
import os
import re
import stat
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

logger = logging.getLogger(__name__)

MAPPING_FILE_NAME = ".mapping.enc"
VERSION = "1.0.0"
_NONCE_SIZE = 12
_FRACTION = re.compile(r"\.(\d+)")


class ObfuscationError(Exception):
    """Raised when obfuscation, deobfuscation or decryption fails."""


def _now() -> datetime:
    return datetime.now().astimezone()


def _format_time(value: datetime) -> str:
    return value.isoformat()


def _parse_time(text: str) -> datetime:
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    return datetime.fromisoformat(text)


def _walk(root: str) -> Iterator[tuple[str, os.stat_result]]:
    """Yield every path under root in lexical order, root first, without following links."""
    info = os.lstat(root)
    yield root, info
    if stat.S_ISDIR(info.st_mode):
        for name in sorted(os.listdir(root)):
            yield from _walk(os.path.join(root, name))


def _extension(name: str) -> str:
    index = name.rfind(".")
    return name[index:] if index >= 0 else ""


def generate_random_string(length: int) -> str:
    """Return a random URL-safe base64 string of the given length."""
    return base64.urlsafe_b64encode(os.urandom(length)).decode("ascii")[:length]


def file_hash(file_path: str | os.PathLike[str]) -> str:
    """Return the hex SHA-256 of a file, or an empty string if it cannot be read."""
    digest = hashlib.sha256()
    try:
        with open(file_path, "rb") as handle:
            for chunk in iter(lambda: handle.read(65536), b""):
                digest.update(chunk)
    except OSError:
        return ""
    return digest.hexdigest()


@dataclass
class Config:
    """Settings of one obfuscator."""

    master_key: str = field(repr=False)
    obfuscation_seed: str
    version: str = VERSION


@dataclass
class FileMapping:
    """Link between an original relative path and its obfuscated counterpart."""

    original_path: str
    obfuscated_path: str
    file_hash: str = ""
    is_directory: bool = False
    timestamp: datetime = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "original_path": self.original_path,
            "obfuscated_path": self.obfuscated_path,
            "file_hash": self.file_hash,
            "is_directory": self.is_directory,
            "timestamp": _format_time(self.timestamp),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FileMapping":
        return cls(
            original_path=data.get("original_path", ""),
            obfuscated_path=data.get("obfuscated_path", ""),
            file_hash=data.get("file_hash", ""),
            is_directory=bool(data.get("is_directory", False)),
            timestamp=_parse_time(data["timestamp"]) if data.get("timestamp") else _now(),
        )


@dataclass
class ProjectMeta:
    """Counters and settings recorded for an obfuscated project."""

    total_files: int = 0
    total_directories: int = 0
    encryption_type: str = ""
    version: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_files": self.total_files,
            "total_directories": self.total_directories,
            "encryption_type": self.encryption_type,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProjectMeta":
        return cls(
            total_files=int(data.get("total_files", 0)),
            total_directories=int(data.get("total_directories", 0)),
            encryption_type=data.get("encryption_type", ""),
            version=data.get("version", ""),
        )


@dataclass
class ProjectMapping:
    """Every mapping of one obfuscated project."""

    project_id: str = ""
    created_at: datetime = field(default_factory=_now)
    root_path: str = ""
    mappings: list[FileMapping] = field(default_factory=list)
    metadata: ProjectMeta = field(default_factory=ProjectMeta)

    def to_dict(self) -> dict[str, Any]:
        return {
            "project_id": self.project_id,
            "created_at": _format_time(self.created_at),
            "root_path": self.root_path,
            "mappings": [m.to_dict() for m in self.mappings],
            "metadata": self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProjectMapping":
        return cls(
            project_id=data.get("project_id", ""),
            created_at=_parse_time(data["created_at"]) if data.get("created_at") else _now(),
            root_path=data.get("root_path", ""),
            mappings=[FileMapping.from_dict(m) for m in data.get("mappings") or []],
            metadata=ProjectMeta.from_dict(data.get("metadata") or {}),
        )


class Obfuscator:
    """Encrypts a project tree with AES-256-GCM and hides its file names."""

    def __init__(self, master_key: str) -> None:
        key = hashlib.sha256(master_key.encode("utf-8")).digest()
        self._aead = AESGCM(key)
        self.config = Config(
            master_key=master_key,
            obfuscation_seed=generate_random_string(16),
            version=VERSION,
        )
        self.project_mapping = ProjectMapping()

    def obfuscate_project(self, source_path: str | os.PathLike[str], target_path: str | os.PathLike[str]) -> None:
        """Write an encrypted copy of source_path into target_path, with a mapping file."""
        source = os.fspath(source_path)
        target = os.fspath(target_path)
        if not os.path.exists(source):
            raise ObfuscationError(f"source path does not exist: {source}")
        try:
            os.makedirs(target, 0o755, exist_ok=True)
        except OSError as exc:
            raise ObfuscationError(f"failed to create target directory: {exc}") from exc

        self.project_mapping = ProjectMapping(
            project_id=generate_random_string(32),
            created_at=_now(),
            root_path=source,
        )

        try:
            for path, info in _walk(source):
                self._obfuscate_entry(source, target, path, info)
        except (OSError, ObfuscationError) as exc:
            raise ObfuscationError(f"failed to walk directory: {exc}") from exc

        meta = self.project_mapping.metadata
        meta.encryption_type = "AES-256"
        meta.version = self.config.version

        try:
            self.save_mapping_file(target)
        except OSError as exc:
            raise ObfuscationError(f"failed to save mapping file: {exc}") from exc

    def _obfuscate_entry(self, source: str, target: str, path: str, info: os.stat_result) -> None:
        if ".git" in path:
            return
        rel_path = os.path.relpath(path, source)
        if rel_path == ".":
            return

        hidden = self.obfuscated_path(rel_path)
        full_hidden = os.path.join(target, hidden)
        is_dir = stat.S_ISDIR(info.st_mode)
        meta = self.project_mapping.metadata

        if is_dir:
            try:
                os.makedirs(full_hidden, stat.S_IMODE(info.st_mode), exist_ok=True)
            except OSError as exc:
                raise ObfuscationError(f"failed to create directory: {exc}") from exc
            meta.total_directories += 1
        else:
            try:
                self.encrypt_file(path, full_hidden)
            except (OSError, ObfuscationError) as exc:
                raise ObfuscationError(f"failed to encrypt file {path}: {exc}") from exc
            meta.total_files += 1

        self.project_mapping.mappings.append(
            FileMapping(
                original_path=rel_path,
                obfuscated_path=hidden,
                file_hash="" if is_dir else file_hash(path),
                is_directory=is_dir,
                timestamp=datetime.fromtimestamp(info.st_mtime).astimezone(),
            )
        )

    def deobfuscate_project(
        self,
        obfuscated_path: str | os.PathLike[str],
        target_path: str | os.PathLike[str],
        mapping_file: str | os.PathLike[str],
    ) -> list[str]:
        """Restore a project; return the original paths whose hash did not match."""
        source_root = os.fspath(obfuscated_path)
        target = os.fspath(target_path)
        try:
            self.load_mapping_file(mapping_file)
        except (OSError, ObfuscationError) as exc:
            raise ObfuscationError(f"failed to load mapping file: {exc}") from exc
        try:
            os.makedirs(target, 0o755, exist_ok=True)
        except OSError as exc:
            raise ObfuscationError(f"failed to create target directory: {exc}") from exc

        mismatched: list[str] = []
        for mapping in self.project_mapping.mappings:
            source = os.path.join(source_root, mapping.obfuscated_path)
            dest = os.path.join(target, mapping.original_path)
            if mapping.is_directory:
                try:
                    os.makedirs(dest, 0o755, exist_ok=True)
                except OSError as exc:
                    raise ObfuscationError(f"failed to create directory {dest}: {exc}") from exc
                continue
            try:
                os.makedirs(os.path.dirname(dest) or ".", 0o755, exist_ok=True)
            except OSError as exc:
                raise ObfuscationError(f"failed to create parent directory: {exc}") from exc
            try:
                self.decrypt_file(source, dest)
            except (OSError, ObfuscationError) as exc:
                raise ObfuscationError(f"failed to decrypt file {source}: {exc}") from exc
            if file_hash(dest) != mapping.file_hash:
                logger.warning("File hash mismatch for %s", mapping.original_path)
                mismatched.append(mapping.original_path)
        return mismatched

    def encrypt(self, plaintext: bytes) -> bytes:
        """Return nonce followed by the AES-GCM sealed plaintext."""
        nonce = os.urandom(_NONCE_SIZE)
        return nonce + self._aead.encrypt(nonce, bytes(plaintext), None)

    def decrypt(self, ciphertext: bytes) -> bytes:
        """Open data produced by encrypt."""
        if len(ciphertext) < _NONCE_SIZE:
            raise ObfuscationError("ciphertext too short")
        nonce, sealed = ciphertext[:_NONCE_SIZE], ciphertext[_NONCE_SIZE:]
        try:
            return self._aead.decrypt(nonce, bytes(sealed), None)
        except InvalidTag as exc:
            raise ObfuscationError("message authentication failed") from exc

    def encrypt_file(self, source_path: str | os.PathLike[str], dest_path: str | os.PathLike[str]) -> None:
        ciphertext = self.encrypt(Path(source_path).read_bytes())
        dest = Path(dest_path)
        dest.parent.mkdir(mode=0o755, parents=True, exist_ok=True)
        dest.write_bytes(ciphertext)

    def decrypt_file(self, source_path: str | os.PathLike[str], dest_path: str | os.PathLike[str]) -> None:
        plaintext = self.decrypt(Path(source_path).read_bytes())
        Path(dest_path).write_bytes(plaintext)

    def obfuscated_path(self, original_path: str) -> str:
        """Map each component of a relative path to a seeded hash name."""
        parts = original_path.split(os.sep)
        last = len(parts) - 1
        hidden_parts = []
        for index, part in enumerate(parts):
            if not part:
                hidden_parts.append("")
                continue
            digest = hashlib.sha256((part + self.config.obfuscation_seed).encode("utf-8")).digest()
            name = base64.urlsafe_b64encode(digest[:8]).decode("ascii")
            if index == last and "." in part:
                name = f"{name}.enc{_extension(part)}"
            hidden_parts.append(name)
        return os.sep.join(hidden_parts)

    def save_mapping_file(self, target_path: str | os.PathLike[str]) -> None:
        data = json.dumps(self.project_mapping.to_dict(), indent=2).encode("utf-8")
        Path(target_path, MAPPING_FILE_NAME).write_bytes(self.encrypt(data))

    def load_mapping_file(self, mapping_path: str | os.PathLike[str]) -> None:
        decrypted = self.decrypt(Path(mapping_path).read_bytes())
        try:
            data = json.loads(decrypted)
            self.project_mapping = ProjectMapping.from_dict(data)
        except (ValueError, TypeError, KeyError, AttributeError) as exc:
            raise ObfuscationError(f"invalid mapping data: {exc}") from exc