"""Compression, archiving, integrity checks, timing metrics and JSON configuration."""

from __future__ import annotations

import dataclasses
import gzip
import hashlib
import hmac
import json
import os
import shutil
import stat
import zipfile
import zlib
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from repocloak.core import _walk

_HUFFMAN_ONLY = -2
_DEFAULT_LEVEL = -1
_NS_PER_MS = 1_000_000


class CompressionUtil:
    """Gzip compression at a fixed level."""

    def __init__(self, level: int) -> None:
        if level < _HUFFMAN_ONLY or level > 9:
            raise ValueError(f"gzip: invalid compression level: {level}")
        self.level = level

    def compress_data(self, data: bytes) -> bytes:
        if self.level == _HUFFMAN_ONLY:
            compressor = zlib.compressobj(_DEFAULT_LEVEL, zlib.DEFLATED, 31, strategy=zlib.Z_HUFFMAN_ONLY)
        else:
            compressor = zlib.compressobj(self.level, zlib.DEFLATED, 31)
        return compressor.compress(bytes(data)) + compressor.flush()

    def decompress_data(self, data: bytes) -> bytes:
        return gzip.decompress(bytes(data))


def create_zip_archive(source_path: str | os.PathLike[str], output_path: str | os.PathLike[str]) -> None:
    """Store every file under source_path in a zip archive, named by relative path."""
    source = os.fspath(source_path)
    with zipfile.ZipFile(output_path, "w", compression=zipfile.ZIP_STORED) as archive:
        for path, info in _walk(source):
            if stat.S_ISDIR(info.st_mode):
                continue
            entry = zipfile.ZipInfo.from_file(path, arcname=os.path.relpath(path, source))
            entry.compress_type = zipfile.ZIP_STORED
            with open(path, "rb") as src, archive.open(entry, "w") as dest:
                shutil.copyfileobj(src, dest)


class IntegrityChecker:
    """HMAC-SHA256 signing and verification."""

    def __init__(self, secret_key: str) -> None:
        self._key_bytes = secret_key.encode()

    def generate_hmac(self, data: bytes) -> str:
        return hmac.new(self._key_bytes, bytes(data), hashlib.sha256).hexdigest()

    def verify_hmac(self, data: bytes, expected_hmac: str) -> bool:
        actual = self.generate_hmac(data)
        return hmac.compare_digest(actual.encode(), expected_hmac.encode())


@dataclass
class Metric:
    """Aggregated durations, in nanoseconds, for one named operation."""

    count: int = 0
    total_time: int = 0
    average_time: float = 0.0
    max_time: int = 0
    min_time: int = 0


def _trunc_div(value: int, divisor: int) -> int:
    quotient = abs(value) // divisor
    return -quotient if value < 0 else quotient


class PerformanceMonitor:
    """Collects durations per operation name and renders a report."""

    def __init__(self) -> None:
        self.metrics: dict[str, Metric] = {}

    def record_metric(self, name: str, duration: int) -> None:
        metric = self.metrics.get(name)
        if metric is None:
            metric = self.metrics[name] = Metric(min_time=duration)
        metric.count += 1
        metric.total_time += duration
        metric.average_time = metric.total_time / metric.count
        metric.max_time = max(metric.max_time, duration)
        metric.min_time = min(metric.min_time, duration)

    def get_report(self) -> str:
        lines = ["Performance Report", "==================", ""]
        for name, metric in self.metrics.items():
            lines += [
                f"{name}:",
                f"  Count: {metric.count}",
                f"  Average: {metric.average_time / _NS_PER_MS:.2f} ms",
                f"  Min: {_trunc_div(metric.min_time, _NS_PER_MS)} ms",
                f"  Max: {_trunc_div(metric.max_time, _NS_PER_MS)} ms",
                "",
            ]
        return "\n".join(lines) + "\n"


def _json_default(value: Any) -> Any:
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"cannot encode {type(value).__name__} as JSON")


@dataclass
class ConfigManager:
    """Reads and writes a JSON configuration file."""

    config_path: str | os.PathLike[str] = field()

    def save_config(self, config: Any) -> None:
        data = json.dumps(config, indent=2, default=_json_default).encode()
        fd = os.open(self.config_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)

    def load_config(self) -> Any:
        with open(self.config_path, "rb") as handle:
            return json.loads(handle.read())