"""Source file analysis and security audits of obfuscated projects."""

from __future__ import annotations

import os
import stat
from dataclasses import dataclass, field
from datetime import datetime

from repocloak.core import MAPPING_FILE_NAME, Obfuscator, _extension, _walk


@dataclass(frozen=True)
class LanguageConfig:
    """Recognition rules for one programming language."""

    file_extensions: tuple[str, ...] = ()
    comment_patterns: tuple[str, ...] = ()
    string_patterns: tuple[str, ...] = ()
    keyword_patterns: tuple[str, ...] = ()


_LANGUAGES = {
    "go": LanguageConfig(
        file_extensions=(".go",),
        comment_patterns=("//", "/*", "*/"),
        string_patterns=('"', "`"),
    ),
    "javascript": LanguageConfig(
        file_extensions=(".js", ".jsx", ".ts", ".tsx"),
        comment_patterns=("//", "/*", "*/"),
        string_patterns=('"', "'", "`"),
    ),
    "python": LanguageConfig(
        file_extensions=(".py",),
        comment_patterns=("#", '"""', "'''"),
        string_patterns=('"', "'"),
    ),
    "java": LanguageConfig(
        file_extensions=(".java",),
        comment_patterns=("//", "/*", "*/"),
        string_patterns=('"',),
    ),
}


@dataclass
class FileAnalysis:
    """Size, line and comment counts of one source file."""

    file_path: str
    language: str
    file_size: int
    line_count: int
    comment_count: int


class CodeAnalyzer:
    """Recognises source languages by extension and counts comment lines."""

    def __init__(self) -> None:
        self.supported_languages: dict[str, LanguageConfig] = dict(_LANGUAGES)

    def _language_for(self, ext: str) -> str | None:
        return next(
            (lang for lang, cfg in self.supported_languages.items() if ext in cfg.file_extensions),
            None,
        )

    def analyze_file(self, file_path: str | os.PathLike[str]) -> FileAnalysis:
        """Analyse a source file; raise ValueError for unsupported extensions."""
        path = os.fspath(file_path)
        ext = _extension(os.path.basename(path))
        language = self._language_for(ext)
        if language is None:
            raise ValueError(f"unsupported file type: {ext}")
        with open(path, "rb") as handle:
            content = handle.read()
        return FileAnalysis(
            file_path=path,
            language=language,
            file_size=len(content),
            line_count=content.count(b"\n") + 1,
            comment_count=self.count_comments(
                content.decode("utf-8", errors="replace"), self.supported_languages[language]
            ),
        )

    def count_comments(self, content: str, config: LanguageConfig) -> int:
        """Count lines that, once stripped, start with a comment marker."""
        markers = tuple(config.comment_patterns)
        return sum(1 for line in content.split("\n") if line.strip().startswith(markers))


@dataclass
class Vulnerability:
    """A problem found in an obfuscated project."""

    severity: str
    description: str
    file_path: str
    line_number: int = 0


@dataclass
class AuditResult:
    """Outcome of auditing an obfuscated project."""

    timestamp: datetime = field(default_factory=lambda: datetime.now().astimezone())
    total_files: int = 0
    encrypted_files: int = 0
    vulnerabilities: list[Vulnerability] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)


class SecurityAuditor:
    """Checks that an obfuscated project holds only encrypted files."""

    def __init__(self, obfuscator: Obfuscator) -> None:
        self.obfuscator = obfuscator

    def audit_obfuscated_project(self, obfuscated_path: str | os.PathLike[str]) -> AuditResult:
        """Walk obfuscated_path and report files that do not look encrypted."""
        root = os.fspath(obfuscated_path)
        mapping_path = os.path.join(root, MAPPING_FILE_NAME)
        result = AuditResult()

        for path, info in _walk(root):
            if stat.S_ISDIR(info.st_mode):
                continue
            result.total_files += 1
            if path.endswith(".enc"):
                result.encrypted_files += 1
            elif path != mapping_path:
                result.vulnerabilities.append(
                    Vulnerability(severity="HIGH", description="Unencrypted file found", file_path=path)
                )

        if result.vulnerabilities:
            result.recommendations.append(
                "Ensure all files are properly encrypted before pushing to repository"
            )
        if result.encrypted_files < result.total_files - 1:
            result.recommendations.append("Some files may not be properly obfuscated")
        return result