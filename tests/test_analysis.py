import os
from pathlib import Path

import pytest

from repocloak.analysis import (
    AuditResult,
    CodeAnalyzer,
    FileAnalysis,
    LanguageConfig,
    SecurityAuditor,
    Vulnerability,
)
from repocloak.core import MAPPING_FILE_NAME, Obfuscator

MASTER_KEY = "secret"
FIRST_ADVICE = "Ensure all files are properly encrypted before pushing to repository"
SECOND_ADVICE = "Some files may not be properly obfuscated"


def test_analyze_python_file(tmp_path):
    comment_lines = ["# first", "    # indented", '"""docstring"""']
    code_lines = ["x = 1", "print(x)"]
    lines = [comment_lines[0], code_lines[0], comment_lines[1], code_lines[1], comment_lines[2]]
    content = "\n".join(lines)
    path = tmp_path / "script.py"
    path.write_text(content)

    analysis = CodeAnalyzer().analyze_file(path)

    assert analysis.file_path == str(path)
    assert analysis.language == "python"
    assert analysis.file_size == len(content.encode("utf-8"))
    assert analysis.line_count == len(lines)
    assert analysis.comment_count == len(comment_lines)


def test_trailing_newline_adds_a_line(tmp_path):
    lines = ["package main", "// comment"]
    path = tmp_path / "main.go"
    path.write_text("\n".join(lines) + "\n")
    analysis = CodeAnalyzer().analyze_file(path)
    assert analysis.language == "go"
    assert analysis.line_count == len(lines) + 1


@pytest.mark.parametrize(
    "name, language",
    [("app.js", "javascript"), ("view.tsx", "javascript"), ("Main.java", "java"), ("x.go", "go")],
)
def test_language_detection(tmp_path, name, language):
    path = tmp_path / name
    path.write_text("")
    assert CodeAnalyzer().analyze_file(path).language == language


def test_unsupported_extension_raises(tmp_path):
    path = tmp_path / "notes.txt"
    path.write_text("text")
    with pytest.raises(ValueError, match=r"unsupported file type: \.txt"):
        CodeAnalyzer().analyze_file(path)


def test_missing_supported_file_raises_os_error(tmp_path):
    with pytest.raises(FileNotFoundError):
        CodeAnalyzer().analyze_file(tmp_path / "absent.py")


def test_count_comments_with_custom_config():
    config = LanguageConfig(file_extensions=(".lisp",), comment_patterns=(";",))
    comment_lines = ["; one", "  ;; two"]
    content = "\n".join(["(a)", comment_lines[0], "(b)", comment_lines[1]])
    assert CodeAnalyzer().count_comments(content, config) == len(comment_lines)


def test_count_comments_without_patterns_is_zero():
    assert CodeAnalyzer().count_comments("# a\n// b", LanguageConfig()) == 0


def test_custom_language_can_be_registered(tmp_path):
    analyzer = CodeAnalyzer()
    analyzer.supported_languages["lisp"] = LanguageConfig(
        file_extensions=(".lisp",), comment_patterns=(";",)
    )
    path = tmp_path / "x.lisp"
    path.write_text("; hi\n(a)")
    result = analyzer.analyze_file(path)
    assert result == FileAnalysis(
        file_path=str(path), language="lisp", file_size=len("; hi\n(a)"), line_count=2, comment_count=1
    )
    assert "lisp" not in CodeAnalyzer().supported_languages


def test_audit_flags_unencrypted_files(tmp_path):
    root = tmp_path / "obf"
    (root / "sub").mkdir(parents=True)
    (root / "a.enc").write_bytes(b"x")
    (root / "sub" / "b.txt").write_bytes(b"y")
    (root / MAPPING_FILE_NAME).write_bytes(b"z")

    result = SecurityAuditor(Obfuscator(MASTER_KEY)).audit_obfuscated_project(root)

    assert result.total_files == 3
    assert result.encrypted_files == 2
    assert result.vulnerabilities == [
        Vulnerability(
            severity="HIGH",
            description="Unencrypted file found",
            file_path=os.path.join(str(root), "sub", "b.txt"),
        )
    ]
    assert result.recommendations == [FIRST_ADVICE]


def test_audit_clean_project_has_no_findings(tmp_path):
    root = tmp_path / "obf"
    root.mkdir()
    for name in ("a.enc", "b.enc", MAPPING_FILE_NAME):
        (root / name).write_bytes(b"data")
    result = SecurityAuditor(Obfuscator(MASTER_KEY)).audit_obfuscated_project(root)
    assert result.vulnerabilities == []
    assert result.recommendations == []
    assert result.encrypted_files == result.total_files


def test_audit_recommends_both_when_many_plain_files(tmp_path):
    root = tmp_path / "obf"
    root.mkdir()
    for name in ("one.txt", "two.txt", "three.enc"):
        (root / name).write_bytes(b"data")
    result = SecurityAuditor(Obfuscator(MASTER_KEY)).audit_obfuscated_project(root)
    assert result.recommendations == [FIRST_ADVICE, SECOND_ADVICE]
    assert len(result.vulnerabilities) == result.total_files - result.encrypted_files


def test_audit_of_real_obfuscated_project_counts_mapping(tmp_path):
    project = tmp_path / "project"
    (project / "src").mkdir(parents=True)
    (project / "main.go").write_text("package main")
    (project / "src" / "notes").write_text("plain")
    obfuscator = Obfuscator(MASTER_KEY)
    out = tmp_path / "out"
    obfuscator.obfuscate_project(project, out)

    result = SecurityAuditor(obfuscator).audit_obfuscated_project(out)
    assert isinstance(result, AuditResult)
    assert result.total_files == obfuscator.project_mapping.metadata.total_files + 1
    flagged = {Path(v.file_path).name for v in result.vulnerabilities}
    assert MAPPING_FILE_NAME not in flagged


def test_audit_missing_directory_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        SecurityAuditor(Obfuscator(MASTER_KEY)).audit_obfuscated_project(tmp_path / "absent")