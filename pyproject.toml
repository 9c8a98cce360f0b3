[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "repocloak"
version = "1.0.0"
description = "Encrypt a project's files, scramble its file and folder names, and restore it from an encrypted mapping."
requires-python = ">=3.10"
dependencies = [
    "cryptography",
]
keywords = [
    "obfuscation",
    "encryption",
    "aes-gcm",
    "source-code",
    "git",
    "backup",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Security :: Cryptography",
    "Topic :: Software Development :: Version Control :: Git",
    "Topic :: System :: Archiving :: Backup",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
repocloak = "repocloak.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["repocloak"]

[tool.pytest.ini_options]
addopts = "-ra"
