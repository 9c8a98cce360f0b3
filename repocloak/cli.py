"""Command line interface: flag-driven commands and an interactive menu."""

from __future__ import annotations

import argparse
import getpass
import os
import shutil
import subprocess
import sys
import tempfile
from enum import Enum
from typing import TextIO

from repocloak.core import (
    MAPPING_FILE_NAME,
    ObfuscationError,
    Obfuscator,
    generate_random_string,
)

KEY_FILE_NAME = ".key"
_KEY_LENGTH = 32


class CLICommand(str, Enum):
    """Commands accepted by the -cmd flag."""

    OBFUSCATE = "obfuscate"
    DEOBFUSCATE = "deobfuscate"
    GENKEY = "genkey"
    VERIFY = "verify"
    HELP = "help"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="repocloak", add_help=False, allow_abbrev=False)
    parser.add_argument(
        "-cmd", "--cmd", default="",
        help="Command to execute: obfuscate, deobfuscate, genkey, verify, help",
    )
    parser.add_argument("-source", "--source", default="", help="Source directory path")
    parser.add_argument("-target", "--target", default="", help="Target directory path")
    parser.add_argument("-keyfile", "--keyfile", default="", help="Path to key file")
    parser.add_argument(
        "-mapping", "--mapping", default="", help="Path to mapping file (for deobfuscation)"
    )
    parser.add_argument(
        "-i", "--interactive", action="store_true", help="Run in interactive mode"
    )
    return parser


class CLI:
    """Reads commands from flags or an interactive menu and runs them."""

    def __init__(self, stdin: TextIO | None = None, stdout: TextIO | None = None) -> None:
        self._stdin = stdin
        self._stdout = stdout

    @property
    def _in(self) -> TextIO:
        return self._stdin if self._stdin is not None else sys.stdin

    @property
    def _out(self) -> TextIO:
        return self._stdout if self._stdout is not None else sys.stdout

    def _say(self, text: str = "", end: str = "\n") -> None:
        self._out.write(text + end)
        self._out.flush()

    def _read_line(self) -> str | None:
        """Return the next input line without surrounding blanks, or None at end of input."""
        line = self._in.readline()
        if not line:
            return None
        return line.strip()

    def _ask(self, prompt: str) -> str:
        self._say(prompt, end="")
        return self._read_line() or ""

    def _get_password(self, prompt: str) -> str:
        """Read a secret, without echo when attached to a terminal."""
        self._say(prompt, end="")
        stream = self._in
        if stream is sys.stdin and stream.isatty():
            try:
                value = getpass.getpass("")
            except (EOFError, KeyboardInterrupt):
                return ""
            return value
        line = stream.readline()
        if not line:
            return ""
        self._say()
        return line.rstrip("\r\n")

    def run(self, argv: list[str] | None = None) -> int:
        """Parse flags and run the selected command; return an exit status."""
        args = _build_parser().parse_args(argv)
        if not args.cmd or args.interactive:
            return self.run_interactive()

        try:
            command = CLICommand(args.cmd)
        except ValueError:
            self._say(f"Unknown command: {args.cmd}")
            self.print_help()
            return 1

        if command is CLICommand.OBFUSCATE:
            return self.handle_obfuscate(args.source, args.target, args.keyfile)
        if command is CLICommand.DEOBFUSCATE:
            return self.handle_deobfuscate(args.source, args.target, args.keyfile, args.mapping)
        if command is CLICommand.GENKEY:
            return self.handle_generate_key()
        if command is CLICommand.VERIFY:
            return self.handle_verify(args.source, args.mapping, args.keyfile)
        self.print_help()
        return 0

    def run_interactive(self) -> int:
        """Show the menu until the user exits or input runs out."""
        self._say("🔐 GitHub Code Obfuscator - Interactive Mode")
        self._say("============================================")
        self._say()
        actions = {
            "1": self._interactive_obfuscate,
            "2": self._interactive_deobfuscate,
            "3": self._interactive_generate_key,
            "4": self._interactive_verify,
            "5": self._interactive_clone_and_obfuscate,
            "6": self.print_detailed_help,
        }
        while True:
            self._say("\nAvailable commands:")
            self._say("1. Obfuscate a project")
            self._say("2. Deobfuscate a project")
            self._say("3. Generate a new key")
            self._say("4. Verify obfuscated project")
            self._say("5. Clone & Obfuscate from GitHub")
            self._say("6. Help")
            self._say("7. Exit")
            self._say("\nSelect command (1-7): ", end="")

            choice = self._read_line()
            if choice is None or choice == "7":
                self._say("\nGoodbye! 👋")
                return 0
            action = actions.get(choice)
            if action is None:
                self._say("Invalid option. Please try again.")
            else:
                action()

    def _master_key_or_generated(self, prompt: str) -> str:
        master_key = self._get_password(prompt)
        if not master_key:
            master_key = generate_random_string(_KEY_LENGTH)
            self._say(f"\n🔑 Generated master key: {master_key}")
            self._say("⚠️  IMPORTANT: Save this key securely! You'll need it to deobfuscate.")
        return master_key

    def _offer_key_save(self, master_key: str, target: str) -> None:
        answer = self._ask("\nSave master key to file? (y/n): ")
        if answer.lower() == "y":
            try:
                self.save_key_to_file(master_key, target)
            except OSError as exc:
                self._say(f"❌ Error saving key: {exc}")
                return
            self._say(f"🔑 Key saved to: {target}/{KEY_FILE_NAME}")

    def _print_summary(self, obfuscator: Obfuscator) -> None:
        meta = obfuscator.project_mapping.metadata
        self._say("\n✅ Obfuscation completed successfully!")
        self._say(f"📁 Total files: {meta.total_files}")
        self._say(f"📂 Total directories: {meta.total_directories}")

    def _interactive_obfuscate(self) -> None:
        self._say("\n📦 Obfuscate Project")
        self._say("-------------------")
        source = self._ask("Enter source directory path: ")
        if not os.path.exists(source):
            self._say(f"❌ Error: Source directory does not exist: {source}")
            return
        target = self._ask("Enter target directory path: ")
        master_key = self._master_key_or_generated("Enter master key (or press Enter to generate): ")

        obfuscator = Obfuscator(master_key)
        self._say("\n🔄 Obfuscating project...")
        try:
            obfuscator.obfuscate_project(source, target)
        except ObfuscationError as exc:
            self._say(f"❌ Error obfuscating project: {exc}")
            return

        self._print_summary(obfuscator)
        self._say(f"📍 Mapping file: {target}/{MAPPING_FILE_NAME}")
        self._offer_key_save(master_key, target)

    def _interactive_clone_and_obfuscate(self) -> None:
        self._say("\n🌐 Clone & Obfuscate from GitHub")
        self._say("--------------------------------")
        repo_url = self._ask("Enter GitHub repository URL: ")
        if "github.com" not in repo_url:
            self._say("❌ Error: Invalid GitHub URL")
            return

        repo_name = repo_url.split("/")[-1].removesuffix(".git")
        temp_dir = os.path.join(
            tempfile.gettempdir(), f"obfuscator-{repo_name}-{generate_random_string(8)}"
        )
        self._say("\n🔄 Cloning repository to temporary directory...")
        try:
            try:
                result = subprocess.run(["git", "clone", repo_url, temp_dir], check=False)
            except OSError as exc:
                self._say(f"❌ Error cloning repository: {exc}")
                return
            if result.returncode != 0:
                self._say(f"❌ Error cloning repository: exit status {result.returncode}")
                return
            self._say(f"✅ Repository cloned to: {temp_dir}")

            target = self._ask(
                f"\nEnter target directory path (default: ./{repo_name}-obfuscated): "
            ) or f"./{repo_name}-obfuscated"
            master_key = self._master_key_or_generated(
                "\nEnter master key (or press Enter to generate): "
            )

            obfuscator = Obfuscator(master_key)
            self._say("\n🔄 Obfuscating project...")
            try:
                obfuscator.obfuscate_project(temp_dir, target)
            except ObfuscationError as exc:
                self._say(f"❌ Error obfuscating project: {exc}")
                return
        finally:
            shutil.rmtree(temp_dir, ignore_errors=True)

        self._print_summary(obfuscator)
        self._say(f"📍 Obfuscated output: {target}")
        self._say(f"📍 Mapping file: {target}/{MAPPING_FILE_NAME}")
        self._offer_key_save(master_key, target)

    def _interactive_deobfuscate(self) -> None:
        self._say("\n📦 Deobfuscate Project")
        self._say("---------------------")
        source = self._ask("Enter obfuscated directory path: ")
        target = self._ask("Enter target directory path: ")
        default_mapping = f"{source}/{MAPPING_FILE_NAME}"
        mapping_file = self._ask(f"Enter mapping file path (default: {default_mapping}): ")
        mapping_file = mapping_file or default_mapping
        if not os.path.exists(mapping_file):
            self._say(f"❌ Error: Mapping file does not exist: {mapping_file}")
            return

        master_key = self._get_password("Enter master key: ")
        if not master_key:
            self._say("❌ Error: Master key is required for deobfuscation")
            return

        obfuscator = Obfuscator(master_key)
        self._say("\n🔄 Deobfuscating project...")
        try:
            mismatched = obfuscator.deobfuscate_project(source, target, mapping_file)
        except ObfuscationError as exc:
            self._say(f"❌ Error deobfuscating project: {exc}")
            return
        self._report_mismatches(mismatched)
        self._say("\n✅ Deobfuscation completed successfully!")
        self._say(f"📍 Restored to: {target}")

    def _interactive_generate_key(self) -> None:
        self._say("\n🔑 Generate New Key")
        self._say("------------------")
        self._say(f"Generated key: {generate_random_string(_KEY_LENGTH)}")
        self._say("\n⚠️  Keep this key secure! You'll need it for deobfuscation.")

    def _interactive_verify(self) -> None:
        self._say("\n🔍 Verify Obfuscated Project")
        self._say("---------------------------")
        obfuscated_path = self._ask("Enter obfuscated directory path: ")
        default_mapping = f"{obfuscated_path}/{MAPPING_FILE_NAME}"
        mapping_file = self._ask(f"Enter mapping file path (default: {default_mapping}): ")
        mapping_file = mapping_file or default_mapping

        master_key = self._get_password("Enter master key: ")
        if not master_key:
            self._say("❌ Error: Master key is required for verification")
            return

        obfuscator = Obfuscator(master_key)
        try:
            obfuscator.load_mapping_file(mapping_file)
        except (OSError, ObfuscationError) as exc:
            self._say(f"❌ Error loading mapping file: {exc}")
            return

        project = obfuscator.project_mapping
        self._say("\n📊 Project Information:")
        self._say(f"Project ID: {project.project_id}")
        self._say(f"Created at: {project.created_at.strftime('%Y-%m-%d %H:%M:%S')}")
        self._say(f"Original root: {project.root_path}")
        self._say(f"Total files: {project.metadata.total_files}")
        self._say(f"Total directories: {project.metadata.total_directories}")
        self._say(f"Encryption: {project.metadata.encryption_type}")

        self._say("\n🔍 Verifying files...")
        missing = 0
        for mapping in project.mappings:
            if mapping.is_directory:
                continue
            if not os.path.exists(f"{obfuscated_path}/{mapping.obfuscated_path}"):
                self._say(f"❌ Missing: {mapping.original_path}")
                missing += 1
        if missing == 0:
            self._say("✅ All files verified successfully!")
        else:
            self._say(f"⚠️  Warning: {missing} files are missing")

    def _report_mismatches(self, mismatched: list[str]) -> None:
        for path in mismatched:
            self._say(f"Warning: File hash mismatch for {path}")

    def _obtain_key(self, key_file: str) -> str | None:
        if not key_file:
            return self._get_password("Enter master key: ")
        try:
            return self.load_key_from_file(key_file)
        except OSError as exc:
            self._say(f"Error loading key file: {exc}")
            return None

    def handle_obfuscate(self, source: str, target: str, key_file: str) -> int:
        """Obfuscate source into target, generating a key when no key file is given."""
        if not source or not target:
            self._say("Error: Source and target paths are required")
            self._say("Usage: -cmd=obfuscate -source=<path> -target=<path> [-keyfile=<path>]")
            return 1
        if key_file:
            try:
                master_key = self.load_key_from_file(key_file)
            except OSError as exc:
                self._say(f"Error loading key file: {exc}")
                return 1
        else:
            master_key = generate_random_string(_KEY_LENGTH)
            self._say(f"Generated master key: {master_key}")

        obfuscator = Obfuscator(master_key)
        self._say("Obfuscating project...")
        try:
            obfuscator.obfuscate_project(source, target)
        except ObfuscationError as exc:
            self._say(f"Error obfuscating project: {exc}")
            return 1
        self._say("✅ Obfuscation completed successfully!")
        return 0

    def handle_deobfuscate(self, source: str, target: str, key_file: str, mapping_file: str) -> int:
        """Restore an obfuscated project into target."""
        if not source or not target:
            self._say("Error: Source and target paths are required")
            self._say(
                "Usage: -cmd=deobfuscate -source=<path> -target=<path> "
                "[-keyfile=<path>] [-mapping=<path>]"
            )
            return 1
        mapping_file = mapping_file or f"{source}/{MAPPING_FILE_NAME}"
        master_key = self._obtain_key(key_file)
        if master_key is None:
            return 1

        obfuscator = Obfuscator(master_key)
        self._say("Deobfuscating project...")
        try:
            mismatched = obfuscator.deobfuscate_project(source, target, mapping_file)
        except ObfuscationError as exc:
            self._say(f"Error deobfuscating project: {exc}")
            return 1
        self._report_mismatches(mismatched)
        self._say("✅ Deobfuscation completed successfully!")
        return 0

    def handle_generate_key(self) -> int:
        """Print a freshly generated master key."""
        self._say(f"Generated key: {generate_random_string(_KEY_LENGTH)}")
        return 0

    def handle_verify(self, obfuscated_path: str, mapping_file: str, key_file: str) -> int:
        """Load the mapping of an obfuscated project and print its summary."""
        if not obfuscated_path:
            self._say("Error: Obfuscated path is required")
            self._say("Usage: -cmd=verify -source=<obfuscated-path> [-mapping=<path>] [-keyfile=<path>]")
            return 1
        mapping_file = mapping_file or f"{obfuscated_path}/{MAPPING_FILE_NAME}"
        master_key = self._obtain_key(key_file)
        if master_key is None:
            return 1

        obfuscator = Obfuscator(master_key)
        try:
            obfuscator.load_mapping_file(mapping_file)
        except (OSError, ObfuscationError) as exc:
            self._say(f"Error loading mapping file: {exc}")
            return 1
        project = obfuscator.project_mapping
        self._say(f"Project ID: {project.project_id}")
        self._say(
            f"Files: {project.metadata.total_files}, "
            f"Directories: {project.metadata.total_directories}"
        )
        return 0

    def save_key_to_file(self, key: str, target_path: str | os.PathLike[str]) -> str:
        """Write key to <target_path>/.key readable by the owner only; return its path."""
        key_path = os.path.join(os.fspath(target_path), KEY_FILE_NAME)
        fd = os.open(key_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "wb") as handle:
            handle.write(key.encode("utf-8"))
        return key_path

    def load_key_from_file(self, key_file: str | os.PathLike[str]) -> str:
        """Return the exact contents of a key file."""
        with open(key_file, "rb") as handle:
            return handle.read().decode("utf-8")

    def print_help(self) -> None:
        lines = [
            "GitHub Code Obfuscator - Usage:",
            "",
            "Commands:",
            "  obfuscate   - Obfuscate a project",
            "  deobfuscate - Restore an obfuscated project",
            "  genkey      - Generate a new master key",
            "  verify      - Verify an obfuscated project",
            "",
            "Examples:",
            "  # Obfuscate a project",
            "  repocloak -cmd=obfuscate -source=./myproject -target=./obfuscated",
            "",
            "  # Deobfuscate a project",
            "  repocloak -cmd=deobfuscate -source=./obfuscated -target=./restored",
            "",
            "  # Run in interactive mode",
            "  repocloak -i",
        ]
        self._say("\n".join(lines))

    def print_detailed_help(self) -> None:
        lines = [
            "\n📚 GitHub Code Obfuscator - Detailed Help",
            "=========================================",
            "\n🔐 What is this tool?",
            "This tool helps you protect your source code by:",
            "• Encrypting all file contents with AES-256 encryption",
            "• Obfuscating file and folder names",
            "• Maintaining directory structure with randomized names",
            "• Creating a secure mapping file for restoration",
            "\n🎯 Use Cases:",
            "• Storing sensitive code in public repositories",
            "• Creating secure backups of proprietary code",
            "• Sharing code with time-limited access",
            "• Protecting intellectual property",
            "\n⚙️ How it works:",
            "1. Obfuscation Process:",
            "   • Takes your source directory",
            "   • Encrypts each file's content",
            "   • Generates random names for files/folders",
            "   • Creates encrypted mapping file",
            "   • Outputs obfuscated project",
            "\n2. Deobfuscation Process:",
            "   • Reads the encrypted mapping file",
            "   • Decrypts file contents",
            "   • Restores original file/folder names",
            "   • Recreates exact directory structure",
            "\n🔑 Security Features:",
            "• AES-256-GCM encryption",
            "• SHA-256 file integrity verification",
            "• Secure key generation",
            "• No hardcoded keys",
            "\n⚠️ Important Notes:",
            "• NEVER lose your master key!",
            "• Keep mapping files secure",
            "• Test deobfuscation before deleting originals",
            "• Not a replacement for proper access control",
            "\nPress Enter to continue...",
        ]
        self._say("\n".join(lines))
        self._in.readline()


def main(argv: list[str] | None = None) -> int:
    """Entry point of the repocloak command."""
    return CLI().run(argv)


if __name__ == "__main__":
    sys.exit(main())