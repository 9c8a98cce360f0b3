# repocloak

repocloak protects a source tree in three ways:

- It encrypts the contents of each file with AES-256-GCM. The key is the SHA-256 of a master key.
- It replaces every file and folder name with a seeded hash. A file keeps its extension after `.enc`, so `main.go` becomes something like `Xy…=.enc.go`.
- It keeps the directory layout.

It also writes an encrypted mapping file, `.mapping.enc`, into the output directory. Given the same master key, this file lets you restore the project. After each file is restored, its SHA-256 is checked against the hash recorded for it.

When a project is obfuscated, any path that contains `.git` is skipped.

## Installation

```
pip install .
```

This installs the `repocloak` command.

## Command line

Running `repocloak` with no `-cmd`, or with `-i`, starts an interactive menu. From the menu you can:

- obfuscate a project
- deobfuscate a project
- generate a key
- verify an obfuscated project, which lists project information and reports any missing files
- clone a GitHub repository and obfuscate it (this needs `git` on the `PATH`)
- read the detailed help
- exit

To run a single command instead:

```
repocloak -cmd=obfuscate -source=./myproject -target=./obfuscated
repocloak -cmd=deobfuscate -source=./obfuscated -target=./restored
repocloak -cmd=verify -source=./obfuscated
repocloak -cmd=genkey
repocloak -cmd=help
```

| Option      | Meaning                                                                      |
|-------------|------------------------------------------------------------------------------|
| `-cmd`      | `obfuscate`, `deobfuscate`, `genkey`, `verify` or `help`                     |
| `-source`   | the source directory; for `deobfuscate` and `verify`, the obfuscated directory |
| `-target`   | the target directory                                                         |
| `-keyfile`  | read the master key from this file                                           |
| `-mapping`  | the mapping file; defaults to `<source>/.mapping.enc`                        |
| `-i`        | interactive mode                                                             |

The command exits with status 0 on success and 1 on error.

### The master key

- `obfuscate` without `-keyfile` generates a new 32-character master key and prints it.
- `deobfuscate` and `verify` without `-keyfile` prompt for the key. On a terminal, the key is not echoed.
- A key file is used exactly as it is. A trailing newline counts as part of the key.
- After an interactive obfuscation, you are offered the chance to save the key as `<target>/.key`. The file is readable by its owner only.

`verify` on the command line loads the mapping. It then prints the project ID and the file and directory counts.

Keep the master key safe. Without it, the project cannot be restored.

## Library use

```python
from repocloak.core import Obfuscator

Obfuscator("placeholder").obfuscate_project("./myproject", "./obfuscated")

restorer = Obfuscator("placeholder")
mismatched = restorer.deobfuscate_project(
    "./obfuscated", "./restored", "./obfuscated/.mapping.enc"
)
```

`deobfuscate_project` returns the original paths of any restored files whose hash did not match. When a file cannot be read, decrypted or written, `ObfuscationError` is raised. The same happens when the key is wrong.

`Obfuscator` also offers:

- `encrypt` and `decrypt`: work on bytes. The output is a 12-byte nonce followed by the sealed data.
- `encrypt_file` and `decrypt_file`
- `obfuscated_path`
- `save_mapping_file` and `load_mapping_file`

After a run, `project_mapping` holds the `ProjectMapping`, which contains its `FileMapping` entries and a `ProjectMeta`. The module-level helpers are `file_hash` and `generate_random_string`.

### Other modules

`repocloak.utils`:

- `CompressionUtil`: gzip compression at a chosen level, from -2 to 9.
- `create_zip_archive`: stores every file of a tree in a zip archive, uncompressed.
- `IntegrityChecker`: HMAC-SHA256 signing and verification.
- `PerformanceMonitor`: per-name timing statistics from durations in nanoseconds, reported in milliseconds.
- `ConfigManager`: saves and loads JSON configuration files. Saved files are written with mode 0600.

`repocloak.github`:

- `GitHubIntegration.obfuscate_and_push` obfuscates a project into a fresh git repository, commits it and pushes the chosen branch. It returns the commit id.
- `GitHubIntegration.clone_and_deobfuscate` clones such a repository and restores it. It uses the `git` command. Credentials are sent as an HTTP basic authorization header. Failures raise `GitError`.
- `AdvancedObfuscator` skips entries whose base name matches an exclude pattern. When include-only patterns are set, it also skips entries that match none of them. When time-limited access is on, `obfuscate_project_advanced` refuses to run once the expiration time has passed.
- `BatchProcessor` obfuscates several `BatchJob`s in parallel. It returns them in the order they finished, each marked `completed` or `failed`.

`repocloak.analysis`:

- `CodeAnalyzer` recognises Go, JavaScript/TypeScript, Python and Java files by extension. It counts their size, lines and comment lines.
- `SecurityAuditor` walks an obfuscated tree and flags files that do not end in `.enc`.

## What it does not do

- Pushing to and cloning from a remote repository is available only from Python. No command does it.
- Some `AdvancedConfig` fields are stored but have no effect: `obfuscate_comments`, `obfuscate_strings`, `compression_enabled`, `max_deobfuscations` and `deobfuscation_counter`.
- The `mapping_key` argument of `clone_and_deobfuscate` is ignored. Decryption uses the obfuscator's own key.
- Hiding contents and names is not a replacement for proper access control. Before you delete any originals, test that deobfuscation works.

## Running the tests

```
pip install .[test]
pytest
```