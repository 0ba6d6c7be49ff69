# FILE PATH: codestruct.py
# LOCATION: Root directory of your project
# DESCRIPTION: Main script for dumping a source tree into one clipboard-ready text block

"""
Source tree dumper for pasting a codebase into an LLM chat.

Walks the working directory breadth-first, keeps files whose extension is
in the allow list, skips ignored directories and produces either:
1. A full dump: every file as a path line followed by a fenced content block
2. A structure listing: directory headers with their matched files
3. A directory-only listing

Content can optionally be cleaned up: '//' and '/* */' comments are removed
by a heuristic scanner and whitespace is collapsed to single spaces.
"""

import os
import sys
import argparse
import codecs
import re
import json
import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Union

import nbconvert
import pyperclip
import tiktoken
from tqdm import tqdm

# Windows console encoding fix
if os.name == "nt":
    try:
        sys.stdout = codecs.getwriter("utf-8")(sys.stdout.buffer, "strict")
        sys.stderr = codecs.getwriter("utf-8")(sys.stderr.buffer, "strict")
    except (AttributeError, LookupError):
        pass  # Fall back to default encoding

CONFIG_ENV_VAR = "CODESTRUCT_CONFIG"
DEFAULT_CONFIG_PATH = Path.home() / ".codestruct" / "config.json"
FENCE = "```"

# fmt: off
DEFAULT_ALLOWED_EXTENSIONS = [
    "c", "h", "cpp", "hpp", "cs", "csproj", "cshtml", "csx", "csharp", "vb",
    "java", "kotlin", "py", "php", "js", "ts", "html", "css", "go", "ruby",
    "pl", "r", "groovy", "swift", "asm", "bat", "cmd", "ps1",
]
# fmt: on

# fmt: off
DEFAULT_IGNORED_DIRECTORIES = [
    "node_modules", ".git", ".svn", ".run", ".idea", "bin", "obj", ".vs",
    ".vscode", ".metadata", ".recommenders", ".settings", ".angular", ".keep",
    ".venv", ".virtualenv", "_builds", "_notes", "Build", "Debug", "release",
    "tmp", "temp",
]
# fmt: on

# cp1252 rejects a few bytes, latin-1 accepts any, so it comes last
ENCODINGS_TO_TRY = ["utf-8-sig", "cp1252", "latin-1"]

UTF16_BOMS = (codecs.BOM_UTF16_LE, codecs.BOM_UTF16_BE)

_WHITESPACE_RUN = re.compile(r"\s+")


def setup_logging(log_file: str, enable_logging: bool = False):
    """Configure logging with specified settings."""
    if enable_logging:
        logging.basicConfig(
            filename=log_file,
            level=logging.DEBUG,
            format="%(asctime)s - %(levelname)s - %(message)s",
            filemode="w",
        )
    else:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ScanConfiguration:
    """Allow set of extensions and ignore set of directory names for one run."""

    allowed_extensions: frozenset
    ignored_directory_names: frozenset

    @classmethod
    def from_lists(
        cls, allowed_extensions: Iterable[str], ignored_directories: Iterable[str]
    ) -> "ScanConfiguration":
        extensions = frozenset(
            ext.strip().lstrip(".").lower() for ext in allowed_extensions if ext.strip()
        )
        ignored = frozenset(d.strip() for d in ignored_directories if d.strip())
        return cls(allowed_extensions=extensions, ignored_directory_names=ignored)

    @classmethod
    def defaults(cls) -> "ScanConfiguration":
        return cls.from_lists(DEFAULT_ALLOWED_EXTENSIONS, DEFAULT_IGNORED_DIRECTORIES)


def get_config_path(explicit_path: Optional[str] = None) -> Path:
    """Resolve the config file location: explicit path, env override, then home dir."""
    if explicit_path:
        return Path(explicit_path)
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_PATH


def save_config(config: ScanConfiguration, config_path: Path) -> bool:
    """Persist the configuration as JSON. Returns False if it could not be written."""
    data = {
        "AllowedExtensions": sorted(config.allowed_extensions),
        "IgnoredDirectories": sorted(config.ignored_directory_names),
    }
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
    except OSError as e:
        logging.error(f"Could not save configuration to {config_path}: {str(e)}")
        return False

    logging.debug(f"Configuration saved: {config_path}")
    return True


def load_config(config_path: Path) -> ScanConfiguration:
    """
    Load the scan configuration from a JSON file.

    A missing, unreadable or malformed file is replaced by the built-in
    defaults, which are written back so the user has a file to edit.
    """
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        extensions = data["AllowedExtensions"]
        ignored = data["IgnoredDirectories"]
        if not isinstance(extensions, list) or not isinstance(ignored, list):
            raise TypeError("AllowedExtensions and IgnoredDirectories must be lists")
        config = ScanConfiguration.from_lists(
            [str(ext) for ext in extensions], [str(d) for d in ignored]
        )
        logging.debug(f"Configuration loaded: {config_path}")
        return config
    except FileNotFoundError:
        logging.info(f"No configuration found, creating defaults: {config_path}")
    except (OSError, ValueError, KeyError, TypeError) as e:
        logging.warning(
            f"Invalid configuration {config_path} ({str(e)}), restoring defaults"
        )

    config = ScanConfiguration.defaults()
    save_config(config, config_path)
    return config


# ---------------------------------------------------------------------------
# Comment stripping
# ---------------------------------------------------------------------------


class ScannerState(Enum):
    NORMAL = "normal"
    IN_STRING = "in_string"
    IN_CHAR = "in_char"
    IN_LINE_COMMENT = "in_line_comment"
    IN_BLOCK_COMMENT = "in_block_comment"


def strip_comments(raw_content: str) -> str:
    """
    Remove '//' line comments and '/* */' block comments from source text.

    This is a language-agnostic heuristic, not a tokenizer. Double and single
    quotes open literals whose content is copied verbatim until the same
    quote appears again; backslash escapes are not recognised, so "a\\"b"
    closes the literal at the escaped quote. An unterminated block comment
    swallows the rest of the input, an unterminated literal keeps it.
    The newline ending a line comment is kept.
    """
    output = []
    state = ScannerState.NORMAL
    length = len(raw_content)
    i = 0

    while i < length:
        c = raw_content[i]
        next_char = raw_content[i + 1] if i + 1 < length else ""

        if state is ScannerState.NORMAL:
            if c == "/" and next_char == "*":
                state = ScannerState.IN_BLOCK_COMMENT
                i += 2
                continue
            if c == "/" and next_char == "/":
                state = ScannerState.IN_LINE_COMMENT
                i += 2
                continue
            if c == '"':
                state = ScannerState.IN_STRING
            elif c == "'":
                state = ScannerState.IN_CHAR
            output.append(c)

        elif state is ScannerState.IN_STRING:
            if c == '"':
                state = ScannerState.NORMAL
            output.append(c)

        elif state is ScannerState.IN_CHAR:
            if c == "'":
                state = ScannerState.NORMAL
            output.append(c)

        elif state is ScannerState.IN_LINE_COMMENT:
            if c in "\r\n":
                state = ScannerState.NORMAL
                output.append(c)

        elif state is ScannerState.IN_BLOCK_COMMENT:
            if c == "*" and next_char == "/":
                state = ScannerState.NORMAL
                i += 2
                continue

        i += 1

    return "".join(output)


def normalize_whitespace(text: str) -> str:
    """Collapse tabs, line breaks and whitespace runs to single spaces and trim."""
    text = text.replace("\t", " ")
    text = text.replace("\r", " ").replace("\n", " ")
    text = _WHITESPACE_RUN.sub(" ", text)
    return text.strip()


def cleanup_content(raw_content: str) -> str:
    return normalize_whitespace(strip_comments(raw_content))


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


def get_extension(file_name: str) -> str:
    """Lower-cased text after the last '.', or '' when the name has none."""
    _, dot, extension = file_name.rpartition(".")
    return extension.lower() if dot else ""


def is_allowed(file_name: str, config: ScanConfiguration) -> bool:
    extension = get_extension(file_name)
    return bool(extension) and extension in config.allowed_extensions


def is_ignored(directory_base_name: str, config: ScanConfiguration) -> bool:
    return directory_base_name in config.ignored_directory_names


# ---------------------------------------------------------------------------
# Content reading
# ---------------------------------------------------------------------------


def convert_notebook_to_markdown(notebook_path: str) -> str:
    """Render a Jupyter notebook as Markdown text."""
    logging.debug(f"Converting notebook to markdown: {notebook_path}")
    markdown_exporter = nbconvert.MarkdownExporter()
    body, _ = markdown_exporter.from_filename(notebook_path)
    return body


def read_file_content(file_path: str) -> str:
    """
    Read a file as text, trying several encodings in turn.

    A UTF-8 or UTF-16 byte order mark selects the encoding and is dropped
    from the text. Notebooks are rendered to Markdown instead of dumped as
    raw JSON. OSError is left to the caller so that it can skip the entry.
    """
    if get_extension(os.path.basename(file_path)) == "ipynb":
        return convert_notebook_to_markdown(file_path)

    with open(file_path, "rb") as f:
        data = f.read()

    if data.startswith(UTF16_BOMS):
        try:
            return data.decode("utf-16")
        except UnicodeDecodeError as e:
            logging.warning(f"File {file_path} has a UTF-16 BOM but is not UTF-16: {str(e)}")

    for encoding in ENCODINGS_TO_TRY[:-1]:
        try:
            content = data.decode(encoding)
        except UnicodeDecodeError:
            continue
        if encoding != "utf-8-sig":
            logging.warning(f"File {file_path} read with {encoding} encoding")
        return content

    fallback = ENCODINGS_TO_TRY[-1]
    logging.warning(f"File {file_path} read with {fallback} encoding")
    return data.decode(fallback)


# ---------------------------------------------------------------------------
# Traversal
# ---------------------------------------------------------------------------


class ScanMode(Enum):
    FULL_DUMP = "full_dump"
    STRUCTURE_WITH_FILES = "structure_with_files"
    STRUCTURE_DIRS_ONLY = "structure_dirs_only"


@dataclass(frozen=True)
class WorkItem:
    absolute_directory_path: str
    display_prefix: str


@dataclass(frozen=True)
class FileRecord:
    relative_display_path: str
    raw_content: str
    directory_prefix: str
    name: str


@dataclass(frozen=True)
class DirectoryRecord:
    display_prefix: str
    name: str


ScanEvent = Union[FileRecord, DirectoryRecord]


def list_directory(directory: str):
    """Split a directory's entries into sorted (files, subdirectories) name lists."""
    files = []
    subdirectories = []
    with os.scandir(directory) as entries:
        for entry in entries:
            try:
                if entry.is_dir():
                    subdirectories.append(entry.name)
                elif entry.is_file():
                    files.append(entry.name)
            except OSError as e:
                logging.error(f"Cannot access entry {entry.path}: {str(e)}")
    return sorted(files), sorted(subdirectories)


def walk(
    root: str,
    config: ScanConfiguration,
    mode: ScanMode = ScanMode.FULL_DUMP,
    reader=read_file_content,
) -> Iterator[ScanEvent]:
    """
    Breadth-first walk of *root* yielding file and directory events.

    Each dequeued directory first yields its allowed files (sorted, and not
    at all in directories-only mode), then one DirectoryRecord per
    non-ignored subdirectory, which is queued with the extended prefix.
    File contents are only read in full-dump mode; structure listings get
    records with empty content. A directory or file that cannot be read is
    logged and skipped.
    """
    queue = deque([WorkItem(str(root), "")])

    while queue:
        item = queue.popleft()
        current_directory = item.absolute_directory_path
        prefix = item.display_prefix

        try:
            files, subdirectories = list_directory(current_directory)
        except OSError as e:
            logging.error(f"Cannot read directory {current_directory}: {str(e)}")
            continue

        if mode is not ScanMode.STRUCTURE_DIRS_ONLY:
            for file_name in files:
                if not is_allowed(file_name, config):
                    continue

                relative_path = f"{prefix}{file_name}"
                content = ""
                if mode is ScanMode.FULL_DUMP:
                    file_path = os.path.join(current_directory, file_name)
                    try:
                        content = reader(file_path)
                    except Exception as e:
                        # nbconvert raises its own errors for broken notebooks
                        logging.error(f"Cannot read file {file_path}: {str(e)}")
                        continue

                logging.info(f"Source found: {relative_path}")
                yield FileRecord(relative_path, content, prefix, file_name)

        for directory_name in subdirectories:
            if is_ignored(directory_name, config):
                logging.debug(f"Ignored directory: {prefix}{directory_name}")
                continue

            queue.append(
                WorkItem(
                    os.path.join(current_directory, directory_name),
                    f"{prefix}{directory_name}/",
                )
            )
            yield DirectoryRecord(prefix, directory_name)


# ---------------------------------------------------------------------------
# Output assembly
# ---------------------------------------------------------------------------


def format_file_block(relative_path: str, content: str) -> str:
    return f"{relative_path}\n{FENCE}\n{content}\n{FENCE}\n"


def assemble_full_dump(events: Iterable[ScanEvent], cleanup: bool = False) -> str:
    blocks = []
    for event in events:
        if not isinstance(event, FileRecord):
            continue
        content = cleanup_content(event.raw_content) if cleanup else event.raw_content
        blocks.append(format_file_block(event.relative_display_path, content))
    return "".join(blocks).rstrip()


def assemble_structure(events: Iterable[ScanEvent], directories_only: bool = False) -> str:
    """
    Group events by directory and list each group under a '-<path>' header.

    Groups are sorted by path. The root directory always forms the first
    group (header '-'), like every other visited directory.
    """
    groups: Dict[str, List[str]] = {"": []}
    for event in events:
        if isinstance(event, DirectoryRecord):
            groups.setdefault(f"{event.display_prefix}{event.name}", [])
        elif isinstance(event, FileRecord):
            directory = event.directory_prefix.rstrip("/")
            groups.setdefault(directory, []).append(event.name)

    sections = []
    for directory in sorted(groups):
        lines = [f"-{directory}"]
        if not directories_only:
            lines.extend(sorted(groups[directory]))
        sections.append("\n".join(lines))

    return "\n\n".join(sections).rstrip()


def assemble(events: Iterable[ScanEvent], mode: ScanMode, cleanup: bool = False) -> str:
    if mode is ScanMode.FULL_DUMP:
        return assemble_full_dump(events, cleanup)
    return assemble_structure(events, mode is ScanMode.STRUCTURE_DIRS_ONLY)


def build_artifact(
    root: str,
    config: ScanConfiguration,
    mode: ScanMode = ScanMode.FULL_DUMP,
    cleanup: bool = False,
    show_progress: bool = False,
) -> str:
    """Walk *root* and assemble the artifact for *mode*."""
    events = walk(root, config, mode)
    if show_progress:
        events = tqdm(events, desc="Scanning", unit=" entries", file=sys.stderr)
    return assemble(events, mode, cleanup)


def count_tokens(text: str) -> int:
    """Count tokens in text using tiktoken."""
    try:
        encoding = tiktoken.get_encoding("cl100k_base")
        return len(encoding.encode(text))
    except Exception as e:
        # the encoding file is downloaded on first use and may be unavailable
        logging.warning(f"Token counting unavailable, estimating: {str(e)}")
        return len(text) // 4


# ---------------------------------------------------------------------------
# Output sinks
# ---------------------------------------------------------------------------


def write_to_console(text: str):
    try:
        print(text)
    except UnicodeEncodeError:
        # Fallback for Windows console - replace problematic chars
        print(text.encode("ascii", "replace").decode("ascii"))
        logging.warning("Output written with ASCII fallback due to encoding issues")


def copy_to_clipboard(text: str) -> bool:
    """Copy text to the clipboard; on failure print it instead and return False."""
    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as e:
        logging.error(f"Error copying to clipboard: {str(e)}")
        print("Clipboard unavailable, writing to console instead:\n")
        write_to_console(text)
        return False
    return True


# ---------------------------------------------------------------------------
# PATH registration
# ---------------------------------------------------------------------------


def _path_contains(path_value: str, directory: str) -> bool:
    wanted = os.path.normcase(os.path.normpath(directory))
    return any(
        os.path.normcase(os.path.normpath(part)) == wanted
        for part in path_value.split(os.pathsep)
        if part
    )


def _set_windows_user_path(directory: str) -> bool:
    import winreg

    with winreg.OpenKey(
        winreg.HKEY_CURRENT_USER, "Environment", 0, winreg.KEY_ALL_ACCESS
    ) as key:
        try:
            path_value, value_type = winreg.QueryValueEx(key, "PATH")
        except FileNotFoundError:
            path_value, value_type = "", winreg.REG_EXPAND_SZ

        if _path_contains(path_value, directory):
            return False

        new_value = f"{path_value};{directory}" if path_value else directory
        winreg.SetValueEx(key, "PATH", 0, value_type, new_value)
    return True


def _set_posix_profile_path(directory: str, profile: Path) -> bool:
    export_line = f'export PATH="$PATH:{directory}"'
    existing = profile.read_text(encoding="utf-8") if profile.exists() else ""
    if export_line in existing:
        return False

    with open(profile, "a", encoding="utf-8") as f:
        if existing and not existing.endswith("\n"):
            f.write("\n")
        f.write(f"# Added by codestruct --set-path\n{export_line}\n")
    return True


def set_environment_path(directory: Optional[str] = None, profile: Optional[Path] = None) -> bool:
    """
    Add the directory holding the codestruct launcher to the user's PATH.

    Returns True when PATH was changed and False when it already contained
    the directory or the change failed.
    """
    if directory is None:
        directory = os.path.dirname(os.path.abspath(sys.argv[0]))

    if _path_contains(os.environ.get("PATH", ""), directory):
        print("CodeStruct path is already in the system PATH variable.")
        return False

    try:
        if os.name == "nt":
            changed = _set_windows_user_path(directory)
        else:
            changed = _set_posix_profile_path(directory, profile or Path.home() / ".profile")
    except OSError as e:
        logging.error(f"Failed to set environment path: {str(e)}")
        print(f"Failed to set environment path: {str(e)}")
        return False

    if changed:
        print("CodeStruct path has been added to the system PATH variable.")
    else:
        print("CodeStruct path is already in the system PATH variable.")
    return changed


# ---------------------------------------------------------------------------
# Command line
# ---------------------------------------------------------------------------


def display_usage_and_config_info(config: ScanConfiguration, config_path: Path):
    print("Usage information:")
    print("  -c, --console     Output to console instead of clipboard")
    print("  --cl              Clean up file content")
    print("  -s, --structure   Generate file and directory structure")
    print("  -d, --directories Generate only directory structure without files")
    print("  --set-path        Set CodeStruct path in system environment variables")
    print(f"  Allowed extensions: {', '.join(sorted(config.allowed_extensions))}")
    print(f"  Ignored directories: {', '.join(sorted(config.ignored_directory_names))}")
    print(f"\nConfiguration file: {config_path}")
    print()


def select_mode(args) -> ScanMode:
    if args.structure:
        return ScanMode.STRUCTURE_WITH_FILES
    if args.directories:
        return ScanMode.STRUCTURE_DIRS_ONLY
    return ScanMode.FULL_DUMP


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="codestruct",
        description="Copy the source files of a directory tree as one text block",
    )

    parser.add_argument(
        "directory",
        nargs="?",
        default=None,
        help="Directory to scan (default: current working directory)",
    )

    # Output target and content
    parser.add_argument(
        "-c",
        "--console",
        action="store_true",
        help="Output to console instead of clipboard",
    )
    parser.add_argument(
        "--cl",
        dest="cleanup",
        action="store_true",
        help="Clean up file content (strip comments, collapse whitespace)",
    )

    # Modes
    parser.add_argument(
        "-s",
        "--structure",
        action="store_true",
        help="Generate file and directory structure",
    )
    parser.add_argument(
        "-d",
        "--directories",
        action="store_true",
        help="Generate only directory structure without files",
    )
    parser.add_argument(
        "--set-path",
        action="store_true",
        help="Set CodeStruct path in system environment variables",
    )

    parser.add_argument(
        "--config",
        default=None,
        help=f"Configuration file (default: ${CONFIG_ENV_VAR} or {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument(
        "--progress",
        action="store_true",
        help="Show a progress bar while scanning",
    )

    # Logging configuration
    parser.add_argument(
        "--enable-logging",
        action="store_true",
        default=False,
        help="Enable detailed logging to file",
    )
    parser.add_argument(
        "--log-file",
        default="codestruct.log",
        help="Log file path (default: codestruct.log)",
    )
    return parser


def run(args) -> int:
    if args.set_path:
        set_environment_path()
        return 0

    config_path = get_config_path(args.config)
    config = load_config(config_path)
    display_usage_and_config_info(config, config_path)

    working_directory = os.path.abspath(args.directory or os.getcwd())
    if not os.path.isdir(working_directory):
        logging.error(f"Invalid directory: {working_directory}")
        print(f"Error: Invalid directory: {working_directory}")
        return 1
    logging.info(f"Working directory: {working_directory}")

    mode = select_mode(args)
    if mode is ScanMode.STRUCTURE_WITH_FILES:
        logging.info("Generating directory structure with files...")
    elif mode is ScanMode.STRUCTURE_DIRS_ONLY:
        logging.info("Generating directory structure without files...")
    else:
        logging.info("Generating code structure...")
        logging.info(f"Cleanup content: {args.cleanup}")

    output = build_artifact(
        working_directory, config, mode, args.cleanup, show_progress=args.progress
    )
    logging.info("Structure has been successfully generated!")
    logging.info(f"Total tokens: {count_tokens(output):,}")

    if args.console:
        logging.info("Writing to console...")
        write_to_console(output)
    else:
        logging.info("Copying to clipboard...")
        copy_to_clipboard(output)
    return 0


def main(argv: Optional[List[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_file, args.enable_logging)

    try:
        exit_code = run(args)
    except Exception as e:
        logging.exception("An error occurred in the main execution")
        print(f"An error occurred: {str(e)}")
        sys.exit(1)

    if exit_code:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
