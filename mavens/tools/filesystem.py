"""
Filesystem Tools
================

Tools for working with files in the user's project: creating and writing
files, reading them back, listing directories and finding files by name.

Paths:
- Every tool takes absolute paths; the FileOps agent resolves relative
  names against the request's working directory before calling in.
- Directory walks skip dependency and VCS folders (node_modules, .git,
  __pycache__, ...) so listings stay readable in large projects.

Blocking filesystem calls run in a worker thread via asyncio.to_thread so
a slow disk never stalls the event loop.
"""

import asyncio
import fnmatch
import os
from pathlib import Path

from mavens.tools import CancelSignal, Tool, ToolRegistry, ToolResult
from mavens.utils.logger import Logger

logger = Logger("FilesystemTools")

IGNORED_DIRS = frozenset({
    ".git", ".hg", ".svn", "node_modules", "__pycache__", ".venv", "venv",
    ".mypy_cache", ".pytest_cache", ".tox", "dist", "build", "target", ".next",
})

MAX_READ_BYTES = 200_000
MAX_FIND_RESULTS = 200

LANGUAGES = {
    ".py": "python", ".js": "javascript", ".jsx": "javascript", ".ts": "typescript",
    ".tsx": "typescript", ".html": "html", ".css": "css", ".json": "json",
    ".md": "markdown", ".rs": "rust", ".go": "go", ".java": "java",
    ".sh": "shell", ".yml": "yaml", ".yaml": "yaml", ".toml": "toml", ".sql": "sql",
}


def _require_absolute(params: dict, *names: str) -> str | None:
    for name in names:
        value = params.get(name)
        if value and not os.path.isabs(value):
            return f"Parameter '{name}' must be an absolute path, got {value}"
    return None


def detect_language(path: str) -> str:
    return LANGUAGES.get(Path(path).suffix.lower(), "text")


# ==============================================================================
# Tool: Write File
# ==============================================================================

def _write(path: Path, content: str) -> tuple[bool, int]:
    created = not path.exists()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return created, len(content.encode("utf-8"))


async def _write_file(params: dict, cancel: CancelSignal | None = None) -> ToolResult:
    """
    Create or overwrite a file with the given content.

    Parent directories are created as needed.
    """
    path = Path(params["file_path"])
    content = params.get("content") or ""

    if path.is_dir():
        return ToolResult.fail(f"{path} is a directory")

    created, size = await asyncio.to_thread(_write, path, content)
    action = "Created" if created else "Updated"
    logger.info(f"{action} {path} ({size} bytes)")

    return ToolResult.ok(
        content=f"{action} file {path} ({size} bytes)",
        display_summary=f"{action} {path.name}",
        data={
            "path": str(path),
            "action": "created" if created else "updated",
            "bytes": size,
            "language": detect_language(str(path)),
        }
    )


write_file_tool = Tool(
    name="write_file",
    description="Create a new file or overwrite an existing one with the given content.",
    parameters={
        "type": "object",
        "properties": {
            "file_path": {
                "type": "string",
                "description": "Absolute path of the file to write"
            },
            "content": {
                "type": "string",
                "description": "Full file content (default: empty file)"
            }
        },
        "required": ["file_path"]
    },
    execute=_write_file,
    validator=lambda params: _require_absolute(params, "file_path")
)


# ==============================================================================
# Tool: Read File
# ==============================================================================

def _read(path: Path, max_bytes: int) -> tuple[str, int, bool]:
    size = path.stat().st_size
    with path.open("rb") as f:
        raw = f.read(max_bytes)
    return raw.decode("utf-8", errors="replace"), size, size > max_bytes


async def _read_file(params: dict, cancel: CancelSignal | None = None) -> ToolResult:
    """Read a text file, capped at max_bytes."""
    path = Path(params["file_path"])
    max_bytes = int(params.get("max_bytes") or MAX_READ_BYTES)

    if not path.exists():
        return ToolResult.fail(f"File not found: {path}")
    if path.is_dir():
        return ToolResult.fail(f"{path} is a directory, not a file")

    text, size, truncated = await asyncio.to_thread(_read, path, max_bytes)
    line_count = text.count("\n") + (1 if text and not text.endswith("\n") else 0)

    summary = f"Read {path.name} ({line_count} lines)"
    if truncated:
        summary += f", first {max_bytes} bytes"

    return ToolResult.ok(
        content=text,
        display_summary=summary,
        data={
            "path": str(path),
            "size": size,
            "lines": line_count,
            "truncated": truncated,
            "language": detect_language(str(path)),
        }
    )


read_file_tool = Tool(
    name="read_file",
    description="Read the content of a text file.",
    parameters={
        "type": "object",
        "properties": {
            "file_path": {
                "type": "string",
                "description": "Absolute path of the file to read"
            },
            "max_bytes": {
                "type": "integer",
                "description": "Maximum number of bytes to read (default: 200000)"
            }
        },
        "required": ["file_path"]
    },
    execute=_read_file,
    validator=lambda params: _require_absolute(params, "file_path")
)


# ==============================================================================
# Tool: List Directory
# ==============================================================================

def _list(path: Path, show_hidden: bool) -> list[dict]:
    entries = []
    with os.scandir(path) as it:
        for entry in it:
            if not show_hidden and (entry.name.startswith(".") or entry.name in IGNORED_DIRS):
                continue
            is_dir = entry.is_dir(follow_symlinks=False)
            entries.append({
                "name": entry.name,
                "type": "directory" if is_dir else "file",
                "size": None if is_dir else entry.stat(follow_symlinks=False).st_size,
            })
    # Directories first, then files, each alphabetical
    entries.sort(key=lambda e: (e["type"] != "directory", e["name"].lower()))
    return entries


async def _list_directory(params: dict, cancel: CancelSignal | None = None) -> ToolResult:
    """List the entries of a directory."""
    path = Path(params["path"])
    show_hidden = bool(params.get("show_hidden", False))

    if not path.exists():
        return ToolResult.fail(f"Directory not found: {path}")
    if not path.is_dir():
        return ToolResult.fail(f"{path} is not a directory")

    entries = await asyncio.to_thread(_list, path, show_hidden)
    directories = sum(1 for e in entries if e["type"] == "directory")
    files = len(entries) - directories

    lines = [f"{e['name']}/" if e["type"] == "directory" else e["name"] for e in entries]
    return ToolResult.ok(
        content="\n".join(lines) if lines else "(empty directory)",
        display_summary=f"{path}: {directories} directories, {files} files",
        data={
            "path": str(path),
            "entries": entries,
            "directories": directories,
            "files": files,
        }
    )


list_directory_tool = Tool(
    name="list_directory",
    description="List the files and subdirectories of a directory.",
    parameters={
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "Absolute path of the directory"
            },
            "show_hidden": {
                "type": "boolean",
                "description": "Include dotfiles and dependency folders (default: false)"
            }
        },
        "required": ["path"]
    },
    execute=_list_directory,
    validator=lambda params: _require_absolute(params, "path")
)


# ==============================================================================
# Tool: Find Files
# ==============================================================================

def _find(root: Path, pattern: str, limit: int) -> tuple[list[str], bool]:
    # A bare word matches as a substring; anything with wildcards is a glob
    if not any(ch in pattern for ch in "*?["):
        pattern = f"*{pattern}*"

    matches: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in IGNORED_DIRS and not d.startswith("."))
        for name in sorted(filenames):
            if fnmatch.fnmatch(name.lower(), pattern.lower()):
                matches.append(os.path.join(dirpath, name))
                if len(matches) >= limit:
                    return matches, True
    return matches, False


async def _find_files(params: dict, cancel: CancelSignal | None = None) -> ToolResult:
    """Recursively find files whose name matches a pattern."""
    root = Path(params["root"])
    pattern = params["pattern"].strip()
    limit = int(params.get("max_results") or MAX_FIND_RESULTS)

    if not root.is_dir():
        return ToolResult.fail(f"Directory not found: {root}")

    matches, truncated = await asyncio.to_thread(_find, root, pattern, limit)
    relative = [os.path.relpath(m, root) for m in matches]

    if not matches:
        summary = f"No files matching '{pattern}' under {root}"
    else:
        summary = f"Found {len(matches)} file(s) matching '{pattern}'"
        if truncated:
            summary += f" (first {limit})"

    return ToolResult.ok(
        content="\n".join(relative) if relative else summary,
        display_summary=summary,
        data={
            "root": str(root),
            "pattern": pattern,
            "matches": matches,
            "truncated": truncated,
        }
    )


find_files_tool = Tool(
    name="find_files",
    description="Recursively find files by name (substring or glob such as '*.py').",
    parameters={
        "type": "object",
        "properties": {
            "root": {
                "type": "string",
                "description": "Absolute path of the directory to search"
            },
            "pattern": {
                "type": "string",
                "description": "Name fragment or glob pattern"
            },
            "max_results": {
                "type": "integer",
                "description": "Maximum matches to return (default: 200)"
            }
        },
        "required": ["root", "pattern"]
    },
    execute=_find_files,
    validator=lambda params: _require_absolute(params, "root")
)


# ==============================================================================
# Register All Filesystem Tools
# ==============================================================================

def register_filesystem_tools(registry: ToolRegistry) -> None:
    """Register all filesystem tools with a registry."""
    registry.register(write_file_tool)
    registry.register(read_file_tool)
    registry.register(list_directory_tool)
    registry.register(find_files_tool)

    logger.debug("Filesystem tools registered")
