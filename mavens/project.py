"""
Project Detection
=================

Works out what kind of project a working directory holds, so the command
agent knows how to build, test and install it and the Response can carry a
short context summary.

Detection order (first match wins):
    package.json                         -> node
    pyproject.toml / setup.py / setup.cfg / requirements.txt -> python
    Cargo.toml                           -> rust
    go.mod                               -> go
    pom.xml / build.gradle(.kts)         -> java
    otherwise the most common code-file extension, or "unknown"
"""

import os
from collections import Counter
from dataclasses import dataclass
from pathlib import Path

from mavens.tools.filesystem import IGNORED_DIRS
from mavens.tools.quality import CODE_EXTENSIONS

MAX_SCAN_FILES = 5000

MARKERS = (
    ("node", ("package.json",)),
    ("python", ("pyproject.toml", "setup.py", "setup.cfg", "requirements.txt")),
    ("rust", ("Cargo.toml",)),
    ("go", ("go.mod",)),
    ("java", ("pom.xml", "build.gradle", "build.gradle.kts")),
)

EXTENSION_TYPES = {
    ".js": "node", ".jsx": "node", ".ts": "node", ".tsx": "node",
    ".py": "python", ".rs": "rust", ".go": "go", ".java": "java", ".kt": "java",
}

# (build, test, install) per project type
COMMANDS = {
    "node": ("npm run build", "npm test", "npm install"),
    "python": ("python -m build", "python -m pytest", "pip install -e ."),
    "rust": ("cargo build", "cargo test", "cargo fetch"),
    "go": ("go build ./...", "go test ./...", "go mod download"),
    "java": ("mvn -q package", "mvn -q test", "mvn -q install -DskipTests"),
}


@dataclass(frozen=True)
class ProjectInfo:
    root: str
    project_type: str
    code_files_count: int
    main_extension: str | None = None


def detect_project_type(root: str, extensions: Counter | None = None) -> str:
    base = Path(root)
    for project_type, markers in MARKERS:
        if any((base / marker).exists() for marker in markers):
            return project_type

    if extensions:
        for extension, _ in extensions.most_common():
            if extension in EXTENSION_TYPES:
                return EXTENSION_TYPES[extension]
    return "unknown"


def _count_code_files(root: str) -> Counter:
    counts: Counter = Counter()
    seen = 0
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = [d for d in dirnames if d not in IGNORED_DIRS and not d.startswith(".")]
        for name in filenames:
            extension = os.path.splitext(name)[1].lower()
            if extension in CODE_EXTENSIONS:
                counts[extension] += 1
            seen += 1
            if seen >= MAX_SCAN_FILES:
                return counts
    return counts


def analyze_project(root: str) -> ProjectInfo:
    """
    Detect the project type and count code files under root.

    Args:
        root: Absolute project directory

    Returns:
        ProjectInfo (type "unknown" and zero files for a missing directory)
    """
    if not os.path.isdir(root):
        return ProjectInfo(root=root, project_type="unknown", code_files_count=0)

    extensions = _count_code_files(root)
    main = extensions.most_common(1)[0][0] if extensions else None
    return ProjectInfo(
        root=root,
        project_type=detect_project_type(root, extensions),
        code_files_count=sum(extensions.values()),
        main_extension=main,
    )


def project_command(project_type: str, action: str, root: str | None = None) -> str | None:
    """
    The conventional command for an action on a project type.

    Args:
        project_type: As returned by detect_project_type
        action: "build", "test" or "install"
        root: Project directory, used to refine the choice (yarn, gradle, requirements.txt)

    Returns:
        A shell command, or None if the project type is unknown
    """
    commands = COMMANDS.get(project_type)
    if commands is None:
        return None
    command = commands[("build", "test", "install").index(action)]

    if root:
        base = Path(root)
        if project_type == "node" and (base / "yarn.lock").exists():
            command = {"build": "yarn build", "test": "yarn test", "install": "yarn install"}[action]
        elif project_type == "java" and not (base / "pom.xml").exists():
            command = {"build": "./gradlew build", "test": "./gradlew test", "install": "./gradlew dependencies"}[action]
        elif (
            project_type == "python"
            and action == "install"
            and (base / "requirements.txt").exists()
            and not (base / "pyproject.toml").exists()
            and not (base / "setup.py").exists()
        ):
            command = "pip install -r requirements.txt"
    return command
