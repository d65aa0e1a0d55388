"""
Code Quality Tool
=================

A dependency-free static scan of a file or directory tree.

Metrics:
- files, total lines, code lines, comment lines
- average cyclomatic complexity (decision keywords per file, base 1)
- documentation ratio (files with at least one comment or docstring)

Issues (each with file, line, severity, rule, message):
- syntax-error      error    Python file that does not parse
- high-complexity   warning  file complexity above the threshold
- long-function     warning  Python function longer than the limit
- long-line         info     line longer than the limit
- todo-marker       info     TODO / FIXME / XXX / HACK left in code
- missing-docs      info     file with no comment at all

Score:
    100 - 10 per error - 3 per warning - 0.5 per info, floored at 0
"""

import ast
import asyncio
import os
import re
from dataclasses import asdict, dataclass
from pathlib import Path

from mavens.tools import CancelSignal, Tool, ToolRegistry, ToolResult
from mavens.tools.filesystem import IGNORED_DIRS
from mavens.utils.logger import Logger

logger = Logger("QualityTools")

CODE_EXTENSIONS = frozenset({
    ".py", ".js", ".jsx", ".ts", ".tsx", ".go", ".rs", ".java", ".rb", ".php",
    ".c", ".h", ".cpp", ".hpp", ".cs", ".swift", ".kt",
})

HASH_COMMENT_EXTENSIONS = frozenset({".py", ".rb"})

MAX_LINE_LENGTH = 120
MAX_FUNCTION_LINES = 50
COMPLEXITY_THRESHOLD = 10
MAX_FILES = 500

DECISION_PATTERN = re.compile(r"\b(?:if|elif|for|while|case|catch|except|and|or)\b|&&|\|\|")
MARKER_PATTERN = re.compile(r"\b(TODO|FIXME|XXX|HACK)\b")

PENALTIES = {"error": 10.0, "warning": 3.0, "info": 0.5}


@dataclass
class Issue:
    file: str
    line: int
    severity: str
    rule: str
    message: str


@dataclass
class FileReport:
    path: str
    lines: int = 0
    code_lines: int = 0
    comment_lines: int = 0
    complexity: int = 1
    documented: bool = False


def _is_comment(line: str, suffix: str) -> bool:
    stripped = line.lstrip()
    if suffix in HASH_COMMENT_EXTENSIONS:
        return stripped.startswith("#")
    return stripped.startswith(("//", "/*", "*", "*/"))


def _python_issues(path: str, source: str, max_function_lines: int) -> tuple[list[Issue], bool]:
    """Parse a Python file; returns issues and whether any docstring exists."""
    try:
        tree = ast.parse(source)
    except SyntaxError as e:
        return [Issue(path, e.lineno or 1, "error", "syntax-error", f"Syntax error: {e.msg}")], False

    issues = []
    has_docstring = ast.get_docstring(tree) is not None
    for node in ast.walk(tree):
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            if ast.get_docstring(node) is not None:
                has_docstring = True
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            length = (node.end_lineno or node.lineno) - node.lineno + 1
            if length > max_function_lines:
                issues.append(Issue(
                    path, node.lineno, "warning", "long-function",
                    f"Function '{node.name}' is {length} lines (limit {max_function_lines})"
                ))
    return issues, has_docstring


def analyze_file(path: str, max_line_length: int, max_function_lines: int) -> tuple[FileReport, list[Issue]]:
    """Scan one source file."""
    suffix = Path(path).suffix.lower()
    source = Path(path).read_text(encoding="utf-8", errors="replace")
    report = FileReport(path=path)
    issues: list[Issue] = []

    for number, line in enumerate(source.splitlines(), start=1):
        report.lines += 1
        if not line.strip():
            continue
        if _is_comment(line, suffix):
            report.comment_lines += 1
        else:
            report.code_lines += 1
        if len(line) > max_line_length:
            issues.append(Issue(
                path, number, "info", "long-line",
                f"Line is {len(line)} characters (limit {max_line_length})"
            ))
        marker = MARKER_PATTERN.search(line)
        if marker:
            issues.append(Issue(path, number, "info", "todo-marker", f"{marker.group(1)} marker left in code"))

    report.complexity = 1 + len(DECISION_PATTERN.findall(source))
    report.documented = report.comment_lines > 0

    if suffix == ".py":
        python_issues, has_docstring = _python_issues(path, source, max_function_lines)
        issues.extend(python_issues)
        report.documented = report.documented or has_docstring

    if report.complexity > COMPLEXITY_THRESHOLD * max(report.code_lines // 100, 1):
        issues.append(Issue(path, 1, "warning", "high-complexity", f"High cyclomatic complexity: {report.complexity}"))
    if not report.documented and report.code_lines > 0:
        issues.append(Issue(path, 1, "info", "missing-docs", "File lacks documentation comments"))

    return report, issues


def collect_code_files(target: Path, limit: int = MAX_FILES) -> list[str]:
    """Code files under target (or target itself), skipping dependency folders."""
    if target.is_file():
        return [str(target)] if target.suffix.lower() in CODE_EXTENSIONS else []

    files = []
    for dirpath, dirnames, filenames in os.walk(target):
        dirnames[:] = sorted(d for d in dirnames if d not in IGNORED_DIRS and not d.startswith("."))
        for name in sorted(filenames):
            if Path(name).suffix.lower() in CODE_EXTENSIONS:
                files.append(os.path.join(dirpath, name))
                if len(files) >= limit:
                    return files
    return files


def score_issues(issues: list[Issue]) -> float:
    penalty = sum(PENALTIES.get(issue.severity, 0.0) for issue in issues)
    return round(max(0.0, 100.0 - penalty), 1)


def _analyze(target: Path, max_line_length: int, max_function_lines: int) -> dict:
    reports: list[FileReport] = []
    issues: list[Issue] = []

    for path in collect_code_files(target):
        try:
            report, file_issues = analyze_file(path, max_line_length, max_function_lines)
        except OSError as e:
            logger.warning(f"Skipping unreadable file {path}: {e}")
            continue
        reports.append(report)
        issues.extend(file_issues)

    count = len(reports)
    complexity = sum(r.complexity for r in reports) / count if count else 0.0
    metrics = {
        "files": count,
        "lines": sum(r.lines for r in reports),
        "code_lines": sum(r.code_lines for r in reports),
        "comment_lines": sum(r.comment_lines for r in reports),
        "complexity": round(complexity, 1),
        "maintainability": round(max(0.0, 100.0 - complexity * 5), 1),
        "documentation": round(100.0 * sum(r.documented for r in reports) / count, 1) if count else 0.0,
    }

    # Most severe first, then by location
    order = {"error": 0, "warning": 1, "info": 2}
    issues.sort(key=lambda i: (order.get(i.severity, 3), i.file, i.line))

    return {
        "path": str(target),
        "metrics": metrics,
        "issues": [asdict(issue) for issue in issues],
        "counts": {severity: sum(1 for i in issues if i.severity == severity) for severity in order},
        "score": score_issues(issues),
    }


def format_report(analysis: dict, top: int = 5) -> str:
    metrics = analysis["metrics"]
    counts = analysis["counts"]
    lines = [
        f"Code Quality Report for {analysis['path']}",
        "",
        f"Score: {analysis['score']}/100",
        f"- Files: {metrics['files']} ({metrics['code_lines']} code lines, {metrics['comment_lines']} comment lines)",
        f"- Complexity: {metrics['complexity']}",
        f"- Maintainability: {metrics['maintainability']}%",
        f"- Documentation: {metrics['documentation']}%",
        f"- Issues: {counts['error']} errors, {counts['warning']} warnings, {counts['info']} info",
    ]
    if analysis["issues"]:
        lines.append("")
        lines.append("Top issues:")
        for issue in analysis["issues"][:top]:
            location = os.path.relpath(issue["file"], analysis["path"]) if os.path.isdir(analysis["path"]) else issue["file"]
            lines.append(f"- {issue['severity'].upper()}: {issue['message']} ({location}:{issue['line']})")
    return "\n".join(lines)


# ==============================================================================
# Tool: Analyze Quality
# ==============================================================================

async def _analyze_quality(params: dict, cancel: CancelSignal | None = None) -> ToolResult:
    target = Path(params["path"])
    max_line_length = int(params.get("max_line_length") or MAX_LINE_LENGTH)
    max_function_lines = int(params.get("max_function_lines") or MAX_FUNCTION_LINES)

    if not target.exists():
        return ToolResult.fail(f"Path not found: {target}")

    analysis = await asyncio.to_thread(_analyze, target, max_line_length, max_function_lines)
    metrics = analysis["metrics"]

    if metrics["files"] == 0:
        return ToolResult.ok(
            content=f"No code files found under {target}",
            display_summary="No code files to analyze",
            data=analysis
        )

    logger.info(f"Analyzed {metrics['files']} files under {target}: score {analysis['score']}")
    return ToolResult.ok(
        content=format_report(analysis),
        display_summary=(
            f"Quality score {analysis['score']}/100 across {metrics['files']} file(s), "
            f"{len(analysis['issues'])} issue(s)"
        ),
        data=analysis
    )


analyze_quality_tool = Tool(
    name="analyze_quality",
    description="Scan source files for quality issues (long lines, long functions, TODOs, complexity) and score them.",
    parameters={
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "Absolute path of a file or directory to analyze"
            },
            "max_line_length": {
                "type": "integer",
                "description": "Line length limit (default: 120)"
            },
            "max_function_lines": {
                "type": "integer",
                "description": "Function length limit (default: 50)"
            }
        },
        "required": ["path"]
    },
    execute=_analyze_quality,
    validator=lambda params: None if os.path.isabs(params["path"]) else "Parameter 'path' must be absolute"
)


def register_quality_tools(registry: ToolRegistry) -> None:
    """Register the code quality tool with a registry."""
    registry.register(analyze_quality_tool)

    logger.debug("Quality tools registered")
