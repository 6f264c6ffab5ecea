"""File input and output helpers for the CLI.

Reading files attached to questions and saving responses to disk.
"""

import logging
import time
from pathlib import Path

from .config import MAX_INPUT_FILE_MB
from .errors import FileOutputError
from .llm.models import ResponseArtifact

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = "txt"

# Code block language tag -> file extension (without the dot)
LANGUAGE_EXTENSIONS: dict[str, str] = {
    "js": "js",
    "javascript": "js",
    "ts": "ts",
    "typescript": "ts",
    "jsx": "jsx",
    "tsx": "tsx",
    "html": "html",
    "htm": "html",
    "css": "css",
    "scss": "scss",
    "sass": "sass",
    "less": "less",
    "xml": "xml",
    "svg": "svg",
    "py": "py",
    "python": "py",
    "py3": "py",
    "python3": "py",
    "ipynb": "ipynb",
    "rb": "rb",
    "ruby": "rb",
    "java": "java",
    "c": "c",
    "cpp": "cpp",
    "c++": "cpp",
    "cc": "cpp",
    "h": "h",
    "hpp": "hpp",
    "cs": "cs",
    "csharp": "cs",
    "php": "php",
    "go": "go",
    "golang": "go",
    "rs": "rs",
    "rust": "rs",
    "sh": "sh",
    "bash": "sh",
    "shell": "sh",
    "zsh": "sh",
    "swift": "swift",
    "kt": "kt",
    "kotlin": "kt",
    "json": "json",
    "yaml": "yaml",
    "yml": "yml",
    "toml": "toml",
    "csv": "csv",
    "tsv": "tsv",
    "md": "md",
    "markdown": "md",
    "sql": "sql",
    "ini": "ini",
    "cfg": "cfg",
    "conf": "conf",
    "dockerfile": "Dockerfile",
    "docker": "Dockerfile",
    "txt": "txt",
    "text": "txt",
    "diff": "diff",
    "patch": "patch",
}


def get_extension_for_language(language: str | None) -> str:
    """Get a file extension for a code block language tag.

    Exact matches win; otherwise the first tag the language starts with is
    used (e.g. ``"javascript (node)"``). Unknown languages map to ``txt``.
    """
    if not language:
        return DEFAULT_EXTENSION

    normalized = language.strip().lower()
    if normalized in LANGUAGE_EXTENSIONS:
        return LANGUAGE_EXTENSIONS[normalized]

    for tag, extension in LANGUAGE_EXTENSIONS.items():
        if normalized.startswith(tag):
            return extension

    return DEFAULT_EXTENSION


def default_output_name(artifact: ResponseArtifact) -> str:
    """Default file name for a response: ``llamb-response-<ms>.<ext>``.

    The language extension is only used for pure code block responses.
    """
    extension = DEFAULT_EXTENSION
    if artifact.is_pure_code_block:
        extension = get_extension_for_language(artifact.detected_language)
    return f"llamb-response-{int(time.time() * 1000)}.{extension}"


def generate_unique_filename(path: str | Path) -> Path:
    """Return ``path`` or, if it exists, the first free ``name-N.ext`` variant."""
    path = Path(path)
    if not path.exists():
        return path

    counter = 1
    while True:
        candidate = path.with_name(f"{path.stem}-{counter}{path.suffix}")
        if not candidate.exists():
            return candidate
        counter += 1


def read_input_file(path: str | Path, max_size_mb: float = MAX_INPUT_FILE_MB) -> str:
    """Read a text file to attach to a question.

    Args:
        path: File to read
        max_size_mb: Largest accepted file size in megabytes

    Returns:
        File content

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the path is a directory or the file is too large
    """
    path = Path(path).expanduser()
    if not path.exists():
        raise FileNotFoundError(f"File does not exist: {path}")
    if path.is_dir():
        raise ValueError(f"Path is a directory, not a file: {path}")

    size_mb = path.stat().st_size / (1024 * 1024)
    if size_mb > max_size_mb:
        raise ValueError(
            f"File is too large ({size_mb:.2f}MB). Maximum size is {max_size_mb}MB."
        )

    return path.read_text(encoding="utf-8")


def attach_file_content(question: str, content: str) -> str:
    """Append file content to a question as a fenced block."""
    return f"{question}\n\nFile content:\n```\n{content}\n```"


def save_response(
    artifact: ResponseArtifact,
    output_path: str | Path | None = None,
    overwrite: bool = False,
) -> Path:
    """Write a finalized response to disk.

    Args:
        artifact: Response finalized with ``file_output=True``
        output_path: Target file, or None for a generated name in the cwd
        overwrite: Replace an existing file instead of picking a new name

    Returns:
        Path the response was written to

    Raises:
        FileOutputError: If the file cannot be written
    """
    if output_path is None:
        target = Path(default_output_name(artifact))
    else:
        target = Path(output_path).expanduser()
        if target.is_dir():
            target = target / default_output_name(artifact)

    if target.exists() and not overwrite:
        unique = generate_unique_filename(target)
        logger.info("%s exists, writing to %s instead", target, unique)
        target = unique

    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(artifact.text, encoding="utf-8")
    except OSError as e:
        raise FileOutputError(f"Failed to write file {target}: {e}") from e

    return target
