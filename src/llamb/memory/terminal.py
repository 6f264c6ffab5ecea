"""Stable identifiers for terminal contexts.

A terminal id stays the same across invocations from the same terminal
window (or SSH connection), so each window keeps its own conversation.
"""

import hashlib
import logging
import os
import secrets
from collections.abc import Mapping
from pathlib import Path

logger = logging.getLogger(__name__)

LOCAL_ID_FILENAME = "local_terminal_id"

# Window-specific ids exported by common terminal emulators
_TERMINAL_ID_VARS = ("TERM_SESSION_ID", "WINDOWID", "TERMINATOR_UUID", "ITERM_SESSION_ID")


def _short_hash(value: str) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest()[:8]


def generate_terminal_id(
    env: Mapping[str, str] | None = None,
    home: Path | None = None,
) -> str:
    """Derive an 8-character id for the current terminal context.

    Strategy, first match wins:
    1. SSH session: hash of ``SSH_CONNECTION``
    2. Terminal emulator ids with ``TTY`` and ``SHELL``
    3. ``USER``, ``TTY`` and ``SHELL`` when a TTY is known
    4. Random id saved in ``~/.llamb/local_terminal_id``

    Args:
        env: Environment to read (default: ``os.environ``)
        home: Home directory for the saved id (default: ``Path.home()``)

    Returns:
        Terminal id string
    """
    env = os.environ if env is None else env

    ssh_connection = env.get("SSH_CONNECTION")
    if ssh_connection:
        return _short_hash(f"ssh-{ssh_connection}")

    tty = env.get("TTY", "")
    shell = env.get("SHELL", "")
    terminal_ids = [env[name] for name in _TERMINAL_ID_VARS if env.get(name)]

    if terminal_ids:
        return _short_hash("-".join(part for part in [*terminal_ids, tty, shell] if part))

    user = env.get("USER") or env.get("USERNAME") or ""
    if tty:
        return _short_hash(f"{user}-{tty}-{shell}")

    id_path = (home or Path.home()) / ".llamb" / LOCAL_ID_FILENAME
    try:
        if id_path.exists():
            saved = id_path.read_text(encoding="utf-8").strip()
            if saved:
                return saved
        terminal_id = secrets.token_hex(4)
        id_path.parent.mkdir(parents=True, exist_ok=True)
        id_path.write_text(terminal_id, encoding="utf-8")
        return terminal_id
    except OSError as e:
        logger.warning("Could not persist local terminal id at %s: %s", id_path, e)
        return _short_hash(f"{user}-{shell}-local")
