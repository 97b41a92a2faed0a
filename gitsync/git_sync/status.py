"""Parsing ``git status --porcelain`` output."""

import locale
import logging
import re
from pathlib import Path
from typing import List, Optional, Tuple, Union
from urllib.parse import unquote_to_bytes

from .process import run_git
from .repository_info import ModifiedFile

_STATUS_LINE = re.compile(r"^\s?(\?\?|[ACMR][DM]|[ACMR])\s*(\S(?:.*\S)?)$")
_DIRTY_LINE = re.compile(r"^(\?\?|[ACMR] |[ ACMR][DM])")
_GIT_ESCAPE = re.compile(r"\\([0-7]{3}|.)")
_C_ESCAPES = {
    "a": 0x07, "b": 0x08, "f": 0x0C, "n": 0x0A,
    "r": 0x0D, "t": 0x09, "v": 0x0B, "\\": 0x5C, '"': 0x22,
}


def _escape_to_percent(match: "re.Match[str]") -> str:
    token = match.group(1)
    if len(token) == 3:
        return f"%{int(token, 8):02X}"
    byte = _C_ESCAPES.get(token)
    if byte is None:
        return match.group(0)
    return f"%{byte:02X}"


def decode_git_escape(raw_path: str) -> str:
    """
    Undo git's quoting of a path in status output.

    Git prints non-ASCII bytes of a path as ``\\ooo`` octal escapes and wraps
    the path in double quotes, so ``新条目.tid`` arrives as
    ``"\\346\\226\\260\\346\\235\\241\\347\\233\\256.tid"``. Each escape is
    turned into a percent-encoded byte and the resulting byte string is decoded
    as UTF-8. The escapes must not be grouped in threes: a character takes as
    many bytes as its UTF-8 encoding needs.
    """
    unquoted = raw_path
    if len(unquoted) >= 2 and unquoted.startswith('"') and unquoted.endswith('"'):
        unquoted = unquoted[1:-1]
    percent_encoded = _GIT_ESCAPE.sub(_escape_to_percent, unquoted.replace("%", "%25"))
    return unquote_to_bytes(percent_encoded).decode("utf-8", errors="replace")


def is_safe_quoted_path(raw_path: str) -> bool:
    """Quoted paths are decoded only when they hold no ``;`` or ``,``."""
    return (
        raw_path.startswith('"')
        and raw_path.endswith('"')
        and ";" not in raw_path
        and "," not in raw_path
    )


def _collation_key(item: ModifiedFile) -> Tuple[str, str]:
    # Case-insensitive even under the C locale Python starts in; the raw path breaks ties.
    path = item.file_relative_path
    return locale.strxfrm(path.casefold()), path


def parse_status_lines(stdout: str, dir: Union[str, Path]) -> List[ModifiedFile]:
    """Turn porcelain status output into a sorted list of modified files."""
    base = Path(dir)
    modified_files = []
    for line in stdout.split("\n"):
        if not line:
            continue
        match = _STATUS_LINE.match(line)
        if match is None:
            continue
        file_type, raw_relative_path = match.groups()
        if is_safe_quoted_path(raw_relative_path):
            relative_path = decode_git_escape(raw_relative_path)
        else:
            relative_path = raw_relative_path
        modified_files.append(ModifiedFile(
            type=file_type,
            file_relative_path=relative_path,
            file_path=base / relative_path
        ))
    return sorted(modified_files, key=_collation_key)


def get_modified_file_list(dir: Union[str, Path], logger: Optional[logging.Logger] = None) -> List[ModifiedFile]:
    """
    Get modified files and their change type in a working tree.

    Args:
        dir: Working tree to scan

    Returns:
        Modified files sorted by relative path
    """
    result = run_git(["status", "--porcelain"], dir, logger=logger)
    return parse_status_lines(result.stdout, dir)


def status_has_local_changes(stdout: str) -> bool:
    """True when porcelain output lists an untracked, added, copied, modified or renamed path."""
    return any(_DIRTY_LINE.match(line) for line in stdout.split("\n") if line)
