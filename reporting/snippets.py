# ============================================================================
#  File:    snippets.py
#  Purpose: Compact failure excerpts for chat notifications
# ============================================================================
# SECTION 1: Imports and Globals
# ============================================================================
#
import re
from typing import Iterable, List, Optional, Union

THREAD_SNIPPET_LIMIT = 1400
REASON_LIMIT = 200
GRAPHQL_ERROR_LIMIT = 400
ELLIPSIS = "…"

ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*[A-Za-z]")
ERROR_LINE = re.compile(r"^[\w.]*Error:.*$", re.MULTILINE)
EXPECTED_LINE = re.compile(r"^[ \t]*Expected:.*$", re.MULTILINE)
RECEIVED_LINE = re.compile(r"^[ \t]*Received:.*$", re.MULTILINE)
# Blank line, or a stack frame such as "    at foo.js:10"
EXPECTED_BLOCK_END = re.compile(r"\n[ \t]*\n|\n[ \t]*at\s")
#
# ============================================================================
# SECTION 2: Text Helpers
# ============================================================================
#
def strip_ansi(text: Optional[str]) -> str:
    return ANSI_ESCAPE.sub("", text or "")


def first_line(text: Optional[str]) -> str:
    """First non-blank line of text, or an empty string."""
    for line in (text or "").splitlines():
        if line.strip():
            return line.strip()
    return ""


def truncate_snippet(text: Optional[str], limit: int = THREAD_SNIPPET_LIMIT) -> str:
    """
    Cap text at `limit` characters. When text is cut, the last character is
    replaced by an ellipsis so the reader can tell the excerpt is partial.
    """
    text = (text or "").strip()
    if limit <= 0:
        return ""
    if len(text) <= limit:
        return text
    return text[:limit - 1].rstrip() + ELLIPSIS
#
# ============================================================================
# SECTION 3: Snippet Extraction
# ============================================================================
# Function 3.1: extract_failure_snippet
# Purpose: Pick the most useful excerpt from one or more raw error texts.
#   1. "Error: ..." together with Expected:/Received: lines -> those lines
#   2. an "Expected:" block, cut at a blank line or the first stack frame
#   3. the first non-blank line
#   4. nothing usable -> ""
# ============================================================================
#
def extract_failure_snippet(errors: Union[str, Iterable[Optional[str]], None]) -> str:

    messages = _clean_messages(errors)
    if not messages:
        return ""

    for msg in messages:
        error_line = ERROR_LINE.search(msg)
        expected_line = EXPECTED_LINE.search(msg)
        received_line = RECEIVED_LINE.search(msg)
        if error_line and (expected_line or received_line):
            parts = [m.group(0).strip() for m in (error_line, expected_line, received_line) if m]
            return "\n".join(parts)

    for msg in messages:
        idx = msg.find("Expected:")
        if idx != -1:
            block = msg[idx:]
            end = EXPECTED_BLOCK_END.search(block)
            if end:
                block = block[:end.start()]
            return block.rstrip()

    return first_line(messages[0])


def _clean_messages(errors: Union[str, Iterable[Optional[str]], None]) -> List[str]:
    if errors is None:
        return []
    if isinstance(errors, str):
        errors = [errors]
    cleaned = (strip_ansi(e).strip() for e in errors)
    return [msg for msg in cleaned if msg]
#
#
## End of snippets.py
