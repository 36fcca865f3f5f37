# ============================================================================
#  File:    suite_setup.py
#  Purpose: One-time run setup: clean artifacts, label the run and publish
#           the Discord header + thread for every worker to find.
# ============================================================================
# SECTION 1: Imports and Globals
# ============================================================================
#
import re
import shutil
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from loguru import logger

from reporting.config_manager import ReportingSettings
from reporting.discord_client import DiscordSetupClient
from reporting.run_metadata import RunMetadata, RunMetadataStore

SLASHED_PATTERN = re.compile(r"^/(.+)/[a-z]*$", re.IGNORECASE)
ALTERNATION = re.compile(r"\s*(?:\||\bor\b)\s*", re.IGNORECASE)
#
# ============================================================================
# SECTION 2: Labels
# ============================================================================
#
def prettify_grep(raw: Optional[str]) -> str:
    """
    Readable filter label for the header.

    "/(smoke|samples)/i" -> "smoke, samples"
    "smoke or api"       -> "smoke, api"
    "" or None           -> "all"
    """
    if not raw or not raw.strip():
        return "all"
    match = SLASHED_PATTERN.match(raw.strip())
    core = match.group(1) if match else raw
    pretty = re.sub(r"[()]", "", core.replace("(?:", "(")).strip()
    parts = [part.strip() for part in ALTERNATION.split(pretty) if part.strip()]
    if len(parts) > 1:
        return ", ".join(parts)
    return pretty or "all"


def extract_raw_grep(config: Any, settings: Optional[ReportingSettings] = None) -> Optional[str]:
    """TAGS wins; otherwise the -m marker expression, then the -k keyword expression."""
    if settings is not None and settings.tags.strip():
        return settings.tags
    option = getattr(config, "option", None)
    for name in ("markexpr", "keyword"):
        value = getattr(option, name, None)
        if value:
            return value
    return None


def suite_title(suite_name: str, env: str, grep: Optional[str]) -> str:
    return f"{suite_name}: {env} | {grep or 'all'}"


def tag_pattern(tags: str) -> Optional["re.Pattern[str]"]:
    """Whole-token, case-insensitive match; the leading @ is optional."""
    if not tags or not tags.strip():
        return None
    return re.compile(rf"(^|\s)@?(?:{tags.strip()})(?=\s|$)", re.IGNORECASE)
#
# ============================================================================
# SECTION 3: Setup Actions
# ============================================================================
#
def clean_artifacts(root: Union[str, Path], dirs: Iterable[str]) -> None:
    root = Path(root)
    removed = []
    for rel in dirs:
        target = root / rel
        if target.is_dir():
            shutil.rmtree(target, ignore_errors=True)
            removed.append(rel)
    if removed:
        logger.info(f"🧹 Cleaned {', '.join(removed)}")


def send_suite_header(settings: ReportingSettings, grep_label: str,
                      store: Optional[RunMetadataStore] = None,
                      client: Optional[DiscordSetupClient] = None) -> RunMetadata:
    """
    Post the header, start the run thread and persist where they live.
    The store is cleared first so workers never pick up a previous run.
    """
    store = store or RunMetadataStore(settings.run_meta_path)
    store.clear()

    title = suite_title(settings.suite_name, settings.test_env, grep_label)
    client = client or DiscordSetupClient(
        settings.discord_bot_token, settings.discord_channel_id,
        settings.discord_api_base, settings.request_timeout,
    )
    try:
        header_id, thread_id = client.create_header(title, f"{settings.suite_name} Run Logs")
    finally:
        client.close()

    meta = RunMetadata(
        thread_id=thread_id,
        channel_id=settings.discord_channel_id,
        header_message_id=header_id,
        suite_label=title,
    )
    store.write(meta)
    return meta
#
#
## End of suite_setup.py
