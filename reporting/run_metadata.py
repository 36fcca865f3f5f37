# ============================================================================
#  File:    run_metadata.py
#  Purpose: Persisted run destination shared by all pytest processes
# ============================================================================

# Section 1: Imports and Globals
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import aiofiles
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

DEFAULT_RUN_META_PATH = Path(".discord-run.json")

# Section 2: Data Structures
class RunMetadata(BaseModel):
    """
    Where the active run reports to. Written once by the controller during
    session start, read (never mutated) by every worker.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    thread_id: str = Field(alias="threadId")
    channel_id: str = Field(alias="channelId")
    header_message_id: str = Field(alias="headerMessageId")
    suite_label: str = Field(alias="suiteLabel")

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)

# Section 3: Run Metadata Store
class RunMetadataStore:
    """
    JSON file at a well-known path. Writes are atomic (tmp + fsync + replace)
    so a worker polling the file never reads a half-written record; reads
    that find no file, bad JSON or missing fields return None.
    """

    def __init__(self, path: Union[str, Path] = DEFAULT_RUN_META_PATH):
        self.path = Path(path)

    def write(self, meta: RunMetadata) -> Path:
        """Overwrite the record for a fresh run."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        data = json.dumps(meta.to_json(), indent=2)
        with open(tmp, "w", encoding="utf-8") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, self.path)
        logger.info(f"Wrote run metadata: {self.path}")
        return self.path

    async def read(self) -> Optional[RunMetadata]:
        """Read the record without blocking the event loop."""
        try:
            async with aiofiles.open(self.path, 'r', encoding='utf-8') as file:
                content = await file.read()
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"Run metadata unreadable at {self.path}: {e}")
            return None
        return self._parse(content)

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass

    def _parse(self, content: str) -> Optional[RunMetadata]:
        try:
            return RunMetadata.model_validate(json.loads(content))
        except (ValueError, ValidationError) as e:
            logger.debug(f"Ignoring malformed run metadata at {self.path}: {e}")
            return None
