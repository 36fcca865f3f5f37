# ============================================================================
# File: log_setup.py
# Purpose: Loguru sinks for test runs (console + rotating file)
# ============================================================================
# SECTION 1: Imports
# ============================================================================
import sys
from pathlib import Path
from typing import Optional, Union

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{extra[worker]}</cyan> | <white>{message}</white>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[worker]} | {name}:{function}:{line} - {message}"

# ============================================================================
# SECTION 2: Functions
# ============================================================================
def setup_logging(log_dir: Union[str, Path, None] = "logs", level: str = "INFO",
                  worker: Optional[str] = None) -> None:
    """Set up Loguru for one pytest process (controller or xdist worker)."""
    logger.remove()  # Remove default handler
    logger.configure(extra={"worker": worker or "main"})

    logger.add(sys.stderr, level=level.upper(), format=CONSOLE_FORMAT, colorize=True)

    if log_dir:
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)
        # Sink for general debug logs; workers share the file
        logger.add(
            log_path / "test_run.log",
            level="DEBUG",
            format=FILE_FORMAT,
            rotation="10 MB",
            retention=5,
            enqueue=True,
            catch=True,
        )

# ============================================================================
# SECTION 3: Main Logic
# ============================================================================
# This script is intended to be imported as a module, so no main logic here.
