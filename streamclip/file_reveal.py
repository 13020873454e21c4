#!/usr/bin/env python3
"""
Show an exported file in the platform file manager.
"""

import os
import subprocess
import sys
from typing import List, Optional

from streamclip.logging_utils import setup_logger

logger = setup_logger(__name__)


def reveal_command(path: str, platform: Optional[str] = None) -> List[str]:
    platform = platform or sys.platform
    if platform == 'win32':
        return ['explorer', f'/select,{path}']
    if platform == 'darwin':
        return ['open', '-R', path]
    # xdg-open cannot select a file, open its folder instead.
    return ['xdg-open', os.path.dirname(path) or '.']


def reveal_output_file(path: str) -> bool:
    """
    Open a file manager at ``path``. Fire-and-forget.

    Returns:
        True if a file manager was launched, False if the path does not exist
        or the launch failed
    """
    if not path or not os.path.exists(path):
        logger.debug(f"Not revealing missing path: {path}")
        return False

    cmd = reveal_command(os.path.abspath(path))
    try:
        subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
    except OSError as e:
        logger.warning(f"Could not open file manager for {path}: {e}")
        return False
    return True
