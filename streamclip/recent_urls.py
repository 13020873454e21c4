#!/usr/bin/env python3
"""
Most-recently-used list of capture source URLs, stored as JSON.
"""

import json
import os
from typing import List

from streamclip.logging_utils import setup_logger

logger = setup_logger(__name__)


class RecentUrlStore:
    """Bounded, de-duplicated, most-recent-first list of source URLs."""

    def __init__(self, path: str, max_entries: int = 10):
        self.path = path
        self.max_entries = max_entries

    def load(self) -> List[str]:
        if not os.path.exists(self.path):
            return []
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable recent URL list {self.path}: {e}")
            return []
        if not isinstance(data, list):
            logger.warning(f"Ignoring malformed recent URL list {self.path}")
            return []
        return [url for url in data if isinstance(url, str)][:self.max_entries]

    def add(self, url: str) -> List[str]:
        """Put ``url`` first, dropping duplicates and the oldest overflow."""
        url = url.strip()
        if not url:
            return self.load()

        urls = [u for u in self.load() if u != url]
        urls.insert(0, url)
        urls = urls[:self.max_entries]

        try:
            os.makedirs(os.path.dirname(os.path.abspath(self.path)), exist_ok=True)
            tmp_path = self.path + '.tmp'
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(urls, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.warning(f"Could not save recent URL list {self.path}: {e}")
        return urls
