"""
Client placement metadata for EchoProbe reports.

Fetches a `key=value` trace document (Cloudflare's /cdn-cgi/trace format)
describing where the probing client reached the network.
"""

import logging
from typing import Dict, Optional

import requests


logger = logging.getLogger(__name__)


def parse_trace(text: str) -> Dict[str, str]:
    """Parse `key=value` lines; values may themselves contain '='."""
    result = {}
    for line in text.splitlines():
        key, sep, value = line.partition("=")
        if key and sep:
            result[key.strip()] = value.strip()
    return result


def fetch_trace(url: str, timeout: float = 5.0) -> Optional[Dict[str, str]]:
    """Fetch and parse the trace document; returns None if unavailable."""
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        logger.warning(f"Could not fetch client trace from {url}: {e}")
        return None
    return parse_trace(response.text)
