# github_service.py
import logging
from typing import List, Optional

import requests

from reminders import PullRequest

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
PAGE_SIZE = 100
REQUEST_TIMEOUT = 30  # seconds


def build_headers(token: Optional[str]) -> dict:
    headers = {
        "Accept": "application/vnd.github+json",
        "User-Agent": "pr-reviews-reminder",
    }
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def validate_repository(repository: str) -> str:
    """Checks that the repository is written as 'owner/repo'."""
    parts = (repository or '').strip().split('/')
    if len(parts) != 2 or not all(parts):
        raise ValueError(f"Repository must be in 'owner/repo' format, got: {repository!r}")
    return '/'.join(parts)


def fetch_open_pull_requests(repository: str, token: Optional[str] = None) -> List[PullRequest]:
    """Lists every open pull request of a repository, following pagination."""
    repository = validate_repository(repository)
    url = f"{GITHUB_API_URL}/repos/{repository}/pulls"
    params = {"state": "open", "per_page": PAGE_SIZE}
    headers = build_headers(token)
    pull_requests: List[PullRequest] = []

    try:
        while url:
            response = requests.get(url, headers=headers, params=params, timeout=REQUEST_TIMEOUT)
            response.raise_for_status()
            pull_requests.extend(PullRequest.from_api(item) for item in response.json())
            url = response.links.get("next", {}).get("url")
            # the next link already carries the query string
            params = None
    except requests.RequestException as e:
        logger.error(f"Error fetching pull requests for {repository}: {e}")
        return []

    logger.info(f"Fetched {len(pull_requests)} open pull requests from {repository}")
    return pull_requests
