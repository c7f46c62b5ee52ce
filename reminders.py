# reminders.py
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

IdentifierMap = Dict[str, Optional[str]]


# --- Data Model ---
@dataclass(frozen=True)
class ReviewerRef:
    username: str


@dataclass(frozen=True)
class PullRequest:
    url: str
    title: str = ""
    reviewers: Optional[Tuple[ReviewerRef, ...]] = ()

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "PullRequest":
        """Builds a PullRequest from a GitHub REST API pull request object."""
        requested = data.get('requested_reviewers')
        reviewers = None
        if requested is not None:
            reviewers = tuple(
                ReviewerRef(username=r.get('login', ''))
                for r in requested
                if r.get('login')
            )
        return cls(
            url=data.get('html_url') or '',
            title=data.get('title') or '',
            reviewers=reviewers,
        )


@dataclass(frozen=True)
class NotificationRecord:
    url: str
    title: str
    username: str


class Provider(Enum):
    SLACK = 'slack'
    MSTEAMS = 'msteams'
    DEFAULT = 'default'

    @classmethod
    def parse(cls, value: Union[str, "Provider", None]) -> "Provider":
        if isinstance(value, cls):
            return value
        try:
            return cls((value or '').strip().lower())
        except ValueError:
            return cls.DEFAULT


@dataclass(frozen=True)
class Dialect:
    """How a chat provider writes mentions, links and line breaks."""
    resolved_mention: str
    fallback_mention: str
    render_url: Callable[[str], str]
    separator: str


SLACK_DIALECT = Dialect(
    resolved_mention='<@{}>',
    fallback_mention='@{}',
    render_url=lambda url: url,
    separator='\n',
)

# Teams markdown needs two trailing spaces to break a line
MSTEAMS_DIALECT = Dialect(
    resolved_mention='<at>{}</at>',
    fallback_mention='@{}',
    render_url=lambda url: f"[{url}]({url})",
    separator='  \n',
)

DIALECTS = {
    Provider.SLACK: SLACK_DIALECT,
    Provider.MSTEAMS: MSTEAMS_DIALECT,
    Provider.DEFAULT: SLACK_DIALECT,
}

MESSAGE_TEMPLATE = 'Hey {mention}, the PR "{title}" is waiting for your review: {url}'


def _reviewers_of(pull_request: PullRequest) -> Sequence[ReviewerRef]:
    return getattr(pull_request, 'reviewers', None) or ()


# --- Pipeline ---
def filter_with_pending_reviewers(pull_requests: Iterable[PullRequest]) -> List[PullRequest]:
    """Keeps the pull requests that still have at least one requested reviewer."""
    return [pr for pr in pull_requests or () if len(_reviewers_of(pr)) >= 1]


def expand_to_records(pull_requests: Iterable[PullRequest]) -> List[NotificationRecord]:
    """Flattens pull requests into one record per (pull request, reviewer) pair."""
    records = []
    for pr in pull_requests or ():
        for reviewer in _reviewers_of(pr):
            records.append(NotificationRecord(
                url=pr.url,
                title=pr.title,
                username=reviewer.username,
            ))
    return records


def parse_identifier_map(raw: Optional[str]) -> IdentifierMap:
    """Parses 'user:ID,user:ID' into a dict. Malformed entries are skipped."""
    mapping: IdentifierMap = {}
    if not raw:
        return mapping

    for entry in raw.split(','):
        parts = [part.strip() for part in entry.strip().split(':')]
        if len(parts) != 2 or not all(parts):
            continue
        username, identifier = parts
        mapping[username] = identifier
    return mapping


def _mention(username: str, identifier_map: IdentifierMap, dialect: Dialect) -> str:
    identifier = (identifier_map or {}).get(username)
    if identifier:
        return dialect.resolved_mention.format(identifier)
    return dialect.fallback_mention.format(username)


def render_message(records: Iterable[NotificationRecord],
                   identifier_map: IdentifierMap,
                   provider: Union[Provider, str, None]) -> str:
    """Renders one reminder line per record in the provider's chat dialect."""
    dialect = DIALECTS[Provider.parse(provider)]
    lines = [
        MESSAGE_TEMPLATE.format(
            mention=_mention(record.username, identifier_map, dialect),
            title=record.title,
            url=dialect.render_url(record.url),
        )
        for record in records or ()
    ]
    logger.debug(f"Rendered {len(lines)} reminder lines")
    return dialect.separator.join(lines)


def teams_mentions(records: Iterable[NotificationRecord],
                   identifier_map: IdentifierMap) -> List[Dict[str, Any]]:
    """Builds the Adaptive Card mention entities for every resolved reviewer."""
    entities = []
    seen = set()
    for record in records or ():
        identifier = (identifier_map or {}).get(record.username)
        if not identifier or record.username in seen:
            continue
        seen.add(record.username)
        entities.append({
            "type": "mention",
            "text": MSTEAMS_DIALECT.resolved_mention.format(identifier),
            "mentioned": {"id": identifier, "name": record.username},
        })
    return entities
