"""Search query composition."""

from __future__ import annotations

from collections.abc import Sequence
from urllib.parse import quote

from ..extract.dates import parse_query_date

SEARCH_HOME_URL = "https://x.com/search?q=&src=typed_query"
LATEST_SEARCH_HOME_URL = SEARCH_HOME_URL + "&f=live"


def build_search_query(
    keywords: str = "",
    usernames: Sequence[str] = (),
    *,
    from_date: str | None = None,
    to_date: str | None = None,
    include_replies: bool = False,
) -> str:
    """Compose the platform's advanced-search syntax.

    >>> build_search_query("python", ["alice", "@bob"], from_date="01-02-2024")
    '(python) (from:alice OR from:bob) -filter:replies since:2024-02-01'
    """
    handles = [name.strip().lstrip("@") for name in usernames if name and name.strip().lstrip("@")]
    user_clause = " OR ".join(f"from:{handle}" for handle in handles)
    terms = keywords.strip()

    if terms and user_clause:
        query = f"({terms}) ({user_clause})"
    elif user_clause:
        query = user_clause
    else:
        query = terms

    if not include_replies:
        query += " -filter:replies"
    if from_date:
        query += f" since:{parse_query_date(from_date).isoformat()}"
    if to_date:
        query += f" until:{parse_query_date(to_date).isoformat()}"
    return query


def search_results_url(query: str, *, latest: bool = True) -> str:
    url = f"https://x.com/search?q={quote(query)}&src=typed_query"
    return url + "&f=live" if latest else url
