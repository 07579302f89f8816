"""
HTML pages for the search server.
"""

from html import escape
from string import Template
from typing import List

from ..search.query import SearchResult

_LAYOUT = Template("""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>$title</title>
</head>
<body>
<form action="/search" method="get">
<input type="search" name="q" value="$query" autofocus>
<button type="submit">Search</button>
</form>
$content
</body>
</html>
""")

_RESULT = Template("""<li>
<a href="$url">$title</a>
<div><span>$host</span> <time datetime="$crawled_at">$crawled_date</time></div>
</li>""")


def render_index() -> str:
    """Landing page."""
    return _LAYOUT.substitute(title="Search", query="", content="")


def render_results(query: str, results: List[SearchResult]) -> str:
    """Result page for ``query``."""
    items = []
    for result in results:
        crawled_at = result.crawled_at.isoformat() if result.crawled_at else ""
        items.append(_RESULT.substitute(
            url=escape(result.url),
            title=escape(result.title or result.url),
            host=escape(result.host),
            crawled_at=crawled_at,
            crawled_date=crawled_at[:10],
        ))

    if items:
        content = f"<p>{len(items)} results</p>\n<ol>\n" + "\n".join(items) + "\n</ol>"
    else:
        content = "<p>No results</p>"

    return _LAYOUT.substitute(
        title=f"{escape(query)} - Search",
        query=escape(query),
        content=content,
    )
