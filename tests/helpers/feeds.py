from __future__ import annotations

from pathlib import Path

FIXTURES = Path(__file__).resolve().parents[1] / "fixtures"


def read_fixture(path: str) -> bytes:
    return (FIXTURES / path).read_bytes()


def rss_feed(items: list[dict]) -> bytes:
    """Build an RSS 2.0 document from {tag: text} dicts."""
    body = "".join(
        "<item>" + "".join(f"<{tag}>{text}</{tag}>" for tag, text in item.items()) + "</item>"
        for item in items
    )
    return f'<?xml version="1.0"?><rss version="2.0"><channel><title>t</title>{body}</channel></rss>'.encode()


def job_items(count: int, prefix: str = "job") -> list[dict]:
    return [
        {"title": f"Role {i}", "link": f"https://jobs.example.com/{prefix}/{i}", "guid": f"{prefix}-{i}"}
        for i in range(count)
    ]
