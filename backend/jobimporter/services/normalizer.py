"""Feed item normalization.

Converts one parsed feed item (see services.feed for the shapes) into a
JobDraft, or a NormalizationFailure when required fields are missing. Pure, no
I/O. The original item is kept untouched in raw_payload either way.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

from jobimporter.errors import MissingRequiredFields

# Keys a wrapped value may carry its text under, probed in order
TEXT_KEYS = ("_", "#text", "text")

# Candidate item keys per field, probed in order. A tuple is a path into
# nested elements, e.g. Atom <author><name>Acme</name></author>.
FIELD_KEYS: dict[str, tuple[str | tuple[str, ...], ...]] = {
    "title": ("title",),
    "company": (
        "company",
        "job_listing:company",
        "job:company",
        "dc:creator",
        ("author", "name"),
        "author",
    ),
    "location": ("location", "job_listing:location", "job:location"),
    "description": ("description", "content:encoded", "content", "summary"),
    "category": ("category", "job_listing:job_category", "job:category"),
    "job_type": ("job_type", "jobType", "job_listing:job_type", "job:type", "type"),
    "region": ("region", "job_listing:region", "job:region"),
}
URL_KEYS = ("link", "url")
DATE_KEYS = ("pubDate", "published", "updated", "dc:date", "date")

REQUIRED_FIELDS = ("title", "url")

# Column sizes of the bounded job_records fields
FIELD_MAX_LENGTHS = {
    "company": 255,
    "location": 255,
    "category": 255,
    "job_type": 100,
    "region": 255,
}


@dataclass
class JobDraft:
    """A normalized job; source and external_job_id are filled in by the caller."""

    title: str
    url: str
    company: str | None = None
    location: str | None = None
    description: str | None = None
    category: str | None = None
    job_type: str | None = None
    region: str | None = None
    posted_date: datetime | None = None
    raw_payload: dict = field(default_factory=dict)
    source: str | None = None
    external_job_id: str | None = None


@dataclass
class NormalizationFailure:
    reason: str
    raw_payload: dict = field(default_factory=dict)


def extract_text(value: Any) -> str:
    """Text of a bare string, or of a wrapper holding it under one of TEXT_KEYS.

    Lists (repeated elements) use their first entry. Anything else yields "".
    """
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, list):
        return extract_text(value[0]) if value else ""
    if isinstance(value, dict):
        for key in TEXT_KEYS:
            inner = value.get(key)
            if isinstance(inner, str):
                return inner.strip()
    return ""


def extract_link(value: Any) -> str:
    """Like extract_text, but also reads Atom-style <link href="..."> attributes."""
    if isinstance(value, list):
        # Prefer the alternate link among several <link> elements
        for candidate in value:
            attrs = candidate.get("$", {}) if isinstance(candidate, dict) else {}
            if attrs.get("rel", "alternate") == "alternate":
                link = extract_link(candidate)
                if link:
                    return link
        return extract_link(value[0]) if value else ""
    text = extract_text(value)
    if text:
        return text
    if isinstance(value, dict) and isinstance(value.get("$"), dict):
        href = value["$"].get("href")
        if isinstance(href, str):
            return href.strip()
    return ""


def lookup(raw: dict, key: str | tuple[str, ...]) -> Any:
    """Value under a key, or under a path of keys through nested elements.

    Repeated elements on the way down use their first entry.
    """
    if isinstance(key, str):
        return raw.get(key)
    value: Any = raw
    for part in key:
        if isinstance(value, list):
            value = value[0] if value else None
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def first_text(raw: dict, keys: tuple[str | tuple[str, ...], ...]) -> str:
    for key in keys:
        text = extract_text(lookup(raw, key))
        if text:
            return text
    return ""


def parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    value = value.strip()
    if not value:
        return None

    # RFC 822 / RSS <pubDate>
    try:
        dt = parsedate_to_datetime(value)
        if dt is not None:
            return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
    except (TypeError, ValueError):
        pass

    # ISO 8601 / Atom <published>, <updated>
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def normalize_item(raw: dict) -> JobDraft | NormalizationFailure:
    """Normalize one feed item. Missing optional fields become None."""
    values = {name: first_text(raw, keys) for name, keys in FIELD_KEYS.items()}
    for name, max_length in FIELD_MAX_LENGTHS.items():
        values[name] = values[name][:max_length].rstrip()

    url = ""
    for key in URL_KEYS:
        url = extract_link(raw.get(key))
        if url:
            break
    values["url"] = url

    missing = [name for name in REQUIRED_FIELDS if not values[name]]
    if missing:
        return NormalizationFailure(reason=str(MissingRequiredFields(missing)), raw_payload=raw)

    return JobDraft(
        title=values["title"],
        url=values["url"],
        company=values["company"] or None,
        location=values["location"] or None,
        description=values["description"] or None,
        category=values["category"] or None,
        job_type=values["job_type"] or None,
        region=values["region"] or None,
        posted_date=parse_datetime(first_text(raw, DATE_KEYS)),
        raw_payload=raw,
    )
