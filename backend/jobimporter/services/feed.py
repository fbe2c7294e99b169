"""Feed retrieval and parsing.

fetch_raw() downloads one feed; parse_feed() turns RSS 2.0, RSS 1.0 (RDF) or
Atom XML into loosely-typed item dicts. Item values keep the shapes found in
the document:

    <title>Eng</title>                      -> "Eng"
    <guid isPermaLink="false">42</guid>     -> {"_": "42", "$": {"isPermaLink": "false"}}
    <link href="https://x/1" rel="alternate"/> -> {"_": "", "$": {"href": ..., "rel": ...}}
    <author><name>Acme</name></author>      -> {"name": "Acme"}

Repeated child elements become lists; namespaced tags are keyed "prefix:local"
(e.g. "content:encoded", "dc:creator").
"""

import logging

import httpx
from lxml import etree

from jobimporter.config import get_settings
from jobimporter.errors import FetchError, ParseError

logger = logging.getLogger(__name__)

_XML_PARSER = etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=False)


def fetch_raw(url: str, timeout_ms: int | None = None, client: httpx.Client | None = None) -> bytes:
    """Download a feed. Raises FetchError on timeouts, transport errors and HTTP >= 400."""
    settings = get_settings()
    timeout_s = (timeout_ms if timeout_ms is not None else settings.fetch_timeout_ms) / 1000
    headers = {
        "User-Agent": settings.user_agent,
        "Accept": "application/rss+xml, application/atom+xml, application/xml;q=0.9, */*;q=0.8",
    }

    logger.info(f"Fetching feed: {url}")
    try:
        if client is not None:
            resp = client.get(url, timeout=timeout_s, headers=headers, follow_redirects=True)
        else:
            resp = httpx.get(url, timeout=timeout_s, headers=headers, follow_redirects=True)
    except httpx.TimeoutException as e:
        raise FetchError(url, f"Timed out after {timeout_s:g}s fetching {url}") from e
    except httpx.HTTPError as e:
        raise FetchError(url, f"Network error fetching {url}: {e}") from e
    except httpx.InvalidURL as e:
        raise FetchError(url, f"Invalid feed URL {url}: {e}") from e

    if resp.status_code >= 400:
        raise FetchError(url, f"HTTP {resp.status_code} for {url}", status_code=resp.status_code)
    return resp.content


def parse_feed(raw: bytes | str) -> list[dict]:
    """Parse feed XML into an ordered list of item dicts. Raises ParseError."""
    if isinstance(raw, str):
        raw = raw.encode("utf-8")
    if not raw.strip():
        raise ParseError("Empty feed document")
    try:
        root = etree.fromstring(raw, parser=_XML_PARSER)
    except (etree.XMLSyntaxError, ValueError) as e:
        raise ParseError(f"Malformed feed XML: {e}") from e
    if root is None:
        raise ParseError("Empty feed document")

    root_name = etree.QName(root).localname.lower()
    if root_name == "rss":
        channel = next((c for c in _children(root) if etree.QName(c).localname == "channel"), None)
        entries = _children_named(channel, "item") if channel is not None else []
    elif root_name == "rdf":
        entries = _children_named(root, "item")
    elif root_name == "feed":
        entries = _children_named(root, "entry")
    else:
        raise ParseError(f"Unrecognized feed root element <{etree.QName(root).localname}>")

    items = []
    for entry in entries:
        value = _element_value(entry)
        items.append(value if isinstance(value, dict) else {"_": value})
    return items


def _children(elem) -> list:
    # Skip comments and processing instructions
    return [c for c in elem if isinstance(c.tag, str)]


def _children_named(elem, localname: str) -> list:
    return [c for c in _children(elem) if etree.QName(c).localname == localname]


def _key(elem) -> str:
    localname = etree.QName(elem).localname
    return f"{elem.prefix}:{localname}" if elem.prefix else localname


def _attributes(elem) -> dict[str, str]:
    return {etree.QName(name).localname: value for name, value in elem.attrib.items()}


def _element_value(elem):
    text = (elem.text or "").strip()
    attrs = _attributes(elem)
    children = _children(elem)

    if not children:
        if attrs:
            return {"_": text, "$": attrs}
        return text

    value: dict = {}
    if attrs:
        value["$"] = attrs
    if text:
        value["_"] = text
    for child in children:
        key = _key(child)
        child_value = _element_value(child)
        if key not in value:
            value[key] = child_value
        elif isinstance(value[key], list):
            value[key].append(child_value)
        else:
            value[key] = [value[key], child_value]
    return value
