"""External id resolution: ordered fallback over candidate fields."""

from jobimporter.errors import ExternalIdTooLong, MissingExternalId
from jobimporter.services.normalizer import extract_link, extract_text

# Precedence is part of the dedup contract: changing it re-keys existing records.
EXTERNAL_ID_FIELDS = ("guid", "id", "link", "url")

# Size of job_records.external_job_id
MAX_EXTERNAL_ID_LENGTH = 1000

_LINK_FIELDS = ("link", "url")


def resolve_external_id(raw: dict) -> str:
    """Return the first non-empty of guid, id, link, url.

    link and url also accept Atom-style href attributes. Raises
    MissingExternalId, or ExternalIdTooLong when the id cannot be stored.
    """
    for field in EXTERNAL_ID_FIELDS:
        extract = extract_link if field in _LINK_FIELDS else extract_text
        value = extract(raw.get(field))
        if value:
            if len(value) > MAX_EXTERNAL_ID_LENGTH:
                raise ExternalIdTooLong(field, len(value), MAX_EXTERNAL_ID_LENGTH)
            return value
    raise MissingExternalId()
