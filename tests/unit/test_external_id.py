from __future__ import annotations

import pytest

from jobimporter.errors import ExternalIdTooLong, MissingExternalId, ValidationError
from jobimporter.services.external_id import EXTERNAL_ID_FIELDS, resolve_external_id


def test_precedence_is_guid_id_link_url():
    assert EXTERNAL_ID_FIELDS == ("guid", "id", "link", "url")


@pytest.mark.parametrize(
    "raw, expected",
    [
        ({"guid": "g", "id": "i", "link": "l", "url": "u"}, "g"),
        ({"id": "i", "link": "l", "url": "u"}, "i"),
        ({"link": "l", "url": "u"}, "l"),
        ({"url": "u"}, "u"),
        ({"guid": "", "id": "i", "link": "l"}, "i"),
        ({"guid": "   ", "id": "", "link": "", "url": "u"}, "u"),
        # field order in the item does not matter, only the probe order
        ({"url": "u", "link": "l", "id": "i", "guid": "g"}, "g"),
    ],
)
def test_first_non_empty_candidate_wins(raw, expected):
    assert resolve_external_id(raw) == expected


def test_link_is_used_when_guid_and_id_are_empty():
    raw = {"guid": "", "id": "", "link": "http://x/42", "title": "Eng", "url": ""}
    assert resolve_external_id(raw) == "http://x/42"


def test_wrapped_guid_is_unwrapped():
    raw = {"guid": {"_": "job-7", "$": {"isPermaLink": "false"}}, "link": "https://x/7"}
    assert resolve_external_id(raw) == "job-7"


@pytest.mark.parametrize(
    "raw",
    [
        {},
        {"title": "Eng"},
        {"guid": "", "id": "", "link": "", "url": ""},
        {"guid": {"$": {"isPermaLink": "false"}}, "link": {"$": {"rel": "alternate"}}},
    ],
)
def test_missing_external_id_is_a_validation_error(raw):
    with pytest.raises(MissingExternalId) as exc_info:
        resolve_external_id(raw)
    assert isinstance(exc_info.value, ValidationError)


def test_atom_link_href_is_used_without_id():
    raw = {
        "title": "Eng",
        "link": [
            {"_": "", "$": {"rel": "self", "href": "https://x/api/5"}},
            {"_": "", "$": {"rel": "alternate", "href": "https://x/5"}},
        ],
    }
    assert resolve_external_id(raw) == "https://x/5"


def test_overlong_external_id_is_a_validation_error():
    with pytest.raises(ExternalIdTooLong) as exc_info:
        resolve_external_id({"guid": "g" * 1001})
    assert isinstance(exc_info.value, ValidationError)
    assert str(exc_info.value) == "External id from guid is 1001 characters, limit is 1000"

    assert resolve_external_id({"guid": "g" * 1000}) == "g" * 1000
