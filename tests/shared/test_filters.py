from datetime import date
from enum import Enum

from portal.shared.filters import clean_filters, filter_signature, parse_signature


class Status(str, Enum):
    ACTIVE = "ACTIVE"


class TestFilterSignature:

    def test_key_order_does_not_matter(self):
        assert filter_signature({"page": 1, "search": "ada"}) == filter_signature({"search": "ada", "page": 1})

    def test_empty_values_are_dropped(self):
        assert filter_signature({"page": 1, "search": "", "status": None}) == filter_signature({"page": 1})
        assert filter_signature(None) == ""
        assert filter_signature({}) == ""

    def test_values_are_normalized(self):
        cleaned = clean_filters({"status": Status.ACTIVE, "active": True, "date": date(2026, 3, 2), "page": 2})
        assert cleaned == {"active": "true", "date": "2026-03-02", "page": "2", "status": "ACTIVE"}

    def test_signature_is_a_query_string(self):
        signature = filter_signature({"search": "a b&c", "page": 3})
        assert signature == "page=3&search=a+b%26c"
        assert parse_signature(signature) == {"page": "3", "search": "a b&c"}

    def test_different_filters_give_different_signatures(self):
        assert filter_signature({"page": 1}) != filter_signature({"page": 2})
