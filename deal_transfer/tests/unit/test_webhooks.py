"""Unit tests for query-string and webhook payload helpers."""

from deal_transfer.core.webhooks import (
    build_nested_query,
    extract_deal_ids,
    parse_nested_query,
)


class TestParseNestedQuery:
    """Test suite for parse_nested_query."""

    def test_flat(self):
        assert parse_nested_query("deal_id=5&target_category_id=7") == {
            "deal_id": "5",
            "target_category_id": "7",
        }

    def test_nested(self):
        result = parse_nested_query("event=ONCRMDEALUPDATE&data[FIELDS][ID]=123")

        assert result == {"event": "ONCRMDEALUPDATE", "data": {"FIELDS": {"ID": "123"}}}

    def test_array_append(self):
        result = parse_nested_query("deal_id[]=1&deal_id[]=2")

        assert result == {"deal_id": {"0": "1", "1": "2"}}

    def test_indexed(self):
        result = parse_nested_query("document_id[0]=crm&document_id[2]=DEAL_15")

        assert result == {"document_id": {"0": "crm", "2": "DEAL_15"}}

    def test_empty(self):
        assert parse_nested_query("") == {}


class TestBuildNestedQuery:
    """Test suite for build_nested_query."""

    def test_filter_and_select(self):
        pairs = build_nested_query(
            {"filter": {"UF_CRM_TASK": "D_1"}, "select": ["ID", "TITLE"], "start": 0}
        )

        assert pairs == [
            ("filter[UF_CRM_TASK]", "D_1"),
            ("select[0]", "ID"),
            ("select[1]", "TITLE"),
            ("start", "0"),
        ]

    def test_scalars(self):
        pairs = build_nested_query({"a": None, "b": True, "c": False})

        assert pairs == [("a", ""), ("b", "Y"), ("c", "N")]

    def test_deeply_nested(self):
        pairs = build_nested_query({"fields": {"UF_CRM_TASK": ["D_5"]}})

        assert pairs == [("fields[UF_CRM_TASK][0]", "D_5")]


class TestExtractDealIds:
    """Test suite for extract_deal_ids."""

    def test_scalar(self):
        assert extract_deal_ids({"deal_id": 5}) == 5

    def test_list(self):
        assert extract_deal_ids({"deal_id": [1, 2]}) == [1, 2]

    def test_form_array(self):
        assert extract_deal_ids({"deal_id": {"0": "1", "1": "2"}}) == ["1", "2"]

    def test_business_process_document_id(self):
        payload = {"document_id": {"0": "crm", "1": "CCrmDocumentDeal", "2": "DEAL_15"}}

        assert extract_deal_ids(payload) == "15"

    def test_event_handler(self):
        payload = {"event": "ONCRMDEALADD", "data": {"FIELDS": {"ID": "42"}}}

        assert extract_deal_ids(payload) == "42"

    def test_deal_id_wins(self):
        payload = {"deal_id": "1", "data": {"FIELDS": {"ID": "42"}}}

        assert extract_deal_ids(payload) == "1"

    def test_nothing(self):
        assert extract_deal_ids({"deal_id": ""}) is None
        assert extract_deal_ids({"document_id": ["crm", "LEAD_5"]}) is None
        assert extract_deal_ids({}) is None
