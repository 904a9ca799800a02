"""Tests for the Google Sheets transport and the RemoteMirror."""

from unittest.mock import MagicMock

import pytest
import requests

from conftest import FakeSheetsClient
from multas.protocols import RemoteMirrorError
from multas.storage.codec import HEADERS
from multas.storage.sheets import SHEETS_API_URL, RemoteMirror, SheetsClient


def _record(record_id, user="山田", text="地域の訪問診療に同行した"):
    return {
        "id": record_id,
        "timestamp": "2024/4/5 9:03:07",
        "user_name": user,
        "text": text,
        "category": 2,
        "reason": "在宅医療",
    }


# =============================================================================
# SheetsClient
# =============================================================================


def _response(status=200, payload=None, text=""):
    resp = MagicMock()
    resp.status_code = status
    resp.content = b"{}" if payload is not None else b""
    resp.json.return_value = payload
    resp.text = text
    return resp


class TestSheetsClient:
    def test_sets_bearer_token(self):
        session = MagicMock()
        session.headers = {}
        SheetsClient("sheet-id", "token-123", session=session)
        assert session.headers["Authorization"] == "Bearer token-123"

    def test_requires_spreadsheet_id(self):
        with pytest.raises(ValueError):
            SheetsClient("", "token", session=MagicMock())

    def test_get_values_builds_url(self):
        session = MagicMock(headers={})
        session.request.return_value = _response(payload={"values": [["a", "b"]]})
        client = SheetsClient("sheet-id", "token", timeout=5, session=session)

        assert client.get_values("'Posts'!A:G") == [["a", "b"]]

        method, url = session.request.call_args.args
        assert method == "GET"
        assert url.startswith(f"{SHEETS_API_URL}/sheet-id/values/")
        assert session.request.call_args.kwargs["timeout"] == 5

    def test_get_values_without_values_key(self):
        session = MagicMock(headers={})
        session.request.return_value = _response(payload={"range": "Posts!A1:G1"})
        client = SheetsClient("sheet-id", "token", session=session)
        assert client.get_values("'Posts'!A:G") == []

    def test_append_uses_user_entered(self):
        session = MagicMock(headers={})
        session.request.return_value = _response(payload={"updates": {}})
        client = SheetsClient("sheet-id", "token", session=session)

        client.append_values("'Posts'!A:G", [["1", "2"]])

        kwargs = session.request.call_args.kwargs
        assert session.request.call_args.args[1].endswith(":append")
        assert kwargs["params"]["valueInputOption"] == "USER_ENTERED"
        assert kwargs["json"] == {"values": [["1", "2"]]}

    def test_batch_update_path(self):
        session = MagicMock(headers={})
        session.request.return_value = _response(payload={})
        client = SheetsClient("sheet-id", "token", session=session)

        client.batch_update([{"deleteDimension": {}}])

        assert session.request.call_args.args[1] == f"{SHEETS_API_URL}/sheet-id:batchUpdate"

    def test_http_error_raises_with_status(self):
        session = MagicMock(headers={})
        session.request.return_value = _response(status=403, text="forbidden")
        client = SheetsClient("sheet-id", "token", session=session)

        with pytest.raises(RemoteMirrorError) as exc_info:
            client.get_spreadsheet()
        assert exc_info.value.status_code == 403

    def test_network_error_raises(self):
        session = MagicMock(headers={})
        session.request.side_effect = requests.ConnectionError("unreachable")
        client = SheetsClient("sheet-id", "token", session=session)

        with pytest.raises(RemoteMirrorError, match="unreachable"):
            client.get_values("'Posts'!A:G")

    def test_timeout_raises(self):
        session = MagicMock(headers={})
        session.request.side_effect = requests.Timeout("slow")
        client = SheetsClient("sheet-id", "token", timeout=1, session=session)

        with pytest.raises(RemoteMirrorError, match="timed out"):
            client.get_values("'Posts'!A:G")


# =============================================================================
# RemoteMirror
# =============================================================================


class TestSheetResolution:
    def test_resolves_first_sheet_once(self, mirror, sheets_client):
        mirror.load_all()
        mirror.load_all()
        assert len(sheets_client.calls_named("get_spreadsheet")) == 1
        assert mirror.sheet_title == "Posts"

    def test_named_sheet_must_exist(self, sheets_client):
        mirror = RemoteMirror(sheets_client, sheet_name="Other")
        with pytest.raises(RemoteMirrorError, match="not found"):
            mirror.load_all()

    def test_no_worksheets(self):
        client = MagicMock()
        client.get_spreadsheet.return_value = {"sheets": []}
        with pytest.raises(RemoteMirrorError):
            RemoteMirror(client).load_all()

    def test_sheet_title_is_quoted(self):
        client = FakeSheetsClient(title="Bob's posts")
        RemoteMirror(client).load_all()
        assert client.calls_named("get_values")[0][1] == "'Bob''s posts'!A:G"


class TestAppend:
    def test_header_written_before_first_append(self, mirror, sheets_client):
        mirror.add_record(_record("post_1"))
        assert sheets_client.rows[0] == list(HEADERS)
        assert sheets_client.rows[1][0] == "post_1"

    def test_header_checked_once(self, mirror, sheets_client):
        mirror.add_record(_record("post_1"))
        mirror.add_record(_record("post_2"))
        header_reads = [c for c in sheets_client.calls_named("get_values") if "A1:G1" in c[1]]
        assert len(header_reads) == 1
        assert len(sheets_client.calls_named("update_values")) == 1

    def test_existing_header_is_not_rewritten(self, mirror, sheets_client):
        sheets_client.rows = [["ID", "ts"]]
        mirror.add_record(_record("post_1"))
        assert sheets_client.calls_named("update_values") == []

    def test_add_returns_row_number(self, mirror):
        assert mirror.add_record(_record("post_1")) == 2
        assert mirror.add_record(_record("post_2")) == 3

    def test_append_records_single_call(self, mirror, sheets_client):
        row = mirror.append_records([_record("a"), _record("b"), _record("c")])
        appends = sheets_client.calls_named("append_values")
        assert len(appends) == 1
        assert len(appends[0][2]) == 3
        assert row == 4

    def test_append_nothing(self, mirror, sheets_client):
        assert mirror.append_records([]) == -1
        assert sheets_client.calls == []

    def test_append_without_updated_range(self):
        client = MagicMock()
        client.get_spreadsheet.return_value = {
            "sheets": [{"properties": {"title": "Posts", "sheetId": 0}}]
        }
        client.get_values.return_value = [list(HEADERS)]
        client.append_values.return_value = {}
        assert RemoteMirror(client).add_record(_record("a")) == -1


class TestReads:
    def test_load_all_skips_header_and_blank_rows(self, mirror, sheets_client):
        sheets_client.rows = [
            list(HEADERS),
            ["post_1", "2024/4/5 9:03:07", "山田", "本文", "3", "理由"],
            ["post_2", "2024/4/5 9:03:07", "山田", "", "3", ""],
            ["", "2024/4/6 9:00:00", "佐藤", "IDなし", "x"],
        ]
        records = mirror.load_all()
        assert [r.id for r in records] == ["post_1", "sheets_2"]
        assert records[0].category == 3
        assert records[0].date == "2024/4/5 9:03:07"
        assert records[1].category == 0

    def test_load_by_user(self, mirror):
        mirror.append_records([_record("a", user="山田"), _record("b", user="佐藤")])
        assert [r.id for r in mirror.load_by_user("佐藤")] == ["b"]

    def test_get_stats(self, mirror):
        mirror.append_records([_record("a", user="山田"), _record("b", user="佐藤")])
        stats = mirror.get_stats()
        assert stats == {"total_posts": 2, "total_users": 2, "storage": "Google Sheets"}


class TestUpdate:
    def test_overwrites_full_row(self, mirror, sheets_client):
        mirror.append_records([_record("a"), _record("b")])
        assert mirror.update_post("b", {"category": 7, "reason": "連携"}) is True

        [call] = sheets_client.calls_named("update_values")[1:]
        assert call[1] == "'Posts'!A3:G3"
        assert len(call[2][0]) == 7
        assert sheets_client.rows[2][4] == 7
        assert sheets_client.rows[2][3] == "地域の訪問診療に同行した"

    def test_not_found(self, mirror):
        mirror.append_records([_record("a")])
        assert mirror.update_post("zzz", {"reason": "x"}) is False

    def test_rejects_immutable_fields(self, mirror):
        with pytest.raises(ValueError):
            mirror.update_post("a", {"id": "b"})


class TestDelete:
    def test_structural_row_delete(self, mirror, sheets_client):
        mirror.append_records([_record("a"), _record("b"), _record("c")])
        assert mirror.delete_post("b") is True

        [call] = sheets_client.calls_named("batch_update")
        dim = call[1][0]["deleteDimension"]["range"]
        assert dim == {"sheetId": 0, "dimension": "ROWS", "startIndex": 2, "endIndex": 3}
        assert [r.id for r in mirror.load_all()] == ["a", "c"]

    def test_not_found(self, mirror, sheets_client):
        mirror.append_records([_record("a")])
        assert mirror.delete_post("zzz") is False
        assert sheets_client.calls_named("batch_update") == []

    def test_remote_errors_propagate(self, mirror, sheets_client):
        mirror.append_records([_record("a")])
        sheets_client.fail_next()
        with pytest.raises(RemoteMirrorError):
            mirror.delete_post("a")


class TestBlankIdRows:
    @pytest.fixture
    def rows(self, sheets_client):
        sheets_client.rows = [
            list(HEADERS),
            ["post_1", "2024/4/5 9:03:07", "山田", "本文", "3", "理由", ""],
            ["", "2024/4/6 9:00:00", "佐藤", "IDなし", "5", "", ""],
        ]
        return sheets_client.rows

    def test_update_by_listed_id(self, mirror, sheets_client, rows):
        assert [r.id for r in mirror.load_all()] == ["post_1", "sheets_1"]
        assert mirror.update_post("sheets_1", {"reason": "補完"}) is True
        [call] = sheets_client.calls_named("update_values")
        assert call[1] == "'Posts'!A3:G3"
        assert rows[2][5] == "補完"

    def test_delete_by_listed_id(self, mirror, sheets_client, rows):
        assert mirror.delete_post("sheets_1") is True
        [call] = sheets_client.calls_named("batch_update")
        assert call[1][0]["deleteDimension"]["range"]["startIndex"] == 2
        assert [r.id for r in mirror.load_all()] == ["post_1"]


def test_mirror_does_not_retry(mirror, sheets_client):
    sheets_client.rows = [list(HEADERS)]
    sheets_client.fail_next(times=1)
    with pytest.raises(RemoteMirrorError):
        mirror.add_record(_record("a"))
    assert len(sheets_client.calls_named("append_values")) == 1
    assert sheets_client.data_rows == []
