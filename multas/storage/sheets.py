"""Google Sheets mirror for MULTAs.

SheetsClient is a thin transport over the Sheets v4 REST API; RemoteMirror
maps records onto the first worksheet (or a named one) using the same seven
columns as the local workbook. Neither class retries: transient failures
surface as RemoteMirrorError and the sync queue decides what to do.
"""

import logging
import re
import threading
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union
from urllib.parse import quote

import requests

from multas.protocols import RemoteMirrorError
from multas.types import Record
from multas.utils import DEFAULT_TIMEZONE, local_timestamp

from .codec import (
    HEADERS,
    LAST_COLUMN_LETTER,
    build_record,
    merge_row,
    record_to_row,
    row_id,
    row_to_record,
    validate_update_fields,
)

logger = logging.getLogger(__name__)

SHEETS_API_URL = "https://sheets.googleapis.com/v4/spreadsheets"

# Trailing row number of an A1 range such as "Posts!A5:G7"
_RANGE_ROW_RE = re.compile(r"(\d+)$")

# Prefix of ids invented for rows whose id cell is blank
ID_PREFIX = "sheets"


class SheetsClient:
    """Minimal Google Sheets v4 client.

    Args:
        spreadsheet_id: Target spreadsheet.
        access_token: OAuth2 bearer token with the spreadsheets scope.
        timeout: Per-request timeout in seconds.
        session: Optional ``requests.Session`` (tests pass a mock).
    """

    def __init__(
        self,
        spreadsheet_id: str,
        access_token: str,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        if not spreadsheet_id:
            raise ValueError("spreadsheet_id is required")
        self.spreadsheet_id = spreadsheet_id
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"Authorization": f"Bearer {access_token}"})

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = f"{SHEETS_API_URL}/{quote(self.spreadsheet_id, safe='')}{path}"
        try:
            resp = self._session.request(
                method, url, params=params, json=json, timeout=self.timeout
            )
        except requests.Timeout as e:
            raise RemoteMirrorError(f"Sheets request timed out after {self.timeout}s: {e}") from e
        except requests.RequestException as e:
            raise RemoteMirrorError(f"Sheets request failed: {e}") from e

        if resp.status_code >= 400:
            raise RemoteMirrorError(
                f"Sheets API returned HTTP {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            )
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise RemoteMirrorError(f"Invalid JSON from Sheets API: {e}") from e

    @staticmethod
    def _range_path(a1_range: str) -> str:
        return f"/values/{quote(a1_range, safe='')}"

    def get_spreadsheet(self) -> Dict[str, Any]:
        return self._request("GET", "", params={"fields": "sheets.properties"})

    def get_values(self, a1_range: str) -> List[List[Any]]:
        data = self._request("GET", self._range_path(a1_range))
        return data.get("values", [])

    def append_values(self, a1_range: str, values: Sequence[Sequence[Any]]) -> Dict[str, Any]:
        return self._request(
            "POST",
            f"{self._range_path(a1_range)}:append",
            params={"valueInputOption": "USER_ENTERED", "insertDataOption": "INSERT_ROWS"},
            json={"values": [list(row) for row in values]},
        )

    def update_values(self, a1_range: str, values: Sequence[Sequence[Any]]) -> Dict[str, Any]:
        return self._request(
            "PUT",
            self._range_path(a1_range),
            params={"valueInputOption": "USER_ENTERED"},
            json={"values": [list(row) for row in values]},
        )

    def batch_update(self, requests_: List[Dict[str, Any]]) -> Dict[str, Any]:
        return self._request("POST", ":batchUpdate", json={"requests": requests_})


class RemoteMirror:
    """Record operations against one worksheet of a remote spreadsheet.

    The sheet title and numeric sheet id are looked up on first use and
    cached. When ``sheet_name`` is not given the first worksheet is used.
    """

    def __init__(
        self,
        client: SheetsClient,
        sheet_name: Optional[str] = None,
        timezone: str = DEFAULT_TIMEZONE,
    ):
        self.client = client
        self.timezone = timezone
        self._sheet_name = sheet_name
        self._sheet: Optional[Tuple[str, int]] = None
        self._header_ready = False
        self._resolve_lock = threading.Lock()

    # === Sheet resolution ===

    def _resolve_sheet(self) -> Tuple[str, int]:
        with self._resolve_lock:
            if self._sheet is not None:
                return self._sheet

            info = self.client.get_spreadsheet()
            sheets = [s.get("properties", {}) for s in info.get("sheets", [])]
            if not sheets:
                raise RemoteMirrorError("Spreadsheet has no worksheets")

            if self._sheet_name:
                matches = [p for p in sheets if p.get("title") == self._sheet_name]
                if not matches:
                    raise RemoteMirrorError(f"Worksheet not found: {self._sheet_name}")
                props = matches[0]
            else:
                props = sheets[0]

            self._sheet = (props.get("title", "Sheet1"), int(props.get("sheetId", 0)))
            logger.debug(f"Resolved remote worksheet: {self._sheet[0]} (id={self._sheet[1]})")
            return self._sheet

    @property
    def sheet_title(self) -> str:
        return self._resolve_sheet()[0]

    @property
    def sheet_id(self) -> int:
        return self._resolve_sheet()[1]

    def _range(self, cells: str) -> str:
        title = self.sheet_title.replace("'", "''")
        return f"'{title}'!{cells}"

    def _all_rows(self) -> List[List[Any]]:
        return self.client.get_values(self._range(f"A:{LAST_COLUMN_LETTER}"))

    @staticmethod
    def _find_row_index(rows: List[List[Any]], record_id: str) -> Optional[int]:
        """0-based index of the row holding ``record_id``, skipping the header.

        Rows with a blank id cell answer to the ``sheets_<n>`` id that
        ``load_all`` reports for them.
        """
        for index in range(1, len(rows)):
            if row_id(rows[index], index - 1, ID_PREFIX) == record_id:
                return index
        return None

    def ensure_header(self) -> None:
        """Write the header row if the sheet is empty. Checked once per instance."""
        if self._header_ready:
            return
        header_range = self._range(f"A1:{LAST_COLUMN_LETTER}1")
        existing = self.client.get_values(header_range)
        if not existing or not any(existing[0]):
            self.client.update_values(header_range, [list(HEADERS)])
            logger.info(f"Header row written to remote sheet {self.sheet_title}")
        self._header_ready = True

    # === Reads ===

    def load_all(self) -> List[Record]:
        rows = self._all_rows()
        records = []
        for index, row in enumerate(rows[1:]):
            record = row_to_record(row, index, id_prefix=ID_PREFIX)
            if record is not None:
                records.append(record)
        logger.debug(f"Loaded {len(records)} record(s) from remote sheet")
        return records

    def load_by_user(self, user_name: str) -> List[Record]:
        return [r for r in self.load_all() if r.user_name == user_name]

    def get_stats(self) -> Dict[str, Any]:
        records = self.load_all()
        return {
            "total_posts": len(records),
            "total_users": len({r.user_name for r in records}),
            "storage": "Google Sheets",
        }

    # === Mutations ===

    def append_records(self, records: Sequence[Union[Record, Mapping[str, Any]]]) -> int:
        """Append records in a single request.

        Returns:
            Row number of the last appended row, or -1 when the API response
            does not say.
        """
        if not records:
            return -1
        now = local_timestamp(self.timezone)
        rows = [record_to_row(build_record(r, now)) for r in records]

        self.ensure_header()
        response = self.client.append_values(self._range(f"A:{LAST_COLUMN_LETTER}"), rows)
        updated_range = (response.get("updates") or {}).get("updatedRange", "")
        match = _RANGE_ROW_RE.search(updated_range)
        row_number = int(match.group(1)) if match else -1

        logger.info(f"Appended {len(rows)} row(s) to remote sheet")
        return row_number

    def add_record(self, record: Union[Record, Mapping[str, Any]]) -> int:
        return self.append_records([record])

    def update_post(self, record_id: str, fields: Mapping[str, Any]) -> bool:
        """Overwrite the record's full row with the merged values.

        Returns:
            False when no row carries ``record_id``.
        """
        changes = validate_update_fields(fields)
        rows = self._all_rows()
        index = self._find_row_index(rows, record_id)
        if index is None:
            logger.warning(f"Remote record not found for update: {record_id}")
            return False
        if not changes:
            return True

        row_number = index + 1
        merged = merge_row(rows[index], changes)
        self.client.update_values(
            self._range(f"A{row_number}:{LAST_COLUMN_LETTER}{row_number}"), [merged]
        )
        logger.info(f"Remote record updated: {record_id}")
        return True

    def delete_post(self, record_id: str) -> bool:
        """Structurally remove the record's row so later rows shift up.

        Returns:
            False when no row carries ``record_id``.
        """
        sheet_id = self.sheet_id
        ids = self.client.get_values(self._range("A:A"))
        index = self._find_row_index(ids, record_id)
        if index is None:
            logger.warning(f"Remote record not found for delete: {record_id}")
            return False

        self.client.batch_update(
            [
                {
                    "deleteDimension": {
                        "range": {
                            "sheetId": sheet_id,
                            "dimension": "ROWS",
                            "startIndex": index,
                            "endIndex": index + 1,
                        }
                    }
                }
            ]
        )
        logger.info(f"Remote record deleted: {record_id}")
        return True
