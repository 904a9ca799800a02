"""
Pytest fixtures and test doubles for MULTAs tests.
"""

import re
from typing import Any, Callable, Dict, List, Optional, Union

import pytest

from multas.config import Settings, get_settings
from multas.protocols import ModelMessage, ModelResponse, RemoteMirrorError
from multas.storage.sheets import RemoteMirror
from multas.storage.workbook import WorkbookStorage

_ENV_VARS = (
    "OPENAI_API_KEY",
    "CLAUDE_API_KEY",
    "ANTHROPIC_API_KEY",
    "AI_PROVIDER",
    "STORAGE_MODE",
    "GOOGLE_SPREADSHEET_ID",
    "VERCEL",
    "VERCEL_ENV",
    "AWS_LAMBDA_FUNCTION_NAME",
    "K_SERVICE",
)

_CELLS_RE = re.compile(r"^([A-Z]+)(\d*):([A-Z]+)(\d*)$")


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep host credentials and platform markers out of every test."""
    import os

    for name in list(os.environ):
        if name.startswith("MULTAS_"):
            monkeypatch.delenv(name, raising=False)
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# =============================================================================
# Remote spreadsheet double
# =============================================================================


class FakeSheetsClient:
    """In-memory stand-in for SheetsClient holding a single worksheet.

    Mutating calls can be made to fail with ``fail_next``.
    """

    def __init__(self, title: str = "Posts", sheet_id: int = 0):
        self.title = title
        self.sheet_id = sheet_id
        self.rows: List[List[Any]] = []
        self.calls: List[tuple] = []
        self._failures = 0
        self._failure_exc: Optional[Exception] = None

    def fail_next(self, times: int = 1, exc: Optional[Exception] = None) -> None:
        self._failures = times
        self._failure_exc = exc or RemoteMirrorError("quota exceeded", status_code=429)

    def _maybe_fail(self):
        if self._failures > 0:
            self._failures -= 1
            raise self._failure_exc

    @staticmethod
    def _parse(a1_range: str):
        cells = a1_range.split("!", 1)[1]
        c1, r1, c2, r2 = _CELLS_RE.match(cells).groups()
        return (
            ord(c1) - ord("A"),
            ord(c2) - ord("A"),
            int(r1) if r1 else 1,
            int(r2) if r2 else None,
        )

    @property
    def data_rows(self) -> List[List[Any]]:
        return self.rows[1:]

    def calls_named(self, name: str) -> List[tuple]:
        return [c for c in self.calls if c[0] == name]

    def get_spreadsheet(self) -> Dict[str, Any]:
        self.calls.append(("get_spreadsheet",))
        return {"sheets": [{"properties": {"title": self.title, "sheetId": self.sheet_id}}]}

    def get_values(self, a1_range: str) -> List[List[Any]]:
        self.calls.append(("get_values", a1_range))
        col_start, col_end, row_start, row_end = self._parse(a1_range)
        selected = self.rows[row_start - 1 : row_end]
        return [list(row[col_start : col_end + 1]) for row in selected]

    def append_values(self, a1_range: str, values) -> Dict[str, Any]:
        self.calls.append(("append_values", a1_range, [list(v) for v in values]))
        self._maybe_fail()
        start = len(self.rows) + 1
        self.rows.extend(list(v) for v in values)
        return {"updates": {"updatedRange": f"'{self.title}'!A{start}:G{len(self.rows)}"}}

    def update_values(self, a1_range: str, values) -> Dict[str, Any]:
        self.calls.append(("update_values", a1_range, [list(v) for v in values]))
        self._maybe_fail()
        _, _, row_start, _ = self._parse(a1_range)
        for offset, row in enumerate(values):
            index = row_start - 1 + offset
            while len(self.rows) <= index:
                self.rows.append([])
            self.rows[index] = list(row)
        return {}

    def batch_update(self, requests_) -> Dict[str, Any]:
        self.calls.append(("batch_update", requests_))
        self._maybe_fail()
        for request in requests_:
            dim = request["deleteDimension"]["range"]
            del self.rows[dim["startIndex"] : dim["endIndex"]]
        return {}


# =============================================================================
# Timer double
# =============================================================================


class FakeTimer:
    def __init__(self, interval: float, function: Callable[[], None]):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if self.started and not self.cancelled:
            self.function()


class FakeTimerFactory:
    """``threading.Timer`` replacement; timers only fire when told to."""

    def __init__(self):
        self.timers: List[FakeTimer] = []

    def __call__(self, interval, function):
        timer = FakeTimer(interval, function)
        self.timers.append(timer)
        return timer

    @property
    def active(self) -> List[FakeTimer]:
        return [t for t in self.timers if t.started and not t.cancelled]

    def fire_all(self):
        for timer in self.active:
            timer.fire()


# =============================================================================
# Model double
# =============================================================================


class FakeModel:
    """ModelProtocol double returning canned replies.

    ``replies`` is either a list consumed in order or a callable taking the
    prompt and returning the reply.
    """

    def __init__(
        self,
        replies: Union[List[str], Callable[[str], str], None] = None,
        error: Optional[Exception] = None,
        provider: str = "openai",
    ):
        self._replies = replies if callable(replies) else list(replies or [])
        self.error = error
        self._provider = provider
        self.prompts: List[str] = []
        self.systems: List[Optional[str]] = []

    @property
    def model_id(self) -> str:
        return "fake-model"

    @property
    def provider(self) -> str:
        return self._provider

    def generate(
        self,
        messages: List[ModelMessage],
        *,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        system: Optional[str] = None,
    ) -> ModelResponse:
        prompt = messages[-1].content
        self.prompts.append(prompt)
        self.systems.append(system)
        if self.error is not None:
            raise self.error
        if callable(self._replies):
            content = self._replies(prompt)
        else:
            content = self._replies.pop(0) if self._replies else ""
        return ModelResponse(content=content, model_id=self.model_id)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "data"


@pytest.fixture
def settings(data_dir):
    return Settings(_env_file=None, data_dir=data_dir)


@pytest.fixture
def workbook(data_dir):
    return WorkbookStorage(data_dir / "multas_posts.xlsx", data_dir / "backups")


@pytest.fixture
def sheets_client():
    return FakeSheetsClient()


@pytest.fixture
def mirror(sheets_client):
    return RemoteMirror(sheets_client)


@pytest.fixture
def timer_factory():
    return FakeTimerFactory()


@pytest.fixture
def sample_record_data():
    return {
        "id": "post_1700000000000_abc123def",
        "timestamp": "2024/4/5 9:03:07",
        "user_name": "山田太郎",
        "text": "患者さんに検査の説明をして同意をいただいた",
        "category": 1,
        "reason": "インフォームドコンセントの実践",
        "date": "2024/4/5 9:03:07",
    }
