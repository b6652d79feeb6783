import sys
from pathlib import Path
from typing import Any, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config import Settings
from db import Store
from engines.scoring import LocalDecisionScorer
from gateway import AIGateway


class FakeGateway(AIGateway):
    """Gateway double that replays canned replies or raises a fixed error."""

    def __init__(self, replies: Optional[list[str]] = None, error: Optional[Exception] = None):
        super().__init__(Settings(openai_api_key="test-key"))
        self.replies = list(replies or [])
        self.error = error
        self.calls: list[dict[str, Any]] = []

    def complete(self, system_prompt, user_prompt, profile, *, history=None, prompt_version=None):
        self.calls.append(
            {
                "system": system_prompt,
                "user": user_prompt,
                "profile": profile,
                "history": history,
                "prompt_version": prompt_version,
            }
        )
        if self.error is not None:
            raise self.error
        return self.replies.pop(0) if self.replies else "Keep going! 🌟"


@pytest.fixture
def temp_store(tmp_path):
    store = Store(str(tmp_path / "test.db"))
    store.init()
    yield store
    store.close()


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def make_app(temp_store):
    import app as app_module

    def _make(gateway=None, scorer=None, store=None):
        return app_module.create_app(
            Settings(db_path=temp_store.path, openai_api_key="test-key"),
            store=store or temp_store,
            gateway=gateway or FakeGateway(),
            scorer=scorer or LocalDecisionScorer(random_seed=1234),
        )

    return _make
