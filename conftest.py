import os
import sys
from pathlib import Path

import pytest

# Ensure repo root on sys.path for imports from anywhere in tests tree.
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("ENV", "dev")
os.environ.setdefault("AUTH_JWT_SIGNING", "calmly-test-secret")
os.environ.setdefault("NOTIFIER_BACKOFF_SECONDS", "0")

from calmly.activity.repository import InMemoryActivityRepository, set_activity_repo  # noqa: E402
from calmly.activity.service import set_dispatcher  # noqa: E402
from calmly.chat.repository import InMemorySessionRepository  # noqa: E402
from calmly.chat.state import set_session_repo  # noqa: E402
from calmly.identity.jwt_service import default_jwt_service  # noqa: E402


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def reset_stores():
    set_session_repo(InMemorySessionRepository())
    set_activity_repo(InMemoryActivityRepository())
    set_dispatcher(None)
    yield
    set_dispatcher(None)


@pytest.fixture
def issue_token():
    def _issue(user_id: str = "u_alpha", **claims):
        svc = default_jwt_service()
        return svc.issue_token({"sub": user_id, "email": f"{user_id}@example.com", **claims})

    return _issue


@pytest.fixture
def auth_headers(issue_token):
    def _headers(user_id: str = "u_alpha"):
        return {"Authorization": f"Bearer {issue_token(user_id)}"}

    return _headers
