import os
import tempfile

import pytest

# Keep the package's file handler out of the user's cache dir.
os.environ.setdefault("TONECUE_LOG_DIR", tempfile.mkdtemp(prefix="tonecue-test-logs-"))

_SETTINGS_ENV = (
    "TONECUE_SAMPLE_RATE",
    "TONECUE_BLOCKSIZE",
    "TONECUE_LATENCY",
    "TONECUE_STRICT",
    "TONECUE_STATE_PATH",
)


@pytest.fixture(autouse=True)
def _clean_settings_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)
