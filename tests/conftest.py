from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

BASE_DIR = Path(__file__).resolve().parents[1]
SDK_SRC = BASE_DIR / "src"

sys.path.insert(0, str(SDK_SRC))


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("TEI_TRANSFER_"):
            monkeypatch.delenv(key, raising=False)
