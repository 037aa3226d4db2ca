from __future__ import annotations

from pathlib import Path

import pytest

from standardsentinel.config import StandardsConfig
from standardsentinel.engine.context import ProjectContext


@pytest.fixture()
def project_ctx(tmp_path: Path) -> ProjectContext:
    return ProjectContext(project_root=tmp_path, files=(), config=StandardsConfig())
