import logging

import pytest
from botocore.exceptions import ClientError


@pytest.fixture
def client_error():
    """Factory for botocore ClientErrors with a given code."""
    def make(code, message="", operation="Operation"):
        return ClientError({'Error': {'Code': code, 'Message': message}}, operation)
    return make


@pytest.fixture(autouse=True)
def isolated_logging(tmp_path, monkeypatch):
    """Keep log files in tmp_path and drop handlers the scripts add to the root logger."""
    monkeypatch.setenv("SCRIPT_LOG_DIR", str(tmp_path / "logs"))
    root = logging.getLogger()
    handlers = list(root.handlers)
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
