import pytest

from rfpengine.utils.core.log import pid_tool_logger, set_logger
from rfpengine.utils.db.connection import _mock_db
from rfpengine.tools.rfp.rfp_models import Proposal, Rfp, Vendor


@pytest.fixture(autouse=True)
def tool_logger(tmp_path, monkeypatch):
    """Per-test tool logger writing under a temp log dir."""
    monkeypatch.setenv("RFPENGINE_LOG_DIR", str(tmp_path / "logs"))
    set_logger(pid_tool_logger("TEST", "tests"))
    yield


@pytest.fixture(autouse=True)
def mock_db():
    for table in _mock_db.values():
        table.clear()
    yield _mock_db
    for table in _mock_db.values():
        table.clear()


@pytest.fixture
def rfp():
    return Rfp(id="rfp-1", title="Laptops Procurement", currency="USD")


@pytest.fixture
def vendor():
    return Vendor(id="vendor-1", name="Acme", email="sales@acme.com")


@pytest.fixture
def make_proposal():
    counter = {"n": 0}

    def _make(**kwargs):
        counter["n"] += 1
        kwargs.setdefault("id", f"p{counter['n']}")
        kwargs.setdefault("rfp_id", "rfp-1")
        kwargs.setdefault("vendor_id", "vendor-1")
        return Proposal(**kwargs)

    return _make


@pytest.fixture
def client():
    from rfpengine.api import app

    app.config["TESTING"] = True
    with app.test_client() as c:
        yield c
