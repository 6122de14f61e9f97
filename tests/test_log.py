import logging

import pytest

from rfpengine.utils.core.log import (
    DynamicPrefixFormatter,
    bind_tool_logger,
    get_logger,
    log_dir,
    pid_tool_logger,
    rebind_rfp_logger,
)


def _record(name="rfp-1.compare_proposals", level=logging.INFO, **extra):
    record = logging.LogRecord(name, level, __file__, 1, "hello", None, None)
    for k, v in extra.items():
        setattr(record, k, v)
    return record


class TestToolLogger:
    def test_log_dir_from_env(self, tmp_path):
        assert log_dir() == tmp_path / "logs"

    def test_debug_goes_to_rfp_file(self, tmp_path):
        logger = pid_tool_logger("rfp-9", "compare_proposals")
        logger.debug("scored 3 proposals")
        logger.info("not in the tool file")
        for h in logger.handlers:
            h.flush()

        content = (tmp_path / "logs" / "rfp-9" / "compare_proposals.log").read_text()
        assert "scored 3 proposals" in content
        assert "not in the tool file" not in content

    def test_default_rfp_dir(self, tmp_path):
        pid_tool_logger(None, "db_init")
        assert (tmp_path / "logs" / "SYSTEM" / "db_init.log").exists()

    def test_bind_sets_context(self):
        bind_tool_logger("list_vendors", None, "10.0.0.1", "GET")
        logger = get_logger()
        assert isinstance(logger, logging.LoggerAdapter)
        assert logger.extra["ip_address"] == "10.0.0.1"
        assert logger.extra["rfp_id"] == "N/A"

    def test_rebind_moves_to_rfp_dir(self, tmp_path):
        bind_tool_logger("compare_proposals", None, "10.0.0.1", "GET")
        logger = rebind_rfp_logger("rfp-7")

        assert logger is get_logger()
        assert logger.logger.name == "rfp-7.compare_proposals"
        assert logger.extra["rfp_id"] == "rfp-7"
        assert logger.extra["ip_address"] == "10.0.0.1"
        assert logger.extra["tool_name"] == "compare_proposals"
        assert (tmp_path / "logs" / "rfp-7" / "compare_proposals.log").exists()


class TestDynamicPrefixFormatter:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("r.compare_proposals", "COMPARE"),
            ("r.rfp_from_text", "EXTRACT"),
            ("r.email_webhook", "EMAIL"),
            ("r.create_vendor", "VENDOR"),
            ("r.list_rfps", "RFP"),
            ("RfpEngine", "-"),
        ],
    )
    def test_tool_base(self, name, expected):
        assert DynamicPrefixFormatter._derive_tool_base(_record(name)) == expected

    def test_plain_line(self):
        line = DynamicPrefixFormatter(color=False).format(
            _record(rfp_id="rfp-1", request_type="POST", tool_name="compare_proposals")
        )
        assert line.startswith("[+]")
        assert "rfp-1" in line
        assert "COMPARE" in line
        assert line.endswith("hello")
        assert "\033[" not in line

    def test_warning_prefix(self):
        line = DynamicPrefixFormatter(color=False).format(_record(level=logging.WARNING))
        assert line.startswith("[-]")
