import json
import pytest
import structlog
from listing_pipeline.utils.logger import setup_logging, get_logger, LogContext


@pytest.fixture(autouse=True)
def restore_structlog():
    yield
    structlog.reset_defaults()


def test_setup_logging():
    setup_logging(level="DEBUG", json_format=False)
    setup_logging(level="info", json_format=True)


def test_setup_logging_rejects_unknown_level():
    with pytest.raises(ValueError, match="Unknown log level"):
        setup_logging(level="LOUD")


def test_setup_logging_with_file(tmp_path):
    log_file = tmp_path / "pipeline.log"
    setup_logging(level="INFO", json_format=False, log_file=str(log_file))

    with LogContext(run_id="pipeline-file"):
        get_logger("test_module").info("Step finished", step="distribution")
    get_logger("test_module").debug("filtered out")

    lines = log_file.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    record = json.loads(lines[0])
    assert record["event"] == "Step finished"
    assert record["run_id"] == "pipeline-file"
    assert record["level"] == "info"


def test_get_logger():
    logger = get_logger("test_module")
    assert logger is not None
    logger.info("test message", key="value")


def test_log_context_binds_and_unbinds():
    with LogContext(run_id="pipeline-abc", platform="amazon"):
        bound = structlog.contextvars.get_contextvars()
        assert bound["run_id"] == "pipeline-abc"
        assert bound["platform"] == "amazon"
    bound = structlog.contextvars.get_contextvars()
    assert "run_id" not in bound
    assert "platform" not in bound


def test_nested_log_context_restores_outer_values():
    with LogContext(run_id="outer", platform="otto"):
        with LogContext(platform="amazon"):
            assert structlog.contextvars.get_contextvars()["platform"] == "amazon"
        bound = structlog.contextvars.get_contextvars()
        assert bound == {"run_id": "outer", "platform": "otto"}


def test_log_context_unbinds_on_error():
    with pytest.raises(RuntimeError):
        with LogContext(run_id="pipeline-err"):
            raise RuntimeError("boom")
    assert "run_id" not in structlog.contextvars.get_contextvars()
