import logging
import os
import re
import tempfile

import pytest

from adkflow.logs import LogConfig, create_multi_logger, log_to_stderr, log_to_tmp_folder


@pytest.fixture(autouse=True)
def restore_logging(tmp_path, monkeypatch):
    monkeypatch.setattr(tempfile, "tempdir", str(tmp_path))
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


def _flush():
    for handler in logging.getLogger().handlers:
        handler.flush()


def test_log_config_defaults():
    config = LogConfig()
    assert config.log_level == 1
    assert config.sub_folder == "agents_log"
    assert config.log_file_prefix == "agent"
    assert re.fullmatch(r"\d{8}_\d{6}", config.log_file_timestamp)


def test_log_to_tmp_folder_creates_file_and_writes(tmp_path):
    config = LogConfig(log_file_timestamp="stamp")

    path = log_to_tmp_folder(config)

    assert path == tmp_path / "agents_log" / "agent.stamp.log"
    logging.getLogger("adkflow.test").warning("hello file")
    _flush()
    assert "hello file" in path.read_text(encoding="utf-8")


def test_log_to_tmp_folder_links_latest(tmp_path):
    path = log_to_tmp_folder(LogConfig(log_file_prefix="run", log_file_timestamp="one"))
    latest = tmp_path / "agents_log" / "run.latest.log"
    assert os.path.realpath(latest) == os.path.realpath(path)

    second = log_to_tmp_folder(LogConfig(log_file_prefix="run", log_file_timestamp="two"))
    assert os.path.realpath(latest) == os.path.realpath(second)


def test_log_to_tmp_folder_replaces_previous_handler():
    first = log_to_tmp_folder(LogConfig(log_file_timestamp="first"))
    second = log_to_tmp_folder(LogConfig(log_file_timestamp="second"))

    logging.getLogger("adkflow.test").warning("only second")
    _flush()

    assert "only second" in second.read_text(encoding="utf-8")
    assert "only second" not in first.read_text(encoding="utf-8")


def test_create_multi_logger_writes_to_both(capsys):
    path = create_multi_logger(LogConfig(log_file_timestamp="multi"))

    logging.getLogger("adkflow.test").warning("to both")
    _flush()

    assert "to both" in path.read_text(encoding="utf-8")
    assert "to both" in capsys.readouterr().err


def test_log_to_stderr_sets_level(capsys):
    log_to_stderr(0)
    assert logging.getLogger().level == logging.DEBUG

    logging.getLogger("adkflow.test").debug("debug line")
    _flush()
    assert "debug line" in capsys.readouterr().err


def test_log_level_filters_lower_records():
    path = log_to_tmp_folder(LogConfig(log_level=3, log_file_timestamp="errors"))

    logger = logging.getLogger("adkflow.test")
    logger.info("quiet info")
    logger.error("loud error")
    _flush()

    content = path.read_text(encoding="utf-8")
    assert "loud error" in content
    assert "quiet info" not in content