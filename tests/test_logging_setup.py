import logging

import pytest

from expr_pca.logging_setup import init_global_logging, resolve_level, run_logging


def _file_handlers():
    return [h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)]


def test_resolve_level():
    assert resolve_level("debug") == logging.DEBUG
    assert resolve_level("WARNING") == logging.WARNING
    assert resolve_level(logging.ERROR) == logging.ERROR
    assert resolve_level(None) == logging.INFO
    assert resolve_level("chatty") == logging.INFO


def test_init_global_logging_sets_level_once():
    root = logging.getLogger()
    old_level = root.level
    try:
        init_global_logging("WARNING")
        init_global_logging("DEBUG")
        streams = [h for h in root.handlers if type(h) is logging.StreamHandler]
        assert len(streams) == 1
        assert root.level == logging.DEBUG
    finally:
        root.setLevel(old_level)


def test_run_logging_writes_and_detaches(tmp_path):
    before = len(_file_handlers())

    with run_logging(tmp_path / "run") as log_path:
        assert len(_file_handlers()) == before + 1
        logging.getLogger("expr_pca.test").warning("inside the run")
    logging.getLogger("expr_pca.test").warning("after the run")

    assert len(_file_handlers()) == before
    text = log_path.read_text(encoding="utf-8")
    assert log_path.name == "expr_pca.log"
    assert "inside the run" in text
    assert "after the run" not in text


def test_run_logging_applies_level(tmp_path):
    with run_logging(tmp_path, level="ERROR") as log_path:
        logging.getLogger("expr_pca.test").warning("filtered out")
        logging.getLogger("expr_pca.test").error("kept")

    text = log_path.read_text(encoding="utf-8")
    assert "kept" in text
    assert "filtered out" not in text


def test_run_logging_detaches_on_error(tmp_path):
    before = len(_file_handlers())

    with pytest.raises(RuntimeError):
        with run_logging(tmp_path):
            raise RuntimeError("boom")

    assert len(_file_handlers()) == before
