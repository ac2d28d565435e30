import logging

import pytest

from svm_detector.utils.logger import Logger


class TestLogger:
    def test_file_handler_attached_once(self, tmp_path):
        logger = Logger(name="test_logger_files", log_dir=tmp_path, filename="run.log")
        Logger(name="test_logger_files", log_dir=tmp_path, filename="run.log")
        file_handlers = [h for h in logger.raw.handlers if isinstance(h, logging.FileHandler)]
        assert len(file_handlers) == 1

        logger.info("hello %s", "detector")
        logger.dict("config:", {"svm": {"C": 0.01}, "seed": 42})
        for handler in logger.raw.handlers:
            handler.flush()
        content = (tmp_path / "run.log").read_text(encoding="utf-8")
        assert "hello detector" in content
        assert "C : 0.01" in content

    def test_second_run_gets_its_own_file(self, tmp_path):
        Logger(name="test_logger_runs", log_dir=tmp_path / "a")
        logger = Logger(name="test_logger_runs", log_dir=tmp_path / "b")
        paths = sorted(h.baseFilename for h in logger.raw.handlers if isinstance(h, logging.FileHandler))
        assert len(paths) == 2

    @pytest.mark.parametrize("seconds, expected", [
        (4.24, "4.2s"),
        (125, "2m 05s"),
        (3723, "1h 02m 03s"),
        (-1, "0.0s"),
    ])
    def test_format_duration(self, seconds, expected):
        assert Logger.format_duration(seconds) == expected

    def test_model_summary(self, trained_classifier, caplog):
        logger = Logger(name="test_logger_summary")
        logger.raw.propagate = True
        with caplog.at_level(logging.INFO, logger="test_logger_summary"):
            logger.log_model_summary(trained_classifier)
        assert "n_support" in caplog.text
