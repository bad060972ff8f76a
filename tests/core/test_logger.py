"""
Tests for Logging Utilities

Tests setup_logging, get_logger and PipelineLogger.
"""

import logging

from src.core.logger import (
    setup_logging,
    get_logger,
    PipelineLogger,
)


class TestSetupLogging:
    def test_default_level(self):
        setup_logging()
        assert logging.getLogger().level <= logging.INFO

    def test_level_from_config_dict(self):
        setup_logging(config={'level': 'DEBUG'})
        assert logging.getLogger().level == logging.DEBUG

    def test_custom_level(self):
        setup_logging(log_level='WARNING')
        assert logging.getLogger().level == logging.WARNING

    def test_file_handler_writes(self, tmp_path):
        log_file = tmp_path / 'logs' / 'run.log'
        setup_logging(log_level='INFO', log_file=str(log_file))

        logging.getLogger('src.analysis.test').info("CLEAN | hello")
        for handler in logging.getLogger().handlers:
            handler.flush()

        text = log_file.read_text()
        assert "CLEAN | hello" in text
        assert "src.analysis.test" in text

    def test_handlers_replaced_not_stacked(self, tmp_path):
        setup_logging(log_file=str(tmp_path / 'a.log'))
        setup_logging(log_file=str(tmp_path / 'b.log'))
        assert len(logging.getLogger().handlers) == 2

    def test_file_records_debug_while_console_stays_info(self, tmp_path):
        log_file = tmp_path / 'run.log'
        setup_logging(log_level='INFO', log_file=str(log_file))
        assert logging.getLogger().level == logging.DEBUG

        logging.getLogger('src.analysis.test').debug("SELECTION | detail")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "SELECTION | detail" in log_file.read_text()

    def test_third_party_quietened(self):
        setup_logging(log_level='DEBUG')
        assert logging.getLogger('statsmodels').level == logging.WARNING


class TestGetLogger:
    def test_same_instance_for_same_name(self):
        assert get_logger('same_name') is get_logger('same_name')

    def test_different_names(self):
        assert get_logger('name_one') is not get_logger('name_two')


class TestPipelineLogger:
    def test_context_prefix(self):
        pl = PipelineLogger('format_test')
        assert pl._format_message("msg") == "msg"

        pl.set_context(run_id='xyz', stratum='developing')
        message = pl._format_message("msg")
        assert message.startswith("[run_id=xyz stratum=developing]")

        pl.clear_context()
        assert pl._format_message("msg") == "msg"

    def test_levels(self, caplog):
        pl = PipelineLogger('levels_test')
        with caplog.at_level(logging.DEBUG):
            pl.debug("debug message")
            pl.info("info message")
            pl.warning("warning message")
            pl.error("error message")
        for text in ("debug", "info", "warning", "error"):
            assert f"{text} message" in caplog.text

    def test_step_start_and_complete(self, caplog):
        pl = PipelineLogger('step_test')
        with caplog.at_level(logging.INFO):
            pl.step_start("Selection")
            pl.step_complete("Selection", 1.5)
        assert "STAGE | Selection started" in caplog.text
        assert "STAGE | Selection finished in 1.50s" in caplog.text

    def test_stage_context_manager(self, caplog):
        pl = PipelineLogger('stage_test')
        with caplog.at_level(logging.INFO):
            with pl.stage("Clean"):
                pl.info("inside")
        messages = [r.getMessage() for r in caplog.records]
        assert messages[0] == "STAGE | Clean started"
        assert messages[1] == "inside"
        assert messages[2].startswith("STAGE | Clean finished in ")

    def test_stage_failure_propagates(self, caplog):
        pl = PipelineLogger('stage_fail_test')
        with caplog.at_level(logging.INFO):
            try:
                with pl.stage("Load"):
                    raise ValueError("boom")
            except ValueError:
                pass
        assert "STAGE | Load started" in caplog.text
        assert "Load finished" not in caplog.text

    def test_metric_formats_floats(self, caplog):
        pl = PipelineLogger('metric_test')
        with caplog.at_level(logging.INFO):
            pl.metric("test_r2", 0.963412)
            pl.metric("n_test", 412)
        assert "METRIC | test_r2: 0.9634" in caplog.text
        assert "METRIC | n_test: 412" in caplog.text

    def test_data_stats(self, caplog):
        pl = PipelineLogger('stats_test')
        with caplog.at_level(logging.INFO):
            pl.data_stats("full", 1649, 22)
        assert "DATA | full: 1,649 rows, 22 columns" in caplog.text
