"""
Tests for logging configuration.
"""

from genecompendium.utils.logging import logger, setup_logging


class TestSetupLogging:

    def test_log_file_written(self, tmp_path):
        log_file = tmp_path / "logs" / "curation.log"
        setup_logging(level="DEBUG", log_file=log_file)
        try:
            logger.info("excluding dataset GSE2 (retracted)")
            logger.complete()
            assert "excluding dataset GSE2" in log_file.read_text()
        finally:
            setup_logging(level="INFO")

    def test_level_filters_file_output(self, tmp_path):
        log_file = tmp_path / "curation.log"
        setup_logging(level="WARNING", log_file=log_file, show_time=False)
        try:
            logger.info("including dataset GSE1")
            logger.warning("Skipping dataset GSE3")
            text = log_file.read_text()
            assert "including dataset GSE1" not in text
            assert "Skipping dataset GSE3" in text
        finally:
            setup_logging(level="INFO")
