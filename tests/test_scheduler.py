"""Tests for scheduler and CLI wiring."""

import logging

import pytest

from catalog_pipeline.config import settings
from catalog_pipeline.logging_config import get_logger, setup_logging
from catalog_pipeline.main import build_parser
from catalog_pipeline.worker.scheduler import setup_scheduler


def test_scheduler_registers_sync_job_only_by_default(monkeypatch):
    """Test default scheduler jobs."""
    monkeypatch.setattr(settings, "pipeline_cron", "")

    scheduler = setup_scheduler()
    jobs = {job.id: job for job in scheduler.get_jobs()}

    assert set(jobs) == {"product_sync"}
    assert jobs["product_sync"].max_instances == 1
    assert jobs["product_sync"].coalesce is True


def test_scheduler_adds_pipeline_job_when_configured(monkeypatch):
    """Test the optional pipeline job."""
    monkeypatch.setattr(settings, "pipeline_cron", "30 1 * * 1")

    scheduler = setup_scheduler()

    assert {job.id for job in scheduler.get_jobs()} == {"product_sync", "pipeline_run"}


def test_cli_parser_subcommands():
    """Test CLI argument parsing."""
    parser = build_parser()

    args = parser.parse_args(["run", "--products", "list.csv", "--output-dir", "out"])
    assert args.command == "run"
    assert args.products == "list.csv"
    assert args.output_dir == "out"

    assert parser.parse_args(["sync", "--cache", "c.json"]).cache == "c.json"

    with pytest.raises(SystemExit):
        parser.parse_args([])


def test_setup_logging_writes_log_files(tmp_path):
    """Test log file setup."""
    setup_logging(base_dir=tmp_path, level="DEBUG")
    try:
        get_logger("catalog_pipeline.test", site="stock").info("hello")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert (tmp_path / "logs" / "app.log").exists()
        assert "hello" in (tmp_path / "logs" / "app.log").read_text(encoding="utf-8")
    finally:
        for handler in list(logging.getLogger().handlers):
            handler.close()
        logging.getLogger().handlers.clear()
