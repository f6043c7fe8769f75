# SPDX-License-Identifier: Apache-2.0
# Copyright 2024-2026 CAB Ingénierie / Christophe ABOULICAM
"""Tests for structured logging configuration."""

import logging

import structlog

from convcache.logging_config import (
    COMPONENT_NAME,
    NOISY_LOGGERS,
    add_app_context,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)


class TestLoggingConfig:

    def teardown_method(self):
        clear_context()
        structlog.reset_defaults()
        logging.getLogger().handlers.clear()

    def test_add_app_context(self):
        event = add_app_context(logging.getLogger(), "info", {"event": "cache_save"})
        assert event["component"] == COMPONENT_NAME

    def test_add_app_context_keeps_existing(self):
        event = add_app_context(logging.getLogger(), "info", {"component": "other"})
        assert event["component"] == "other"

    def test_configure_sets_root_level(self):
        configure_logging(log_level="debug", log_format="text")
        assert logging.getLogger().level == logging.DEBUG

    def test_noisy_loggers_quieted(self):
        configure_logging(log_level="DEBUG", log_format="json")
        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING

    def test_json_output(self, capsys):
        configure_logging(log_level="INFO", log_format="json")
        bind_context(session_id="s-1")

        get_logger("convcache.test").info("cache_save", conversation_id="c-1")

        out = capsys.readouterr().out
        assert '"event": "cache_save"' in out
        assert '"conversation_id": "c-1"' in out
        assert '"session_id": "s-1"' in out
        assert '"component": "convcache"' in out
