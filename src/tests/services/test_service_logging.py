"""Tests for service layer structured logging.

These tests verify that unit and product operations emit structured log
entries with appropriate context information.
"""

import logging

import pytest

from src.services import measurement_unit_service, product_service
from src.services.exceptions import ConversionValidationError
from src.services.logging_utils import get_service_logger, log_operation


class TestLoggingUtilities:
    """Tests for logging utility functions."""

    def test_get_service_logger_extracts_module_name(self):
        """get_service_logger namespaces the last module component."""
        logger = get_service_logger("src.services.product_service")
        assert logger.name == "unit_catalog.services.product_service"

    def test_log_operation_includes_context(self, caplog):
        """Context keys become attributes of the log record."""
        logger = get_service_logger("test")

        with caplog.at_level(logging.INFO):
            log_operation(logger, operation="test_op", outcome="success", product_id=123)

        record = caplog.records[-1]
        assert record.getMessage() == "test_op: success"
        assert record.operation == "test_op"
        assert record.product_id == 123

    def test_log_operation_respects_level(self, caplog):
        """Debug records are hidden at INFO level."""
        logger = get_service_logger("test")
        with caplog.at_level(logging.INFO):
            log_operation(logger, operation="quiet", outcome="ok", level=logging.DEBUG)
        assert "quiet" not in caplog.text


class TestServiceLogging:
    """Tests for log records emitted by services."""

    def test_create_unit_logged(self, test_db, caplog):
        """Creating a unit logs its id."""
        with caplog.at_level(logging.INFO):
            unit = measurement_unit_service.create_unit({"name": "kg", "acronym": "kg"})

        records = [r for r in caplog.records if getattr(r, "operation", None) == "create_unit"]
        assert records[-1].unit_id == unit["id"]

    def test_rejected_conversions_logged(self, sample_units, caplog):
        """A failed conversion check logs the failure and pair."""
        with caplog.at_level(logging.WARNING):
            with pytest.raises(ConversionValidationError):
                product_service.create_product(
                    {"name": "Harina", "sale_unit": "kg", "production_unit": "g"}
                )

        records = [r for r in caplog.records if getattr(r, "operation", None) == "create_product"]
        assert records[-1].outcome == "missing_pair"
        assert records[-1].pair == ("kg", "g")
