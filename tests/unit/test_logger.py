"""
Unit tests for logger module.
"""

from unittest.mock import MagicMock, patch

from src.utils.logger import configure_logging, get_logger, mask_sensitive_fields


class TestMaskSensitiveFields:
    """Test cases for mask_sensitive_fields processor."""

    def test_masks_token_field(self):
        """Test that bearer tokens are masked."""
        # Arrange
        logger = MagicMock()
        event_dict = {"event": "Submitting phase", "access_token": "eyJhbGci..."}

        # Act
        result = mask_sensitive_fields(logger, "info", event_dict)

        # Assert
        assert result["access_token"] == "***MASKED***"

    def test_masks_phone_number(self):
        """Test that participant phone numbers never reach the log."""
        # Arrange
        logger = MagicMock()
        event_dict = {"event": "Phase submitted", "phone": "+250788123456", "phone_number": "+1555"}

        # Act
        result = mask_sensitive_fields(logger, "info", event_dict)

        # Assert
        assert result["phone"] == "***MASKED***"
        assert result["phone_number"] == "***MASKED***"

    def test_does_not_mask_lookalike_keys(self):
        """Test that keys merely containing a sensitive word are kept."""
        # Arrange
        logger = MagicMock()
        event_dict = {"event": "x", "telephone_hint": "mobile", "author": "jane"}

        # Act
        result = mask_sensitive_fields(logger, "info", event_dict)

        # Assert
        assert result["telephone_hint"] == "mobile"
        assert result["author"] == "jane"

    def test_does_not_mask_non_sensitive_fields(self):
        """Test that non-sensitive fields are not masked."""
        # Arrange
        logger = MagicMock()
        event_dict = {
            "event": "Draft saved",
            "draft_key": "phase1",
            "fields": ["first_name", "last_name"],
            "percentage": 33,
        }

        # Act
        result = mask_sensitive_fields(logger, "info", event_dict)

        # Assert
        assert result["draft_key"] == "phase1"
        assert result["fields"] == ["first_name", "last_name"]
        assert result["percentage"] == 33


class TestConfigureLogging:
    """Test cases for configure_logging function."""

    @patch("src.utils.logger.Path")
    @patch("src.utils.logger.logging")
    @patch("src.utils.logger.structlog")
    def test_creates_logs_directory(self, mock_structlog, mock_logging, mock_path):
        """Test that configure_logging creates the log directory."""
        # Arrange
        mock_log_path = MagicMock()
        mock_path.return_value = mock_log_path

        # Act
        configure_logging(log_file="logs/test.log")

        # Assert
        mock_log_path.parent.mkdir.assert_called_once_with(parents=True, exist_ok=True)

    @patch("src.utils.logger.Path")
    @patch("src.utils.logger.logging")
    @patch("src.utils.logger.structlog")
    def test_configures_masking_processor(self, mock_structlog, mock_logging, mock_path):
        """Test that the masking processor is part of the structlog chain."""
        # Act
        configure_logging()

        # Assert
        mock_structlog.configure.assert_called_once()
        processors = mock_structlog.configure.call_args[1]["processors"]
        assert mask_sensitive_fields in processors


class TestGetLogger:
    """Test cases for get_logger function."""

    def test_generates_correlation_id_if_not_provided(self):
        """Test that get_logger binds a generated correlation_id."""
        # Act
        logger = get_logger()

        # Assert
        assert logger is not None

    def test_binds_all_context_parameters(self):
        """Test that get_logger binds all context parameters."""
        # Act
        logger = get_logger(
            correlation_id="test-id", phase="phase2", component="profile_controller"
        )

        # Assert
        assert logger is not None
        logger.info("test_message", count=10)
