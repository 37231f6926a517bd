"""Tests for logging configuration helpers."""

from unittest.mock import MagicMock, patch

from fastapi import FastAPI

from guide_crawler.logging_config import mask_pii, setup_logfire


class TestMaskPii:
    def test_masks_middle(self):
        assert mask_pii("operator-key") == "op********ey"

    def test_short_and_empty(self):
        assert mask_pii("abc") == "***"
        assert mask_pii("") == ""
        assert mask_pii(None) == ""


@patch("guide_crawler.logging_config.logfire")
def test_setup_logfire_instruments_app(mock_logfire: MagicMock, mock_settings):
    app = FastAPI()

    setup_logfire(app)

    mock_logfire.configure.assert_called_once_with(
        environment="local", send_to_logfire="if-token-present"
    )
    mock_logfire.instrument_fastapi.assert_called_once_with(app)
    mock_logfire.instrument_pydantic.assert_called_once()
