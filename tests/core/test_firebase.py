"""Tests for cashback/core/firebase.py - Firebase initialization."""

from unittest.mock import patch

from cashback.core.firebase import init_firebase


def test_init_firebase_already_initialized(test_settings):
    """init_firebase() does nothing if Firebase is already initialized."""
    with (
        patch("cashback.core.firebase.get_app") as mock_get_app,
        patch("cashback.core.firebase.initialize_app") as mock_init,
    ):
        mock_get_app.return_value = "mock_app"

        init_firebase(test_settings)

        mock_get_app.assert_called_once()
        mock_init.assert_not_called()


def test_init_firebase_passes_http_timeout(test_settings):
    """Admin SDK calls are bounded by the configured timeout."""
    with (
        patch("cashback.core.firebase.get_app") as mock_get_app,
        patch("cashback.core.firebase.initialize_app") as mock_init,
    ):
        mock_get_app.side_effect = ValueError("Firebase app not initialized")

        init_firebase(test_settings)

        mock_init.assert_called_once_with(
            options={"httpTimeout": test_settings.firebase_http_timeout_seconds}
        )
