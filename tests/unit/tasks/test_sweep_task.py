"""
Unit tests for the expiration sweep Celery task

The task is a thin wrapper: it resolves ExpirationSweeper from the
DependencyContainer, runs it and returns the summary.
"""

from datetime import datetime
from unittest.mock import MagicMock, Mock, patch

import pytest

from application.expiration_sweeper import ExpirationSweeper, SweepAbortedError, SweepSummary
from domain.errors import MetadataUnavailableError


@pytest.fixture
def summary():
    result = SweepSummary(run_id="run-1", started_at=datetime(2024, 1, 15, 12))
    result.found = 2
    result.deleted = 1
    result.already_absent = 1
    result.finished_at = datetime(2024, 1, 15, 12, 0, 5)
    return result


@pytest.fixture
def mock_sweeper(summary):
    mock = Mock(spec=ExpirationSweeper)
    mock.run.return_value = summary
    return mock


@pytest.fixture
def mock_container(mock_sweeper):
    mock = MagicMock()

    def resolve_side_effect(service_type):
        if service_type is ExpirationSweeper:
            return mock_sweeper
        raise ValueError(f"Unknown service type: {service_type}")

    mock.resolve.side_effect = resolve_side_effect
    return mock


class TestSweepTask:
    """Test the periodic sweep task."""

    @patch("celery_app.flask_app")
    def test_runs_sweeper_from_container(self, mock_flask_app, mock_container, mock_sweeper, summary):
        """
        Test that the task delegates to ExpirationSweeper.

        Verifies that:
        - The sweeper is resolved from the DependencyContainer
        - The summary dictionary is returned
        """
        # Arrange
        mock_flask_app.container = mock_container
        from tasks.sweep_task import run_expiration_sweep

        # Act
        result = run_expiration_sweep()

        # Assert
        mock_container.resolve.assert_called_once_with(ExpirationSweeper)
        mock_sweeper.run.assert_called_once_with()
        assert result == summary.to_dict()
        assert result["found"] == 2

    @patch("celery_app.flask_app")
    def test_aborted_sweep_is_reraised(self, mock_flask_app, mock_container, mock_sweeper, summary, caplog):
        mock_flask_app.container = mock_container
        mock_sweeper.run.side_effect = SweepAbortedError("storage down", summary)
        from tasks.sweep_task import run_expiration_sweep

        with pytest.raises(SweepAbortedError):
            run_expiration_sweep()

        assert "Expiration sweep aborted" in caplog.text

    @patch("celery_app.flask_app")
    def test_enumeration_failure_is_reraised(self, mock_flask_app, mock_container, mock_sweeper):
        mock_flask_app.container = mock_container
        mock_sweeper.run.side_effect = MetadataUnavailableError("redis down")
        from tasks.sweep_task import run_expiration_sweep

        with pytest.raises(MetadataUnavailableError):
            run_expiration_sweep()

    def test_task_is_scheduled(self):
        from celery_app import celery_app
        from config.celery_config import SWEEP_TASK_NAME

        schedule = celery_app.conf.beat_schedule["run-expiration-sweep"]
        assert schedule["task"] == SWEEP_TASK_NAME
        assert celery_app.conf.task_routes[SWEEP_TASK_NAME] == {"queue": "sweep_queue"}
