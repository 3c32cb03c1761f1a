"""
Unit Tests for the PostgreSQL Testcontainer Helper
==================================================

Integration tests must be skipped, not errored, on machines without Docker.
"""

import pytest
from docker.errors import DockerException

from tests.conftest import POSTGRES_IMAGE, start_postgres_container


@pytest.mark.unit
class TestStartPostgresContainer:
    def test_skips_when_docker_client_cannot_be_created(self, mocker):
        # Arrange - testcontainers talks to Docker while building the container
        container_class = mocker.patch(
            "tests.conftest.PostgresContainer",
            side_effect=DockerException("Error while fetching server API version"),
        )

        # Act & Assert
        with pytest.raises(pytest.skip.Exception) as exc_info:
            start_postgres_container()

        assert "Docker is not available" in str(exc_info.value)
        container_class.assert_called_once_with(image=POSTGRES_IMAGE, driver="asyncpg")

    def test_skips_when_container_fails_to_start(self, mocker):
        container = mocker.MagicMock()
        container.start.side_effect = DockerException("image pull failed")
        mocker.patch("tests.conftest.PostgresContainer", return_value=container)

        with pytest.raises(pytest.skip.Exception):
            start_postgres_container()

    def test_returns_started_container(self, mocker):
        container = mocker.MagicMock()
        mocker.patch("tests.conftest.PostgresContainer", return_value=container)

        assert start_postgres_container() is container
        container.start.assert_called_once_with()
