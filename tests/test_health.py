"""Tests for the GitHub App health check."""

import json
from unittest.mock import patch

from ghapp.core.config import Settings
from ghapp.core.exceptions import SecretStoreError
from ghapp.health import HEALTHY, UNHEALTHY, HealthReport, run_health_check
from tests.conftest import PKCS1_PEM, TEST_APP_ID, TEST_REPO, make_response, mock_http_client


def _settings(**overrides) -> Settings:
    values = dict(
        github_app_id=TEST_APP_ID,
        github_app_private_key=PKCS1_PEM,
        github_app_private_key_path="",
        github_app_private_key_secret="",
        installation_id=42,
        installation_id_secret="",
        github_repository=TEST_REPO,
        project_id="",
    )
    values.update(overrides)
    return Settings.model_construct(**values)


def _happy_responses(remaining=4999, contents_status=200, pulls_status=200):
    return [
        make_response(201, {"token": "ghs_abc"}),
        make_response(200, {"full_name": TEST_REPO}),
        make_response(contents_status, []),
        make_response(pulls_status, []),
        make_response(200, {"rate": {"limit": 5000, "remaining": remaining}}),
    ]


class TestHealthReport:
    def test_status_follows_errors_only(self):
        report = HealthReport(repository=TEST_REPO, app_id=TEST_APP_ID)
        report.record_warning("meh")
        assert report.status == HEALTHY
        report.record_error("broken")
        assert report.status == UNHEALTHY

    def test_metrics_document(self):
        report = HealthReport(repository=TEST_REPO, app_id=TEST_APP_ID)
        report.record_error("broken")
        metrics = report.finish().metrics()
        assert metrics["repository"] == TEST_REPO
        assert metrics["github_app_id"] == TEST_APP_ID
        assert metrics["health_status"] == UNHEALTHY
        assert metrics["error_count"] == 1
        assert metrics["warning_count"] == 0
        assert metrics["timestamp"].endswith("Z")

    def test_render_ends_with_metrics_json(self):
        report = HealthReport(repository=TEST_REPO, app_id=TEST_APP_ID).finish()
        text = report.render()
        assert "Status: HEALTHY" in text
        metrics = json.loads(text.split("=== Monitoring Metrics ===\n", 1)[1])
        assert metrics["health_status"] == HEALTHY


class TestRunHealthCheck:
    def test_all_checks_pass(self):
        with patch("httpx.Client") as MockClient:
            inner = mock_http_client(MockClient, *_happy_responses())
            report = run_health_check(_settings())

        assert report.healthy, report.errors
        assert report.warnings == []
        assert (report.rate_remaining, report.rate_limit) == (4999, 5000)
        paths = [c.args[1] for c in inner.request.call_args_list]
        assert paths == [
            "/app/installations/42/access_tokens",
            "/repos/octo-org/octo-repo",
            "/repos/octo-org/octo-repo/contents",
            "/repos/octo-org/octo-repo/pulls",
            "/rate_limit",
        ]

    def test_missing_configuration_is_reported(self):
        settings = _settings(github_app_id="", github_repository="", github_app_private_key="", installation_id=None)
        with patch("httpx.Client") as MockClient:
            report = run_health_check(settings)

        assert not report.healthy
        assert "GITHUB_APP_ID environment variable not set" in report.errors
        assert "GITHUB_REPOSITORY environment variable not set" in report.errors
        assert "GITHUB_APP_PRIVATE_KEY_SECRET environment variable not set" in report.errors
        assert "INSTALLATION_ID_SECRET environment variable not set" in report.errors
        MockClient.assert_not_called()

    def test_secret_sources_need_project_id(self):
        settings = _settings(github_app_private_key="", github_app_private_key_secret="app-key")
        with patch("httpx.Client"):
            report = run_health_check(settings)
        assert "PROJECT_ID environment variable not set" in report.errors

    def test_unreadable_secret(self):
        settings = _settings(
            github_app_private_key="",
            github_app_private_key_secret="app-key",
            project_id="proj",
        )
        with patch("ghapp.health.access_secret", side_effect=SecretStoreError("denied")), \
             patch("httpx.Client") as MockClient:
            report = run_health_check(settings)

        assert "Failed to access GitHub App private key secret" in report.errors
        MockClient.assert_not_called()

    def test_non_pem_key(self):
        with patch("httpx.Client"):
            report = run_health_check(_settings(github_app_private_key="not a key"))
        assert "GitHub App private key secret does not contain valid private key" in report.errors

    def test_non_numeric_installation_id(self):
        settings = _settings(installation_id=None, installation_id_secret="iid", project_id="proj")
        with patch("ghapp.health.access_secret", return_value="abc\n"), patch("httpx.Client"):
            report = run_health_check(settings)
        assert "Installation ID is not a valid number: abc" in report.errors

    def test_exchange_failure_skips_later_checks(self):
        with patch("httpx.Client") as MockClient:
            inner = mock_http_client(MockClient, make_response(401, {"message": "Bad credentials"}))
            report = run_health_check(_settings())

        assert len(report.errors) == 1
        assert report.errors[0].startswith("Failed to exchange JWT for installation token")
        assert "Bad credentials" in report.errors[0]
        assert inner.request.call_count == 1

    def test_missing_contents_permission_is_an_error(self):
        with patch("httpx.Client") as MockClient:
            mock_http_client(MockClient, *_happy_responses(contents_status=403))
            report = run_health_check(_settings())
        assert report.errors == ["Token lacks contents permission"]

    def test_contents_not_found_is_a_warning(self):
        with patch("httpx.Client") as MockClient:
            mock_http_client(MockClient, *_happy_responses(contents_status=404))
            report = run_health_check(_settings())
        assert report.healthy
        assert report.warnings == ["Repository not found or not accessible"]

    def test_missing_pulls_permission_is_an_error(self):
        with patch("httpx.Client") as MockClient:
            mock_http_client(MockClient, *_happy_responses(pulls_status=403))
            report = run_health_check(_settings())
        assert report.errors == ["Token lacks pull requests permission"]

    def test_low_rate_limit_warns(self):
        with patch("httpx.Client") as MockClient:
            mock_http_client(MockClient, *_happy_responses(remaining=42))
            report = run_health_check(_settings())
        assert report.healthy
        assert report.warnings == ["Rate limit is low: 42/5000 remaining"]

    def test_failed_repository_access(self):
        responses = _happy_responses()
        responses[1] = make_response(404, {"message": "Not Found"})
        with patch("httpx.Client") as MockClient:
            mock_http_client(MockClient, *responses)
            report = run_health_check(_settings())
        assert "Repository access test failed" in report.errors
