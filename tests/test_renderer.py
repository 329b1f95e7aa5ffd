"""
Tests for renderer.py - hosted crawl/scrape API client.
"""
import pytest
import requests
from unittest.mock import Mock, patch


def _response(status_code=200, payload=None, text=""):
    resp = Mock()
    resp.status_code = status_code
    resp.text = text
    resp.json.return_value = payload if payload is not None else {}
    return resp


class TestStatusMapping:
    """HTTP failures map onto the error taxonomy."""

    @pytest.mark.parametrize("status,error_name", [
        (401, "AuthError"),
        (403, "AuthError"),
        (402, "QuotaError"),
        (500, "ProtocolError"),
        (404, "ProtocolError"),
    ])
    def test_submit_errors(self, status, error_name):
        import errors
        from renderer import FirecrawlRenderer

        with patch('renderer.requests.request', return_value=_response(status, text="nope")):
            with pytest.raises(getattr(errors, error_name)) as exc_info:
                FirecrawlRenderer(api_key="k").submit_crawl("https://fund.com", 2, 50)
        assert exc_info.value.status_code == status

    def test_rate_limit_retried_then_raised(self):
        from errors import RateLimitError
        from renderer import FirecrawlRenderer

        with patch('renderer.requests.request', return_value=_response(429)) as mock_request, \
                patch('time.sleep'):
            with pytest.raises(RateLimitError):
                FirecrawlRenderer(api_key="k").submit_crawl("https://fund.com", 2, 50)
        assert mock_request.call_count == 3

    def test_rate_limit_recovers(self):
        from renderer import FirecrawlRenderer

        responses = [_response(429), _response(200, {"id": "job-2"})]
        with patch('renderer.requests.request', side_effect=responses), patch('time.sleep'):
            assert FirecrawlRenderer(api_key="k").submit_crawl("https://fund.com", 2, 50) == "job-2"

    def test_connection_error_after_retries_is_protocol_error(self):
        from errors import ProtocolError
        from renderer import FirecrawlRenderer

        with patch('renderer.requests.request', side_effect=requests.ConnectionError("refused")) as mock_request, \
                patch('time.sleep'):
            with pytest.raises(ProtocolError) as exc_info:
                FirecrawlRenderer(api_key="k").submit_crawl("https://fund.com", 2, 50)
        assert mock_request.call_count == 3
        assert isinstance(exc_info.value.__cause__, requests.ConnectionError)

    def test_poll_is_single_attempt(self):
        from errors import RateLimitError
        from renderer import FirecrawlRenderer

        with patch('renderer.requests.request', return_value=_response(429)) as mock_request:
            with pytest.raises(RateLimitError):
                FirecrawlRenderer(api_key="k").poll_crawl("job-1")
        assert mock_request.call_count == 1

    @pytest.mark.parametrize("requested,sent", [(40, 15), (7.5, 7.5), (0, 1)])
    def test_poll_timeout_clamped(self, requested, sent):
        from renderer import FirecrawlRenderer

        payload = {"status": "scraping", "data": []}
        with patch('renderer.requests.request', return_value=_response(200, payload)) as mock_request:
            FirecrawlRenderer(api_key="k").poll_crawl("job-1", timeout=requested)
        assert mock_request.call_args.kwargs["timeout"] == sent

    def test_connection_error_retried(self):
        from renderer import FirecrawlRenderer

        responses = [requests.ConnectionError("reset"), _response(200, {"id": "job-9"})]
        with patch('renderer.requests.request', side_effect=responses), patch('time.sleep'):
            assert FirecrawlRenderer(api_key="k").submit_crawl("https://fund.com", 2, 50) == "job-9"

    def test_missing_job_id(self):
        from errors import ProtocolError
        from renderer import FirecrawlRenderer

        with patch('renderer.requests.request', return_value=_response(200, {"success": True})):
            with pytest.raises(ProtocolError):
                FirecrawlRenderer(api_key="k").submit_crawl("https://fund.com", 2, 50)

    def test_missing_api_key(self):
        from renderer import FirecrawlRenderer

        with patch('renderer.FIRECRAWL_API_KEY', None):
            with pytest.raises(RuntimeError):
                FirecrawlRenderer()


class TestSubmitAndPoll:
    def test_submit_body(self):
        from renderer import FirecrawlRenderer

        with patch('renderer.requests.request', return_value=_response(200, {"id": "job-1"})) as mock_request:
            FirecrawlRenderer(api_key="k").submit_crawl("https://fund.com/portfolio", 3, 25)

        body = mock_request.call_args.kwargs["json"]
        assert body["url"] == "https://fund.com/portfolio"
        assert body["maxDepth"] == 3
        assert body["limit"] == 25
        assert mock_request.call_args.kwargs["headers"]["Authorization"] == "Bearer k"

    def test_poll_parses_pages(self):
        from renderer import FirecrawlRenderer

        payload = {
            "status": "completed",
            "completed": 2,
            "total": 3,
            "data": [
                {"markdown": "# Acme", "html": "<h1>Acme</h1>",
                 "metadata": {"sourceURL": "https://fund.com/portfolio/acme", "title": "Acme"}},
                {"markdown": "no url", "metadata": {}},
                "junk",
            ],
        }
        with patch('renderer.requests.request', return_value=_response(200, payload)):
            status = FirecrawlRenderer(api_key="k").poll_crawl("job-1")

        assert status.status == "completed"
        assert status.completed == 2
        assert status.total == 3
        assert [p.url for p in status.pages] == ["https://fund.com/portfolio/acme"]
        assert status.pages[0].title == "Acme"


class TestScrape:
    def test_structured_scrape(self):
        from renderer import FirecrawlRenderer

        payload = {"success": True, "data": {
            "markdown": "# Acme",
            "html": "<h1>Acme</h1>",
            "extract": {"company_name": "Acme"},
            "metadata": {"url": "https://fund.com/portfolio/acme", "description": "Robots."},
        }}
        schema = {"type": "object"}
        with patch('renderer.requests.request', return_value=_response(200, payload)) as mock_request:
            page = FirecrawlRenderer(api_key="k").scrape_page(
                "https://fund.com/portfolio/acme", want_structured=True, schema=schema,
            )

        body = mock_request.call_args.kwargs["json"]
        assert body["formats"][0] == "extract"
        assert body["extract"] == {"schema": schema}
        assert page.extracted == {"company_name": "Acme"}
        assert page.description == "Robots."

    def test_plain_scrape_uses_fallback_url(self):
        from renderer import FirecrawlRenderer

        payload = {"success": True, "data": {"markdown": "hello"}}
        with patch('renderer.requests.request', return_value=_response(200, payload)) as mock_request:
            page = FirecrawlRenderer(api_key="k").scrape_page("https://fund.com/x", timeout_ms=20000)

        body = mock_request.call_args.kwargs["json"]
        assert "extract" not in body
        assert body["timeout"] == 20000
        assert page.url == "https://fund.com/x"
        assert page.extracted is None

    def test_unsuccessful_scrape(self):
        from errors import ProtocolError
        from renderer import FirecrawlRenderer

        with patch('renderer.requests.request', return_value=_response(200, {"success": False, "error": "blocked"})):
            with pytest.raises(ProtocolError):
                FirecrawlRenderer(api_key="k").scrape_page("https://fund.com/x")

    def test_invalid_json(self):
        from errors import ProtocolError
        from renderer import FirecrawlRenderer

        resp = _response(200)
        resp.json.side_effect = ValueError("no json")
        with patch('renderer.requests.request', return_value=resp):
            with pytest.raises(ProtocolError):
                FirecrawlRenderer(api_key="k").scrape_page("https://fund.com/x")
