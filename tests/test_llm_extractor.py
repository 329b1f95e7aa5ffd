"""
Tests for llm_extractor.py - OpenAI-backed schema extraction.
"""
from unittest.mock import Mock, patch


def _completion(content):
    resp = Mock()
    resp.choices = [Mock()]
    resp.choices[0].message.content = content
    return resp


class TestExtractStructured:
    """Tests for extract_structured()."""

    def test_fenced_json_with_trailing_comma(self):
        from llm_extractor import extract_structured

        content = '```json\n{"company_name": "Acme Robotics", "industry": "Robotics",}\n```'
        with patch('llm_extractor.client') as mock_client:
            mock_client.chat.completions.create.return_value = _completion(content)
            result = extract_structured("https://fund.com/portfolio/acme", "# Acme", {"type": "object"})

        assert result == {"company_name": "Acme Robotics", "industry": "Robotics"}

    def test_plain_json(self):
        from llm_extractor import extract_structured

        with patch('llm_extractor.client') as mock_client:
            mock_client.chat.completions.create.return_value = _completion('{"investments": []}')
            result = extract_structured("https://fund.com/portfolio", "# Portfolio", {})

        assert result == {"investments": []}
        kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert kwargs["temperature"] == 0.0
        assert kwargs["messages"][0]["role"] == "system"

    def test_non_object_json(self):
        from llm_extractor import extract_structured

        with patch('llm_extractor.client') as mock_client:
            mock_client.chat.completions.create.return_value = _completion('["Acme"]')
            assert extract_structured("https://fund.com/portfolio", "# Portfolio", {}) is None

    def test_garbage(self):
        from llm_extractor import extract_structured

        with patch('llm_extractor.client') as mock_client:
            mock_client.chat.completions.create.return_value = _completion("I could not find anything")
            assert extract_structured("https://fund.com/portfolio", "# Portfolio", {}) is None

    def test_no_client(self):
        from llm_extractor import extract_structured

        with patch('llm_extractor.client', None):
            assert extract_structured("https://fund.com/portfolio", "# Portfolio", {}) is None

    def test_empty_page_skips_call(self):
        from llm_extractor import extract_structured

        with patch('llm_extractor.client') as mock_client:
            assert extract_structured("https://fund.com/portfolio", "   ", {}) is None
        mock_client.chat.completions.create.assert_not_called()

    def test_api_error_returns_none(self):
        """A failed OpenAI call means structured extraction is unavailable."""
        from openai import OpenAIError
        from llm_extractor import extract_structured

        with patch('llm_extractor.client') as mock_client:
            mock_client.chat.completions.create.side_effect = OpenAIError("invalid api key")
            assert extract_structured("https://fund.com/portfolio", "# Portfolio", {}) is None
        assert mock_client.chat.completions.create.call_count == 1


class TestRepairJson:
    def test_extracts_object_from_prose(self):
        import json
        from utils.json_repair import repair_json

        text = 'Here you go: {"a": [1, 2,], "b": "x",} thanks'
        assert json.loads(repair_json(text)) == {"a": [1, 2], "b": "x"}
