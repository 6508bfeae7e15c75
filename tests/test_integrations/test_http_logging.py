import logging
import os

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from app.integrations.base_client import BaseApiClient, is_retryable_exception


def _json_response(body: str = '{"result": "success"}', status_code: int = 200):
    response = MagicMock()
    response.status_code = status_code
    response.text = body
    response.content = body.encode()
    response.headers = {"content-type": "application/json"}
    response.json.return_value = {"result": "success"}
    return response


def _status_error(status_code: int) -> httpx.HTTPStatusError:
    error_response = MagicMock()
    error_response.status_code = status_code
    error_response.text = "error"
    return httpx.HTTPStatusError("Server Error", request=MagicMock(), response=error_response)


@pytest.mark.asyncio
async def test_http_logging_success(caplog):
    """Test HTTP request logging for successful requests."""
    caplog.set_level(logging.DEBUG)

    with patch('httpx.AsyncClient') as mock_client_class:
        mock_client = AsyncMock()
        mock_client_class.return_value = mock_client
        mock_client.request.return_value = _json_response()

        client = BaseApiClient("https://portal.example.com/rest/1/secret/")
        result = await client._request("POST", "crm.deal.productrows.get", json={"id": 1})

        assert result == {"result": "success"}

        log_records = [record for record in caplog.records if record.name == "http"]
        success_logs = [r for r in log_records if "-> 200" in r.getMessage()]
        assert len(success_logs) == 1

        extra = success_logs[0].extra
        assert extra['method'] == 'POST'
        assert extra['url'] == 'crm.deal.productrows.get'
        assert extra['status_code'] == 200
        assert 'elapsed_ms' in extra
        assert 'response_preview' in extra
        assert 'response_hash' in extra


@pytest.mark.asyncio
async def test_http_logging_with_headers_redaction():
    """Test that sensitive headers are redacted in logs."""
    with patch('httpx.AsyncClient') as mock_client_class:
        mock_client = AsyncMock()
        mock_client_class.return_value = mock_client
        mock_client.request.return_value = _json_response()

        client = BaseApiClient("https://api.example.com")

        with patch.object(client._logger, 'debug') as mock_debug:
            await client._request("POST", "methods", headers={
                "Authorization": "Bearer secret-token",
                "Content-Type": "application/json",
                "X-API-Key": "secret-key"
            })

            mock_debug.assert_called()
            extra_data = mock_debug.call_args[1]['extra']['extra']
            headers = extra_data['headers']

            assert headers['Authorization'] == '***'
            assert headers['X-API-Key'] == '***'
            assert headers['Content-Type'] == 'application/json'


@pytest.mark.asyncio
async def test_http_logging_error_handling():
    """Test HTTP error logging."""
    with patch('httpx.AsyncClient') as mock_client_class:
        mock_client = AsyncMock()
        mock_client_class.return_value = mock_client
        mock_client.request.side_effect = _status_error(400)

        client = BaseApiClient("https://api.example.com")

        with patch.object(client._logger, 'error') as mock_error:
            with pytest.raises(httpx.HTTPStatusError):
                await client._request("POST", "catalog.document.add", tries=1)

            mock_error.assert_called()
            call_args = mock_error.call_args
            assert "HTTP FAIL" in call_args[0][0]
            extra_data = call_args[1]['extra']['extra']
            assert extra_data['method'] == 'POST'
            assert extra_data['attempts'] == 1
            assert 'elapsed_ms' in extra_data


@pytest.mark.asyncio
async def test_http_response_sampling():
    """Test response body sampling based on LOG_SAMPLE_RATE."""
    with patch('httpx.AsyncClient') as mock_client_class:
        mock_client = AsyncMock()
        mock_client_class.return_value = mock_client
        mock_client.request.return_value = _json_response('full response body')

        client = BaseApiClient("https://api.example.com")

        with patch.dict(os.environ, {'LOG_SAMPLE_RATE': '1.0'}):
            with patch.object(client._logger, 'info') as mock_info:
                await client._request("POST", "methods")
                extra_data = mock_info.call_args[1]['extra']['extra']
                assert extra_data['response_preview'] == 'full response body'

        with patch.dict(os.environ, {'LOG_SAMPLE_RATE': '0.0'}):
            with patch.object(client._logger, 'info') as mock_info:
                await client._request("POST", "methods")
                extra_data = mock_info.call_args[1]['extra']['extra']
                assert '[sampled hash:' in extra_data['response_preview']


def test_response_hash_generation():
    """Test response body hash generation."""
    client = BaseApiClient("https://api.example.com")

    hash_result = client._maybe_hash("test response content")

    assert len(hash_result) == 16
    assert all(c in '0123456789abcdef' for c in hash_result)
    assert client._maybe_hash("test response content") == hash_result


@pytest.mark.asyncio
async def test_retry_on_server_error():
    """First call fails with 503, second succeeds."""
    with patch('httpx.AsyncClient') as mock_client_class:
        mock_client = AsyncMock()
        mock_client_class.return_value = mock_client
        mock_client.request.side_effect = [_status_error(503), _json_response()]

        client = BaseApiClient("https://api.example.com")
        client.retry_multiplier = 0

        result = await client._request("POST", "methods", tries=2)

        assert result == {"result": "success"}
        assert mock_client.request.call_count == 2


@pytest.mark.asyncio
async def test_no_retry_when_single_try():
    with patch('httpx.AsyncClient') as mock_client_class:
        mock_client = AsyncMock()
        mock_client_class.return_value = mock_client
        mock_client.request.side_effect = [_status_error(503), _json_response()]

        client = BaseApiClient("https://api.example.com")
        client.retry_multiplier = 0

        with pytest.raises(httpx.HTTPStatusError):
            await client._request("POST", "catalog.document.add", tries=1)
        assert mock_client.request.call_count == 1


@pytest.mark.asyncio
async def test_no_retry_on_client_error():
    with patch('httpx.AsyncClient') as mock_client_class:
        mock_client = AsyncMock()
        mock_client_class.return_value = mock_client
        mock_client.request.side_effect = [_status_error(400), _json_response()]

        client = BaseApiClient("https://api.example.com")
        client.retry_multiplier = 0

        with pytest.raises(httpx.HTTPStatusError):
            await client._request("POST", "methods", tries=3)
        assert mock_client.request.call_count == 1


def test_is_retryable_exception():
    assert is_retryable_exception(httpx.ConnectError("boom")) is True
    assert is_retryable_exception(httpx.ReadTimeout("slow")) is True
    assert is_retryable_exception(_status_error(502)) is True
    assert is_retryable_exception(_status_error(404)) is False
    assert is_retryable_exception(ValueError("x")) is False
