"""유틸리티 함수 테스트."""

import logging

import pytest
from unittest.mock import patch, MagicMock

from crawler.utils import (
    absolute_url,
    clean_text,
    coerce_price,
    get_random_user_agent,
    get_random_viewport,
    log_error,
    parse_price,
    set_logger_level,
    setup_logger,
)


class TestUtils:
    """유틸리티 함수들의 단위 테스트."""

    def test_get_random_user_agent(self):
        """랜덤 User-Agent 생성 테스트."""
        user_agent = get_random_user_agent()

        assert isinstance(user_agent, str)
        assert "Mozilla" in user_agent

    def test_get_random_viewport(self):
        """랜덤 viewport 생성 테스트."""
        viewport = get_random_viewport()

        assert viewport["width"] > 0
        assert viewport["height"] > 0

    @pytest.mark.parametrize("price_text,expected", [
        ("₩4,500", 4500),
        ("4,500원", 4500),
        ("1,234,567", 1234567),
        ("가격 문의", None),
        ("", None),
        (None, None),
    ])
    def test_parse_price(self, price_text, expected):
        """가격 파싱 테스트."""
        assert parse_price(price_text) == expected

    @pytest.mark.parametrize("value,expected", [
        (None, None),
        ("", None),
        ("  ", None),
        (4500, 4500),
        (4500.5, 4500.5),
        ("4500", 4500),
        ("4500.5", 4500.5),
    ])
    def test_coerce_price(self, value, expected):
        """JSON 가격 정규화 테스트."""
        result = coerce_price(value)
        assert result == expected
        assert type(result) is type(expected)

    @pytest.mark.parametrize("value", ["사천오백원", True, [4500], {"price": 1}])
    def test_coerce_price_rejects_non_numeric(self, value):
        """숫자가 아닌 가격은 ValueError."""
        with pytest.raises(ValueError):
            coerce_price(value)

    @pytest.mark.parametrize("text,expected", [
        ("  아이스  아메리카노  ", "아이스 아메리카노"),
        ("", ""),
        (None, ""),
        ("  \n\t  카페\n\n라떼  \t  ", "카페 라떼"),
    ])
    def test_clean_text(self, text, expected):
        """텍스트 정리 테스트."""
        assert clean_text(text) == expected

    @pytest.mark.parametrize("url,expected", [
        ("https://cdn.example.com/a.jpg", "https://cdn.example.com/a.jpg"),
        ("//cdn.example.com/a.jpg", "https://cdn.example.com/a.jpg"),
        ("/upload/a.jpg", "https://www.example.com/upload/a.jpg"),
        ("upload/a.jpg", "https://www.example.com/menu/upload/a.jpg"),
        ("data:image/png;base64,AAAA", None),
        ("", None),
        (None, None),
    ])
    def test_absolute_url(self, url, expected):
        """상대 URL 절대화 테스트."""
        assert absolute_url(url, "https://www.example.com/menu/") == expected

    @patch('json.dumps')
    def test_log_error(self, mock_json_dumps):
        """에러 로깅 테스트."""
        mock_logger = MagicMock()
        mock_json_dumps.return_value = '{"test": "data"}'

        log_error(mock_logger, "starbucks_9200000001", "Test error", "Stack trace")

        mock_logger.error.assert_called_once()
        call_args = mock_json_dumps.call_args[0][0]
        assert call_args["externalId"] == "starbucks_9200000001"
        assert call_args["reason"] == "Test error"
        assert call_args["trace"] == "Stack trace"
        assert "timestamp" in call_args

    def test_setup_logger_reuses_handlers(self):
        """같은 이름의 로거는 핸들러를 중복 등록하지 않는다."""
        logger = setup_logger("test_setup_logger_reuses_handlers")
        handler_count = len(logger.handlers)

        again = setup_logger("test_setup_logger_reuses_handlers", logging.DEBUG)

        assert again is logger
        assert len(again.handlers) == handler_count
        assert again.level == logging.DEBUG

    def test_set_logger_level(self):
        """로거와 핸들러 레벨을 함께 바꾼다."""
        logger = setup_logger("test_set_logger_level")
        set_logger_level(logger, logging.WARNING)

        assert logger.level == logging.WARNING
        assert all(handler.level == logging.WARNING for handler in logger.handlers)
