"""Convex 저장소 테스트."""

from unittest.mock import MagicMock

import pytest
import requests

from uploader.convex_store import ConvexProductStore
from uploader.errors import StoreConfigError, StoreRequestError

CONVEX_URL = "https://happy-animal-123.convex.cloud/"


def response(body=None, status_error=None):
    mock = MagicMock()
    mock.json.return_value = body
    if status_error:
        mock.raise_for_status.side_effect = status_error
    return mock


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def convex(session):
    return ConvexProductStore(CONVEX_URL, timeout=5, session=session)


class TestConvexProductStore:
    """ConvexProductStore 테스트."""

    def test_query_request_shape(self, convex, session):
        """query는 /api/query로 path/args/format을 보낸다."""
        session.post.return_value = response({
            "status": "success",
            "value": {"_id": "cafe_abc", "name": "메가커피", "slug": "mega"},
        })

        cafe = convex.get_cafe_by_slug("mega")

        session.post.assert_called_once_with(
            "https://happy-animal-123.convex.cloud/api/query",
            json={"path": "cafes:getBySlug", "args": {"slug": "mega"}, "format": "json"},
            timeout=5,
        )
        assert (cafe.id, cafe.name, cafe.slug) == ("cafe_abc", "메가커피", "mega")

    def test_missing_cafe(self, convex, session):
        """null 값은 None."""
        session.post.return_value = response({"status": "success", "value": None})
        assert convex.get_cafe_by_slug("ediya") is None

    def test_list_products(self, convex, session):
        """제품 문서를 StoredProduct로 바꾼다."""
        session.post.return_value = response({"status": "success", "value": [{
            "_id": "p1", "cafeId": "cafe_abc", "name": "아메리카노", "externalId": "mega_아메리카노",
            "isActive": False, "addedAt": 1, "updatedAt": 2, "removedAt": 3,
        }]})

        products = convex.list_products("cafe_abc")

        assert products[0].id == "p1"
        assert products[0].is_active is False
        assert products[0].removed_at == 3
        assert products[0].price is None

    def test_insert_drops_null_fields(self, convex, session):
        """insert 인자에서 None 필드는 뺀다."""
        session.post.return_value = response({"status": "success", "value": "p9"})

        product_id = convex.insert_product("cafe_abc", {"name": "라떼", "nameEn": None, "isActive": True})

        assert product_id == "p9"
        sent = session.post.call_args.kwargs["json"]
        assert sent["path"] == "products:insertProduct"
        assert sent["args"] == {"name": "라떼", "isActive": True, "cafeId": "cafe_abc"}
        assert session.post.call_args.args[0].endswith("/api/mutation")

    def test_patch_keeps_nulls(self, convex, session):
        """patch는 None으로 필드를 비운다."""
        session.post.return_value = response({"status": "success", "value": None})

        convex.patch_product("p1", {"isActive": True, "removedAt": None})

        sent = session.post.call_args.kwargs["json"]
        assert sent["args"] == {"id": "p1", "patch": {"isActive": True, "removedAt": None}}

    def test_function_error(self, convex, session):
        """status가 error이면 StoreRequestError."""
        session.post.return_value = response({"status": "error", "errorMessage": "Server Error"})

        with pytest.raises(StoreRequestError, match="Server Error"):
            convex.get_cafe_by_slug("mega")

    def test_transport_error(self, convex, session):
        """HTTP 오류는 StoreRequestError로 감싼다."""
        session.post.return_value = response(status_error=requests.exceptions.HTTPError("502"))

        with pytest.raises(StoreRequestError):
            convex.list_products("cafe_abc")

    def test_store_image(self, convex, session):
        """업로드 URL을 받아 바이트를 올리고 storageId를 돌려준다."""
        session.post.side_effect = [
            response({"status": "success", "value": "https://upload.convex.cloud/xyz"}),
            response({"storageId": "kg2abc"}),
        ]

        storage_id = convex.store_image(b"\x89PNG", "image/png")

        assert storage_id == "kg2abc"
        upload_call = session.post.call_args_list[1]
        assert upload_call.args[0] == "https://upload.convex.cloud/xyz"
        assert upload_call.kwargs["headers"] == {"Content-Type": "image/png"}

    def test_store_image_without_storage_id(self, convex, session):
        """업로드 응답에 storageId가 없으면 StoreRequestError."""
        session.post.side_effect = [
            response({"status": "success", "value": "https://upload.convex.cloud/xyz"}),
            response({}),
        ]

        with pytest.raises(StoreRequestError):
            convex.store_image(b"\x89PNG", "image/png")

    def test_missing_function_is_config_error(self, convex, session):
        """배포에 없는 함수를 호출하면 StoreConfigError."""
        session.post.return_value = response({
            "status": "error",
            "errorMessage": "Could not find public function for 'products:insertProduct'",
        })

        with pytest.raises(StoreConfigError, match="products:insertProduct"):
            convex.insert_product("cafe_abc", {"name": "라떼", "externalId": "x"})

    def test_missing_function_http_error_is_config_error(self, convex, session):
        """HTTP 오류 본문에 함수 없음 메시지가 있어도 StoreConfigError."""
        failed = MagicMock()
        failed.text = '{"code":"BadRequest","message":"Could not find public function for \'cafes:create\'"}'
        session.post.return_value = response(status_error=requests.exceptions.HTTPError("400", response=failed))

        with pytest.raises(StoreConfigError, match="cafes:create"):
            convex.create_cafe("메가커피", "mega")
