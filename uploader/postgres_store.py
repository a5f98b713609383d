"""PostgreSQL 기반 제품 저장소 구현."""

import logging
import mimetypes
import threading
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

try:
    import psycopg2
    from psycopg2.extras import RealDictCursor
    PSYCOPG2_AVAILABLE = True
except ImportError:
    PSYCOPG2_AVAILABLE = False

import config
from uploader.errors import StoreConfigError, StoreRequestError
from uploader.store import STORED_KEYS, Cafe, ProductStore, StoredProduct

SCHEMA_SQL = """
    CREATE TABLE IF NOT EXISTS cafes (
        id SERIAL PRIMARY KEY,
        name TEXT NOT NULL,
        slug TEXT NOT NULL UNIQUE,
        image_storage_id TEXT,
        rank INTEGER
    );
    CREATE TABLE IF NOT EXISTS products (
        id SERIAL PRIMARY KEY,
        cafe_id INTEGER NOT NULL REFERENCES cafes(id),
        name TEXT NOT NULL,
        name_en TEXT,
        description TEXT,
        price DOUBLE PRECISION,
        external_image_url TEXT,
        image_storage_id TEXT,
        category TEXT,
        external_category TEXT,
        external_id TEXT NOT NULL,
        external_url TEXT NOT NULL DEFAULT '',
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        added_at BIGINT NOT NULL,
        updated_at BIGINT NOT NULL,
        removed_at BIGINT,
        UNIQUE (cafe_id, external_id)
    );
"""


class PostgresProductStore(ProductStore):
    """
    PostgreSQL 데이터베이스 기반 제품 저장소.

    cafes / products 테이블을 사용하며 이미지는 로컬 디렉토리에 파일로 저장한다.
    """

    def __init__(self, connection_string: Optional[str] = None, images_dir: Union[str, Path] = config.IMAGES_DIR):
        """
        PostgreSQL 저장소를 초기화한다.

        Args:
            connection_string: PostgreSQL 연결 문자열
            images_dir: 이미지 저장 디렉토리
        """
        self.logger = logging.getLogger(__name__)

        if not PSYCOPG2_AVAILABLE:
            raise ImportError("psycopg2가 설치되지 않았습니다. pip install psycopg2-binary를 실행하세요.")

        self.connection_string = connection_string
        if not self.connection_string:
            raise StoreConfigError("DATABASE_URL 환경변수가 설정되지 않았습니다.")

        self.images_dir = Path(images_dir)
        self.conn = None
        self._lock = threading.Lock()

        self._connect()
        self.ensure_schema()

    def _connect(self):
        """데이터베이스에 연결한다."""
        try:
            if self.conn is None or self.conn.closed:
                self.conn = psycopg2.connect(self.connection_string)
                self.logger.info("PostgreSQL 연결 성공")
        except Exception as e:
            self.logger.error(f"PostgreSQL 연결 실패: {str(e)}")
            raise StoreRequestError(f"PostgreSQL 연결 실패: {str(e)}") from e

    def _execute(self, query: str, params: tuple = (), fetch: str = None):
        """
        쿼리를 실행하고 커밋한다. 실패하면 롤백 후 StoreRequestError를 던진다.

        Args:
            query: SQL
            params: 바인딩 파라미터
            fetch: None, "one", "all"

        Returns:
            fetch 방식에 따른 결과
        """
        with self._lock:
            return self._execute_locked(query, params, fetch)

    def _execute_locked(self, query: str, params: tuple, fetch: Optional[str]):
        self._connect()
        try:
            with self.conn.cursor(cursor_factory=RealDictCursor) as cursor:
                cursor.execute(query, params)
                result = None
                if fetch == "one":
                    result = cursor.fetchone()
                elif fetch == "all":
                    result = cursor.fetchall()
            self.conn.commit()
            return result
        except psycopg2.Error as e:
            self.conn.rollback()
            self.logger.error(f"PostgreSQL 쿼리 실패: {str(e)}")
            raise StoreRequestError(f"PostgreSQL 쿼리 실패: {str(e)}") from e

    def ensure_schema(self) -> None:
        """필요한 테이블을 생성한다."""
        self._execute(SCHEMA_SQL)

    def get_cafe_by_slug(self, slug: str) -> Optional[Cafe]:
        row = self._execute("SELECT id, name, slug FROM cafes WHERE slug = %s", (slug,), fetch="one")
        return Cafe(id=str(row["id"]), name=row["name"], slug=row["slug"]) if row else None

    def create_cafe(self, name: str, slug: str) -> Cafe:
        row = self._execute(
            "INSERT INTO cafes (name, slug) VALUES (%s, %s) RETURNING id",
            (name, slug),
            fetch="one"
        )
        self.logger.info(f"카페 생성: {name} ({slug})")
        return Cafe(id=str(row["id"]), name=name, slug=slug)

    def list_products(self, cafe_id: str) -> List[StoredProduct]:
        rows = self._execute(
            "SELECT * FROM products WHERE cafe_id = %s ORDER BY id",
            (int(cafe_id),),
            fetch="all"
        )
        return [self._row_to_product(row) for row in rows]

    def _row_to_product(self, row: Dict[str, Any]) -> StoredProduct:
        price = row.get("price")
        if isinstance(price, float) and price.is_integer():
            price = int(price)
        data = {key: row.get(attr) for key, attr in STORED_KEYS.items()}
        data.update(_id=row["id"], cafeId=row["cafe_id"], price=price)
        return StoredProduct.from_dict(data)

    def insert_product(self, cafe_id: str, fields: Dict[str, Any]) -> str:
        columns = [STORED_KEYS[key] for key in fields]
        placeholders = ", ".join(["%s"] * (len(columns) + 1))
        row = self._execute(
            f"INSERT INTO products (cafe_id, {', '.join(columns)}) VALUES ({placeholders}) RETURNING id",
            (int(cafe_id), *fields.values()),
            fetch="one"
        )
        return str(row["id"])

    def patch_product(self, product_id: str, patch: Dict[str, Any]) -> None:
        if not patch:
            return
        assignments = ", ".join(f"{STORED_KEYS[key]} = %s" for key in patch)
        self._execute(
            f"UPDATE products SET {assignments} WHERE id = %s",
            (*patch.values(), int(product_id))
        )

    def store_image(self, data: bytes, content_type: str) -> str:
        self.images_dir.mkdir(parents=True, exist_ok=True)
        extension = mimetypes.guess_extension(content_type or "") or ".img"
        storage_id = f"{uuid.uuid4().hex}{extension}"
        (self.images_dir / storage_id).write_bytes(data)
        return storage_id

    def close(self) -> None:
        """데이터베이스 연결을 종료한다."""
        conn = getattr(self, "conn", None)
        if conn is not None and not conn.closed:
            conn.close()
            self.logger.info("PostgreSQL 연결 종료")

    def __del__(self):
        """소멸자에서 연결을 정리한다."""
        self.close()
