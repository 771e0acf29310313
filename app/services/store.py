import logging
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import DEFAULT_STORE_QUOTA_BYTES
from app.core.errors import QuotaExceededError, StorageError
from app.models.stored_item import StoredItem

logger = logging.getLogger(__name__)


class KeyedStore:
    """
    사용자별 key로 문자열 값을 저장하는 저장소 (localStorage 와 같은 동작)
    값 하나가 quota_bytes 를 넘으면 QuotaExceededError
    """

    def __init__(self, db: Session, quota_bytes: int = DEFAULT_STORE_QUOTA_BYTES):
        self.db = db
        self.quota_bytes = quota_bytes

    def get_item(self, key: str) -> Optional[str]:
        item = self.db.query(StoredItem).filter(StoredItem.key == key).first()
        return item.value if item else None

    def set_item(self, key: str, value: str) -> None:
        size = len(value.encode("utf-8"))
        if size > self.quota_bytes:
            raise QuotaExceededError(f"Value for '{key}' is {size} bytes, quota is {self.quota_bytes} bytes")

        try:
            item = self.db.query(StoredItem).filter(StoredItem.key == key).first()
            if item:
                item.value = value
            else:
                self.db.add(StoredItem(key=key, value=value))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ 저장 실패 ({key}): {str(e)}")
            raise StorageError(f"Failed to write '{key}': {str(e)}")

    def remove_item(self, key: str) -> None:
        try:
            self.db.query(StoredItem).filter(StoredItem.key == key).delete()
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ 삭제 실패 ({key}): {str(e)}")
            raise StorageError(f"Failed to remove '{key}': {str(e)}")
