import json
import logging
from typing import Optional

from app.core.errors import StorageError
from app.schemas.s3_config import S3_CONFIG_VERSION, S3Config, S3ConfigResult
from app.services.store import KeyedStore

logger = logging.getLogger(__name__)

S3_CONFIG_KEY = "s3ImaginariumConfig"
CONFIG_FIELDS = ("url", "accessKeyId", "secretAccessKey", "bucketName", "prefix")


def config_key(user_id: str) -> str:
    return f"{S3_CONFIG_KEY}_{user_id}"


def save_s3_config(store: KeyedStore, user_id: str, config: S3Config) -> None:
    record = config.model_dump(by_alias=True)
    record["version"] = S3_CONFIG_VERSION
    store.set_item(config_key(user_id), json.dumps(record))


def load_s3_config(store: KeyedStore, user_id: str) -> Optional[S3Config]:
    """
    저장된 설정 로드, 예전 스키마도 허용 (없는 필드는 "")
    손상된 레코드는 삭제하고 None
    """
    raw = store.get_item(config_key(user_id))
    if not raw:
        return None

    try:
        record = json.loads(raw)
        if not isinstance(record, dict):
            raise ValueError("S3 config record is not an object")
    except ValueError as e:
        logger.error(f"❌ Error parsing S3 config for user {user_id}: {str(e)}")
        store.remove_item(config_key(user_id))
        return None

    return S3Config(**{field: str(record.get(field) or "") for field in CONFIG_FIELDS})


def delete_s3_config(store: KeyedStore, user_id: str) -> None:
    store.remove_item(config_key(user_id))


def handle_save_s3_config(store: KeyedStore, user_id: str, config: S3Config) -> S3ConfigResult:
    logger.info(f"[Settings] Attempting to save S3 config for user {user_id}")
    try:
        save_s3_config(store, user_id, config)
    except StorageError as e:
        logger.error(f"❌ Error saving S3 config for user {user_id}: {e.message}")
        return S3ConfigResult(success=False, message=f"Failed to save S3 configuration: {e.message}")
    logger.info(f"✅ S3 config saved for user {user_id}")
    return S3ConfigResult(success=True, message="S3 configuration saved successfully.")


def handle_load_s3_config(store: KeyedStore, user_id: str) -> S3ConfigResult:
    try:
        config = load_s3_config(store, user_id)
    except StorageError as e:
        logger.error(f"❌ Error loading S3 config for user {user_id}: {e.message}")
        return S3ConfigResult(success=False, message=f"Failed to load S3 configuration: {e.message}")
    if config is None:
        return S3ConfigResult(success=True, message="No S3 configuration found.", config=None)
    return S3ConfigResult(success=True, message="S3 configuration loaded.", config=config)


def handle_delete_s3_config(store: KeyedStore, user_id: str) -> S3ConfigResult:
    try:
        delete_s3_config(store, user_id)
    except StorageError as e:
        logger.error(f"❌ Error deleting S3 config for user {user_id}: {e.message}")
        return S3ConfigResult(success=False, message=f"Failed to delete S3 configuration: {e.message}")
    logger.info(f"✅ S3 config deleted for user {user_id}")
    return S3ConfigResult(success=True, message="S3 configuration deleted.")
