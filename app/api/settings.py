from fastapi import APIRouter, Depends

from app.api.deps import get_current_user, get_store
from app.models.user import User
from app.schemas.s3_config import S3Config, S3ConfigResult
from app.services.s3_config import handle_delete_s3_config, handle_load_s3_config, handle_save_s3_config
from app.services.store import KeyedStore

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("/s3", response_model=S3ConfigResult)
def load_config(user: User = Depends(get_current_user), store: KeyedStore = Depends(get_store)):
    return handle_load_s3_config(store, user.uid)


@router.put("/s3", response_model=S3ConfigResult)
def save_config(config: S3Config, user: User = Depends(get_current_user), store: KeyedStore = Depends(get_store)):
    return handle_save_s3_config(store, user.uid, config)


@router.delete("/s3", response_model=S3ConfigResult)
def delete_config(user: User = Depends(get_current_user), store: KeyedStore = Depends(get_store)):
    return handle_delete_s3_config(store, user.uid)
