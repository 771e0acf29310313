from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

S3_CONFIG_VERSION = 2


class S3Config(BaseModel):
    """
    오브젝트 스토리지 연결 설정
    예전 스키마(region)는 무시, 없는 필드는 빈 문자열로 채움
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    url: str = ""
    access_key_id: str = Field(default="", alias="accessKeyId")
    secret_access_key: str = Field(default="", alias="secretAccessKey")
    bucket_name: str = Field(default="", alias="bucketName")
    prefix: str = ""

    def is_complete(self) -> bool:
        return all([self.url, self.access_key_id, self.secret_access_key, self.bucket_name])


class S3ConfigResult(BaseModel):
    success: bool
    message: str
    config: Optional[S3Config] = None
