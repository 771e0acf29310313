from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.sql import func
from app.core.database import Base


class StoredItem(Base):
    """
    사용자별 key-value 저장소 (브라우저 localStorage 대응)
    예: generatedImages_<uid>, s3ImaginariumConfig_<uid>
    """
    __tablename__ = "stored_items"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String, unique=True, index=True, nullable=False)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
