from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.core.config import Settings, load_settings
from app.core.database import Base, engine as default_engine
from app.core.state import build_state
from app.api import auth, gallery, generate, image, settings as settings_api
from app.models.user import User  # ✅ 명시적 모델 import
from app.models.auth_token import AuthToken  # ✅ 명시적 모델 import
from app.models.stored_item import StoredItem  # ✅ 명시적 모델 import (사용자별 저장소)


def create_app(settings: Optional[Settings] = None, engine=None) -> FastAPI:
    # ✅ FastAPI 앱 생성
    app = FastAPI(title="Imaginarium API")

    # ✅ CORS 설정 (배포시 특정 도메인으로 제한 권장)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # 개발 중 전체 허용, 배포 시 특정 도메인으로 제한
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ✅ DB 테이블 자동 생성 (명시적 모델 포함)
    Base.metadata.create_all(bind=engine or default_engine)

    # ✅ 공유 상태 (설정, AI 클라이언트, 메일, 갤러리 세션)
    app.state.imaginarium = build_state(settings or load_settings())

    # ✅ API 라우터 등록
    app.include_router(auth.router, prefix="/api")          # 로그인/회원가입
    app.include_router(generate.router, prefix="/api")      # 프롬프트 개선, 이미지 생성/수정
    app.include_router(gallery.router, prefix="/api")       # 갤러리 상태
    app.include_router(image.router, prefix="/api")         # 다운로드 / S3 업로드
    app.include_router(settings_api.router, prefix="/api")  # S3 설정

    # ✅ 루트 엔드포인트
    @app.get("/")
    def read_root():
        return {"message": "Hello Imaginarium!"}

    return app


app = create_app()
