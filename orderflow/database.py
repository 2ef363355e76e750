"""
데이터베이스 엔진 / 세션 / 스키마 생성

워커 스레드(알림 디스패처)도 같은 DB 를 쓰므로 SQLite 는 스레드 공유를 허용한다.
"""
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from orderflow.config import settings

Base = declarative_base()


def build_engine(url: str, echo: bool = False) -> Engine:
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, connect_args=connect_args, echo=echo)


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=bind)


def init_db(bind: Optional[Engine] = None) -> None:
    """모든 모델 테이블 생성 (models 패키지를 import 해야 Base.metadata 에 등록됨)"""
    import orderflow.models  # noqa: F401
    Base.metadata.create_all(bind=bind or engine)


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
SessionLocal = build_session_factory(engine)


def get_db():
    """요청 단위 세션"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
