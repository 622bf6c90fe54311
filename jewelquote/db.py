from collections.abc import Callable, Iterator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from jewelquote.settings import settings


def _connect_args(url: str) -> dict:
    # SQLite 는 FastAPI 스레드풀에서 같은 커넥션을 공유할 수 있어야 함
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
    echo=settings.database_echo,
    connect_args=_connect_args(settings.database_url),
)

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    expire_on_commit=False,
)


def get_session() -> Iterator[Session]:
    with SessionLocal() as session:
        with session.begin():
            yield session


@contextmanager
def unit_of_work(factory: Callable[[], Session] = SessionLocal) -> Iterator[Session]:
    """
    하나의 트랜잭션 경계.

    블록 안의 모든 쓰기는 함께 커밋되거나, 예외 발생 시 함께 롤백됩니다.
    """
    with factory() as session:
        with session.begin():
            yield session
