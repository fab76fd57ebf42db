from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session

from ledgerapi.database.connection import SessionLocal


def get_db():
    db = SessionLocal()
    try:
        yield db
    except Exception:
        if db.in_transaction():
            db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """원자적 작업 단위

    블록 안의 모든 읽기/쓰기는 하나의 DB 트랜잭션으로 묶입니다.
    정상 종료 시 commit, 예외 발생 시 rollback 후 예외를 그대로 전파합니다.

    이미 atomic 블록 안이라면 바깥 작업 단위에 합류하며 commit/rollback 은
    가장 바깥 블록이 담당합니다.
    """
    if db.info.get("atomic_depth", 0) > 0:
        db.info["atomic_depth"] += 1
        try:
            yield db
        finally:
            db.info["atomic_depth"] -= 1
        return

    db.info["atomic_depth"] = 1
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.info["atomic_depth"] = 0
