from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from emtrack.infrastructure.db.engine import get_engine

SessionFactory = Callable[[], AbstractContextManager[Session]]


def make_session_scope(bind: Engine) -> SessionFactory:
    """Build a ``session_scope`` bound to ``bind``.

    Each scope is one transaction: committed when the block exits cleanly,
    rolled back when it raises.
    """
    session_local = sessionmaker(bind=bind, autoflush=False, autocommit=False, expire_on_commit=False, future=True)

    @contextmanager
    def scope() -> Iterator[Session]:
        session: Session = session_local()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return scope


engine = get_engine()
session_scope = make_session_scope(engine)
