from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.orm import Session

from storefront.utils.logging import get_logger

log = get_logger(__name__)


@contextmanager
def smart_transaction(session: Session) -> Iterator[Session]:
    """
    Run the block in a transaction on ``session`` and yield the session.

    With no transaction open this begins one and commits it on exit. If one
    is already open (an outer service call, or a test holding the session)
    the block joins it through a SAVEPOINT and the outer owner commits.
    Either way an exception rolls back everything done inside the block.
    """
    if session.in_transaction():
        log.debug("Joining open transaction through a savepoint")
        cm = session.begin_nested()
    else:
        cm = session.begin()
    with cm:
        yield session
