"""Unit-of-work decorator for service operations.

The wrapped function receives ``session`` as a keyword argument (the caller's, or
the thread-local session from get_db()) and owns its commit. On failure:

  DomainError     -> session rolled back, error propagates unchanged
  SQLAlchemyError -> session rolled back, logged with the operation context,
                     re-raised as PersistenceError (never retried here)
"""
from __future__ import annotations
import logging
from functools import wraps
from sqlalchemy.exc import SQLAlchemyError
from maintdesk.errors import DomainError, PersistenceError

logger = logging.getLogger(__name__)


def transactional(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        session = kwargs.get('session')
        if session is None:
            from maintdesk import get_db
            session = get_db()
            kwargs['session'] = session
        try:
            return fn(*args, **kwargs)
        except DomainError:
            session.rollback()
            raise
        except SQLAlchemyError as exc:
            session.rollback()
            context = {k: v for k, v in kwargs.items() if k != 'session'}
            logger.exception('uow.failed op=%s args=%r kwargs=%r', fn.__qualname__, args, context)
            raise PersistenceError(f'{fn.__name__} failed: unexpected persistence error') from exc
    return wrapper


__all__ = ['transactional']
