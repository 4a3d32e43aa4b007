from .database import get_session, init_db

__all__ = ['get_session', 'init_db']
