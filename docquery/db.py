""" Document Store Client: the engine, and the session factory bound to it """

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from .models import Base


def init_database(url, **engine_kwargs):
    """ Init DB

    :param url: SqlAlchemy database URL
    :param engine_kwargs: More arguments for create_engine()
    :rtype: (sqlalchemy.engine.Engine, sqlalchemy.orm.sessionmaker)
    """
    engine = create_engine(url, **engine_kwargs)
    Session = sessionmaker(bind=engine, expire_on_commit=False)
    return engine, Session


def create_all(engine):
    """ Create all tables """
    Base.metadata.create_all(bind=engine)
