""" Default settings of the application

Every setting can be overridden with an environment variable prefixed with `DOCQUERY_`.
Values are parsed as JSON when possible:

    DOCQUERY_DATABASE_URL=postgresql://localhost/products
    DOCQUERY_PORT=8080
    DOCQUERY_MAX_ITEMS=100
"""


class DefaultConfig:
    #: SqlAlchemy URL of the store
    DATABASE_URL = 'sqlite:///test.db'

    #: Where to listen
    HOST = '127.0.0.1'
    PORT = 3002

    #: The maximum number of records a single query can return. None: unlimited
    MAX_ITEMS = None

    #: Number of seconds a request may spend talking to the store. None: unlimited
    REQUEST_TIMEOUT = None

    #: Logging
    LOG_LEVEL = 'INFO'
    SQL_ECHO = False


#: Prefix for environment variables
ENV_PREFIX = 'DOCQUERY'
