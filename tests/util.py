from sqlalchemy.dialects import sqlite


def stmt2sql(stmt):
    """ Convert an SqlAlchemy statement into a string, with values inlined """
    return str(stmt.compile(
        dialect=sqlite.dialect(),
        compile_kwargs={'literal_binds': True},
    ))


def q2sql(q):
    """ Convert an SqlAlchemy query to string """
    return stmt2sql(q.statement)


def titles(records):
    """ Get the list of titles from a list of records """
    return [r['title'] for r in records]
