from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Float, Text, DateTime
from sqlalchemy.orm import declarative_base


Base = declarative_base()


def utcnow():
    return datetime.now(timezone.utc)


class Product(Base):
    """ A product in the catalogue """
    __tablename__ = 'products'

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String, nullable=False)
    price = Column(Float, nullable=False)
    description = Column(Text, nullable=True)
    createdAt = Column('created_at', DateTime(timezone=True), nullable=False, default=utcnow)

    #: Fields that the API user can't set: they're assigned by the store
    ro_fields = ('id', 'createdAt')

    def __repr__(self):
        return '<Product id={} title={!r} price={!r}>'.format(self.id, self.title, self.price)
