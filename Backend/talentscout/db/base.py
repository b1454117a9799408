from sqlalchemy.orm import DeclarativeBase


# This is the base class which all the tables inherit.
class Base(DeclarativeBase):
    pass
