from sqlalchemy import Column, Integer, String

from storefront.db import Base


class Address(Base):
    __tablename__ = "addresses"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    line_one = Column(String(256), nullable=False)
    line_two = Column(String(256), nullable=True)
    city = Column(String(128), nullable=False)
    state = Column(String(128), nullable=False)
    postal_code = Column(String(32), nullable=False)
    country = Column(String(64), nullable=False, default="IN")
