"""
Location model (a dining hall or cafeteria identified by the feed)
"""
from sqlalchemy import Column, Integer, String
from cafeteria.database import Base


class Location(Base):
    __tablename__ = "locations"

    id = Column(Integer, primary_key=True, index=True)
    external_id = Column(String, unique=True, nullable=False)  # feed locationId
    name = Column(String, nullable=True)  # set once, at creation
