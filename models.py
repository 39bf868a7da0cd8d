from sqlalchemy import Column, Integer, String, DateTime, Date, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from database import Base

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_ADMIN)


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(50), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    name = Column(String(50), nullable=False)
    registration_date = Column(DateTime, default=func.now(), nullable=False)
    birth_date = Column(Date, nullable=True)
    role = Column(String(10), default=ROLE_USER, nullable=False)

    links = relationship("Link", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)
    visits = relationship("Visit", back_populates="user", cascade="all, delete-orphan", passive_deletes=True)


class Link(Base):
    __tablename__ = "links"
    __table_args__ = (
        # duplicate prevention is scoped per user, not global
        UniqueConstraint("id_user", "original_link", name="uq_links_user_original"),
    )
    id = Column(Integer, primary_key=True, index=True)
    original_link = Column(String(2048), nullable=False)
    short_link = Column(String(4), unique=True, index=True, nullable=False)
    registration_date = Column(DateTime, default=func.now(), nullable=False, index=True)
    id_user = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    user = relationship("User", back_populates="links")
    visits = relationship("Visit", back_populates="link", cascade="all, delete-orphan", passive_deletes=True)


class Visit(Base):
    __tablename__ = "links_visited"
    id = Column(Integer, primary_key=True, index=True)
    visited_date = Column(DateTime, default=func.now(), nullable=False, index=True)
    operating_system = Column(String(100), nullable=True)
    browser = Column(String(100), nullable=True)
    ip_address = Column(String(45), nullable=True)
    country = Column(String(50), nullable=True)
    city = Column(String(100), nullable=True)
    id_user = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True)
    id_link = Column(Integer, ForeignKey("links.id", ondelete="CASCADE"), nullable=False, index=True)

    user = relationship("User", back_populates="visits")
    link = relationship("Link", back_populates="visits")
