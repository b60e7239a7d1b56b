# Local user store.
# Identities are issued by Supabase Auth; each authenticated identity is mapped
# to a row here on first use so records can reference an integer owner id.


from sqlalchemy import Column, DateTime, Integer, String

from app.database.session import Base, utcnow


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    auth_id = Column(String(64), nullable=False, unique=True, index=True)
    email = Column(String(255), nullable=False, unique=True)
    full_name = Column(String(255))
    role = Column(String(32), nullable=False, default="Viewer")
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
