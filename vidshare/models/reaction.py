import uuid
import enum
from datetime import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint
from vidshare.database import Base


class ReactionType(str, enum.Enum):
    LIKE = "like"
    DISLIKE = "dislike"


class Reaction(Base):
    """At most one reaction per (user, video). Switching type updates the row in place."""
    __tablename__ = "reactions"
    __table_args__ = (UniqueConstraint("user_id", "video_id", name="uq_reactions_user_video"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    video_id = Column(String(36), ForeignKey("videos.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(10), nullable=False)  # "like" | "dislike"
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
