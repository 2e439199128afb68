from datetime import datetime
from typing import Any
from pydantic import BaseModel, Field


class VideoResponse(BaseModel):
    """Video as the web client expects it (Mongo-style _id, camelCase)."""
    id: str = Field(alias="_id")
    title: str
    description: str | None = None
    category: str = "Other"
    video_url: str = Field(alias="videoUrl")
    thumbnail_url: str | None = Field(default=None, alias="thumbnailUrl")
    views: int = 0
    likes: int = 0
    dislikes: int = 0
    author_id: str = Field(alias="authorId")
    author_name: str = Field(default="Unknown", alias="authorName")
    author_subscribers: int = Field(default=0, alias="authorSubscribers")
    created_at: datetime = Field(alias="createdAt")

    class Config:
        populate_by_name = True


class UploadResponse(BaseModel):
    message: str
    video: VideoResponse


class ReactionRequest(BaseModel):
    # Checked by engagement.parse_reaction_type so a bad value is a 400, not a 422.
    type: Any = None


class ReactionResponse(BaseModel):
    likes: int
    dislikes: int
    reaction: str | None = None


class SubscriptionResponse(BaseModel):
    subscribers: int
    is_subscribed: bool = Field(alias="isSubscribed")

    class Config:
        populate_by_name = True


class DashboardResponse(BaseModel):
    total_videos: int = Field(alias="totalVideos")
    total_views: int = Field(alias="totalViews")
    total_likes: int = Field(alias="totalLikes")
    videos: list[VideoResponse]

    class Config:
        populate_by_name = True


class DeleteVideoResponse(BaseModel):
    message: str
    id: str
