from vidshare.models.user import User
from vidshare.models.video import Video
from vidshare.models.view import View
from vidshare.models.reaction import Reaction, ReactionType
from vidshare.models.subscription import Subscription

__all__ = ["User", "Video", "View", "Reaction", "ReactionType", "Subscription"]
