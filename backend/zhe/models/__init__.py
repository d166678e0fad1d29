from .folder import Folder
from .link import Link
from .analytics import Analytics
from .tag import Tag, LinkTag
from .upload import Upload
from .webhook import Webhook
from .user_settings import UserSettings

__all__ = ["Folder", "Link", "Analytics", "Tag", "LinkTag", "Upload", "Webhook", "UserSettings"]
