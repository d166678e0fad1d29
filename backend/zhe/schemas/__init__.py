from .link import LinkCreate, LinkRead, LinkUpdate, LinkMetadataUpdate
from .folder import FolderCreate, FolderRead, FolderUpdate
from .tag import TagCreate, TagRead, TagUpdate, LinkTagRead
from .upload import UploadCreate, UploadRead
from .webhook import WebhookRead
from .settings import UserSettingsRead
from .analytics import AnalyticsRead, AnalyticsStats, ClickEvent, OverviewStats, TopLinkEntry
from .sync import BulkPutResult, KVEntry, KVLinkData, SyncHealth, SyncHistoryEntry, SyncResult

__all__ = [
    "LinkCreate", "LinkRead", "LinkUpdate", "LinkMetadataUpdate",
    "FolderCreate", "FolderRead", "FolderUpdate",
    "TagCreate", "TagRead", "TagUpdate", "LinkTagRead",
    "UploadCreate", "UploadRead",
    "WebhookRead",
    "UserSettingsRead",
    "AnalyticsRead", "AnalyticsStats", "ClickEvent", "OverviewStats", "TopLinkEntry",
    "BulkPutResult", "KVEntry", "KVLinkData", "SyncHealth", "SyncHistoryEntry", "SyncResult",
]
