# Services package

from ai_tagging.services.asset_api import CredentialCache, ExternalAsset, MuseAssetClient
from ai_tagging.services.settings_service import TeamSettingsProvider, TeamSettingsService

__all__ = [
    "CredentialCache",
    "ExternalAsset",
    "MuseAssetClient",
    "TeamSettingsProvider",
    "TeamSettingsService",
]
