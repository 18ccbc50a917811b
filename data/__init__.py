# Data layer for the campaign planner

from .parsers import PlaylistSheetParser, VendorSheetParser
from .manager import DataManager
from .repository import CampaignRepository, CampaignNotFound

__all__ = ['PlaylistSheetParser', 'VendorSheetParser', 'DataManager', 'CampaignRepository', 'CampaignNotFound']
