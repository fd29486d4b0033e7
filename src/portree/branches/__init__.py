"""Branch metadata persistence."""

from .models import BranchMetadata, parse_config_listing
from .store import BranchMetadataStore

__all__ = ["BranchMetadata", "BranchMetadataStore", "parse_config_listing"]
