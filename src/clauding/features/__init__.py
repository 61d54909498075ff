"""Feature operations and the archived-features index."""

from .archive import ArchiveIndex
from .service import FeatureService, validate_feature_name

__all__ = ["ArchiveIndex", "FeatureService", "validate_feature_name"]
