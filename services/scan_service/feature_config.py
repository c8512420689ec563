import json
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from config.logging_config import get_logger
from services.scan_service.config import settings

logger = get_logger(__name__)


class Features(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    seo: bool = True
    headings: bool = True
    images: bool = True
    links: bool = True
    visual: bool = True
    performance: bool = True
    accessibility: bool = True
    responsive: bool = True
    security: bool = True
    tech_stack: bool = Field(default=True, alias="techStack")
    sitemap: bool = True


class FeatureConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    features: Features = Field(default_factory=Features)

    def is_enabled(self, feature: str) -> bool:
        return bool(getattr(self.features, feature, True))


def load_feature_config(path: str | Path | None = None) -> FeatureConfig:
    """Read the feature toggle file; a missing or unreadable file enables everything."""
    config_path = Path(path or settings.feature_config_path)
    if not config_path.exists():
        return FeatureConfig()

    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
        return FeatureConfig.model_validate(raw)
    except (OSError, ValueError, ValidationError) as e:
        logger.error(f"Failed to load feature config {config_path}: {e}")
        return FeatureConfig()
