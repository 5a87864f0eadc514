# ============================================================================
# src/lab_extraction/config/parser_config.py
# ============================================================================
"""
Parser Settings
- Spatial row reconstruction geometry
- Strategy gating (loose rows, spatial rescue)
- Default canonicalisation mode
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class ParserSettings(BaseSettings):
    SPATIAL_Y_GROUP_TOLERANCE: float = Field(
        default=2.0,
        ge=0.0,
        description="Text items whose baselines differ by at most this many points share a row"
    )
    SPATIAL_CLUSTER_GAP: float = Field(
        default=42.0,
        ge=0.0,
        description="Horizontal gap (points) that starts a new cluster within a row"
    )
    SPATIAL_BAND_WIDTH: float = Field(
        default=120.0,
        gt=0.0,
        description="Width of a column band used to remember the active marker label"
    )
    SPATIAL_LABEL_MAX_DISTANCE: float = Field(
        default=260.0,
        description="Max centre distance between a result cluster and its left label"
    )
    SPATIAL_ANCHOR_MAX_DY: float = Field(
        default=220.0,
        description="Max vertical distance to a label anchor in a neighbouring band"
    )
    SPATIAL_ANCHOR_MAX_DX: float = Field(
        default=62.0,
        description="Max horizontal distance to a label anchor stacked above a value"
    )
    SPATIAL_TRAILING_MAX_GAP: float = Field(
        default=120.0,
        description="Max gap to a trailing cluster merged into a label+value candidate"
    )
    TEXT_ITEM_GAP_DOUBLE_SPACE: float = Field(
        default=18.0,
        description="Horizontal gap between words that is rendered as a double space"
    )
    LOOSE_STRATEGY_MAX_ROWS: int = Field(
        default=6,
        ge=0,
        description="Loose row matching only runs when line+column strategies yield fewer rows"
    )
    SPATIAL_BOOST_MIN_MARKERS: int = Field(
        default=8,
        description="Spatial rescue runs when non-spatial markers stay below this count"
    )
    SPATIAL_BOOST_MIN_DENSITY: float = Field(
        default=0.03,
        description="Spatial rescue runs when markers per text line stay below this ratio"
    )
    PROFILE_SCAN_CHARS: int = Field(
        default=10000,
        description="Number of leading characters scanned for profile signals"
    )
    NORMALIZATION_MODE: str = Field(
        default="balanced",
        pattern="^(conservative|balanced|aggressive)$",
        description="Canonical marker resolution strictness"
    )


parser_settings = ParserSettings()
