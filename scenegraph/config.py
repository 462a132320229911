"""Caller-facing compiler configuration."""

from pydantic import BaseModel, ConfigDict, Field


class PlaceholderFillHeuristic(BaseModel):
    """Thresholds for dropping SOLID fills on container nodes.

    Design files often carry white or translucent black fills on frames and
    groups that act as placeholders or overlays rather than real backgrounds.
    The defaults reproduce the observed behaviour; every threshold can be
    tuned or the heuristic disabled entirely.
    """
    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=True, description="Apply the heuristic at all")
    suppress_white: bool = Field(default=True, description="Drop pure white container fills")
    white_min_channel: float = Field(
        default=1.0,
        description="Every RGB channel at or above this counts as white",
        ge=0.0,
        le=1.0
    )
    suppress_near_black: bool = Field(default=True, description="Drop near-black container fills")
    black_max_channel: float = Field(
        default=0.05,
        description="Every RGB channel at or below this counts as near-black",
        ge=0.0,
        le=1.0
    )
    min_alpha: float = Field(
        default=0.12,
        description="Fills with effective alpha at or below this are dropped",
        ge=0.0,
        le=1.0
    )


class CompilerConfig(BaseModel):
    """Options for a compile session.

    `max_scale` and `debug_overlay` are passed through to the output for the
    renderer; the compiler does not interpret them.
    """
    model_config = ConfigDict(frozen=True)

    max_scale: float = Field(
        default=2.0,
        description="Maximum bitmap scale factor (0.01 to 4.0)",
        ge=0.01,
        le=4.0
    )
    debug_overlay: bool = Field(default=False, description="Ask the renderer to draw node outlines")
    placeholder_fill: PlaceholderFillHeuristic = Field(default_factory=PlaceholderFillHeuristic)
    image_placeholder_color: str = Field(
        default="#e5e7eb",
        description="Background shown for image fills whose URL did not resolve"
    )
