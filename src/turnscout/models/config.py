"""Pydantic configuration models for turnscout."""

from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field


class SchedulerConfig(BaseModel):
    """Configuration for scan scheduling."""

    max_settle_retries: int = Field(
        5,
        ge=0,
        description="Re-scans while a response is still streaming before delivering anyway",
    )
    debounce_ms: Optional[int] = Field(
        None,
        ge=0,
        description="Override the active target's debounce delay",
    )
    settle_ms: Optional[int] = Field(
        None,
        ge=0,
        description="Override the active target's post-detection settle delay",
    )

    model_config = {"extra": "forbid"}


class InferenceConfig(BaseModel):
    """
    Thresholds for reconstructing assistant turns that are not delimited.

    The pixel values were tuned against observed layouts. They are empirical,
    so confirm them against the current target before reusing them elsewhere.
    """

    # Structural ascent
    max_ancestor_depth: int = Field(10, ge=1, description="Ancestor levels inspected")
    parent_sibling_window: int = Field(4, ge=1, description="Following siblings inspected per level")
    next_sibling_window: int = Field(10, ge=1, description="Direct next siblings inspected per level")
    min_block_text: int = Field(20, ge=0, description="Minimum text length of a bare block")
    min_block_height: float = Field(30, ge=0, description="Minimum rendered height of a bare block (px)")

    # Spatial fallback
    spatial_min_height: float = Field(30, ge=0, description="Minimum rendered height of a spatial candidate (px)")
    spatial_gap: float = Field(50, ge=0, description="Clearance from neighbouring user turns for unsigned blocks (px)")
    last_resort_min_text: int = Field(30, ge=0, description="Minimum text length of an unsigned block")
    ancestor_signature_depth: int = Field(5, ge=0, description="Ancestors checked for an assistant signature")

    # Aggregation
    substring_ratio: float = Field(0.8, gt=0, le=1, description="Length ratio below which a contained block is dropped")
    sentence_key_length: int = Field(50, ge=1, description="Characters compared for sentence dedup")
    sentence_retention: float = Field(0.5, ge=0, le=1, description="Minimum length kept by sentence dedup")

    # Rejection
    disclaimer_ratio: float = Field(0.8, ge=0, le=1)
    disclaimer_max_length: int = Field(150, ge=0)
    thinking_ratio: float = Field(0.7, ge=0, le=1)
    thinking_max_length: int = Field(100, ge=0)
    ellipsis_max_length: int = Field(200, ge=0)
    min_turn_length: int = Field(10, ge=1, description="Shortest assembled turn that is emitted")

    model_config = {"extra": "forbid"}


class StorageConfig(BaseModel):
    """Configuration for the persistence relay's backing store."""

    backend: Literal["memory", "json"] = Field("memory", description="Key-value store implementation")
    path: Path = Field(Path(".turnscout/store.json"), description="File used by the json backend")

    model_config = {"extra": "forbid"}


class TurnscoutConfig(BaseModel):
    """
    Root configuration model for turnscout.

    Example:
        config = TurnscoutConfig(
            scheduler=SchedulerConfig(max_settle_retries=3),
            storage=StorageConfig(backend="json", path=Path("./history.json")),
        )

    YAML format:
        scheduler:
          max_settle_retries: 3
        inference:
          spatial_gap: 40
        storage:
          backend: json
          path: ./history.json
    """

    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    inference: InferenceConfig = Field(default_factory=InferenceConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        "INFO",
        description="Logging level",
    )
    log_file: Optional[Path] = Field(None, description="Log file path")

    model_config = {"extra": "forbid"}

    def to_yaml(self) -> str:
        """Serialize config to YAML string."""
        import yaml

        return yaml.dump(self.model_dump(mode="json", exclude_none=True), default_flow_style=False)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "TurnscoutConfig":
        """Load config from YAML string."""
        import yaml

        data = yaml.safe_load(yaml_str) or {}
        return cls.model_validate(data)

    @classmethod
    def from_yaml_file(cls, path: Path) -> "TurnscoutConfig":
        """Load config from YAML file."""
        return cls.from_yaml(path.read_text())
