"""
Configuration settings for the fluency calibration engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///fluency.db",
        description="SQLAlchemy connection string for objects, mastery and usage spaces",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # Task Composition
    # ========================================
    composition_max_cognitive_load: float = Field(
        default=1.5,
        ge=0.0,
        description="Cognitive load budget for optional slots",
    )
    composition_synergy_weight: float = Field(
        default=0.3,
        ge=0.0,
        description="Weight of pairwise synergy in candidate scoring and bonus",
    )
    composition_urgency_weight: float = Field(
        default=0.2,
        ge=0.0,
        description="Weight of review/deadline urgency in candidate scoring",
    )
    composition_exposure_balance_weight: float = Field(
        default=0.1,
        ge=0.0,
        description="Weight of modality exposure balance in candidate scoring",
    )
    composition_min_learning_value: float = Field(
        default=0.05,
        ge=0.0,
        description="Candidates below this effective value are never assigned",
    )

    # ========================================
    # Response Scoring
    # ========================================
    scoring_strictness: Literal["lenient", "normal", "strict"] = Field(
        default="normal",
        description="Similarity thresholds used for partial credit",
    )
    scoring_partial_credit_enabled: bool = Field(
        default=True,
        description="Award partial credit for near-miss responses",
    )
    scoring_learning_rate: float = Field(
        default=0.1,
        gt=0.0,
        le=1.0,
        description="Learning rate (K) for multidimensional ability updates",
    )

    # ========================================
    # Usage Space
    # ========================================
    usage_success_threshold: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Minimum score for a usage event to count as successful",
    )
    usage_max_recommendations: int = Field(
        default=3,
        ge=1,
        description="Number of next contexts recommended by generalization estimates",
    )
    usage_default_goal_domain: str = Field(
        default="general",
        description="Goal domain used when an object has no explicit goal domain",
    )

    # ========================================
    # Generalization Sampling
    # ========================================
    sampling_goal_weight: float = Field(default=0.5, ge=0.0, le=1.0)
    sampling_diversity_weight: float = Field(default=0.3, ge=0.0, le=1.0)
    sampling_transfer_weight: float = Field(default=0.2, ge=0.0, le=1.0)
    sampling_min_samples: int = Field(
        default=3,
        ge=1,
        description="Minimum practiced contexts before generalization is trusted",
    )

    def get_composition_config(self) -> dict[str, Any]:
        """Get task composition defaults as a dictionary."""
        return {
            "max_cognitive_load": self.composition_max_cognitive_load,
            "synergy_weight": self.composition_synergy_weight,
            "urgency_weight": self.composition_urgency_weight,
            "exposure_balance_weight": self.composition_exposure_balance_weight,
            "min_learning_value": self.composition_min_learning_value,
        }

    def get_scoring_config(self) -> dict[str, Any]:
        """Get response scoring defaults as a dictionary."""
        return {
            "strictness": self.scoring_strictness,
            "partial_credit_enabled": self.scoring_partial_credit_enabled,
            "learning_rate": self.scoring_learning_rate,
        }

    def get_sampling_config(self) -> dict[str, Any]:
        """Get representative sampling defaults as a dictionary."""
        return {
            "goal_weight": self.sampling_goal_weight,
            "diversity_weight": self.sampling_diversity_weight,
            "transfer_weight": self.sampling_transfer_weight,
            "min_samples_for_generalization": self.sampling_min_samples,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
