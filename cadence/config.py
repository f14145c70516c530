"""
Configuration settings for the cadence scheduling core.

Uses Pydantic Settings for environment variable management with .env file
support (prefix ``CADENCE_``). Algorithms never read settings implicitly:
the builder methods below turn them into the immutable parameter values that
callers pass into each call.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from cadence.ability.calibration import CalibrationConfig
from cadence.ability.models import ThetaEstimationConfig
from cadence.bottleneck.detector import BottleneckDetectionConfig
from cadence.memory.fsrs import FSRSParameters
from cadence.memory.rating import RatingThresholds
from cadence.priority.engine import PriorityConfig
from cadence.session.composer import SessionEngineConfig
from cadence.session.strategies import InterleavingStrategy


class Settings(BaseSettings):
    """Scheduling settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CADENCE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level for the CLI sink",
    )

    # ========================================
    # Memory model (FSRS)
    # ========================================
    target_retention: float = Field(
        default=0.9,
        gt=0.0,
        lt=1.0,
        description="Recall probability at which reviews are scheduled",
    )
    maximum_interval_days: float = Field(
        default=36500,
        gt=0,
        description="Upper bound on a review interval",
    )
    stability_floor_days: float = Field(
        default=0.1,
        gt=0,
        description="Lowest stability a card can fall to after a lapse",
    )

    # ─── Timing-aware rating ───────────────────────────────────────────────────
    rating_easy_ratio: float = Field(
        default=0.8,
        description="RT / reference at or below which a correct answer is Easy",
    )
    rating_good_ratio: float = Field(
        default=1.2,
        description="RT / reference at or below which a correct answer is Good",
    )
    rating_hard_ratio: float = Field(
        default=1.5,
        description="RT / reference above which a correct answer is Hard",
    )
    expected_response_ms: float = Field(
        default=5000.0,
        description="Reference latency when no personal mean is known",
    )

    # ========================================
    # Ability estimation (IRT)
    # ========================================
    theta_max_iterations: int = Field(
        default=50,
        ge=1,
        description="Newton-Raphson iteration limit for MLE",
    )
    theta_quad_points: int = Field(
        default=41,
        ge=2,
        description="Quadrature nodes for EAP",
    )
    theta_se_floor: float = Field(
        default=0.1,
        gt=0,
        description="Smallest reported standard error of theta",
    )

    # ─── Calibration ───────────────────────────────────────────────────────────
    calibration_min_respondents: int = Field(
        default=30,
        ge=1,
        description="Respondents required before calibrating",
    )
    calibration_min_items: int = Field(
        default=10,
        ge=1,
        description="Items required before calibrating",
    )
    calibration_min_responses_per_item: int = Field(
        default=20,
        ge=1,
        description="Responses each item needs before calibrating",
    )
    calibration_max_iterations: int = Field(
        default=100,
        ge=1,
        description="EM cycle limit",
    )
    calibration_se_threshold: float = Field(
        default=0.5,
        gt=0,
        description="Parameters with a larger standard error are marked unreliable",
    )

    # ========================================
    # Priority
    # ========================================
    prerequisite_penalty: float = Field(
        default=0.5,
        ge=0,
        description="Cost added while lower component layers are not automated",
    )
    urgency_weight: float = Field(
        default=1.0,
        ge=0,
        description="Weight of review urgency in the final priority",
    )
    new_item_urgency: float = Field(
        default=0.5,
        ge=0,
        description="Urgency tier for never-seen items",
    )

    # ========================================
    # Bottleneck detection
    # ========================================
    bottleneck_min_responses: int = Field(
        default=20,
        ge=1,
        description="Responses required before analysing bottlenecks",
    )
    bottleneck_min_responses_per_type: int = Field(
        default=5,
        ge=1,
        description="Responses a component needs to count as evidence",
    )
    bottleneck_error_rate_threshold: float = Field(
        default=0.3,
        gt=0,
        le=1,
        description="Error rate at which a component is flagged",
    )
    bottleneck_window_size: int = Field(
        default=200,
        ge=1,
        description="Most recent responses considered",
    )

    # ========================================
    # Session composition
    # ========================================
    max_cognitive_load: float = Field(
        default=7.0,
        gt=0,
        description="Per-item cognitive load budget (1-10 scale)",
    )
    break_interval_minutes: float = Field(
        default=25.0,
        gt=0,
        description="Pomodoro-style break interval",
    )
    default_strategy: InterleavingStrategy = Field(
        default=InterleavingStrategy.ADAPTIVE,
        description="Interleaving strategy when none is requested",
    )
    fatigue_blocking_threshold: float = Field(
        default=0.7,
        ge=0,
        le=1,
        description="Fatigue above which adaptive ordering falls back to blocking",
    )

    def fsrs_parameters(self) -> FSRSParameters:
        return FSRSParameters(
            request_retention=self.target_retention,
            maximum_interval=self.maximum_interval_days,
            stability_floor=self.stability_floor_days,
        )

    def rating_thresholds(self) -> RatingThresholds:
        return RatingThresholds(
            easy_ratio=self.rating_easy_ratio,
            good_ratio=self.rating_good_ratio,
            hard_ratio=self.rating_hard_ratio,
            expected_response_ms=self.expected_response_ms,
        )

    def theta_estimation_config(self) -> ThetaEstimationConfig:
        return ThetaEstimationConfig(
            max_iterations=self.theta_max_iterations,
            quad_points=self.theta_quad_points,
            se_floor=self.theta_se_floor,
        )

    def calibration_config(self) -> CalibrationConfig:
        return CalibrationConfig(
            min_respondents=self.calibration_min_respondents,
            min_items=self.calibration_min_items,
            min_responses_per_item=self.calibration_min_responses_per_item,
            max_iterations=self.calibration_max_iterations,
            se_threshold=self.calibration_se_threshold,
        )

    def priority_config(self) -> PriorityConfig:
        return PriorityConfig(
            prerequisite_penalty=self.prerequisite_penalty,
            urgency_weight=self.urgency_weight,
            new_item_urgency=self.new_item_urgency,
            fsrs=self.fsrs_parameters(),
        )

    def bottleneck_config(self) -> BottleneckDetectionConfig:
        return BottleneckDetectionConfig(
            min_responses=self.bottleneck_min_responses,
            min_responses_per_type=self.bottleneck_min_responses_per_type,
            error_rate_threshold=self.bottleneck_error_rate_threshold,
            window_size=self.bottleneck_window_size,
        )

    def session_engine_config(self) -> SessionEngineConfig:
        return SessionEngineConfig(
            max_cognitive_load=self.max_cognitive_load,
            break_interval_minutes=self.break_interval_minutes,
            default_strategy=self.default_strategy,
            target_retention=self.target_retention,
            fatigue_blocking_threshold=self.fatigue_blocking_threshold,
            fsrs=self.fsrs_parameters(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
