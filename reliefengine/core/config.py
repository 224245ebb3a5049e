"""Configuration models - Pure data structures.

These are domain models for configuration. The actual loading
(I/O) is handled by the shell layer.
"""

from dataclasses import dataclass, field

from reliefengine.core.geo import (
    DEFAULT_DISTANCE_DECIMALS,
    DEFAULT_REQUEST_RADIUS_KM,
    DEFAULT_SHELTER_RADIUS_KM,
)
from reliefengine.core.matching import POLICIES
from reliefengine.core.shelter import DEFAULT_LIMITED_THRESHOLD


@dataclass
class ShelterConfig:
    """Shelter status derivation settings.

    Attributes:
        limited_threshold: Share of capacity above which a shelter is limited
    """
    limited_threshold: float = DEFAULT_LIMITED_THRESHOLD


@dataclass
class ProximityConfig:
    """Distance ranking settings.

    Attributes:
        distance_decimals: Decimal places reported distances are rounded to
        request_radius_km: Default radius for nearby request searches
        shelter_radius_km: Default radius for nearby shelter searches
    """
    distance_decimals: int = DEFAULT_DISTANCE_DECIMALS
    request_radius_km: float = DEFAULT_REQUEST_RADIUS_KM
    shelter_radius_km: float = DEFAULT_SHELTER_RADIUS_KM


@dataclass
class RetryConfig:
    """Retry settings for transactional commits that lose a race.

    Attributes:
        max_attempts: Total commit attempts before surfacing a conflict
        backoff_seconds: Base delay, doubled after each failed attempt
    """
    max_attempts: int = 3
    backoff_seconds: float = 0.1


@dataclass
class CollectionNames:
    """Store collection names."""
    requests: str = "requests"
    donations: str = "donations"
    asked_donations: str = "asked_donations"
    shelters: str = "shelters"
    shelter_requests: str = "shelter_requests"


@dataclass
class EngineConfig:
    """Application configuration.

    This is a pure data structure - no I/O or side effects.

    Attributes:
        match_policy: Name of the donation match policy
        shelter: Shelter status settings
        proximity: Distance ranking settings
        retry: Commit retry settings
        collections: Store collection names
        firestore_project: GCP project ID (None for default)
        firestore_database: Firestore database name (None for default)
    """
    match_policy: str = "category_match"
    shelter: ShelterConfig = field(default_factory=ShelterConfig)
    proximity: ProximityConfig = field(default_factory=ProximityConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    collections: CollectionNames = field(default_factory=CollectionNames)
    firestore_project: str | None = None
    firestore_database: str | None = None


@dataclass
class ValidationError:
    """A configuration validation error.

    Attributes:
        field: The field that has an error
        message: Human-readable error description
        severity: 'error' or 'warning'
    """
    field: str
    message: str
    severity: str = "error"


@dataclass
class ValidationResult:
    """Result of validating configuration.

    Attributes:
        valid: True if no errors (warnings are OK)
        errors: List of validation errors/warnings
    """
    valid: bool
    errors: list[ValidationError] = field(default_factory=list)

    @property
    def warnings(self) -> list[ValidationError]:
        """Get only warnings."""
        return [e for e in self.errors if e.severity == "warning"]

    @property
    def critical_errors(self) -> list[ValidationError]:
        """Get only critical errors."""
        return [e for e in self.errors if e.severity == "error"]


def validate_config(config: EngineConfig) -> ValidationResult:
    """Validate configuration for errors and warnings.

    Pure function.

    Args:
        config: Configuration to validate

    Returns:
        ValidationResult with any errors/warnings found
    """
    errors: list[ValidationError] = []

    if config.match_policy not in POLICIES:
        errors.append(ValidationError(
            field="match_policy",
            message=(
                f"Unknown match policy '{config.match_policy}'. "
                f"Available: {', '.join(sorted(POLICIES))}"
            ),
        ))

    threshold = config.shelter.limited_threshold
    if not 0 < threshold < 1:
        errors.append(ValidationError(
            field="shelter.limited_threshold",
            message=f"Limited threshold must be between 0 and 1, got {threshold}",
        ))

    if config.proximity.distance_decimals < 0:
        errors.append(ValidationError(
            field="proximity.distance_decimals",
            message=f"Decimals must not be negative, got {config.proximity.distance_decimals}",
        ))

    for name in ("request_radius_km", "shelter_radius_km"):
        radius = getattr(config.proximity, name)
        if radius <= 0:
            errors.append(ValidationError(
                field=f"proximity.{name}",
                message=f"Radius must be positive, got {radius}",
            ))

    if config.retry.max_attempts < 1:
        errors.append(ValidationError(
            field="retry.max_attempts",
            message=f"At least one attempt is required, got {config.retry.max_attempts}",
        ))

    if config.retry.backoff_seconds < 0:
        errors.append(ValidationError(
            field="retry.backoff_seconds",
            message=f"Backoff must not be negative, got {config.retry.backoff_seconds}",
        ))
    elif config.retry.backoff_seconds > 5:
        errors.append(ValidationError(
            field="retry.backoff_seconds",
            message="Backoff above 5 seconds will stall interactive callers",
            severity="warning",
        ))

    has_critical = any(e.severity == "error" for e in errors)

    return ValidationResult(
        valid=not has_critical,
        errors=errors,
    )
