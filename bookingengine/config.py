"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import List, Optional, Sequence

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.calendar import DisplayWindow


class DisplayConfig(BaseModel):
    """Calendar grid presentation settings."""
    start_hour: int = 8
    end_hour: int = 20
    slot_height: float = 60
    minimum_card_height: float = 20
    snap_minutes: int = 30

    @field_validator("start_hour", "end_hour")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        """Validate hour is between 0 and 24."""
        if not 0 <= v <= 24:
            raise ValueError(f"Hour must be between 0 and 24, got {v}")
        return v

    @field_validator("slot_height")
    @classmethod
    def validate_slot_height(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("slot_height must be greater than zero")
        return value

    @field_validator("minimum_card_height")
    @classmethod
    def validate_minimum_height(cls, value: float) -> float:
        if value < 0:
            raise ValueError("minimum_card_height must not be negative")
        return value

    @field_validator("snap_minutes")
    @classmethod
    def validate_snap(cls, value: int) -> int:
        """Snapping must split an hour into whole steps."""
        if value <= 0 or 60 % value:
            raise ValueError(f"snap_minutes must be a positive divisor of 60, got {value}")
        return value

    @model_validator(mode="after")
    def validate_hours_order(self) -> "DisplayConfig":
        """Ensure the configured window opens before it closes."""
        if self.end_hour <= self.start_hour:
            raise ValueError("end_hour must be later than start_hour")
        return self

    def to_display_window(self) -> DisplayWindow:
        return DisplayWindow(
            start_hour=self.start_hour,
            end_hour=self.end_hour,
            slot_height=self.slot_height,
            minimum_height=self.minimum_card_height,
        )


class SchedulingConfig(BaseModel):
    """Slot generation settings."""
    slot_increment_minutes: int = 30
    default_duration_minutes: int = 60
    recommendation_limit: int = 5

    @field_validator("slot_increment_minutes", "default_duration_minutes", "recommendation_limit")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("value must be greater than zero")
        return value


class ApiConfig(BaseModel):
    """Connection to the booking REST API."""
    base_url: str
    token: Optional[str] = None
    timeout_seconds: float = 30

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class StaffMember(BaseModel):
    """Staff member configuration."""
    id: str
    name: str  # Used as alias


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "UTC"
    display: DisplayConfig = Field(default_factory=DisplayConfig)
    scheduling: SchedulingConfig = Field(default_factory=SchedulingConfig)
    staff: List[StaffMember] = Field(default_factory=list)
    data_file: Optional[Path] = None
    api: Optional[ApiConfig] = None

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Reject unknown IANA zone names early."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("staff")
    @classmethod
    def validate_staff(cls, value: List[StaffMember]) -> List[StaffMember]:
        """Ensure staff ids and names are unique."""
        seen_ids: set[str] = set()
        seen_names: set[str] = set()
        for member in value:
            name_key = member.name.lower()
            if member.id in seen_ids:
                raise ValueError(f"Duplicate staff id detected: {member.id}")
            if name_key in seen_names:
                raise ValueError(f"Duplicate staff name detected: {member.name}")
            seen_ids.add(member.id)
            seen_names.add(name_key)
        return value

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Relative ``data_file`` paths are resolved against the config file's directory.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        config = cls(**data)
        if config.data_file is not None and not config.data_file.is_absolute():
            config.data_file = config_path.parent / config.data_file
        return config

    def find_staff_by_name(self, name: str) -> StaffMember | None:
        """Find a staff member by their name (alias)."""
        for member in self.staff:
            if member.name.lower() == name.lower():
                return member
        return None

    def find_staff_by_id(self, staff_id: str) -> StaffMember | None:
        for member in self.staff:
            if member.id == staff_id:
                return member
        return None

    def resolve_staff(self, identifier: str) -> str:
        """
        Resolve a staff identifier (id or name/alias) to a staff id.

        Raises:
            ValueError: If identifier cannot be resolved
        """
        member = self.find_staff_by_id(identifier) or self.find_staff_by_name(identifier)
        if member:
            return member.id

        raise ValueError(
            f"Unknown staff identifier: '{identifier}'. "
            f"Use a staff id or a configured name."
        )

    def resolve_staff_list(self, identifiers: Sequence[str]) -> List[str]:
        """
        Resolve multiple staff identifiers, ensuring uniqueness.
        An empty selection means every configured staff member.
        """
        if not identifiers:
            return [member.id for member in self.staff]

        resolved: List[str] = []
        unknown: List[str] = []

        for identifier in identifiers:
            try:
                staff_id = self.resolve_staff(identifier)
            except ValueError:
                unknown.append(identifier)
                continue

            if staff_id not in resolved:
                resolved.append(staff_id)

        if unknown:
            missing = ", ".join(sorted(set(unknown)))
            raise ValueError(
                f"Unknown staff identifier(s): {missing}. "
                "Ensure they exist in the configuration."
            )

        return resolved

    def staff_names(self) -> dict[str, str]:
        return {member.id: member.name for member in self.staff}


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
