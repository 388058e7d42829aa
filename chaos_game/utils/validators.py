"""Settings schema validation and config loading.

Provides centralized validation for everything the engine accepts, using pydantic:
    - Settings (settings.default.yaml): canvas, polygon, walk rule, colors, run flags
    - EngineConfig (engine.v1.yaml): batch / burn-in / scheduling / stability constants
    - Restriction: the vertex-selection rules

All engine entry points validate through validate_settings() / validate_engine_config()
so a bad value is rejected with the offending field names before any state changes.

Units:
    - Geometry: pixels (px), square canvas
    - Jump distance: fraction of the distance to the chosen vertex [0, 1]
    - Colors: CSS hex or rgb() strings
    - Times: milliseconds

Key names:
    Python code uses snake_case. The camelCase names used by browser hosts
    (canvasSize, jumpDistance, ...) are accepted as aliases everywhere.

Usage:
    from chaos_game.utils import validators

    settings = validators.load_settings()                    # shipped defaults
    settings = validators.validate_settings({"sides": 5, "restriction": "no-repeat"})
    engine_cfg = validators.load_engine_config("engine.yaml")
"""

from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .color import RGB, parse_color


class ConfigurationError(ValueError):
    """Raised when settings or engine config fail validation.

    Attributes
    ----------
    fields : Tuple[str, ...]
        Offending field names (empty when the failure is not field-specific)
    """

    def __init__(self, message: str, fields: Tuple[str, ...] = ()):
        super().__init__(message)
        self.fields = tuple(fields)


# ============================================================================
# RESTRICTION RULES
# ============================================================================

class Restriction(str, Enum):
    """Vertex-selection rule applied by the walk."""
    NONE = "none"
    NO_REPEAT = "no-repeat"
    NO_DOUBLE_REPEAT = "no-double-repeat"
    NO_RETURN = "no-return"
    NO_NEIGHBOR = "no-neighbor"
    NO_NEIGHBOR_AFTER_REPEAT = "no-neighbor-after-repeat"

    @property
    def excludes_self(self) -> bool:
        """Rules whose legal set omits the lookback vertex itself."""
        return self in (Restriction.NO_REPEAT, Restriction.NO_DOUBLE_REPEAT, Restriction.NO_RETURN)

    @property
    def excludes_neighbors(self) -> bool:
        """Rules whose legal set omits the ring neighbors of the lookback vertex."""
        return self in (Restriction.NO_NEIGHBOR, Restriction.NO_NEIGHBOR_AFTER_REPEAT)

    @property
    def needs_repeat(self) -> bool:
        """Rules that only constrain after the same vertex was chosen twice in a row."""
        return self in (Restriction.NO_DOUBLE_REPEAT, Restriction.NO_NEIGHBOR_AFTER_REPEAT)


# ============================================================================
# SETTINGS
# ============================================================================

class Settings(BaseModel):
    """Simulation settings.

    Frozen: derive changed settings with ``settings.model_copy(update=...)``
    followed by validate_settings(), or through the engine's reconfigure().
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra='forbid')

    canvas_size: int = Field(800, ge=1, le=8192, alias="canvasSize", description="Canvas side (px)")
    sides: int = Field(3, ge=3, description="Main polygon vertex count")
    jump_distance: float = Field(0.5, ge=0.0, le=1.0, alias="jumpDistance",
                                 description="Fraction of the way to move toward the chosen vertex")
    padding: float = Field(20.0, ge=0.0, description="Margin between canvas edge and circumcircle (px)")
    midpoint_vertex: bool = Field(False, alias="midpointVertex")
    center_vertex: bool = Field(False, alias="centerVertex")
    restriction: Restriction = Restriction.NONE
    symmetrical: bool = False
    auto_stop: bool = Field(True, alias="autoStop")
    live_rendering: bool = Field(True, alias="liveRendering")
    solid_bg: bool = Field(False, alias="solidBg")
    gamma_exponent: float = Field(1.0, gt=0.0, alias="gammaExponent")
    stability_new_pixels_threshold: float = Field(1.0, gt=0.0, alias="stabilityNewPixelsThreshold")
    fg_color: str = Field("#ffffff", alias="fgColor")
    bg_color: str = Field("#000000", alias="bgColor")
    draw_circle: bool = Field(False, alias="drawCircle")
    draw_polygon: bool = Field(False, alias="drawPolygon")

    @field_validator('restriction', mode='before')
    @classmethod
    def none_means_unrestricted(cls, v: Any) -> Any:
        # Hosts send null for "no restriction"
        return Restriction.NONE if v is None else v

    @field_validator('fg_color', 'bg_color')
    @classmethod
    def validate_color(cls, v: str) -> str:
        parse_color(v)
        return v

    @model_validator(mode='after')
    def validate_radius(self) -> 'Settings':
        """Padding must leave a positive circumradius."""
        if self.radius <= 0:
            raise ValueError(
                f"padding={self.padding} leaves no room on a {self.canvas_size}px canvas "
                f"(radius={self.radius})"
            )
        return self

    @property
    def radius(self) -> float:
        return self.canvas_size / 2 - self.padding

    @property
    def fg_rgb(self) -> RGB:
        return parse_color(self.fg_color)

    @property
    def bg_rgb(self) -> RGB:
        return parse_color(self.bg_color)


# Field groups by the amount of recomputation a change needs
RESIZE_KEYS = frozenset({'canvas_size'})
GEOMETRY_KEYS = frozenset({'sides', 'padding', 'midpoint_vertex', 'center_vertex', 'restriction'})
COLOR_KEYS = frozenset({'fg_color', 'bg_color', 'solid_bg', 'gamma_exponent'})
COSMETIC_KEYS = frozenset({'draw_circle', 'draw_polygon'})
LIVE_KEYS = frozenset({
    'jump_distance', 'symmetrical', 'auto_stop', 'live_rendering', 'stability_new_pixels_threshold'
})

_ALIASES = {
    field.alias: name for name, field in Settings.model_fields.items() if field.alias
}


def resolve_key(key: str) -> str:
    """Map a snake_case or camelCase settings key to its field name.

    Raises
    ------
    ConfigurationError
        If the key names no settings field
    """
    if key in Settings.model_fields:
        return key
    if key in _ALIASES:
        return _ALIASES[key]
    raise ConfigurationError(f"Unknown setting: {key!r}", fields=(key,))


# ============================================================================
# ENGINE CONFIG V1
# ============================================================================

class EngineConfig(BaseModel):
    """Scheduling and detection constants (engine.v1.yaml schema)."""
    model_config = ConfigDict(frozen=True, extra='forbid')

    batch_size: int = Field(10_000, ge=1, description="Walk steps per batch")
    burn_in_steps: int = Field(300, ge=0, description="Discarded steps after each rebuild")
    history_capacity: int = Field(10, ge=2, description="Move history length")
    time_budget_ms: float = Field(50.0, gt=0.0, description="Work per scheduling quantum")
    render_interval_ms: float = Field(100.0, gt=0.0, description="Minimum gap between live renders")
    stability_interval: int = Field(1_000_000, ge=1, description="Plotted points per stability check")
    stability_window: int = Field(10, ge=1, description="Consecutive quiet checks to converge")
    ema_alpha: float = Field(0.2, gt=0.0, le=1.0, description="EMA smoothing factor")


# ============================================================================
# LOADERS
# ============================================================================

def _require_mapping(data: Any, what: str) -> Mapping[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"{what} must be a mapping of key: value pairs, got {type(data).__name__}")
    return data


def _format_errors(exc: ValidationError) -> Tuple[str, Tuple[str, ...]]:
    fields = []
    lines = []
    for err in exc.errors():
        # Errors are located by alias; report field names
        loc = '.'.join(_ALIASES.get(str(p), str(p)) for p in err.get('loc', ())) or '<settings>'
        fields.append(loc)
        lines.append(f"{loc}: {err.get('msg')}")
    return '; '.join(lines), tuple(fields)


def validate_settings(data: Union[Mapping[str, Any], Settings, None] = None, **overrides: Any) -> Settings:
    """Build validated Settings from a mapping plus keyword overrides.

    Parameters
    ----------
    data : Mapping or Settings, optional
        Base values (snake_case or camelCase keys)
    **overrides
        Values replacing those in data

    Returns
    -------
    Settings
        Validated, frozen settings

    Raises
    ------
    ConfigurationError
        If data is not a mapping, or any value is invalid (message lists
        each offending field)
    """
    if isinstance(data, Settings):
        base: Dict[str, Any] = data.model_dump()
    else:
        base = {resolve_key(k): v for k, v in _require_mapping(data, "Settings").items()}
    base.update({resolve_key(k): v for k, v in overrides.items()})

    try:
        return Settings.model_validate(base)
    except ValidationError as e:
        message, fields = _format_errors(e)
        raise ConfigurationError(f"Invalid settings: {message}", fields=fields) from e


def validate_engine_config(data: Optional[Mapping[str, Any]] = None) -> EngineConfig:
    """Build a validated EngineConfig, raising ConfigurationError on failure."""
    try:
        return EngineConfig.model_validate(dict(_require_mapping(data, "Engine config")))
    except ValidationError as e:
        message, fields = _format_errors(e)
        raise ConfigurationError(f"Invalid engine config: {message}", fields=fields) from e


def load_settings(path: Optional[Union[str, Path]] = None) -> Settings:
    """Load and validate settings from YAML.

    Parameters
    ----------
    path : Union[str, Path], optional
        Settings YAML; defaults to the shipped settings.default.yaml

    Returns
    -------
    Settings
        Validated settings

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    ConfigurationError
        If validation fails (with the offending field names)
    """
    from . import fs

    path = Path(path) if path is not None else fs.CONFIG_DIR / "settings.default.yaml"
    if not path.exists():
        raise FileNotFoundError(f"Settings file not found: {path}")

    data = fs.load_yaml(path)
    try:
        return validate_settings(data)
    except ConfigurationError as e:
        raise ConfigurationError(f"Settings validation failed at {path}: {e}", fields=e.fields) from e


def load_engine_config(path: Optional[Union[str, Path]] = None) -> EngineConfig:
    """Load and validate engine constants from YAML (defaults to engine.v1.yaml)."""
    from . import fs

    path = Path(path) if path is not None else fs.CONFIG_DIR / "engine.v1.yaml"
    if not path.exists():
        raise FileNotFoundError(f"Engine config not found: {path}")

    data = fs.load_yaml(path)
    try:
        return validate_engine_config(data)
    except ConfigurationError as e:
        raise ConfigurationError(f"Engine config validation failed at {path}: {e}", fields=e.fields) from e


def save_settings(settings: Settings, path: Union[str, Path]) -> None:
    """Write settings as YAML that load_settings() reads back unchanged."""
    from . import fs

    fs.dump_yaml(settings.model_dump(mode='json'), path)
