"""Tuning options for the seeding and expansion solvers.

Options can be given in code or loaded from a YAML file with ``seeding``
and ``expansion`` sections:

    clearance: 0.1
    seeding:
      min_width: 0.2
      max_candidates: 50000
      max_aspect_ratio: 3
    expansion:
      min_split_length: 0.5
"""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Callable, Dict, Optional
import logging

import yaml

logger = logging.getLogger(__name__)


def _to_float(value) -> float:
    if isinstance(value, bool):
        raise ValueError(f"expected a number, got {value!r}")
    return float(value)


def _to_int(value) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ValueError(f"expected an integer, got {value!r}")
    return int(value)


def _to_bool(value) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"expected true or false, got {value!r}")
    return value


def _optional(convert: Callable[[Any], Any]) -> Callable[[Any], Any]:
    return lambda value: None if value is None else convert(value)


def _known_options(cls, data: Optional[Dict[str, Any]],
                   converters: Dict[str, Callable[[Any], Any]]) -> Dict[str, Any]:
    """Convert the keys of data that are fields of cls, warning about the rest.

    Raises:
        ValueError: data is not a mapping or an option has the wrong type
    """
    if not data:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{cls.__name__} options must be a mapping, got {data!r}")
    names = {f.name for f in fields(cls)}
    unknown = sorted(str(k) for k in set(data) - names)
    if unknown:
        logger.warning(f"Ignoring unknown {cls.__name__} options: {', '.join(unknown)}")

    options = {}
    for key, value in data.items():
        if key not in names:
            continue
        try:
            options[key] = converters[key](value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid {cls.__name__} option '{key}': {e}") from e
    return options


def _check_aspect_ratio(owner: str, ratio: Optional[float]):
    if ratio is not None and ratio < 1.0:
        raise ValueError(f"{owner}.max_aspect_ratio must be at least 1, got {ratio}")


@dataclass
class SeedingConfig:
    """Configuration for the seeding solver."""
    # Smallest free rectangle worth keeping; None uses the board's min trace width
    min_width: Optional[float] = None
    min_height: Optional[float] = None

    # Upper bound on candidates examined before seeding gives up
    max_candidates: int = 20000

    # Longer side / shorter side; longer candidates are cut into equal pieces.
    # None disables the cap.
    max_aspect_ratio: Optional[float] = 3.0

    # A placement on at least min_multi_layers layers must also meet the
    # multi-layer minimum size, or it is placed layer by layer instead
    min_multi_width: Optional[float] = None  # None uses min_width
    min_multi_height: Optional[float] = None
    min_multi_layers: int = 2

    # Most layers one placement may span; None means no limit
    max_multi_layer_span: Optional[int] = None

    def __post_init__(self):
        _check_aspect_ratio("SeedingConfig", self.max_aspect_ratio)
        if self.max_multi_layer_span is not None and self.max_multi_layer_span < 1:
            raise ValueError("SeedingConfig.max_multi_layer_span must be at least 1")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SeedingConfig":
        return cls(**_known_options(cls, data, _SEEDING_OPTIONS))


_SEEDING_OPTIONS = {
    "min_width": _optional(_to_float),
    "min_height": _optional(_to_float),
    "max_candidates": _to_int,
    "max_aspect_ratio": _optional(_to_float),
    "min_multi_width": _optional(_to_float),
    "min_multi_height": _optional(_to_float),
    "min_multi_layers": _to_int,
    "max_multi_layer_span": _optional(_to_int),
}


@dataclass
class ExpansionConfig:
    """Configuration for the expansion solver."""
    # Split a multi-layer rectangle when some of its layers can grow at
    # least this much further than the others
    min_split_length: Optional[float] = None  # None uses the board's min trace width
    allow_layer_split: bool = True

    # Growth on a side stops where the rectangle would exceed this ratio
    max_aspect_ratio: Optional[float] = 3.0

    def __post_init__(self):
        _check_aspect_ratio("ExpansionConfig", self.max_aspect_ratio)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ExpansionConfig":
        return cls(**_known_options(cls, data, _EXPANSION_OPTIONS))


_EXPANSION_OPTIONS = {
    "min_split_length": _optional(_to_float),
    "allow_layer_split": _to_bool,
    "max_aspect_ratio": _optional(_to_float),
}


@dataclass
class MeshConfig:
    """All pipeline options in one place."""
    seeding: SeedingConfig = field(default_factory=SeedingConfig)
    expansion: ExpansionConfig = field(default_factory=ExpansionConfig)
    clearance: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "MeshConfig":
        data = data or {}
        clearance = data.get("clearance")
        if clearance is not None:
            try:
                clearance = _to_float(clearance)
            except (TypeError, ValueError) as e:
                raise ValueError(f"Invalid clearance: {e}") from e
        return cls(
            seeding=SeedingConfig.from_dict(data.get("seeding")),
            expansion=ExpansionConfig.from_dict(data.get("expansion")),
            clearance=clearance,
        )


def load_mesh_config(path) -> MeshConfig:
    """Load pipeline options from a YAML file.

    Raises:
        OSError: The file cannot be read
        ValueError: The file is not valid YAML or holds invalid options
    """
    path = Path(path)
    with open(path, "r") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"{path} is not valid YAML: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a mapping of options")
    logger.debug(f"Loaded mesh options from {path}")
    return MeshConfig.from_dict(data)
