"""Visualization color management.

Provides centralized access to visualization colors from configuration,
with built-in defaults when the YAML file is missing or broken.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple
import yaml

logger = logging.getLogger(__name__)


class ColorManager:
    """Manages visualization colors from external configuration.

    Loads colors from visualization_colors.yaml and provides methods to
    retrieve colors for scene elements and z-layers.
    """

    _instance: Optional["ColorManager"] = None
    _config: Dict = {}

    def __new__(cls):
        """Singleton pattern to avoid reloading config."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._load_config()
        return cls._instance

    def _load_config(self):
        """Load color configuration from YAML file."""
        config_path = Path(__file__).parent / "visualization_colors.yaml"

        try:
            if not config_path.exists():
                logger.warning(
                    f"Visualization colors config not found at {config_path}, "
                    "using defaults"
                )
                self._config = self._get_default_config()
                return

            with open(config_path, "r") as f:
                self._config = yaml.safe_load(f) or {}

            logger.debug(f"Loaded visualization colors from {config_path}")

        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load visualization colors: {e}")
            self._config = self._get_default_config()

    def _get_default_config(self) -> Dict:
        """Get default color configuration as fallback."""
        return {
            "mesh_colors": {
                "background": "#ffffff",
                "board_bounds": "#333333",
                "board_outline": "#111827",
                "obstacle": "#fca5a5",
                "obstacle_stroke": "#b91c1c",
                "void": "#e5e7eb",
                "void_stroke": "#9ca3af",
                "pending": "#fef9c3",
                "pending_stroke": "#ca8a04",
                "active": "#22c55e",
                "label": "#111827",
            },
            "z_layer_colors": [
                {"fill": "#dbeafe", "stroke": "#3b82f6"},
                {"fill": "#fef3c7", "stroke": "#f59e0b"},
                {"fill": "#d1fae5", "stroke": "#10b981"},
                {"fill": "#e9d5ff", "stroke": "#a855f7"},
                {"fill": "#fed7aa", "stroke": "#f97316"},
                {"fill": "#fecaca", "stroke": "#ef4444"},
            ],
            "render": {
                "scale": 10.0,
                "margin": 2.0,
                "fill_opacity": 0.6,
            },
        }

    def get_mesh_color(self, element: str) -> str:
        """Get color for a scene element.

        Args:
            element: Element name (e.g., "board_outline", "obstacle", "void")

        Returns:
            Hex color string
        """
        mesh_colors = self._config.get("mesh_colors", {})
        return mesh_colors.get(element, "#cccccc")

    def get_z_layer_colors(self, z_values: Sequence[int]) -> Tuple[str, str]:
        """Get (fill, stroke) for a set of z-indices.

        The lowest z picks the palette entry, so nodes spanning several
        layers share the color of their top-most layer.
        """
        palette: List[Dict[str, str]] = self._config.get("z_layer_colors") or \
            self._get_default_config()["z_layer_colors"]
        z = min(z_values) if z_values else 0
        entry = palette[z % len(palette)]
        return entry.get("fill", "#dbeafe"), entry.get("stroke", "#3b82f6")

    def get_render_option(self, name: str, default: float) -> float:
        return float(self._config.get("render", {}).get(name, default))


# Global instance
_color_manager = None


def get_color_manager() -> ColorManager:
    """Get the global ColorManager instance.

    Returns:
        ColorManager singleton
    """
    global _color_manager
    if _color_manager is None:
        _color_manager = ColorManager()
    return _color_manager
