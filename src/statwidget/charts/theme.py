"""图表主题契约：将持久化的主题名映射为 Plotly 样式。"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from statwidget.config import settings

_PALETTES: dict[str, tuple[str, ...]] = {
    "ag-default": (
        "#5090dc", "#ffa03a", "#459d55", "#34bfe1", "#e1cc00",
        "#9669cb", "#b3daff", "#ffcc00", "#8ba68e", "#f5c9fd",
    ),
    "ag-material": (
        "#f44336", "#e91e63", "#9c27b0", "#673ab7", "#3f51b5",
        "#2196f3", "#03a9f4", "#00bcd4", "#009688", "#4caf50",
    ),
    "ag-pastel": (
        "#c4a0cd", "#8dc3b3", "#f3b9a8", "#97b9de", "#e6d16d",
        "#a0c9e1", "#c6b7a1", "#f2ce9f",
    ),
    "ag-vivid": (
        "#0083ff", "#ff8c00", "#00d157", "#ff2e4a", "#ad00ff",
        "#ffd400", "#00c4d1", "#ff4ec6",
    ),
    "ag-solar": (
        "#b58900", "#cb4b16", "#dc322f", "#d33682", "#6c71c4",
        "#268bd2", "#2aa198", "#859900",
    ),
    "ag-polychroma": (
        "#5b5ea6", "#9b2335", "#dfcfbe", "#55b4b0", "#e15d44",
        "#7fcdcd", "#bc243c", "#c3447a",
    ),
}

_DARK_SUFFIX = "-dark"


@dataclass(frozen=True)
class ChartThemeSpec:
    """图表主题契约，不直接依赖绘图库。"""

    theme_key: str
    colors: tuple[str, ...]
    dark: bool = False
    font_family: str = "Verdana, sans-serif"
    font_size: int = 12

    @property
    def background_color(self) -> str:
        return "#192232" if self.dark else "#FFFFFF"

    @property
    def text_color(self) -> str:
        return "#FFFFFF" if self.dark else "#464646"

    @property
    def grid_color(self) -> str:
        return "#3E4A5C" if self.dark else "#E0EAF1"

    @property
    def axis_color(self) -> str:
        return "#6D7A8D" if self.dark else "#C3C3C3"

    def to_plotly_layout(self, title: Optional[str] = None) -> dict[str, Any]:
        """转换为 Plotly layout 参数。"""
        return {
            "title": title,
            "font": {
                "family": self.font_family,
                "size": self.font_size,
                "color": self.text_color,
            },
            "colorway": list(self.colors),
            "paper_bgcolor": self.background_color,
            "plot_bgcolor": self.background_color,
            "legend": {"title": None},
            "margin": {"l": 56, "r": 24, "t": 56 if title else 24, "b": 48},
        }


def normalize_theme_name(name: Optional[str]) -> str:
    """归一化主题名，未知主题回退到配置默认值。"""
    normalized = (name or "").strip().lower()
    base = normalized[: -len(_DARK_SUFFIX)] if normalized.endswith(_DARK_SUFFIX) else normalized
    if base in _PALETTES:
        return normalized
    default = str(settings.chart_default_theme or "ag-default").strip().lower()
    default_base = default[: -len(_DARK_SUFFIX)] if default.endswith(_DARK_SUFFIX) else default
    return default if default_base in _PALETTES else "ag-default"


def build_theme_spec(name: Optional[str]) -> ChartThemeSpec:
    theme_key = normalize_theme_name(name)
    dark = theme_key.endswith(_DARK_SUFFIX)
    base = theme_key[: -len(_DARK_SUFFIX)] if dark else theme_key
    return ChartThemeSpec(theme_key=theme_key, colors=_PALETTES[base], dark=dark)


def apply_plotly_theme(fig: Any, spec: ChartThemeSpec, title: Optional[str] = None) -> None:
    """对 Plotly Figure 应用主题。"""
    fig.update_layout(**spec.to_plotly_layout(title=title))
    axis_style = {
        "showgrid": True,
        "gridcolor": spec.grid_color,
        "zeroline": False,
        "showline": True,
        "linecolor": spec.axis_color,
        "tickcolor": spec.axis_color,
        "ticks": "outside",
    }
    fig.update_xaxes(**axis_style)
    fig.update_yaxes(**axis_style)
