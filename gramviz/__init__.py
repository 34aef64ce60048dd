"""gramviz: a grammar-of-graphics build and render core."""

from .components.coords import coord_cartesian, coord_flip, coord_polar
from .components.facets import facet_grid, facet_null, facet_wrap
from .components.guides import guide_colourbar, guide_legend, guide_none
from .components.positions import (
    position_dodge,
    position_fill,
    position_identity,
    position_jitter,
    position_nudge,
    position_stack,
)
from .components.registry import lookup
from .components.scales import (
    scale_x_continuous,
    scale_y_continuous,
    scale_x_log10,
    scale_y_log10,
    scale_x_sqrt,
    scale_y_sqrt,
    scale_x_reverse,
    scale_y_reverse,
    scale_x_datetime,
    scale_y_datetime,
    scale_x_discrete,
    scale_y_discrete,
    scale_x_binned,
    scale_y_binned,
    scale_colour_hue,
    scale_fill_hue,
    scale_colour_gradient,
    scale_fill_gradient,
    scale_colour_viridis_d,
    scale_fill_viridis_d,
    scale_colour_viridis_c,
    scale_fill_viridis_c,
    scale_colour_steps,
    scale_fill_steps,
    scale_colour_manual,
    scale_fill_manual,
    scale_colour_identity,
    scale_fill_identity,
    scale_size,
    scale_size_discrete,
    scale_alpha,
    scale_alpha_discrete,
    scale_linewidth,
    scale_shape,
    scale_linetype,
)
from .components.stats import stat_bin, stat_count, stat_identity, stat_summary
from .core.errors import (
    AestheticEvaluationError,
    GramvizError,
    GramvizWarning,
    LinearCoordWarning,
    MissingValueWarning,
    ProtoStateError,
    ScaleFrozenError,
    SpecificationError,
    TableContractError,
)
from .core.proto import Proto, delegate, proto
from .core.theme import Theme
from .devices.agg import draw_png
from .pipeline.aes import aes, after_scale, after_stat
from .pipeline.build import BuildResult, build
from .pipeline.layer import (
    geom_bar,
    geom_blank,
    geom_col,
    geom_histogram,
    geom_line,
    geom_linerange,
    geom_path,
    geom_point,
    geom_pointrange,
    geom_polygon,
    geom_raster,
    geom_rect,
    geom_text,
    layer,
)
from .pipeline.plot import Specification, ggtitle, guides, labs, specification, xlab, ylab
from .pipeline.render import render

__version__ = "0.1.0"
