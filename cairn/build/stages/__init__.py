"""
Pipeline stages, in execution order.

``STAGES`` is the static registry the pipeline walks. Each entry shares the
:class:`Stage` interface; order matters because every stage reads the state
its predecessors left on the build context.
"""

from cairn.build.stages.assets import SaveAssets
from cairn.build.stages.base import Stage
from cairn.build.stages.content import ConvertPages, CreatePages, LoadPages
from cairn.build.stages.data import LoadData
from cairn.build.stages.menus import CreateMenus
from cairn.build.stages.optimize import OptimizeCss, OptimizeHtml, OptimizeImages, OptimizeJs
from cairn.build.stages.render import RenderPages, SavePages
from cairn.build.stages.static import CopyStatic, LoadStatic
from cairn.build.stages.taxonomies import CreateTaxonomies, GeneratePages

STAGES: tuple[type[Stage], ...] = (
    LoadPages,
    LoadData,
    LoadStatic,
    CreatePages,
    ConvertPages,
    CreateTaxonomies,
    GeneratePages,
    CreateMenus,
    CopyStatic,
    RenderPages,
    SavePages,
    SaveAssets,
    OptimizeHtml,
    OptimizeCss,
    OptimizeJs,
    OptimizeImages,
)

__all__ = [
    "STAGES",
    "Stage",
    "LoadPages",
    "LoadData",
    "LoadStatic",
    "CreatePages",
    "ConvertPages",
    "CreateTaxonomies",
    "GeneratePages",
    "CreateMenus",
    "CopyStatic",
    "RenderPages",
    "SavePages",
    "SaveAssets",
    "OptimizeHtml",
    "OptimizeCss",
    "OptimizeJs",
    "OptimizeImages",
]
