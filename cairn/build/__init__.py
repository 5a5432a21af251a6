"""
cairn.build - The build pipeline.

Usage:
    from cairn.build import Pipeline, BuildOptions
    metrics = Pipeline(root, config, version).run(BuildOptions(drafts=True))
"""

from cairn.build.context import BuildContext, Page
from cairn.build.metrics import BuildMetrics, MetricsRecorder, StageMetric
from cairn.build.options import BuildOptions
from cairn.build.orchestrator import Pipeline, cmd_build

__all__ = [
    "BuildContext",
    "BuildMetrics",
    "BuildOptions",
    "MetricsRecorder",
    "Page",
    "Pipeline",
    "StageMetric",
    "cmd_build",
]
