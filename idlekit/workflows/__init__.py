from idlekit.workflows.export import export_plan, plan_to_export_dict
from idlekit.workflows.loader import load_workflow, read_workflow_file, test_workflow
from idlekit.workflows.normalizer import WorkflowNormalizer, normalize_workflow
from idlekit.workflows.planner import PlanBuilder, build_plan, default_metadata_registry

__all__ = [
    "PlanBuilder",
    "WorkflowNormalizer",
    "build_plan",
    "default_metadata_registry",
    "export_plan",
    "load_workflow",
    "normalize_workflow",
    "plan_to_export_dict",
    "read_workflow_file",
    "test_workflow",
]
