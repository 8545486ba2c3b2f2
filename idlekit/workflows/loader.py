"""Load workflow definition files (YAML or JSON) into normalized definitions.

Files are parsed with ``yaml.safe_load`` / ``json.loads`` only, so no file
can construct Python objects. The engine itself consumes in-memory data;
this module is a host convenience.
"""

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from idlekit.exceptions import WorkflowValidationError
from idlekit.types import LifecycleRequest, WorkflowDefinition
from idlekit.workflows.normalizer import WorkflowNormalizer

logger = logging.getLogger(__name__)

_YAML_SUFFIXES = {".yaml", ".yml"}
_JSON_SUFFIXES = {".json"}


def read_workflow_file(path: Union[str, Path]) -> Any:
    """Parse a workflow file and return the raw data.

    Raises:
        FileNotFoundError: *path* does not exist.
        WorkflowValidationError: unsupported extension or unparsable content.
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Workflow file not found: {p}")

    suffix = p.suffix.lower()
    text = p.read_text(encoding="utf-8")
    try:
        if suffix in _YAML_SUFFIXES:
            return yaml.safe_load(text)
        if suffix in _JSON_SUFFIXES:
            return json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise WorkflowValidationError(
            f"Workflow file {p.name} could not be parsed: {exc}",
            violations=[str(exc)],
        ) from exc
    raise WorkflowValidationError(
        f"Unsupported workflow file type '{suffix}'. Use .yaml, .yml or .json."
    )


def load_workflow(path: Union[str, Path], max_steps: int = 200) -> WorkflowDefinition:
    """Read and normalize a workflow file."""
    raw = read_workflow_file(path)
    workflow = WorkflowNormalizer(max_steps).normalize(raw)
    logger.info("[Workflow] Loaded '%s' from %s", workflow.name, path)
    return workflow


def test_workflow(
    source: Union[str, Path, Mapping[str, Any], WorkflowDefinition],
    request: Optional[LifecycleRequest] = None,
    max_steps: int = 200,
) -> WorkflowDefinition:
    """Validate a workflow without building a plan.

    Args:
        source:  A file path, raw workflow data, or a normalized definition.
        request: If given, its lifecycle event must match the workflow's.

    Returns:
        The normalized definition.

    Raises:
        WorkflowValidationError: any shape problem or an event mismatch.
    """
    if isinstance(source, (str, Path)):
        workflow = load_workflow(source, max_steps)
    else:
        workflow = WorkflowNormalizer(max_steps).normalize(source)

    if request is not None and workflow.lifecycle_event.casefold() != request.lifecycle_event.casefold():
        message = (
            f"Workflow '{workflow.name}' handles lifecycle event '{workflow.lifecycle_event}' "
            f"but the request is for '{request.lifecycle_event}'."
        )
        raise WorkflowValidationError(message, violations=[message])
    return workflow


# Not a pytest test despite the name.
test_workflow.__test__ = False
