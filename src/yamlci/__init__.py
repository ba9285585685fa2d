from .dsl import job, sh, uses, matrix, wf, workflow, JobBuilder, build
from .loader import load_workflow, loads
from .model import Event, ExecutionResult, JobSpec, StepSpec, WorkflowDocument, Status
from .runner import Interpreter, expand_matrix, should_trigger

__all__ = [
    "job", "sh", "uses", "matrix", "wf", "workflow", "JobBuilder", "build",
    "load_workflow", "loads",
    "Event", "ExecutionResult", "JobSpec", "StepSpec", "WorkflowDocument", "Status",
    "Interpreter", "expand_matrix", "should_trigger",
]
