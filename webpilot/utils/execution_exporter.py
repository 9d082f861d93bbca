"""
Execution Exporter

Serializes a finished run into a stable JSON document and reads it back.

Document layout:
    id, timestamp, global_objective, total_duration, total_steps, success,
    planning_strategy, error,
    sub_plans: [{id, objective, status, steps: [step record]}],
    steps: [step record],          flat, in execution order
    extracted_data,
    summary: {total_sub_plans, completed_sub_plans, failed_sub_plans,
              successful_steps, failed_steps, success_rate},
    metadata

Step record: step_id, type, description, selector, value, success, error,
timestamp, extracted_data.
"""

import json
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from webpilot.models.execution import StepExecutionResult, SubPlanResult, TaskResult


EXPORT_VERSION = "1.0"


def _step_record(result: StepExecutionResult) -> Dict[str, Any]:
    return {
        "step_id": result.step.id,
        "type": result.step.type.value,
        "description": result.step.description,
        "selector": result.selector_used or result.step.selector,
        "value": result.value_entered if result.value_entered is not None else result.step.value,
        "success": result.success,
        "error": result.error,
        "timestamp": result.timestamp,
        "extracted_data": result.extracted_data,
    }


def _sub_plan_status(sub_plan_result: SubPlanResult) -> str:
    if sub_plan_result.success:
        return "completed"
    if any(step.success for step in sub_plan_result.steps):
        return "partial"
    return "failed"


class ExecutionExporter:
    """Export and re-import of run results."""

    def export_task_result(self, objective: str, result: TaskResult) -> Dict[str, Any]:
        plan = result.plan
        sub_plans = []
        for sub_plan_result in result.sub_plan_results:
            sub_plans.append({
                "id": sub_plan_result.sub_plan_id,
                "objective": sub_plan_result.objective,
                "status": _sub_plan_status(sub_plan_result),
                "steps": [_step_record(step) for step in sub_plan_result.steps],
            })

        successful_steps = sum(1 for step in result.steps if step.success)
        completed = sum(1 for sub_plan in sub_plans if sub_plan["status"] == "completed")

        return {
            "version": EXPORT_VERSION,
            "id": plan.id if plan else str(uuid.uuid4()),
            "timestamp": datetime.now().isoformat(),
            "global_objective": objective,
            "total_duration": result.duration_ms,
            "total_steps": len(result.steps),
            "success": result.success,
            "planning_strategy": plan.planning_strategy.value if plan else None,
            "error": result.error,
            "sub_plans": sub_plans,
            "steps": [_step_record(step) for step in result.steps],
            "extracted_data": result.extracted_data,
            "summary": {
                "total_sub_plans": len(sub_plans),
                "completed_sub_plans": completed,
                "failed_sub_plans": len(sub_plans) - completed,
                "successful_steps": successful_steps,
                "failed_steps": len(result.steps) - successful_steps,
                "success_rate": round(successful_steps / len(result.steps), 3) if result.steps else 0.0,
            },
            "metadata": {
                "screenshot_count": len(result.screenshots),
                "estimated_duration": plan.total_estimated_duration if plan else None,
                **({"plan": plan.metadata} if plan else {}),
            },
        }

    def to_json(self, objective: str, result: TaskResult, indent: Optional[int] = 2) -> str:
        return json.dumps(self.export_task_result(objective, result), indent=indent, default=str)

    @staticmethod
    def from_json(document: str) -> Dict[str, Any]:
        """
        Parse an exported document.

        Raises:
            ValueError: the document is not valid JSON or lacks required keys
        """
        data = json.loads(document)
        missing = [key for key in ("global_objective", "steps", "success", "extracted_data") if key not in data]
        if missing:
            raise ValueError(f"Export document missing keys: {', '.join(missing)}")
        return data
