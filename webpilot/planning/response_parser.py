"""
AI Response Parser

Turns planner text into plan structures. Tolerates markdown code fences and
chatter around the JSON; anything that still does not have the expected
shape raises PlanningError.
"""

import json
import re
from typing import Any, Dict, List, Optional, Tuple

from webpilot.core.exceptions import PlanningError
from webpilot.models.plan import (
    ActionStep,
    ActionType,
    GlobalPlan,
    PlanningStrategy,
    StepCondition,
    StepTarget,
    SubObjective,
)


DEFAULT_SUB_OBJECTIVE_DURATION_MS = 10000


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` (or bare ```) wrapper."""
    trimmed = (text or "").strip()
    match = re.match(r'^```(?:json)?[ \t\r\n]*(.*?)[ \t\r\n]*```$', trimmed, re.DOTALL | re.IGNORECASE)
    if match:
        return match.group(1).strip()
    return trimmed


def extract_json_object(text: str) -> Dict[str, Any]:
    """
    Parse the JSON object contained in a planner response.

    Raises:
        PlanningError: no JSON object could be parsed
    """
    cleaned = strip_code_fences(text)
    if not cleaned:
        raise PlanningError("Empty response from planner", raw_response=text)

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        # Fall back to the outermost {...} block inside surrounding prose
        start, end = cleaned.find('{'), cleaned.rfind('}')
        if start == -1 or end <= start:
            raise PlanningError("Response does not contain a JSON object", raw_response=text)
        candidate = re.sub(r',\s*([}\]])', r'\1', cleaned[start:end + 1])
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError as e:
            raise PlanningError(f"JSON parsing failed: {e}", raw_response=text) from e

    if not isinstance(parsed, dict):
        raise PlanningError("Response is not a JSON object", raw_response=text)
    return parsed


def parse_global_plan(text: str) -> GlobalPlan:
    """Parse a decomposition response into a GlobalPlan."""
    parsed = extract_json_object(text)
    raw_objectives = parsed.get("subObjectives", parsed.get("sub_objectives"))

    if not isinstance(raw_objectives, list) or not raw_objectives:
        raise PlanningError("Missing or empty 'subObjectives' list", raw_response=text)

    sub_objectives = []
    for index, item in enumerate(raw_objectives):
        if isinstance(item, str) and item.strip():
            sub_objectives.append(SubObjective(text=item.strip(), estimated_duration=DEFAULT_SUB_OBJECTIVE_DURATION_MS))
        elif isinstance(item, dict) and isinstance(item.get("text"), str) and item["text"].strip():
            duration = item.get("estimatedDuration", item.get("estimated_duration", DEFAULT_SUB_OBJECTIVE_DURATION_MS))
            try:
                duration = int(duration)
            except (TypeError, ValueError):
                duration = DEFAULT_SUB_OBJECTIVE_DURATION_MS
            sub_objectives.append(SubObjective(text=item["text"].strip(), estimated_duration=max(duration, 0)))
        else:
            raise PlanningError(f"Sub-objective {index + 1} is not a non-empty string", raw_response=text)

    strategy_label = str(parsed.get("planningStrategy", parsed.get("planning_strategy", "sequential"))).lower()
    try:
        strategy = PlanningStrategy(strategy_label)
    except ValueError:
        strategy = PlanningStrategy.SEQUENTIAL

    return GlobalPlan(
        sub_objectives=sub_objectives,
        planning_strategy=strategy,
        reasoning=str(parsed.get("reasoning") or "")
    )


def map_action_type(raw_type: Any) -> Optional[ActionType]:
    """Map a planner's step type label onto ActionType."""
    if not isinstance(raw_type, str):
        return None
    try:
        return ActionType(raw_type.strip().lower())
    except ValueError:
        return None


def _stringify_value(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def parse_step(raw: Any, index: int) -> ActionStep:
    """Validate and convert one raw step."""
    if not isinstance(raw, dict):
        raise PlanningError(f"Step {index + 1} is not a valid object")

    action_type = map_action_type(raw.get("type"))
    if action_type is None:
        raise PlanningError(f"Invalid step {index + 1}: unsupported action type {raw.get('type')!r}")

    raw_target = raw.get("target")
    target_description = raw_target.get("description") if isinstance(raw_target, dict) else None
    description = raw.get("description") or target_description
    if not description:
        raise PlanningError(f"Step {index + 1} missing description")

    target = None
    if isinstance(raw_target, dict):
        target = StepTarget(
            selector=str(raw_target.get("selector") or ""),
            description=str(raw_target.get("description") or description),
            coordinates=raw_target.get("coordinates") if isinstance(raw_target.get("coordinates"), dict) else None
        )
    elif isinstance(raw_target, str) and raw_target:
        target = StepTarget(selector=raw_target, description=description)

    condition = None
    raw_condition = raw.get("condition")
    if isinstance(raw_condition, dict) and raw_condition.get("timeout") is not None:
        try:
            condition = StepCondition(timeout=int(raw_condition["timeout"]))
        except (TypeError, ValueError):
            condition = None

    return ActionStep(
        type=action_type,
        description=str(description),
        target=target,
        value=_stringify_value(raw.get("value")),
        condition=condition
    )


def parse_action_steps(text: str, allow_empty: bool = False) -> Tuple[List[ActionStep], str]:
    """
    Parse a step-planning response.

    Returns:
        (steps, reasoning)
    """
    parsed = extract_json_object(text)
    raw_steps = parsed.get("steps")

    if not isinstance(raw_steps, list):
        raise PlanningError("Missing required 'steps' array in response", raw_response=text)
    if not raw_steps and not allow_empty:
        raise PlanningError("Steps array is empty", raw_response=text)

    steps = [parse_step(raw, index) for index, raw in enumerate(raw_steps)]
    reasoning = str(parsed.get("reasoning") or "AI-generated action plan")
    return steps, reasoning
