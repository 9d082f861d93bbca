"""
Planner Prompts

Prompts for objective decomposition, step planning, plan adaptation and
AI-assisted step refinement. Every prompt asks for bare JSON; the response
parser still tolerates markdown fences.
"""

import json
from typing import Any, Dict, List, Optional


ACTION_TYPES_HELP = """Available step types:
- navigate: open a URL. Put the URL in "value".
- click: click an element. Requires target.selector.
- type: type text into a field. Requires target.selector and "value".
- fill: fill several fields at once. "value" is a JSON object mapping selector -> text.
- wait: pause. Put milliseconds in "value" or condition.timeout.
- extract: read text from an element. target.selector is optional.
- scroll: scroll the page. "value" may be {"x": 0, "y": 500}.
- screenshot: capture the page."""


GLOBAL_PLANNING_SYSTEM_PROMPT = """You are a Planning Agent for a browser-automation system.

Break a user's objective into sub-objectives. Each sub-objective must be a
self-contained phase that can be planned into browser steps on its own
(for example "Navigate to the login page", "Sign in with the provided
credentials", "Extract the account balance").

RULES:
- Produce AT LEAST 2 sub-objectives when the objective has more than one phase.
- Keep sub-objectives in execution order.
- Do not invent information the user did not give.

Respond with ONLY valid JSON in this exact shape:
{
  "subObjectives": ["first sub-objective", "second sub-objective"],
  "planningStrategy": "sequential|parallel|conditional",
  "reasoning": "short explanation"
}"""


ACTION_PLANNING_SYSTEM_PROMPT = """You are a Browser Automation Planner.

Convert an instruction into a short ordered list of browser steps for the
page described below. Prefer selectors that appear in the interactive
element list. Use robust selectors (ids, names, aria-labels, visible text).

{action_types}

CURRENT PAGE:
- URL: {page_url}
- Title: {page_title}

INTERACTIVE ELEMENTS:
{interactive_elements}

PAGE TEXT:
{page_text}

Respond with ONLY valid JSON in this exact shape:
{{
  "steps": [
    {{"type": "navigate", "description": "...", "value": "https://..."}},
    {{"type": "click", "description": "...", "target": {{"selector": "...", "description": "..."}}}}
  ],
  "reasoning": "short explanation"
}}"""


PLAN_ADAPTATION_SYSTEM_PROMPT = """You are a Browser Automation Planner repairing a plan mid-run.

The remaining steps below were planned before the page reached its current
state. Some of them may now be wrong. Using the actual page content, return
a corrected list of the remaining steps only (do not repeat steps that
already ran). Keep the original intent of each step.

""" + ACTION_TYPES_HELP + """

Respond with ONLY valid JSON: {"steps": [...], "reasoning": "..."}"""


def build_global_plan_prompt(objective: str, constraints: List[str], page_url: str = "",
                             page_title: str = "") -> str:
    """User prompt for objective decomposition."""
    lines = [f'Objective: "{objective}"']
    if page_url:
        lines.append(f"Current page: {page_title or 'Untitled'} ({page_url})")
    if constraints:
        lines.append("Constraints:")
        lines.extend(f"- {constraint}" for constraint in constraints)
    lines.append("")
    lines.append("Decompose this objective into sub-objectives.")
    return "\n".join(lines)


def build_action_planning_system_prompt(page_url: str, page_title: str, page_text: str,
                                        interactive_elements: List[Dict[str, Any]]) -> str:
    return ACTION_PLANNING_SYSTEM_PROMPT.format(
        action_types=ACTION_TYPES_HELP,
        page_url=page_url or "about:blank",
        page_title=page_title or "Unknown Page",
        page_text=page_text or "No page content available",
        interactive_elements=json.dumps(interactive_elements, indent=2) if interactive_elements else "[]",
    )


def build_action_planning_prompt(instruction: str, constraints: Optional[List[str]] = None,
                                 variables: Optional[Dict[str, Any]] = None,
                                 extracted_data: Any = None,
                                 execution_summary: Optional[str] = None) -> str:
    """User prompt asking for the steps of one instruction."""
    lines = [f'Instruction: "{instruction}"']
    if constraints:
        lines.append("")
        lines.append("Constraints:")
        lines.extend(f"- {constraint}" for constraint in constraints)
    if variables:
        lines.append("")
        lines.append(f"Variables: {json.dumps(variables, default=str)}")
    if extracted_data:
        lines.append("")
        lines.append(f"Data extracted earlier in this run: {json.dumps(extracted_data, default=str)}")
    if execution_summary:
        lines.append("")
        lines.append("Summary of steps executed so far in this run:")
        lines.append(execution_summary)
    lines.append("")
    lines.append("Convert this to browser automation steps following the expected format.")
    return "\n".join(lines)


def build_adaptation_prompt(remaining_steps: List[Dict[str, Any]], page_url: str, page_title: str,
                            page_text: str, failure: Optional[str] = None,
                            extracted_data: Any = None) -> str:
    """User prompt asking to regenerate the not-yet-executed steps."""
    lines = ["The current action plan failed or needs adjustment."]
    if failure:
        lines.append(f"Last failure: {failure}")
    if extracted_data:
        lines.append(f"Data extracted so far: {json.dumps(extracted_data, default=str)}")
    lines.extend([
        "",
        "Remaining steps:",
        json.dumps(remaining_steps, indent=2),
        "",
        "Current page state:",
        f"- URL: {page_url}",
        f"- Title: {page_title}",
        "",
        "Current page content (for accurate selector refinement):",
        page_text or "No content available",
        "",
        "Provide the updated remaining steps with selectors that match what is actually on the page. "
        "Respond with ONLY valid JSON, no other text.",
    ])
    return "\n".join(lines)


def build_step_refinement_prompt(step_type: str, description: str, failed_selector: str,
                                 errors: List[str], page_url: str, page_title: str) -> str:
    """Instruction asking the planner for a single corrected step."""
    error_lines = "\n".join(f"- {error}" for error in errors) or "- unknown error"
    return (
        f"A '{step_type}' step keeps failing on {page_title or 'the page'} ({page_url}).\n"
        f"Step: {description}\n"
        f"Failed selector: {failed_selector or 'none'}\n"
        f"Errors so far:\n{error_lines}\n\n"
        f"Return exactly one '{step_type}' step that achieves the same thing with a different, "
        f"more reliable selector taken from the page."
    )
