"""
Oracle Prompts - Planner and Interpreter Templates

This module provides the prompt templates the LiteLLM oracle sends for each
question the engine asks:
- ACTION_ANALYSIS_PROMPT: does the instruction need actions at all?
- SERVICE_IDENTIFICATION_PROMPT: which services does it target?
- ACTION_PLANNING_PROMPT: which catalog actions, in which order?
- ESCALATION_PROMPT: stop, continue, or retry after a failed action?
- FINAL_ANALYSIS_PROMPT: summarize the run for the user
- CONFIG_ERROR_PROMPT: explain why a service could not be integrated

Every template asks for a JSON object; the builders below return the chat
message lists passed to `litellm.acompletion`.

Usage:
    from aiwe.core.prompts.oracle_prompts import build_planning_messages

    messages = build_planning_messages(instruction, history, catalogs, completed)
"""

import json
from typing import Any

ACTION_ANALYSIS_PROMPT = """
Analyze whether this instruction requires executing actions on external services
or is just a question or conversation.

Available data reference:
{data_reference}

Previous context:
{conversation_history}

If you need the data of specific past actions, list their ids in "dataNeeded";
you will be asked again with their results under "requestedData".

Respond in JSON with the format:
{{
  "requiresAction": true | false,
  "response": "your message",
  "dataNeeded": ["action ids whose data you need"],
  "reason": "why you need this data (if any)"
}}
"""

SERVICE_IDENTIFICATION_PROMPT = """
You identify the services a user instruction targets, with their website URLs
and service names. For example, for mixpanel.com the serviceName is "mixpanel".

If you need clarification, respond with:
{{"status": "needsClarification", "question": "your question"}}

If you can determine the services, respond with:
{{"status": "complete", "data": [{{"url": "website.com", "serviceName": "website"}}]}}

Previous context:
{conversation_history}
"""

ACTION_PLANNING_PROMPT = """
Plan actions based on the available service catalogs.

If you need clarification about parameters or specifics, respond with:
{{"status": "needsInfo", "question": "your question"}}

If you have everything needed, respond with:
{{
  "status": "complete",
  "plan": {{
    "actions": [
      {{
        "id": "actionName",
        "serviceName": "service",
        "parameters": {{}},
        "dependsOn": ["previousActionId"],
        "outputKey": "uniqueKey",
        "alwaysExecute": false
      }}
    ]
  }}
}}

Rules:
- "id" is the name of the action in the service catalog.
- A parameter value of the form "$outputs.<outputKey>.<path>" is replaced with
  a field of an earlier action's result; declare that action in "dependsOn".
- Do not repeat already completed actions unless necessary; set
  "alwaysExecute": true when a fresh result is required.

Already completed actions:
{completed_summary}

Previous context:
{conversation_history}
"""

ACTION_PLANNING_USER_PROMPT = """
Instruction: {instruction}
Available actions: {catalogs}
Previous results: {previous_results}
Respond in JSON as specified above.
"""

ESCALATION_PROMPT = """
An action has failed after exhausting its retries. Decide whether:
1. The error is fatal and execution should stop ("stop")
2. This action can be skipped and the rest of the plan continued ("continue")
3. The action should be retried ("retry")

Failure:
{failure}

Respond in JSON with the format: {{"decision": "stop|continue|retry", "reason": "explanation"}}
"""

FINAL_ANALYSIS_PROMPT = """
Analyze all executed actions and their results.

Action results:
{results}

Available data reference:
{data_reference}

Provide a complete analysis in JSON with the format:
{{
  "summary": "Complete summary of what was accomplished",
  "results": {{
    "successful": ["successful actions with their outcomes"],
    "failed": ["failed actions with error details"]
  }},
  "suggestions": ["possible next steps"]
}}
"""

CONFIG_ERROR_PROMPT = """
An error occurred while getting the configuration for {service_name}: {error}

Explain the issue to the user and suggest possible next steps.
Respond in JSON with the format: {{"response": "your message"}}
"""


def _dump(value: Any) -> str:
    return json.dumps(value, indent=2, default=str)


def build_analysis_messages(
    instruction: str, conversation_history: str, data_reference: dict[str, Any]
) -> list[dict[str, str]]:
    return [
        {
            "role": "system",
            "content": ACTION_ANALYSIS_PROMPT.format(
                data_reference=_dump(data_reference), conversation_history=conversation_history
            ),
        },
        {"role": "user", "content": instruction},
    ]


def build_identification_messages(instruction: str, conversation_history: str) -> list[dict[str, str]]:
    return [
        {
            "role": "system",
            "content": SERVICE_IDENTIFICATION_PROMPT.format(conversation_history=conversation_history),
        },
        {"role": "user", "content": instruction},
    ]


def build_planning_messages(
    instruction: str,
    conversation_history: str,
    catalogs: dict[str, dict[str, Any]],
    completed_actions: dict[str, dict[str, Any]],
) -> list[dict[str, str]]:
    """
    Build the planning request.

    Args:
        instruction: User instruction
        conversation_history: Rendered conversation log
        catalogs: Catalog per service, already serialized
        completed_actions: Completed-action records, already serialized
    """
    completed_summary = "\n".join(
        f"{action_id} on {record['service_name']} ({record['timestamp']})"
        for action_id, record in completed_actions.items()
    )
    return [
        {
            "role": "system",
            "content": ACTION_PLANNING_PROMPT.format(
                completed_summary=completed_summary or "(none)",
                conversation_history=conversation_history,
            ),
        },
        {
            "role": "user",
            "content": ACTION_PLANNING_USER_PROMPT.format(
                instruction=instruction,
                catalogs=json.dumps(catalogs, default=str),
                previous_results=json.dumps(completed_actions, default=str),
            ),
        },
    ]


def build_escalation_messages(
    failure: dict[str, Any], transcript: list[dict[str, str]]
) -> list[dict[str, str]]:
    """The run transcript comes first so the decision sees the whole run."""
    return [
        *transcript,
        {"role": "system", "content": ESCALATION_PROMPT.format(failure=_dump(failure))},
    ]


def build_summary_messages(
    results: list[dict[str, Any]], data_reference: dict[str, Any]
) -> list[dict[str, str]]:
    return [
        {
            "role": "system",
            "content": FINAL_ANALYSIS_PROMPT.format(
                results=_dump(results), data_reference=_dump(data_reference)
            ),
        }
    ]


def build_config_error_messages(service_name: str, error: str) -> list[dict[str, str]]:
    return [
        {"role": "system", "content": CONFIG_ERROR_PROMPT.format(service_name=service_name, error=error)}
    ]
