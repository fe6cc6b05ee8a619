"""
Task assistant backed by the Anthropic Messages API.

Every function takes the client explicitly; main.py builds it once per app.
Model errors propagate (anthropic.APIError, ValueError for unparseable or
unexpected JSON) so the endpoint decides how to report them.
"""
import json
import logging
import os
import time
from datetime import datetime
from typing import Any

import anthropic
from dotenv import load_dotenv

from models import FileAnalysis, ScheduleRequest, ScheduleResponse, Task
from prompts import ANALYZE_FILE_PROMPT, EXTRACT_TASKS_PROMPT, OPTIMIZE_SCHEDULE_PROMPT

load_dotenv()

logger = logging.getLogger(__name__)

ANTHROPIC_MODEL = os.getenv("ANTHROPIC_MODEL", "claude-sonnet-4-5")
CONTENT_PREVIEW_CHARS = 4000


def strip_code_fence(text: str) -> str:
    """Remove a surrounding markdown code block (```json ... ```) if present."""
    text = text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        lines = lines[1:]  # Remove first line (```json)
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]  # Remove last line (```)
        text = "\n".join(lines)
    return text


async def complete_json(
    client: anthropic.AsyncAnthropic,
    prompt: str,
    max_tokens: int = 2048,
    temperature: float = 0.3,
) -> Any:
    """Send a single user prompt and parse the reply as JSON."""
    response = await client.messages.create(
        model=ANTHROPIC_MODEL,
        max_tokens=max_tokens,
        temperature=temperature,
        messages=[{"role": "user", "content": prompt}],
    )
    ai_text = response.content[0].text
    logger.debug(f"Model response: {ai_text}")
    return json.loads(strip_code_fence(ai_text))


async def extract_tasks(
    client: anthropic.AsyncAnthropic, text: str, user_context: str | None = None
) -> list[Task]:
    prompt = EXTRACT_TASKS_PROMPT.format(
        today=datetime.now().strftime("%Y-%m-%d"),
        user_context=user_context or "None provided",
        text=text,
    )
    parsed = await complete_json(client, prompt)

    # Handle a response wrapped in an object
    if isinstance(parsed, dict):
        parsed = parsed.get("tasks", [])
    if not isinstance(parsed, list):
        raise ValueError("Expected a list of tasks")

    stamp = int(time.time() * 1000)
    return [
        Task.model_validate({**item, "id": f"task_{stamp}_{idx}"})
        for idx, item in enumerate(parsed)
    ]


async def analyze_file(
    client: anthropic.AsyncAnthropic, file_name: str, content: bytes
) -> FileAnalysis:
    preview = content.decode("utf-8", errors="replace")[:CONTENT_PREVIEW_CHARS]
    prompt = ANALYZE_FILE_PROMPT.format(file_name=file_name, content=preview)
    return FileAnalysis.model_validate(await complete_json(client, prompt))


def apply_file_analyses(
    tasks: list[dict[str, Any]], analyses: list[tuple[str, FileAnalysis]]
) -> list[dict[str, Any]]:
    """
    Fold file analyses into tasks given as raw dicts.
    A task matches the first analysis whose subject contains the task's subject
    (case-insensitive); it takes that difficulty and the larger of the two durations.
    Every other field of a task is returned as it came in.
    """
    updated = []
    for task in tasks:
        match = None
        if isinstance(task.get("subject"), str) and task["subject"]:
            subject = task["subject"].lower()
            match = next(
                (a for _, a in analyses if a.subject and subject in a.subject.lower()),
                None,
            )

        if match:
            task = {
                **task,
                "difficulty": match.difficulty,
                "estimatedDuration": max(task.get("estimatedDuration") or 0, match.estimated_study_time),
            }
        updated.append(task)
    return updated


async def optimize_schedule(
    client: anthropic.AsyncAnthropic, request: ScheduleRequest
) -> ScheduleResponse:
    prompt = OPTIMIZE_SCHEDULE_PROMPT.format(
        tasks=json.dumps(request.tasks, indent=2),
        start_time=request.start_time,
        end_time=request.end_time,
        strategy=request.strategy,
        break_duration=request.break_duration,
    )
    parsed = await complete_json(client, prompt, max_tokens=4096, temperature=0.5)
    return ScheduleResponse.model_validate(parsed)
