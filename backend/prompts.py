# Prompt templates for the task assistant.
# Each is filled with str.format, so literal braces in the JSON examples are doubled.

# Task extraction from free text (speech transcript or typed input)
EXTRACT_TASKS_PROMPT = """You are a task extraction assistant. Analyze the following user input and extract all tasks mentioned. For each task, determine:
- Title (concise)
- Description (detailed)
- Estimated duration in minutes
- Priority (high/medium/low) based on urgency indicators
- Deadline (if mentioned, in ISO format)
- Subject/category (work, school, errands, etc.)

Today's date is: {today}

User context: {user_context}

User input: "{text}"

Return a JSON array of tasks with this exact structure:
[{{
    "title": "string",
    "description": "string",
    "estimatedDuration": number,
    "priority": "high" | "medium" | "low",
    "deadline": "ISO string or null",
    "subject": "string"
}}]

Only return the JSON array, no other text."""

# Course material analysis, one file at a time
ANALYZE_FILE_PROMPT = """Analyze this course material and determine:
1. Subject area
2. Difficulty level (easy/medium/hard)
3. Key topics covered
4. Estimated time needed to understand this material

File name: {file_name}
Content preview:
{content}

Return JSON:
{{
    "subject": "string",
    "difficulty": "easy" | "medium" | "hard",
    "topics": ["string"],
    "estimatedStudyTime": number (minutes)
}}

Only return the JSON object, no other text."""

# Daily schedule built from a list of tasks
# Strategies: balanced, deadline, priority, quick-wins
OPTIMIZE_SCHEDULE_PROMPT = """You are a time management optimization assistant. Create an optimal daily schedule.

Tasks to schedule:
{tasks}

Schedule parameters:
- Available time: {start_time} to {end_time}
- Strategy: {strategy}
- Break duration: {break_duration} minutes between tasks

Optimization strategies:
- balanced: Mix of priority, deadline, and duration
- deadline: Focus on nearest deadlines
- priority: High priority tasks first
- quick-wins: Shortest tasks first for momentum

Create a schedule that:
1. Fits within the time window
2. Includes breaks
3. Considers task difficulty (harder tasks when energy is high)
4. Groups similar tasks when possible
5. Respects deadlines

Return JSON:
{{
    "schedule": [{{
        "startTime": "HH:MM",
        "endTime": "HH:MM",
        "task": {{task object}},
        "reason": "why scheduled at this time"
    }}],
    "unscheduledTasks": [{{task object}}],
    "optimizationStrategy": "explanation of approach used"
}}

Only return the JSON object, no other text."""
