CATEGORIZE_PROMPT = """You are a time tracking assistant. Analyze this transcript of \
someone describing what they've been doing:

"{transcript}"

The user's time tracking interval is set to {budget} minutes. This means \
approximately {budget} minutes have passed since their last check-in.

Available categories: {category_list}

Extract and return the activities as a JSON object with an "activities" array:
{{
  "activities": [
    {{
      "summary": "A brief 1-sentence summary of the activity",
      "category": "category id from the available categories list",
      "tags": ["array", "of", "relevant", "tags"],
      "duration": duration in minutes (number)
    }}
  ]
}}

Important rules:
- If the user describes MULTIPLE activities, split them into separate objects \
in the array
- The sum of all durations should equal {budget} minutes, UNLESS the user \
explicitly states different total time or specific times for each activity.
- If the user mentions a specific duration for one activity (e.g., "5 minutes \
making coffee"), use that and allocate the remaining time ({budget} - 5 = \
{budget_minus_five} minutes) to other activities
- If only one activity is mentioned with no specific time, use {budget} minutes
- Categories MUST be one of: {category_ids}. Use "other" if none fit well.
- Tags should be lowercase
- If the transcript is unclear, return a single activity with category "other" \
and duration {budget}

Examples:
- "I made coffee for 5 minutes then worked on the project" -> 2 activities: \
coffee (5 min, personal), project ({budget_minus_five} min, work)
- "I was in meetings all morning" -> 1 activity: meetings ({budget} min, work)
- "Spent 2 hours coding" -> 1 activity: coding (120 min, work) - user specified \
time overrides default

Return ONLY the JSON object, no other text."""

TEST_CONNECTION_PROMPT = 'Say "ok" if you can read this.'


def build_categorize_prompt(transcript: str, budget_minutes: int, categories) -> str:
    category_list = ", ".join(f"{c['id']} ({c['name']})" for c in categories)
    category_ids = ", ".join(c["id"] for c in categories) or "other"
    return CATEGORIZE_PROMPT.format(
        transcript=transcript,
        budget=budget_minutes,
        budget_minus_five=budget_minutes - 5,
        category_list=category_list or "other (Other)",
        category_ids=category_ids,
    )
