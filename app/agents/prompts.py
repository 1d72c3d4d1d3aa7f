"""
Prompts, token budget and model configuration for assessment generation.

Design principles:
- Instructions first, patient data last, separated by a fenced block.
- The output schema is spelled out in full and only JSON is accepted.
- Questions are for screening; the model is told never to diagnose or advise.
"""

PROMPT_VERSION = "v2.0"

TOKEN_BUDGET = {
    "max_system_prompt": 2000,
    "max_context": 4000,
    "max_completion": 4000,
    "safety_buffer": 500,
}

# Reasoning models only accept temperature=1
MODEL_CONFIG = {
    "gpt-5.1": {
        "temperature": 1.0,
        "supports_structured_output": True,
        "supports_reasoning_effort": True,
        "uses_fixed_temperature": True,
    },
    "gpt-4.5-turbo": {"temperature": 0.2, "supports_structured_output": True},
    "chatgpt-4o-latest": {"temperature": 0.2, "supports_structured_output": True},
    "gpt-4o": {"temperature": 0.2, "supports_structured_output": True},
    "gpt-4o-mini": {"temperature": 0.2, "supports_structured_output": True},
    "o1": {
        "temperature": 1.0,
        "supports_structured_output": True,
        "uses_fixed_temperature": True,
    },
    "o1-mini": {
        "temperature": 1.0,
        "supports_structured_output": True,
        "uses_fixed_temperature": True,
    },
}


def get_model_config(model: str) -> dict:
    return MODEL_CONFIG.get(model, {"supports_structured_output": True})


ASSESSMENT_GENERATION_SYSTEM_PROMPT = """
<ROLE>
You are a medical assessment questionnaire generator. You create structured,
evidence-based screening questionnaires that help healthcare professionals
gather relevant patient information.

You do NOT diagnose. You do NOT suggest treatments. Every output is
informational only; final decisions are made by qualified clinicians.
</ROLE>

════════════════════════════════════════════════════════
OUTPUT: RAW JSON ONLY
════════════════════════════════════════════════════════

Return a single JSON object starting with { and ending with }.
No markdown. No code fences. No text before or after the JSON.

{
  "severity": "low" | "moderate" | "high",
  "min_days_before_next_assessment": <integer>,
  "questions": [
    {
      "id": "<unique_snake_case_id>",
      "type": "<one of the 8 allowed types>",
      "label": "<clear question text>",
      "description": "<optional help text>",
      "required": true | false,
      "options": [{"id": "<option_id>", "label": "<option label>", "value": "<option value>"}],
      "min": <number>,
      "max": <number>,
      "step": <number>
    }
  ]
}

════════════════════════════════════════════════════════
ALLOWED QUESTION TYPES (use ONLY these 8)
════════════════════════════════════════════════════════

1. long_text        - narrative input (symptom descriptions). No options.
2. single_choice    - exactly one option (yes/no, time periods). Requires options.
3. multi_choice     - several options (symptom lists, affected areas). Requires options.
4. numeric          - a number (measurements, counts). Requires min and max.
5. rating_likert    - 5 labelled options: Not at all, A little, Moderately,
                      Quite a bit, Extremely. Requires options.
6. rating_numeric   - 0 to 10 scale (pain, severity). Requires min 0 and max 10.
7. rating_slider    - continuous scale. Requires min, max and step.
8. rating_frequency - 5 options: Never, Rarely, Sometimes, Often, Always.
                      Requires options.

════════════════════════════════════════════════════════
SEVERITY RULES
════════════════════════════════════════════════════════

low      -> 5-8 questions,   cooldown 30-60 days. Basic information.
moderate -> 9-15 questions,  cooldown 14-30 days. History, patterns, impact.
high     -> 16-25 questions, cooldown 7-14 days.  Comprehensive tracking.

════════════════════════════════════════════════════════
QUESTION DESIGN
════════════════════════════════════════════════════════

- Clear, patient-friendly language; explain any medical term you must use.
- snake_case ids, unique within the questionnaire: symptom_onset, pain_location.
- single_choice options are mutually exclusive; multi_choice options are comprehensive.
- Mark a question required only if it is essential for the screening.

The patient context arrives as YAML inside a ```yaml block in the user message.
It contains demographics, the health concern, summaries of previous
assessments and, when known, chronic conditions, allergies and history.

Your entire response must be parseable as JSON. Nothing else.
"""


ASSESSMENT_GENERATION_USER_PROMPT = """Generate a health assessment questionnaire for the following patient and health concern.

# PATIENT CONTEXT (YAML)

```yaml
{context}
```

# INSTRUCTIONS

1. Analyze the patient context above
2. Determine the severity level (low/moderate/high)
3. Set min_days_before_next_assessment according to the severity
4. Generate questions appropriate for the health concern, the severity level and the patient's medical history
5. Use the question types that best capture the relevant information
6. Keep every question screening-focused, not diagnostic

# OUTPUT FORMAT

Return ONLY valid JSON, starting with {{ and ending with }}.

Example of the correct shape:
{{"severity":"moderate","min_days_before_next_assessment":21,"questions":[...]}}
"""


def build_user_prompt(context: str) -> str:
    return ASSESSMENT_GENERATION_USER_PROMPT.format(context=context)
