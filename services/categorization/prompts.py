"""Prompt templates for record categorization."""

EXAMPLE_CATEGORIES: tuple[str, ...] = (
    "Tensorflow",
    "MLOps",
    "Huggingface",
    "Langchain",
    "Python",
    "Javascript",
    "Machine Learning",
    "Deep Learning",
    "NLP",
    "Computer Vision",
    "Data Science",
)

MAX_CATEGORIES = 3

CATEGORIZE_SYSTEM_PROMPT = "You are a precise text classifier. Reply with a single JSON object and nothing else."

_CATEGORIZE_TEMPLATE = """Here is a text: "{text}"

You are an expert in text categorization. Assign this text to one or more categories.
You are completely free to choose the most relevant categories.

Some examples of possible categories (you are not limited to these):
{examples}

Give each category a confidence score between 0 and 1.
Also provide a brief reasoning explaining your choice of categories.
At most {max_categories} categories.

Your answer must be JSON in exactly this format:

{{
  "categories": [
    {{ "name": "Category name 1", "score": 0.95 }},
    {{ "name": "Category name 2", "score": 0.8 }},
    {{ "name": "Category name 3", "score": 0.6 }}
  ],
  "reasoning": "Concise explanation of why these categories were chosen."
}}
"""


def build_categorize_prompt(text: str) -> str:
    """Build the classifier prompt for one record text."""
    examples = "\n".join(f"- {name}" for name in EXAMPLE_CATEGORIES)
    return _CATEGORIZE_TEMPLATE.format(text=text, examples=examples, max_categories=MAX_CATEGORIES)
