"""Cost estimation for outline generation."""

import tiktoken

from .generate import OutlineRequest, build_messages

# Approximate costs per 1M tokens in USD (input/output)
# These are estimates - actual costs may vary
MODEL_COSTS = {
    "moonshot-v1-8k": {"input": 1.70, "output": 1.70},
    "gpt-4-turbo-preview": {"input": 10.00, "output": 30.00},
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "gemini-1.5-pro-latest": {"input": 1.25, "output": 5.00},
}

# Rough output tokens per outline element
TOKENS_PER_VOLUME = 40
TOKENS_PER_CHAPTER = 30
TOKENS_PER_SCENE = 45

# Thresholds for warnings
WARN_OUTPUT_TOKENS = 8_000
WARN_ESTIMATED_COST = 0.10


def count_tokens(text: str, model: str = "gpt-4o-mini") -> int:
    """Count tokens in text using tiktoken."""
    try:
        enc = tiktoken.encoding_for_model(model)
    except KeyError:
        enc = tiktoken.get_encoding("cl100k_base")
    return len(enc.encode(text))


def estimate_generation_cost(request: OutlineRequest, model: str = "moonshot-v1-8k") -> dict:
    """
    Estimate cost for generating an outline.

    Returns dict with:
        - prompt_tokens: tokens in the system and user prompts
        - estimated_output_tokens: approximate outline length in tokens
        - estimated_cost: cost in USD
        - should_warn: whether to show warning
    """
    costs = MODEL_COSTS.get(model, MODEL_COSTS["moonshot-v1-8k"])

    prompt_tokens = sum(count_tokens(m["content"], model) for m in build_messages(request))

    chapters = request.volumes * request.chapters_per_volume
    output_tokens = (
        request.volumes * TOKENS_PER_VOLUME
        + chapters * TOKENS_PER_CHAPTER
        + chapters * request.scenes_per_chapter * TOKENS_PER_SCENE
    )

    input_cost = (prompt_tokens / 1_000_000) * costs["input"]
    output_cost = (output_tokens / 1_000_000) * costs["output"]
    total_cost = input_cost + output_cost

    return {
        "prompt_tokens": prompt_tokens,
        "estimated_output_tokens": output_tokens,
        "estimated_cost": total_cost,
        "should_warn": output_tokens > WARN_OUTPUT_TOKENS or total_cost > WARN_ESTIMATED_COST,
    }


def format_cost_warning(
    operation: str,
    estimated_cost: float,
    details: str = "",
) -> str:
    """Format a cost warning message."""
    msg = f"⚠️  {operation} may cost approximately ${estimated_cost:.3f}"
    if details:
        msg += f"\n   {details}"
    return msg
