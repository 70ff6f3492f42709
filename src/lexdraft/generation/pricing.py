"""Model pricing and cost calculation."""

from typing import Dict

# USD per million tokens
MODEL_PRICING: Dict[str, Dict[str, float]] = {
    "gpt-4o": {"input": 2.50, "output": 10.00},
    "gpt-4o-mini": {"input": 0.15, "output": 0.60},
    "gpt-4.1": {"input": 2.00, "output": 8.00},
    "gpt-4.1-mini": {"input": 0.40, "output": 1.60},
}

DEFAULT_PRICING = MODEL_PRICING["gpt-4o"]


def get_model_pricing(model_id: str) -> Dict[str, float]:
    """Pricing for ``model_id``; dated snapshots resolve to their base model."""
    if model_id in MODEL_PRICING:
        return MODEL_PRICING[model_id]
    for name in sorted(MODEL_PRICING, key=len, reverse=True):
        if model_id.startswith(f"{name}-"):
            return MODEL_PRICING[name]
    return DEFAULT_PRICING


def calculate_cost(input_tokens: int, output_tokens: int, model_id: str) -> float:
    pricing = get_model_pricing(model_id)
    input_cost = input_tokens / 1_000_000 * pricing["input"]
    output_cost = output_tokens / 1_000_000 * pricing["output"]
    return round(input_cost + output_cost, 6)
