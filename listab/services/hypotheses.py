"""Variant hypotheses derived from a base listing."""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List

from listab.schemas.experiment import HypothesisRequest, VariantCreate

CENTS = Decimal("0.01")


def _scaled(price: Decimal, factor: str) -> Decimal:
    return (price * Decimal(factor)).quantize(CENTS, rounding=ROUND_HALF_UP)


def generate_hypotheses(request: HypothesisRequest) -> Dict[str, Any]:
    """Three starting hypotheses: a cheaper price, a higher price and a premium title."""
    hypotheses: List[Dict[str, Any]] = [
        {
            "name": "Price Test - Lower",
            "title": request.base_title,
            "description": request.base_description,
            "price": _scaled(request.base_price, "0.9"),
            "reasoning": "Lower price may increase the contact rate",
        },
        {
            "name": "Price Test - Higher",
            "title": request.base_title,
            "description": request.base_description,
            "price": _scaled(request.base_price, "1.1"),
            "reasoning": "Higher price may signal premium quality",
        },
        {
            "name": "Title Optimization",
            "title": f"{request.base_title} | Premium",
            "description": request.base_description,
            "price": request.base_price,
            "reasoning": "A premium tag may attract quality seekers",
        },
    ]
    return {"hypotheses": hypotheses, "generated_at": datetime.utcnow().isoformat()}


def hypotheses_as_variants(request: HypothesisRequest) -> List[VariantCreate]:
    """Control variant followed by one variant per hypothesis."""
    variants = [VariantCreate(
        index=0,
        name="Control",
        title=request.base_title,
        description=request.base_description,
        price=request.base_price,
    )]
    for i, h in enumerate(generate_hypotheses(request)["hypotheses"], start=1):
        variants.append(VariantCreate(
            index=i,
            name=h["name"],
            title=h["title"],
            description=h["description"],
            price=h["price"],
        ))
    return variants
