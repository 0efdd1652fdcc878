"""Generate wellness tips (or expand one tip) from the command line."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Any, Sequence

from app.models.gateway import GatewayError
from app.models.wellness import MAX_AGE, MIN_AGE, Gender, WellnessGoal
from app.services.gemini import create_wellness_llm
from app.services.tip_gateway import WellnessTipGateway

LOGGER = logging.getLogger("wellness.generate_tips")

if not LOGGER.handlers:  # avoid duplicates on re-import
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    LOGGER.addHandler(handler)
    LOGGER.setLevel(logging.INFO)
    LOGGER.propagate = False


def _configure_logging() -> None:
    """Configure root logging based on ``WELLNESS_LOG_LEVEL``."""
    level_name = os.getenv("WELLNESS_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")


def _age(value: str) -> int:
    age = int(value)
    if not MIN_AGE <= age <= MAX_AGE:
        raise argparse.ArgumentTypeError(f"age must be between {MIN_AGE} and {MAX_AGE}")
    return age


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ask the wellness gateway for personalised tips")
    parser.add_argument("--age", type=_age, help=f"Age in years ({MIN_AGE}-{MAX_AGE})")
    parser.add_argument("--gender", choices=[item.value for item in Gender])
    parser.add_argument("--goal", choices=[item.value for item in WellnessGoal])
    parser.add_argument(
        "--details",
        dest="tip_title",
        help="Expand this tip title into details and an action plan instead of generating tips",
    )
    parser.add_argument(
        "--model-provider",
        choices=["gemini", "local"],
        default=(os.getenv("WELLNESS_LLM_PROVIDER") or "gemini").lower(),
        help="Language model backend for the gateway (default: env or gemini)",
    )
    parser.add_argument(
        "--model",
        dest="model_name",
        default=os.getenv("WELLNESS_GEMINI_MODEL"),
        help="Optional Gemini model identifier",
    )
    args = parser.parse_args(argv)
    if not args.tip_title and (args.age is None or not args.gender or not args.goal):
        parser.error("--age, --gender and --goal are required unless --details is given")
    return args


def _build_gateway(provider: str, *, model_name: str | None) -> WellnessTipGateway:
    return WellnessTipGateway(llm=create_wellness_llm(provider, model_name=model_name))


async def _run(gateway: WellnessTipGateway, args: argparse.Namespace) -> Any:
    if args.tip_title:
        return await gateway.handle("details", tip_title=args.tip_title)
    return await gateway.handle("generate", age=args.age, gender=args.gender, goal=args.goal)


def main(argv: Sequence[str] | None = None) -> int:
    _configure_logging()
    args = _parse_args(argv)
    request_type = "details" if args.tip_title else "generate"
    LOGGER.info("GENERATE_TIPS_START type=%s provider=%s", request_type, args.model_provider)

    try:
        gateway = _build_gateway(args.model_provider, model_name=args.model_name)
    except RuntimeError:
        LOGGER.exception("Failed to initialise language model for the gateway")
        return 1

    try:
        result = asyncio.run(_run(gateway, args))
    except GatewayError as exc:
        LOGGER.error("GENERATE_TIPS_ERROR kind=%s %s", exc.kind.value, exc.message)
        print(json.dumps(exc.as_dict(), ensure_ascii=False))
        return 1

    print(json.dumps(result, ensure_ascii=False, indent=2))
    LOGGER.info("GENERATE_TIPS_COMPLETE type=%s", request_type)
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
