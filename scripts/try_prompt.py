"""Prompt trial workflow.

Compiles one stored template with ad-hoc variables, sends it through the
configured gateway (primary with fallback) and prints the output and cost.

Usage:
    # Show a template's declared variables
    python scripts/try_prompt.py comparison_product --show

    # Run it
    python scripts/try_prompt.py comparison_product \
        --var product_name="Acme X200" --var position=1 --var total=3 --parse

    # List templates
    python scripts/try_prompt.py --list
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from reviewgen.config import settings
from reviewgen.llm.gateway import ProviderGateway
from reviewgen.llm.profiles import load_provider_profiles
from reviewgen.pipeline.orchestrator import NO_PREVIOUS_CONTEXT
from reviewgen.pipeline.parser import parse_review
from reviewgen.prompts.templates import PromptTemplateStore


def _parse_vars(pairs: list[str]) -> dict[str, str]:
    variables = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep:
            raise SystemExit(f"Invalid --var '{pair}', expected name=value")
        variables[name.strip()] = value
    return variables


async def run(code: str, variables: dict[str, str], parse: bool) -> None:
    store = PromptTemplateStore(settings.prompts_dir).load()
    template = store.get(code)
    if template is None:
        raise SystemExit(f"No active template: {code}")

    variables.setdefault("sliding_context", NO_PREVIOUS_CONTEXT)
    prompt = template.compile(variables)
    print(f"{'─'*40}\n{prompt}\n{'─'*40}")

    gateway = ProviderGateway(load_provider_profiles(settings), system_prompt=settings.system_prompt)
    result = await gateway.generate_content(prompt)

    print(result.content)
    print(f"{'─'*40}")
    print(
        f"{result.provider_used} ({result.model_used}): "
        f"in={result.usage.input_tokens} out={result.usage.output_tokens}"
        f"{' (estimated)' if result.estimated_usage else ''}, ${result.cost:.4f}, {result.duration_ms}ms"
    )

    if parse:
        parsed = parse_review(result.content, template.content_type)
        print(f"\nDESCRIPTION: {parsed.description}")
        print("PROS:")
        for pro in parsed.pros:
            print(f"  + {pro}")
        print("CONS:")
        for con in parsed.cons:
            print(f"  - {con}")
        if parsed.shortfall:
            print(f"\n[padded {parsed.padded_pros} pros, {parsed.padded_cons} cons]")


def main():
    import logging
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )
    logging.getLogger("reviewgen.llm.gateway").setLevel(logging.INFO)

    parser = argparse.ArgumentParser(description="Try a single prompt template")
    parser.add_argument("code", nargs="?", help="Template code, e.g. comparison_product")
    parser.add_argument("--var", "-v", action="append", default=[], help="Variable as name=value")
    parser.add_argument("--parse", action="store_true", help="Parse the output into pros/cons")
    parser.add_argument("--show", action="store_true", help="Print the template without calling a provider")
    parser.add_argument("--list", action="store_true", help="List available templates")
    args = parser.parse_args()

    store = PromptTemplateStore(settings.prompts_dir).load()
    if args.list:
        for t in store.list_templates():
            state = "" if t.active else " (inactive)"
            print(f"  {t.code:24} {t.content_type.value:20} {t.name}{state}")
        return

    if not args.code:
        parser.error("template code is required")

    if args.show:
        template = store.get(args.code)
        if template is None:
            raise SystemExit(f"No active template: {args.code}")
        print(f"Variables: {', '.join(sorted(template.variables))}\n")
        print(template.content)
        return

    asyncio.run(run(args.code, _parse_vars(args.var), args.parse))


if __name__ == "__main__":
    main()
