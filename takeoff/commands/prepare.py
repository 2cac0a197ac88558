"""`takeoff prepare` — build the provider request for a history."""
from __future__ import annotations

from backend.app.core.request_builder import build_request
from takeoff.commands import common


def register(subparsers) -> None:
    p = subparsers.add_parser("prepare", help="Write the request (model, projected prompt, config) for a history")
    common.add_history_args(p)
    common.add_prompt_args(p)
    p.add_argument("--output-prompt", type=str, required=True, help="Where to write the request JSON")
    p.set_defaults(func=run)


def run(args) -> int:
    history = common.load_history(args)
    request = build_request(common.model(args), history, common.system_prompt(args), common.options(args))
    common.write_json(args.output_prompt, request)
    print(f"Prepared request for {len(history)} event(s) -> {args.output_prompt}")
    return 0
