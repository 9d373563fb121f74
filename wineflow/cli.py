"""
Terminal runner for the wine flow.

Walks the flow interactively (stdin/stdout), validates a flow file, or lets a
simulated persona answer the questions.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

from langchain_core.messages import AIMessage, HumanMessage

from wineflow.config import get_settings
from wineflow.engine.flow_schema import FlowError
from wineflow.engine.flow_store import flow_summary, init_flow_graph, load_flow_file
from wineflow.graphs.session_graph import create_session_graph
from wineflow.lookup.wine_service import Recommendation, WineLookupError, WineService, create_wine_service
from wineflow.simulations.simulated_user import SimulatedUser
from wineflow.state.flow_state import NodeView
from wineflow.state.session_state import SessionGraphState, create_initial_state

logger = logging.getLogger("wineflow")


def _print_new_ai_messages(state: SessionGraphState, printed_upto: int) -> int:
    messages = state.get("messages", [])
    for msg in messages[printed_upto:]:
        if isinstance(msg, AIMessage):
            print()
            print(msg.content)
            print()
    return len(messages)


def _print_new_events(state: SessionGraphState, printed_upto: int) -> int:
    events = state.get("events", []) or []
    for evt in events[printed_upto:]:
        parts = [f"kind={evt.get('kind', 'event')}"]
        for key in ("node_id", "command", "option_index", "next_node_id", "node_kind"):
            if evt.get(key) is not None:
                parts.append(f"{key}={evt[key]}")
        print("[TRACE] " + " ".join(parts))
    return len(events)


def format_recommendation(rec: Recommendation) -> str:
    lines = []
    if rec.is_alternative:
        lines.append("But we're not made of money, so try this one")
    line = f"Helena recommends {rec.name}"
    if rec.source:
        line += f" from {rec.source}"
    if rec.price is not None:
        line += f" for £{rec.price:.2f}"
    lines.append(line)
    return "\n".join(lines)


def _show_recommendation(service: WineService, loop: asyncio.AbstractEventLoop, view: NodeView) -> None:
    """Run the lookup for a result view; failures leave the session navigable."""
    if not view.get("lookup_key"):
        return
    try:
        rec = loop.run_until_complete(service.lookup_recommendation(view["lookup_key"]))
    except WineLookupError as e:
        logger.warning("Lookup failed for %s: %s", view["lookup_key"], e)
        print(f"Couldn't load wine details: {e}")
        return
    if rec is not None and rec.name:
        print(format_recommendation(rec))
    print("('r' to start again, 'b' to go back)")


def _run_interactive(
    graph,
    state: SessionGraphState,
    service: WineService,
    loop: asyncio.AbstractEventLoop,
    *,
    watch: bool,
) -> int:
    printed_msgs_upto = 0
    printed_evts_upto = 0

    # Invoke once to render, then read a command, repeat.
    while True:
        state = graph.invoke(state)  # type: ignore[assignment]

        if watch:
            printed_evts_upto = _print_new_events(state, printed_evts_upto)
        printed_msgs_upto = _print_new_ai_messages(state, printed_msgs_upto)

        if state.get("error"):
            print(f"ERROR: {state['error']}")
            return 1

        view = state.get("view")
        if view and view["kind"] == "wine":
            _show_recommendation(service, loop, view)

        try:
            user_text = input("> ").strip()
        except EOFError:
            break
        if user_text.lower() in ("/quit", "/exit"):
            break

        state["messages"] = state.get("messages", []) + [HumanMessage(content=user_text)]

    return 0


def _run_simulation(
    graph,
    state: SessionGraphState,
    service: WineService,
    loop: asyncio.AbstractEventLoop,
    *,
    persona: str,
    model: str,
    temperature: float,
    max_turns: int,
    watch: bool,
) -> int:
    sim = SimulatedUser(persona_id=persona, model=model, temperature=temperature)

    printed_msgs_upto = 0
    printed_evts_upto = 0
    turns = 0

    while turns < max_turns:
        state = graph.invoke(state)  # type: ignore[assignment]

        if watch:
            printed_evts_upto = _print_new_events(state, printed_evts_upto)
        printed_msgs_upto = _print_new_ai_messages(state, printed_msgs_upto)

        if state.get("error"):
            print(f"ERROR: {state['error']}")
            return 1

        view = state.get("view")
        if view is None:
            break
        if view["kind"] == "wine":
            _show_recommendation(service, loop, view)
            break

        user_text = sim.respond(view)
        print(f"> {user_text}")
        state["messages"] = state.get("messages", []) + [HumanMessage(content=user_text)]
        turns += 1

    return 0


def main(argv: list[str] | None = None) -> int:
    settings = get_settings()

    parser = argparse.ArgumentParser(
        prog="wineflow",
        description="Answer a few questions and get pointed at your next bottle.",
    )
    subparsers = parser.add_subparsers(dest="command")

    parser.add_argument("--flow-file", type=Path, default=Path(settings.flow_path), help="Flow JSON document.")
    parser.add_argument(
        "--strict-references",
        action="store_true",
        default=settings.strict_references,
        help="Reject flows whose nextIds point at missing nodes.",
    )
    parser.add_argument("--watch", action="store_true", help="Print trace events for each turn.")
    parser.add_argument("--log-level", default=settings.log_level, help="Logging level (DEBUG, INFO, ...).")

    subparsers.add_parser("run", help="Walk the flow interactively (default).")
    subparsers.add_parser("validate", help="Validate the flow file and print a summary.")

    sim_parser = subparsers.add_parser("simulate", help="Walk the flow as an LLM persona.")
    sim_parser.add_argument("--persona", default="tired_teacher", help="Persona id to simulate.")
    sim_parser.add_argument("--model", default=settings.sim_model, help="OpenAI model for the simulated user.")
    sim_parser.add_argument("--temperature", type=float, default=0.7, help="Simulated user temperature.")
    sim_parser.add_argument("--max-turns", type=int, default=50, help="Max simulated turns.")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        flow_graph = load_flow_file(args.flow_file, strict_references=args.strict_references)
    except FlowError as e:
        print(f"ERROR: {e}")
        return 2

    if args.command == "validate":
        counts = flow_summary(flow_graph)
        print(
            f"OK: {args.flow_file} root={flow_graph.root_id} "
            f"questions={counts['question']} messages={counts['message']} wines={counts['wine']}"
        )
        return 0

    init_flow_graph(flow_graph)
    graph = create_session_graph()
    state = create_initial_state(flow_graph)

    # One loop and one catalogue client for the whole run; the client is bound to its loop
    loop = asyncio.new_event_loop()
    try:
        service = loop.run_until_complete(create_wine_service(settings))

        if args.command == "simulate":
            return _run_simulation(
                graph,
                state,
                service,
                loop,
                persona=args.persona,
                model=args.model,
                temperature=args.temperature,
                max_turns=args.max_turns,
                watch=args.watch,
            )

        return _run_interactive(graph, state, service, loop, watch=args.watch)
    finally:
        loop.close()


if __name__ == "__main__":
    raise SystemExit(main())
