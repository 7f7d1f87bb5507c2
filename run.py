"""Minimal CLI loop to simulate days with the bundled event library.

Usage (example):
    python run.py
Then type commands:
    day
    day 7
    status
    journal
"""
from __future__ import annotations
import difflib
import json
import sys

from lifeline.bootstrap import create_event_loop
from lifeline.core.persistence import deserialize_session, serialize_session
from lifeline.core.state import Inventory, calculate_enhanced_stats, create_character
from lifeline.errors import EngineFault, LifelineError
from lifeline.events.history import HistoryManager
from lifeline.events.journal import build_day_entries

PROMPT = "> "

COMMAND_HELP = {
    'day': {'usage': 'day [n]', 'desc': 'Advance the simulation by one day (or n days).'},
    'status': {'usage': 'status', 'desc': 'Show level, days lived, attributes and derived stats.'},
    'inventory': {'usage': 'inventory | inv', 'desc': 'List the items held.'},
    'journal': {'usage': 'journal [n]', 'desc': 'Show the last n days of events (default 5).'},
    'chains': {'usage': 'chains', 'desc': 'Show the event chains in progress.'},
    'health': {'usage': 'health', 'desc': 'Show the error handler health summary.'},
    'save': {'usage': 'save <file>', 'desc': 'Write the session snapshot to a JSON file.'},
    'load': {'usage': 'load <file>', 'desc': 'Restore a session snapshot from a JSON file.'},
    'help': {'usage': 'help [command]', 'desc': 'List all commands or show one in detail.'},
    'quit': {'usage': 'quit | exit', 'desc': 'Leave the simulation.'},
}


def help_lines():
    lines = ["Available commands:"]
    max_usage = max(len(info['usage']) for info in COMMAND_HELP.values())
    for name, info in COMMAND_HELP.items():
        lines.append(f" {info['usage'].ljust(max_usage)}  - {info['desc']}")
    return lines


def game_loop(seed=None):
    loop = create_event_loop(seed=seed)
    actor = create_character("player", "Traveller")
    inventory = Inventory(owner_id=actor.id)
    history = HistoryManager(actor.id)
    journal = []

    while True:
        cmd = input(PROMPT).strip()
        if not cmd:
            continue
        parts = cmd.split()
        name, args = parts[0], parts[1:]

        if name in {"quit", "exit"}:
            print("Goodbye.")
            break
        if name == "help":
            if not args:
                for line in help_lines():
                    print(line)
            else:
                info = COMMAND_HELP.get(args[0])
                if info:
                    print(f"Usage: {info['usage']}\n{info['desc']}")
                else:
                    close = difflib.get_close_matches(args[0], COMMAND_HELP.keys(), n=3)
                    hint = f" Did you mean: {', '.join(close)}" if close else ""
                    print(f"Unknown command '{args[0]}'.{hint}")
            continue

        try:
            if name == "day":
                days = int(args[0]) if args else 1
                for _ in range(days):
                    result = loop.run_tick(actor, inventory, history=history)
                    actor, inventory = result.actor, result.inventory
                    entries = build_day_entries(result, actor.days_lived)
                    journal.extend(entries)
                    print(f"-- Day {actor.days_lived} --")
                    for entry in entries:
                        print(f"* {entry.title}: {entry.text}")
                        for line in entry.logs:
                            print(f"    {line}")
                    if result.summary.new_level:
                        print(f"Level up! You are now level {result.summary.new_level}.")
            elif name == "status":
                print(f"{actor.name} - level {actor.level}, day {actor.days_lived}")
                for key, value in calculate_enhanced_stats(actor).items():
                    print(f"  {key}: {value}")
            elif name in {"inventory", "inv"}:
                if not inventory.items:
                    print("Your pack is empty.")
                for item in inventory.items:
                    print(f"  {item.name} x{item.quantity}")
            elif name == "journal":
                count = int(args[0]) if args else 5
                first_day = actor.days_lived - count + 1
                for entry in journal:
                    if entry.day >= first_day:
                        print(f"[day {entry.day}] {entry.title}")
            elif name == "chains":
                chains = loop.engine.chains.get_active_chains()
                if not chains:
                    print("No chains in progress.")
                for chain in chains:
                    print(f"  {chain['chain_id']}: step {chain['step']} (since day {chain['start_day']})")
            elif name == "health":
                print(json.dumps(loop.get_system_health(), indent=2))
            elif name == "save":
                if not args:
                    print("Usage: save <file>")
                    continue
                with open(args[0], "w", encoding="utf-8") as f:
                    json.dump(serialize_session(actor, inventory, history, loop.engine.chains), f, indent=2)
                print(f"Saved to {args[0]}")
            elif name == "load":
                if not args:
                    print("Usage: load <file>")
                    continue
                with open(args[0], "r", encoding="utf-8") as f:
                    actor, inventory, restored = deserialize_session(json.load(f), loop.engine.chains)
                history = restored or HistoryManager(actor.id)
                journal = []
                print(f"Loaded {actor.name}, day {actor.days_lived}")
            else:
                close = difflib.get_close_matches(name, COMMAND_HELP.keys(), n=3)
                hint = f" Did you mean: {', '.join(close)}" if close else ""
                print(f"Unknown command.{hint} Type 'help' for the list.")
        except EngineFault as e:
            print(f"The simulation stopped: {e}")
            break
        except (LifelineError, OSError, ValueError) as e:
            print(f"Error: {e}")


def main():
    seed = int(sys.argv[1]) if len(sys.argv) > 1 else None
    try:
        game_loop(seed)
    except (KeyboardInterrupt, EOFError):
        print("\nGoodbye.")


if __name__ == "__main__":
    main()
