"""
Main Entry Point
Runs the content pipeline one call at a time, keeping the run's state in a
JSON file between calls (the theme selection checkpoint can be days later).

Usage:
  python main.py start --brief brief.yaml --state run.json
  python main.py select --state run.json --theme-id <id>
  python main.py regenerate --state run.json
  python main.py content --state run.json
  python main.py describe
"""

import argparse
import json
import logging
import sys
from pathlib import Path


def _load_brief(path: str) -> dict:
    import yaml

    with open(path, "r") as f:
        # YAML is a superset of JSON, so both formats load here
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Brief file {path} must contain a mapping")
    return data


def _print_summary(summary: dict) -> None:
    print(json.dumps(summary, indent=2))


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Content pipeline: brief -> themes -> research -> channel content"
    )
    parser.add_argument(
        "command",
        choices=["start", "select", "regenerate", "content", "describe"],
        help="Pipeline call to make",
    )
    parser.add_argument(
        "--config",
        default="config.yaml",
        help="Path to configuration file"
    )
    parser.add_argument("--state", default="pipeline_state.json", help="Path to the run's state file")
    parser.add_argument("--brief", help="Brief parameters (YAML or JSON) for 'start'")
    parser.add_argument("--theme-id", help="Theme to select for 'select'")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    from content_pipeline import ContentPipelineOrchestrator, PipelineError, load_config
    from content_pipeline.workflow import deserialize_state, serialize_state

    config = load_config(args.config)
    orchestrator = ContentPipelineOrchestrator(config)

    if args.command == "describe":
        for stage in orchestrator.describe_stages():
            print(f"  {stage['stage']}: {stage['description']}")
        return 0

    state_path = Path(args.state)

    try:
        if args.command == "start":
            if not args.brief:
                parser.error("'start' needs --brief")
            state = orchestrator.start(_load_brief(args.brief))
        else:
            if not state_path.exists():
                parser.error(f"No state file at {state_path}; run 'start' first")
            current = deserialize_state(state_path.read_text())

            if args.command == "select":
                if not args.theme_id:
                    parser.error("'select' needs --theme-id")
                state = orchestrator.select_theme(current, args.theme_id)
            elif args.command == "regenerate":
                state = orchestrator.regenerate(current)
            else:
                state = orchestrator.run_content_stage(current)
    except PipelineError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    state_path.write_text(serialize_state(state))
    _print_summary(orchestrator.summarize(state))

    if state.get("needs_human_input"):
        print("\nChoose a theme:")
        for theme in state.get("theme_candidates", []):
            print(f"  [{theme['id']}] {theme['title']}: {theme['description']}")
        print(f"\nThen run: python main.py select --state {state_path} --theme-id <id>")

    return 0


if __name__ == "__main__":
    sys.exit(main())
