"""Proofline MCP server — exposes the analysis pipeline as tools."""

import json

from mcp.server.fastmcp import FastMCP

from proofline.config import load_settings
from proofline.errors import MalformedInput
from proofline.formatting import format_run_compact, format_run_json
from proofline.logs import configure_logging
from proofline.pipeline import PipelineOptions, run_pipeline
from proofline.serialization import load_batch, parse_batch
from proofline.store import RunStore

mcp = FastMCP("proofline", instructions=(
    "Proofline reconstructs what happened in AI coding sessions. Pass a batch "
    "of raw session events to 'analyze_batch' to get major events, action "
    "chains, feature deltas and a phase narrative. Use 'latest_run' to read "
    "the most recent saved analysis."
))


@mcp.tool()
async def analyze_batch(
    batch_path: str | None = None,
    batch_json: str | None = None,
    question: str | None = None,
    project: str | None = None,
    all_projects: bool = False,
    since: str | None = None,
    save: bool = False,
    format: str = "compact",
) -> str:
    """Analyze one batch of raw session events.

    Args:
        batch_path: Path to a batch file (JSON object, JSON array or JSON lines)
        batch_json: The batch content itself, instead of a path
        question: Natural-language question, e.g. "what did I do yesterday?"
        project: Project name or path fragment to focus on
        all_projects: Analyze every discovered project
        since: Time filter: 24h, 7d, or ISO date
        save: Persist the run to the run store
        format: Output format: compact or json
    """
    if not batch_path and not batch_json:
        return "Error: provide batch_path or batch_json."

    settings = load_settings()
    try:
        batch = load_batch(batch_path) if batch_path else parse_batch(batch_json)
        options = PipelineOptions(question=question, project=project,
                                  all_projects=all_projects, since=since)
        output = await run_pipeline(batch, options, settings)
    except (MalformedInput, ValueError) as e:
        return f"Error: {e}"

    run_note = ""
    if save:
        with RunStore(settings.db_path) as store:
            run_note = f"\n\nSaved run {store.save_run(output)}."

    if format == "json":
        return format_run_json(output)
    return format_run_compact(output) + run_note


@mcp.tool()
def latest_run(client: str | None = None) -> str:
    """Return the most recent saved run as JSON.

    Args:
        client: Only consider runs for this client
    """
    settings = load_settings()
    if not settings.db_path.exists():
        return json.dumps({"error": f"No run store at {settings.db_path}"})
    with RunStore(settings.db_path) as store:
        payload = store.load_latest(client)
    if payload is None:
        return json.dumps({"error": "No saved runs"})
    return json.dumps(payload, indent=2, ensure_ascii=False)


def main():
    """Run the MCP server (stdio transport)."""
    configure_logging()
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
