"""Proofline CLI — evidence-backed recaps of AI coding sessions."""

import asyncio
import sys

import click

from proofline.bootstrap import bootstrap_rules_from_timeline
from proofline.classify import ClassifyOptions, classify_events
from proofline.config import load_settings
from proofline.errors import MalformedInput
from proofline.formatting import (
    format_replay_compact, format_replay_json,
    format_rules_compact, format_rules_json,
    format_run_compact, format_run_json,
    format_runs_compact, format_runs_json,
)
from proofline.logs import configure_logging
from proofline.normalize import normalize
from proofline.pipeline import PipelineOptions, run_pipeline
from proofline.providers import config_from_settings
from proofline.replay import build_replay_segments
from proofline.rules import DEFAULT_RULES
from proofline.serialization import Batch, load_batch
from proofline.store import RunStore

FORMAT_OPTION = click.option("--format", "-f", "fmt", default="compact",
                             type=click.Choice(["compact", "json"]))


def _load(path: str, client: str | None) -> Batch:
    try:
        return load_batch(path, client=client)
    except MalformedInput as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def _timeline(batch: Batch):
    return batch.timeline if batch.timeline is not None else normalize(batch.raw_events)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Debug logging to stderr")
@click.pass_context
def cli(ctx, verbose):
    """Proofline — what did I do, with evidence."""
    configure_logging(level="debug" if verbose else None)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = load_settings()


@cli.command()
@click.argument("batch_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--question", "-q", default=None, help="Natural-language question (sets time range and scope)")
@click.option("--client", "-c", default=None, help="Client name when the batch does not carry one")
@click.option("--project", "-p", default=None, help="Project name or path fragment")
@click.option("--all-projects", is_flag=True, help="Analyze every discovered project")
@click.option("--since", default=None, help="Time filter: 24h, 7d, or ISO date")
@click.option("--root", "roots", multiple=True, help="Extra allowed filesystem root(s)")
@click.option("--bootstrap/--no-bootstrap", default=True, help="Mine session vocabulary into the rules")
@click.option("--enrich", is_flag=True, help="Summarize major events with the configured LLM provider")
@click.option("--save", is_flag=True, help="Persist the run to the run store")
@FORMAT_OPTION
@click.pass_context
def analyze(ctx, batch_file, question, client, project, all_projects, since, roots,
            bootstrap, enrich, save, fmt):
    """Run the full pipeline over one batch of raw events."""
    settings = ctx.obj["settings"]
    batch = _load(batch_file, client)

    llm = None
    if enrich:
        try:
            llm = config_from_settings(settings)
        except ValueError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        if llm is None:
            click.echo("Error: --enrich needs PROOFLINE_LLM_PROVIDER to be set.", err=True)
            sys.exit(1)

    options = PipelineOptions(
        question=question,
        project=project,
        all_projects=all_projects,
        since=since,
        roots=list(roots),
        bootstrap=bootstrap,
        llm=llm,
    )
    try:
        output = asyncio.run(run_pipeline(batch, options, settings))
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if fmt == "json":
        click.echo(format_run_json(output))
    else:
        click.echo(format_run_compact(output))

    if save:
        with RunStore(settings.db_path) as store:
            run_id = store.save_run(output)
        click.echo(f"Saved run {run_id} to {settings.db_path}", err=True)


@cli.command()
@click.argument("batch_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--client", "-c", default=None, help="Client name when the batch does not carry one")
@click.option("--before", default=5, type=int, help="Events shown before each major event")
@click.option("--after", default=12, type=int, help="Events shown after each major event")
@FORMAT_OPTION
@click.pass_context
def replay(ctx, batch_file, client, before, after, fmt):
    """Replay the events around each major event in a batch."""
    settings = ctx.obj["settings"]
    timeline = _timeline(_load(batch_file, client))
    options = ClassifyOptions(
        rules=bootstrap_rules_from_timeline(timeline),
        follow_up_window=settings.follow_up_window,
        follow_up_count=settings.follow_up_count,
    )
    majors = asyncio.run(classify_events(timeline, options))
    segments = build_replay_segments(timeline, majors, before, after)

    if fmt == "json":
        click.echo(format_replay_json(segments))
    else:
        click.echo(format_replay_compact(segments))


@cli.command()
@click.argument("batch_file", required=False, type=click.Path(exists=True, dir_okay=False))
@click.option("--client", "-c", default=None, help="Client name when the batch does not carry one")
@click.option("--top", default=6, type=int, help="Boost keywords mined per rule")
@FORMAT_OPTION
def rules(batch_file, client, top, fmt):
    """Show the default rules, or the rules bootstrapped from a batch."""
    if batch_file:
        result = bootstrap_rules_from_timeline(_timeline(_load(batch_file, client)), top_keywords=top)
    else:
        result = DEFAULT_RULES

    if fmt == "json":
        click.echo(format_rules_json(result))
    else:
        click.echo(format_rules_compact(result))


@cli.command()
@click.option("--client", "-c", default=None, help="Only runs for this client")
@click.option("--limit", "-n", default=20, help="Max runs")
@click.option("--latest", is_flag=True, help="Print the full payload of the newest run")
@FORMAT_OPTION
@click.pass_context
def runs(ctx, client, limit, latest, fmt):
    """List saved runs."""
    settings = ctx.obj["settings"]
    with RunStore(settings.db_path) as store:
        if latest:
            payload = store.load_latest(client)
            if payload is None:
                click.echo("(no runs)")
                return
            click.echo(format_runs_json(payload))
            return
        saved = store.list_runs(limit=limit, client=client)

    if fmt == "json":
        click.echo(format_runs_json(saved))
    else:
        click.echo(format_runs_compact(saved))


if __name__ == "__main__":
    cli()
