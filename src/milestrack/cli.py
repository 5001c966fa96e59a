"""
Command Line Interface for milestrack.
"""

import asyncio
import click
from pathlib import Path
from .version import VERSION
from .config import load_config
from .data import DataCore, load_document, load_text
from .data.io import atomic_write, dumps, data_type_for, DATA_JSON, DATA_YAML
from .diff import diff_snapshots
from .models import Snapshot
from .parser import parse_milestones
from .query import (
    MilestoneFilter, TimeRange, filter_milestones, flatten_milestones,
    group_by_month, sort_by_due, sorted_month_groups,
)
from .recovery import MilestrackError

FORMATS = {'json': DATA_JSON, 'yaml': DATA_YAML}


def _plain(items):
    return [item.model_dump(mode='json', by_alias=True) for item in items]


def _emit(data, fmt, output):
    """Print data, or write it atomically when an output path is given."""
    if output:
        path = Path(output)
        data_type = FORMATS[fmt] if fmt else data_type_for(path)
        atomic_write(data_type, path, data, create_dirs=True)
        click.echo(f"✅ Wrote {path}", err=True)
    else:
        click.echo(dumps(FORMATS[fmt or 'json'], data), nl=False)


def _core(ctx) -> DataCore:
    return DataCore(ctx.obj['config'])


format_option = click.option('--format', 'fmt', type=click.Choice(sorted(FORMATS)), default=None,
                             help='Output format (default: json, or from the --output suffix)')
output_option = click.option('-o', '--output', type=click.Path(dir_okay=False), help='Write to a file instead of stdout')


@click.group()
@click.version_option(version=VERSION, prog_name="mstk")
@click.option('--config', 'config_path', type=click.Path(exists=True, dir_okay=False), help='YAML config file')
@click.pass_context
def main(ctx, config_path):
    """
    milestrack - project milestone tracking from a repository-hosted document.
    """
    ctx.ensure_object(dict)
    try:
        ctx.obj['config'] = load_config(config_path)
    except MilestrackError as e:
        raise click.ClickException(str(e))


@main.command()
@click.argument('document', type=click.Path(exists=True, dir_okay=False))
@click.option('-p', '--project', 'project_id', required=True, help='Project id used for milestone ids')
@format_option
@output_option
def parse(document, project_id, fmt, output):
    """Parse a milestones markdown DOCUMENT into milestone records."""
    try:
        milestones = parse_milestones(load_text(document), project_id)
        _emit(_plain(milestones), fmt, output)
    except MilestrackError as e:
        raise click.ClickException(str(e))


@main.command()
@click.argument('new', type=click.Path(exists=True, dir_okay=False))
@click.argument('old', type=click.Path(exists=True, dir_okay=False))
@format_option
@output_option
def diff(new, old, fmt, output):
    """List change events between two projects documents (NEW against OLD)."""
    try:
        events = diff_snapshots(
            Snapshot.from_document(load_document(new)),
            Snapshot.from_document(load_document(old)),
        )
        _emit(_plain(events), fmt, output)
    except MilestrackError as e:
        raise click.ClickException(str(e))


@main.command()
@click.argument('document', required=False, type=click.Path(exists=True, dir_okay=False))
@click.option('--project', default='all', help='Exact project name')
@click.option('--status', default='all', help='Milestone status, incomplete, overdue or all')
@click.option('--range', 'time_range', type=click.Choice([r.value for r in TimeRange]), default='all')
@click.option('--sort/--no-sort', default=True, help='Sort by due date')
@click.option('--group-by-month', 'by_month', is_flag=True, help='Group results by due month')
@click.option('--zero-pad', is_flag=True, help='Zero-pad month group keys')
@format_option
@output_option
@click.pass_context
def query(ctx, document, project, status, time_range, sort, by_month, zero_pad, fmt, output):
    """Filter milestones of DOCUMENT, or of the remote document when omitted."""
    criteria = MilestoneFilter(project=project, status=status, time_range=TimeRange(time_range))
    try:
        if document:
            snapshot = Snapshot.from_document(load_document(document))
        else:
            snapshot = asyncio.run(_remote_snapshot(_core(ctx)))

        milestones = filter_milestones(flatten_milestones(snapshot.projects), criteria)
        if sort:
            milestones = sort_by_due(milestones)

        if by_month:
            grouped = group_by_month(milestones, zero_pad=zero_pad)
            data = {key: _plain(items) for key, items in sorted_month_groups(grouped)}
        else:
            data = _plain(milestones)
        _emit(data, fmt, output)
    except MilestrackError as e:
        raise click.ClickException(str(e))


async def _remote_snapshot(core: DataCore) -> Snapshot:
    async with core:
        return await core.get_snapshot()


@main.command()
@format_option
@output_option
@click.pass_context
def fetch(ctx, fmt, output):
    """Fetch the remote projects document (mock data when unreachable)."""
    try:
        snapshot = asyncio.run(_remote_snapshot(_core(ctx)))
        _emit(snapshot.model_dump(mode='json', by_alias=True, exclude={'revision'}), fmt, output)
    except MilestrackError as e:
        raise click.ClickException(str(e))


@main.command()
@click.option('--status-entries', is_flag=True, help='Include entries synthesized from the current snapshot')
@format_option
@output_option
@click.pass_context
def changelog(ctx, status_entries, fmt, output):
    """Assemble the changelog from the remote revision history."""

    async def run():
        async with _core(ctx) as core:
            entries = await core.get_changelog()
            if status_entries:
                entries = await core.get_status_entries() + entries
            return entries

    try:
        _emit(_plain(asyncio.run(run())), fmt, output)
    except MilestrackError as e:
        raise click.ClickException(str(e))


@main.command()
@format_option
@output_option
@click.pass_context
def issues(ctx, fmt, output):
    """List milestone-labelled issues of the remote repository."""

    async def run():
        async with _core(ctx) as core:
            return await core.get_issues()

    try:
        _emit(_plain(asyncio.run(run())), fmt, output)
    except MilestrackError as e:
        raise click.ClickException(str(e))


@main.command()
@click.pass_context
def status(ctx):
    """Show version and active configuration."""
    config = ctx.obj['config']
    click.echo("🔧 milestrack")
    click.echo(f"📦 Version: {VERSION}")
    click.echo(f"📁 Repository: {config.slug} ({config.branch})")
    click.echo(f"📄 Document: {config.data_path}")
    click.echo(f"⏱️  Cache: projects {config.projects_ttl:g}s, changelog {config.changelog_ttl:g}s")
    click.echo(f"🔑 Token: {'set' if config.token else 'not set'}")


if __name__ == "__main__":
    main()
