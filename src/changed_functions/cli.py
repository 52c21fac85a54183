"""Command-line interface for the changed-functions tool."""

import json
import logging
import os
from typing import List, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.traceback import install

from .analyzers import (
    AnalysisConfiguration, DecisionReason, DeploymentDecision, DeploymentPlan,
    ReferenceGraphBuilder, DEFAULT_FULL_DEPLOYMENT_PATTERN, DEFAULT_UNIT_PATTERN,
    DEFAULT_VENDOR_DIRECTORIES, unit_name
)
from .core import GitDiffSource, GitHubComparisonSource, filter_changed_files, load_push_event
from .errors import ChangedFilesError, ConfigurationError

# Set up rich error handling
install()
console = Console()
error_console = Console(stderr=True)

logger = logging.getLogger(__name__)

OUTPUT_KEY = 'functions_changed'


def format_functions(functions: List[str]) -> str:
    """Format function names for ``firebase deploy --only functions<value>``.

    An empty string means no filtering: deploy every function.
    """
    if not functions:
        return ''
    return ':' + ','.join(functions)


@click.group()
@click.option('--verbose', '-v', is_flag=True, envvar='RUNNER_DEBUG', help='Show debug logging')
def cli(verbose):
    """Changed Functions - Deploy only the serverless functions a change affects

    Maps the files changed between two commits through the project's import
    graph to the function files that depend on them.

    USAGE:
        changed-functions decide --unit-glob 'src/functions/**/*.ts'
        changed-functions decide --source git --before HEAD~1 --after HEAD
        changed-functions decide --changed-file src/util.ts --format text
        changed-functions graph --unit-glob 'src/functions/**/*.ts'
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=error_console, show_path=False)],
        force=True,
    )


@cli.command()
@click.option('--unit-pattern', envvar=['INPUT_INDIVIDUAL_FUNCTION_REGEX', 'INDIVIDUAL_FUNCTION_REGEX'],
              default=DEFAULT_UNIT_PATTERN, show_default=True, help='Regex matching function files')
@click.option('--full-deployment-pattern', envvar=['INPUT_FULL_DEPLOYMENT_REGEX', 'FULL_DEPLOYMENT_REGEX'],
              default=DEFAULT_FULL_DEPLOYMENT_PATTERN, show_default=True,
              help='Regex matching files whose change deploys everything')
@click.option('--unit-glob', envvar=['INPUT_INDIVIDUAL_FUNCTION_GLOB', 'INDIVIDUAL_FUNCTION_GLOB'],
              help='Glob (relative to the workspace) selecting function source files')
@click.option('--changed-file-filter', envvar=['INPUT_FILE_CHANGES_REGEX_FILTER', 'FILE_CHANGES_REGEX_FILTER'],
              help='Only consider changed files matching this regex')
@click.option('--workspace', '-w', envvar='GITHUB_WORKSPACE', type=click.Path(file_okay=False),
              default='.', help='Workspace root the changed paths are relative to')
@click.option('--vendor-directory', 'vendor_directories', multiple=True,
              default=DEFAULT_VENDOR_DIRECTORIES, show_default=True,
              help='Directory name excluded from the reference graph (repeatable)')
@click.option('--source', type=click.Choice(['github', 'git']), default='github', show_default=True,
              help='Where to get the changed files from')
@click.option('--changed-file', 'changed_files', multiple=True,
              help='Use these changed files instead of fetching them (repeatable)')
@click.option('--github-token', envvar=['INPUT_GITHUB_TOKEN', 'GITHUB_TOKEN'], help='Token for the GitHub API')
@click.option('--compare-url', envvar='COMPARE_URL',
              help='Compare URL template with {base} and {head} placeholders')
@click.option('--before', envvar='BEFORE_SHA', help='Base commit (default: from the push event)')
@click.option('--after', envvar='AFTER_SHA', help='Head commit (default: from the push event)')
@click.option('--event-path', envvar='GITHUB_EVENT_PATH', type=click.Path(dir_okay=False),
              help='GitHub event payload JSON')
@click.option('--timeout', type=float, default=30.0, show_default=True, help='GitHub API timeout in seconds')
@click.option('--format', '-f', 'output_format', type=click.Choice(['github', 'json', 'text']),
              default='github', show_default=True, help='Output format')
@click.option('--output', '-o', type=click.Path(dir_okay=False), help='Output file for json results')
def decide(unit_pattern, full_deployment_pattern, unit_glob, changed_file_filter, workspace,
           vendor_directories, source, changed_files, github_token, compare_url, before, after,
           event_path, timeout, output_format, output):
    """Decide which functions to deploy for a commit range.

    Prints nothing but an empty result when everything should be deployed:
    when no function glob is configured, when a full deployment file changed
    (package.json, yarn.lock, tsconfig.json, the functions index) or when no
    function depends on the changed files.
    """
    config = AnalysisConfiguration(
        unit_pattern=unit_pattern,
        full_deployment_pattern=full_deployment_pattern,
        unit_glob=unit_glob,
        workspace_root=workspace,
        changed_file_filter=changed_file_filter,
        vendor_directories=vendor_directories,
    )

    try:
        config.validate()
        plan = _decide(config, source, list(changed_files), github_token, compare_url,
                       before, after, event_path, timeout)
    except ConfigurationError as e:
        error_console.print(f"[red]❌ Invalid configuration:[/red] {e}")
        raise click.Abort()
    except ChangedFilesError as e:
        error_console.print(f"[red]❌ An error occurred when deciding which functions to deploy:[/red] {e}")
        raise click.Abort()

    _output_plan(plan, output_format, output)


def _decide(config: AnalysisConfiguration, source: str, changed_files: List[str],
            github_token: Optional[str], compare_url: Optional[str], before: Optional[str],
            after: Optional[str], event_path: Optional[str], timeout: float) -> DeploymentPlan:
    """Fetch the changed files (unless given) and run the deployment decision."""
    decision = DeploymentDecision(config)

    if not config.unit_glob:
        return decision.decide(changed_files)

    if not changed_files:
        fetched = _fetch_changed_files(source, config.workspace_root, github_token, compare_url,
                                       before, after, event_path, timeout)
        if fetched is None:
            return DeploymentPlan.everything(DecisionReason.MISSING_CREDENTIALS)
        changed_files = fetched

    changed_files = filter_changed_files(changed_files, config.changed_file_filter)
    return decision.decide(changed_files)


def _fetch_changed_files(source, workspace, github_token, compare_url, before, after,
                         event_path, timeout) -> Optional[List[str]]:
    """Changed files from git or GitHub, or None when GitHub credentials are missing."""
    event = load_push_event(event_path)
    before = before or event.get('before')
    after = after or event.get('after')

    if source == 'git':
        return GitDiffSource(workspace, before, after).fetch()

    if not github_token:
        logger.warning("GitHub token was not set, all functions will be deployed.")
        return None

    compare_url = compare_url or (event.get('repository') or {}).get('compare_url')
    comparison = GitHubComparisonSource(compare_url, before, after, github_token,
                                        timeout_seconds=timeout)
    try:
        return comparison.fetch()
    finally:
        comparison.close()


def _output_plan(plan: DeploymentPlan, output_format: str, output: Optional[str]):
    """Output the deployment plan in the requested format."""
    if output_format == 'github':
        _write_github_output(format_functions(plan.functions))

    elif output_format == 'json':
        data = {
            'deploy_all': plan.deploy_all,
            'functions': plan.functions,
            'reason': plan.reason.value,
            'changed_files': plan.changed_files,
            'trigger': plan.trigger,
        }
        if output:
            with open(output, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
            error_console.print(f"💾 Results saved to {output}")
        else:
            click.echo(json.dumps(data, indent=2))

    else:
        _display_text_results(plan)


def _write_github_output(value: str):
    """Set the step output, through $GITHUB_OUTPUT when available."""
    output_path = os.environ.get('GITHUB_OUTPUT')
    if output_path:
        with open(output_path, 'a', encoding='utf-8') as f:
            f.write(f"{OUTPUT_KEY}={value}\n")
    else:
        click.echo(f"::set-output name={OUTPUT_KEY}::{value}")


def _display_text_results(plan: DeploymentPlan):
    """Display the plan in a human-readable way."""
    if plan.deploy_all:
        console.print(f"🚀 [bold]Deploying all functions[/bold] ({plan.reason.value.replace('_', ' ')})")
        if plan.trigger:
            console.print(f"   Triggered by a change to [yellow]{plan.trigger}[/yellow]")
        return

    table = Table(title=f"🎯 {len(plan.functions)} functions to deploy")
    table.add_column("Function", style="cyan")
    table.add_column("File")

    files_by_name = {}
    for unit_path in plan.unit_paths:
        files_by_name.setdefault(unit_name(unit_path), []).append(unit_path)

    for name in plan.functions:
        table.add_row(name, "\n".join(files_by_name.get(name, [])))

    console.print(table)
    console.print(f"only functions{format_functions(plan.functions)}")


@cli.command()
@click.option('--unit-glob', envvar=['INPUT_INDIVIDUAL_FUNCTION_GLOB', 'INDIVIDUAL_FUNCTION_GLOB'],
              required=True, help='Glob (relative to the workspace) selecting function source files')
@click.option('--workspace', '-w', envvar='GITHUB_WORKSPACE', type=click.Path(exists=True, file_okay=False),
              default='.', help='Workspace root')
@click.option('--vendor-directory', 'vendor_directories', multiple=True,
              default=DEFAULT_VENDOR_DIRECTORIES, show_default=True,
              help='Directory name excluded from the reference graph (repeatable)')
@click.option('--format', '-f', 'output_format', type=click.Choice(['text', 'json']),
              default='text', show_default=True, help='Output format')
def graph(unit_glob, workspace, vendor_directories, output_format):
    """Show which files reference which, for the files matching the glob."""
    builder = ReferenceGraphBuilder(vendor_directories=vendor_directories)
    try:
        reference_graph = builder.build(unit_glob, workspace)
    except ConfigurationError as e:
        error_console.print(f"[red]❌ Invalid configuration:[/red] {e}")
        raise click.Abort()
    root = os.path.abspath(workspace)

    def relative(path):
        return os.path.relpath(path, root)

    if output_format == 'json':
        data = {
            relative(origin): sorted(relative(path) for path in referencing)
            for origin, referencing in reference_graph.as_dict().items()
        }
        click.echo(json.dumps(data, indent=2, sort_keys=True))
        return

    table = Table(title=f"📊 Reference graph ({len(reference_graph)} referenced files)")
    table.add_column("File", style="cyan")
    table.add_column("Referenced by")

    for origin in sorted(reference_graph.origins):
        referencing = sorted(relative(path) for path in reference_graph.dependents(origin))
        table.add_row(relative(origin), "\n".join(referencing))

    console.print(table)


if __name__ == '__main__':
    cli()
