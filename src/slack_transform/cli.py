"""CLI interface for the Slack export transformer"""

import json
import logging
import zipfile
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .config import RedisConfig, TransformConfig, load_config
from .exceptions import SlackTransformError
from .exporter import MattermostExporter
from .import_stats import ImportFileStats
from .slack_export import SlackExport
from .threads_storage import create_storage_factory
from .transformer import Transformer

console = Console()

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(debug: bool) -> None:
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger().setLevel(level)


def prepare_output_paths(output: str, attachments_dir: str, skip_attachments: bool) -> None:
    """Validate the output file and create the attachments directory

    Raises:
        click.ClickException: If a path points at the wrong kind of file
    """
    output_path = Path(output)
    if output_path.is_dir():
        raise click.ClickException(f'Output file "{output}" is a directory')

    if skip_attachments:
        return

    attachments_path = Path(attachments_dir)
    if not attachments_path.exists():
        attachments_path.mkdir(mode=0o755)
    elif not attachments_path.is_dir():
        raise click.ClickException(f'File "{attachments_dir}" is not a directory')


@click.group()
def cli():
    """Slack Transform - Convert Slack exports into Mattermost bulk imports"""
    load_dotenv()


@cli.command()
@click.option('--team', '-t', required=True, help='An existing team in Mattermost to import the data into')
@click.option('--file', '-f', 'input_file', required=True, type=click.Path(exists=True, dir_okay=False), help='The Slack export file to transform')
@click.option('--output', '-o', default='bulk-export.jsonl', help='The output path (default: bulk-export.jsonl)')
@click.option('--attachments-dir', '-d', help='The path for the attachments directory (default: bulk-export-attachments)')
@click.option('--skip-convert-posts', '-c', is_flag=True, help='Skips converting mentions and post markup. Only for testing purposes')
@click.option('--skip-attachments', '-a', is_flag=True, help='Skips copying the attachments from the import file')
@click.option('--discard-invalid-props', '-p', is_flag=True, help='Skips converting posts with invalid props instead of discarding the props themselves')
@click.option('--debug/--no-debug', default=True, help='Whether to show debug logs or not')
@click.option('--auth-data-as-email', is_flag=True, help="Set auth data the same as user's email")
@click.option('--auth-service', '-s', default=None, help='Set auth service value for SSO')
@click.option('--redis-endpoint', envvar='REDIS_ENDPOINT', help='Redis endpoint (host:port or redis:// URL)')
@click.option('--redis-login', envvar='REDIS_LOGIN', help='Redis user')
@click.option('--redis-password', envvar='REDIS_PASSWORD', help='Redis password')
@click.option('--import-workflow-messages', is_flag=True, help='Import workflow and bot messages')
@click.option('--skip-posts', is_flag=True, help='Do not import posts')
@click.option('--skip-channels', is_flag=True, help='Do not import channels and posts')
def transform(team, input_file, output, attachments_dir, skip_convert_posts, skip_attachments,
              discard_invalid_props, debug, auth_data_as_email, auth_service, redis_endpoint,
              redis_login, redis_password, import_workflow_messages, skip_posts, skip_channels):
    """Transform a Slack export zip file into a Mattermost JSONL import file

    Examples:
        \b
        # Basic transformation
        slack-transform transform --team myteam --file my_export.zip --output mm_export.jsonl

        \b
        # Keep thread state in Redis
        slack-transform transform -t myteam -f my_export.zip --redis-endpoint localhost:6379

        \b
        # Import bot and workflow messages, skip attachments
        slack-transform transform -t myteam -f my_export.zip --import-workflow-messages -a
    """
    configure_logging(debug)

    file_config = load_config()
    transform_section = file_config.get("transform") or {}
    redis_section = file_config.get("redis") or {}

    try:
        redis_config = RedisConfig.from_options(
            redis_endpoint or redis_section.get("endpoint"),
            redis_login or redis_section.get("login"),
            redis_password or redis_section.get("password"),
        )
        config = TransformConfig(
            attachments_dir=attachments_dir or transform_section.get("attachments_dir", "bulk-export-attachments"),
            skip_attachments=skip_attachments or transform_section.get("skip_attachments", False),
            discard_invalid_props=discard_invalid_props or transform_section.get("discard_invalid_props", False),
            auth_data_as_email=auth_data_as_email or transform_section.get("auth_data_as_email", False),
            auth_service=auth_service or transform_section.get("auth_service", ""),
            import_workflow_messages=import_workflow_messages or transform_section.get("import_workflow_messages", False),
            skip_posts=skip_posts or transform_section.get("skip_posts", False),
            skip_channels=skip_channels or transform_section.get("skip_channels", False),
            redis=redis_config,
        )
    except (SlackTransformError, ValueError) as e:
        raise click.ClickException(f"Configuration error: {e}")

    skip_convert_posts = skip_convert_posts or config.skip_posts
    prepare_output_paths(output, config.attachments_dir, config.skip_attachments)

    console.print(Panel.fit(
        f"[bold blue]Slack to Mattermost Transform[/bold blue]\n"
        f"Input: {input_file}\n"
        f"Output: {output}\n"
        f"Team: {team}\n"
        f"Attachments: {'[dim]skipped[/dim]' if config.skip_attachments else config.attachments_dir}\n"
        f"Thread store: {'redis ' + config.redis.endpoint if config.redis else 'memory'}\n"
        f"Workflow messages: {'[green]enabled[/green]' if config.import_workflow_messages else '[dim]disabled[/dim]'}",
        border_style="blue"
    ))

    try:
        # fail on unreachable redis before any channel is processed
        storage_factory = create_storage_factory(config.redis)

        with zipfile.ZipFile(input_file) as archive, Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console
        ) as progress:
            task = progress.add_task("[cyan]Parsing export...", total=None)
            slack_export = SlackExport.from_zip(archive, skip_convert_posts=skip_convert_posts)

            progress.update(task, description="[cyan]Transforming...")
            transformer = Transformer(team)
            intermediate = transformer.transform(config, slack_export, storage_factory)

            progress.update(task, description=f"[cyan]Writing {output}...")
            try:
                line_count = MattermostExporter(team).export(intermediate, output)
            except OSError as e:
                raise click.ClickException(f"Cannot write {output}: {e}")
    except zipfile.BadZipFile as e:
        raise click.ClickException(f"Cannot read {input_file}: {e}")
    except SlackTransformError as e:
        raise click.ClickException(str(e))

    table = Table(title="Transform Summary", show_header=True, header_style="bold cyan")
    table.add_column("Entity", style="cyan")
    table.add_column("Count", justify="right")
    table.add_row("Users", str(len(intermediate.users_by_id)))
    table.add_row("Public channels", str(len(intermediate.public_channels)))
    table.add_row("Private channels", str(len(intermediate.private_channels)))
    table.add_row("Group channels", str(len(intermediate.group_channels)))
    table.add_row("Direct channels", str(len(intermediate.direct_channels)))
    table.add_row("Threads", str(len(intermediate.posts)))
    table.add_row("Replies", str(sum(len(post.replies) for post in intermediate.posts)))
    table.add_row("Import lines", str(line_count))
    console.print(table)

    console.print("\n[green]✓ Transformation succeeded![/green]")


@cli.command()
@click.argument('import_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--format', 'output_format', type=click.Choice(['table', 'json']), default='table', help='Output format')
def stats(import_file, output_format):
    """Show line and thread counts of a produced import file

    Examples:
        \b
        # Summarize an import file
        slack-transform stats bulk-export.jsonl

        \b
        # Export as JSON
        slack-transform stats bulk-export.jsonl --format json
    """
    try:
        summary = ImportFileStats(import_file).summary()
    except Exception as e:
        raise click.ClickException(f"Error reading import file: {e}")

    if output_format == 'json':
        click.echo(json.dumps(summary, indent=2))
        return

    lines = summary["lines"]
    console.print(Panel.fit(
        f"[bold blue]Import File Statistics[/bold blue]\n"
        f"File: {import_file}\n"
        + "\n".join(f"{line_type}: {count:,}" for line_type, count in lines.items()),
        border_style="blue"
    ))

    if summary["channels"]:
        table = Table(title="Threads per channel", show_header=True, header_style="bold cyan")
        table.add_column("Channel", style="cyan")
        table.add_column("Threads", justify="right")
        table.add_column("Replies", justify="right")
        for row in summary["channels"]:
            table.add_row(row["channel"], str(row["threads"]), str(row["replies"]))
        console.print()
        console.print(table)


if __name__ == "__main__":
    cli()
