import json
import logging
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from vikagen.codegen import Codegen
from vikagen.config import GenerationOptions, NamingConvention, get_config
from vikagen.exceptions import VikagenError
from vikagen.loader import SchemaLoader
from vikagen.writer import ManifestWriter

console = Console()
app = typer.Typer(
    name='vikagen',
    help='Generate TypeScript types, zod validators and API clients from OpenAPI specifications',
    no_args_is_help=True,
)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(message)s',
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    verbose: Annotated[
        bool, typer.Option('--verbose', '-v', help='Show debug output')
    ] = False,
) -> None:
    _configure_logging(verbose)


@app.command()
def generate(
    config: Annotated[
        str | None,
        typer.Option(
            '--config', '-c', help='Path to configuration file (YAML or JSON)'
        ),
    ] = None,
) -> None:
    """Generate TypeScript client code from configuration.

    If no config file is specified, will look for vikagen.yaml, vikagen.yml,
    vikagen.json or a [tool.vikagen] table in pyproject.toml in the current
    directory.

    Examples:
        vikagen generate
        vikagen generate --config my-config.yaml
    """
    try:
        codegen_config = get_config(config)

        for document_config in codegen_config.documents:
            with Progress(
                SpinnerColumn(),
                TextColumn('[progress.description]{task.description}'),
                console=console,
            ) as progress:
                task = progress.add_task(
                    f'Generating code for {document_config.source} in {document_config.output}...',
                    total=None,
                )

                codegen = Codegen.from_config(document_config)
                written = ManifestWriter(document_config.output).write(codegen.generate())

                progress.update(
                    task, description=f'Code generation completed for {document_config.source}!'
                )

            console.print(f'[dim]Generated {len(written)} files:[/dim]')
            for path in written:
                console.print(f'  - {path}')

    except VikagenError as e:
        console.print(f'[red]Error:[/red] {e}')
        raise typer.Exit(1)


@app.command()
def inspect(
    source: Annotated[str, typer.Argument(help='Path or URL of the OpenAPI document')],
    naming: Annotated[
        NamingConvention,
        typer.Option('--naming', help='Naming convention used for module ids'),
    ] = NamingConvention.PASCAL_CASE,
    as_json: Annotated[
        bool, typer.Option('--json', help='Print the module list as JSON')
    ] = False,
) -> None:
    """List the modules a document generates.

    Examples:
        vikagen inspect ./openapi.yaml
        vikagen inspect https://api.example.com/openapi.json --json
    """
    try:
        document = SchemaLoader().load(source)
        modules = Codegen(document, GenerationOptions(naming=naming)).modules()
    except VikagenError as e:
        console.print(f'[red]Error:[/red] {e}')
        raise typer.Exit(1)

    if as_json:
        payload = [
            {
                'module': m.id,
                'tag': m.tag,
                'operations': m.operation_count,
                'schemas': m.schema_count,
            }
            for m in modules
        ]
        console.print_json(json.dumps(payload))
        return

    table = Table(title=f'{document.title} {document.version}'.strip())
    table.add_column('Module')
    table.add_column('Tag')
    table.add_column('Operations', justify='right')
    table.add_column('Schemas', justify='right')
    for m in modules:
        table.add_row(m.id, m.tag, str(m.operation_count), str(m.schema_count))
    console.print(table)
    console.print(
        f'[dim]{len(modules)} modules, {len(document.operations)} operations, '
        f'{len(document.schemas)} schemas[/dim]'
    )


@app.command()
def version() -> None:
    """Show the version of vikagen."""
    from vikagen import __version__

    console.print(f'vikagen version: {__version__}')


if __name__ == '__main__':
    app()
