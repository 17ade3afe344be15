"""Command-line interface for stubsmith code generation."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import NoReturn

import click
from lark.exceptions import LarkError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from stubsmith.generator import assign_codes, languages, namespace_for, parse, python, roles
from stubsmith.generator.codes import CodeTable
from stubsmith.generator.engine import generate, lookup, output_name
from stubsmith.generator.errors import GenerationError
from stubsmith.generator.types import Program

logger = logging.getLogger("stubsmith")

console = Console()


def _fail(message: str) -> NoReturn:
    console.print(f"[bold red]Error:[/bold red] {escape(message)}")
    sys.exit(1)


def _load(input_file: str) -> Program:
    with open(input_file, encoding="utf-8") as f:
        text = f.read()
    try:
        return parse(text, name=Path(input_file).stem)
    except (GenerationError, LarkError) as e:
        _fail(f"{input_file}: {e}")


def _assign(program: Program) -> CodeTable:
    try:
        return assign_codes(program)
    except GenerationError as e:
        _fail(str(e))


@click.group()
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log every render step")
def cli(verbose: bool) -> None:
    """stubsmith RPC stub generator."""
    logging.basicConfig(
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)


@cli.command()
@click.option("--language", "-l", required=True, help="Target language (cpp, python)")
@click.option("--input", "-i", "input_file", required=True, help="Input interface definition")
@click.option("--output", "-o", "output_dir", default=".", help="Output directory")
@click.option(
    "--role",
    "-r",
    "role_names",
    multiple=True,
    help="File role to generate, may be repeated. Defaults to every role of the language.",
)
@click.option("--prefix", "file_prefix", default=None, help="Output file prefix")
@click.option(
    "--per-service", is_flag=True, default=False, help="Write service stubs one file per service"
)
@click.option(
    "--runtime-import",
    "runtime_import",
    is_flag=False,
    flag_value="stubsmith.runtime",
    default=None,
    help="Import path for the Python runtime. No value=stubsmith.runtime, omit=stubsmith_runtime",
)
def gen(
    language: str,
    input_file: str,
    output_dir: str,
    role_names: tuple[str, ...],
    file_prefix: str | None,
    per_service: bool,
    runtime_import: str | None,
) -> None:
    """Generate stubs from an interface definition."""
    if language not in languages():
        print(f"Unknown language: {language}")
        sys.exit(1)

    program = _load(input_file)
    codes = _assign(program)

    failed = False
    for role in role_names or roles(language):
        try:
            generate(
                program,
                language,
                role,
                output_dir,
                codes=codes,
                file_prefix=file_prefix,
                per_service=per_service,
                options={"runtime_import": runtime_import},
            )
        except GenerationError as e:
            console.print(f"[bold red]Error:[/bold red] {escape(str(e))}")
            failed = True

    if failed:
        sys.exit(1)


@cli.command()
@click.option("--language", "-l", default="python", help="Target language (python)")
@click.option("--output", "-o", "output_path", default=".", help="Output directory")
@click.option("--name", default="stubsmith_runtime", help="Runtime folder name")
def runtime(language: str, output_path: str, name: str) -> None:
    """Generate runtime support code."""
    if language != "python":
        print(f"Unknown language: {language}")
        sys.exit(1)

    runtime_dir = Path(output_path) / name
    runtime_dir.mkdir(parents=True, exist_ok=True)
    for filename, content in python.runtime().items():
        with open(runtime_dir / filename, "w", encoding="utf-8", newline="\n") as f:
            f.write(content)
    print(f"Generated Python runtime in {runtime_dir}")


@cli.command()
@click.option("--input", "-i", "input_file", required=True, help="Input interface definition")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def info(input_file: str, output_json: bool) -> None:
    """Display task codes, priorities and pools of a program."""
    program = _load(input_file)
    codes = _assign(program)

    if output_json:
        _output_json(program, codes)
    else:
        _output_plain(program, codes)


def _output_json(program: Program, codes: CodeTable) -> None:
    data = {
        "program": program.to_dict(),
        "codes": codes.to_dict(),
        "namespaces": {
            language: namespace_for(program, language).name for language in languages()
        },
    }
    print(json.dumps(data, indent=2))


def _output_plain(program: Program, codes: CodeTable) -> None:
    console.print(f"[bold cyan]Program[/bold cyan] {escape(program.name)}")

    ns_table = Table(show_header=False, box=None, padding=(0, 2, 0, 2))
    ns_table.add_column("Language", style="dim")
    ns_table.add_column("Namespace", style="white")
    for language in languages():
        ns_table.add_row(language, namespace_for(program, language).name)
    console.print(ns_table)
    console.print()

    console.print("[bold cyan]Task codes[/bold cyan]")
    code_table = Table(show_header=True, box=None, padding=(0, 2, 0, 0))
    code_table.add_column("Function", style="white")
    code_table.add_column("Code", style="green")
    code_table.add_column("Priority", style="yellow")
    code_table.add_column("Pool", style="dim")

    for name, meta in codes.functions.items():
        code_table.add_row(name, meta.rpc_code, meta.priority.value, meta.pool)
    timer = codes.test_timer
    code_table.add_row("(test timer)", timer.rpc_code, timer.priority.value, timer.pool)

    console.print(code_table)


@cli.command(name="roles")
@click.option("--prefix", "file_prefix", default="example", help="File prefix to show")
def list_roles(file_prefix: str) -> None:
    """List the file roles each language can generate."""
    table = Table(show_header=True, box=None, padding=(0, 2, 0, 0))
    table.add_column("Language", style="white")
    table.add_column("Role", style="green")
    table.add_column("File", style="dim")

    program = Program(name=file_prefix)
    for language in languages():
        for role in roles(language):
            entry = lookup(language, role)
            table.add_row(language, role.value, output_name(entry, program, file_prefix))

    console.print(table)


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
