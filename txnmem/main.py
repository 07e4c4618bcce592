from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import typer

from txnmem.config import get_settings
from txnmem.domain.schema import load_schema
from txnmem.driver import RunConfig, WorkloadDriver, describe_modes
from txnmem.errors import EstimatorError
from txnmem.reporter import print_phase
from txnmem.utils.logging import configure_logging, get_logger
from txnmem.utils.memory import available_readers

log = get_logger(__name__)

app = typer.Typer(help="Estimate per-row memory of a table's transactional write buffer.")


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"schema={settings.schema_path} rows={settings.rows} sample={settings.sample_rate} "
        f"mode={settings.mode} drop_key={settings.drop_key} drop_value={settings.drop_value} | "
        f"settle={settings.gc_settle_seconds}s rss_reader={settings.rss_reader} "
        f"seed={settings.seed} log_level={settings.log_level}"
    )


@app.command()
def modes() -> None:
    """
    List the workload modes that can be measured.
    """
    for name, description in describe_modes().items():
        typer.echo(f"{name}: {description}")


@app.command()
def run(
    schema: Optional[Path] = typer.Option(
        None,
        "--schema",
        "-f",
        help="File holding exactly one CREATE TABLE statement.",
    ),
    rows: Optional[int] = typer.Option(None, "--rows", "-r", help="Target row count N to estimate for."),
    sample: Optional[int] = typer.Option(
        None,
        "--sample",
        "-s",
        help="Sample rate S: one row is executed for every S target rows.",
    ),
    mode: Optional[str] = typer.Option(None, "--mode", "-m", help="Workload: insert, update or delete."),
    drop_key: Optional[bool] = typer.Option(
        None, "--drop-key/--no-drop-key", help="Afterwards drop every staged entry."
    ),
    drop_value: Optional[bool] = typer.Option(
        None, "--drop-value/--no-drop-value", help="Afterwards drop every staged value."
    ),
    settle: Optional[float] = typer.Option(None, "--settle", help="Seconds to wait after the forced GC."),
    seed: Optional[int] = typer.Option(None, "--seed", help="Seed float/decimal columns for repeatable runs."),
    rss_reader: Optional[str] = typer.Option(
        None,
        "--rss-reader",
        help=f"Process memory reader ({', '.join(available_readers())}).",
    ),
) -> None:
    """
    Replay a sampled workload and print its extrapolated memory cost.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)

    try:
        config = RunConfig.from_settings(
            settings,
            schema_path=schema,
            rows=rows,
            sample_rate=sample,
            mode=mode,
            drop_key=drop_key,
            drop_value=drop_value,
            settle_seconds=settle,
            seed=seed,
            rss_reader=rss_reader,
        )
        table_schema = load_schema(config.schema_path, dialect=config.dialect)
        result = WorkloadDriver(table_schema, config).run()
    except EstimatorError as exc:
        log.debug("Run aborted", exc_info=True)
        typer.echo(f"{type(exc).__name__}: {exc}", err=True)
        raise typer.Exit(code=exc.exit_code)

    print_phase(result)
    typer.echo("====== END ======")


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
