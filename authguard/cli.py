"""
AuthGuard - command line entry point
"""
import asyncio

import click
from rich.console import Console
from rich.table import Table

from .container import build_services
from .utils.config import ConfigDefaults, load_config
from .utils.logger import setup_logger

console = Console()

SEVERITY_STYLES = {
    "LOW": "dim",
    "MEDIUM": "yellow",
    "HIGH": "bold red",
    "CRITICAL": "bold white on red",
}


@click.group()
@click.option('--config', 'config_path', default=ConfigDefaults.CONFIG_PATH_DEFAULT,
              help='Path to the YAML configuration file')
@click.pass_context
def cli(ctx, config_path):
    """AuthGuard authentication security core"""
    ctx.ensure_object(dict)
    ctx.obj['config'] = load_config(config_path)
    setup_logger(level=ctx.obj['config'].logging.level, log_file=ctx.obj['config'].logging.file)


@cli.command()
@click.option('--port', default=None, type=int, help='Port to run server on')
@click.option('--host', default=None, help='Host to bind to')
@click.option('--no-monitoring', is_flag=True, help='Do not start the monitoring scheduler')
@click.pass_context
def serve(ctx, port, host, no_monitoring):
    """Run the admin API (and the monitoring scheduler)"""
    import uvicorn
    from .api import create_app

    config = ctx.obj['config']
    host = host or config.server.host
    port = port or config.server.port

    console.print("[bold blue]Starting AuthGuard API[/bold blue]")
    console.print(f"Server: http://{host}:{port}")
    console.print(f"Docs: http://{host}:{port}/docs")
    if no_monitoring:
        console.print("[yellow]WARNING: Monitoring scheduler disabled (--no-monitoring flag)[/yellow]")
    console.print("[bold]Press Ctrl+C to stop[/bold]\n")

    app = create_app(config, start_scheduler=False if no_monitoring else None)
    try:
        uvicorn.run(app, host=host, port=port)
    except KeyboardInterrupt:
        console.print("\n[yellow]Server stopped by user[/yellow]")


async def _scan(config, window_minutes: int, check_alerts: bool):
    services = build_services(config)
    await services.startup(start_scheduler=False)
    try:
        patterns = await services.detector.detect_suspicious_activity(window_minutes)
        alerts = await services.alert_engine.check_alert_thresholds() if check_alerts else []
        return patterns, alerts
    finally:
        await services.shutdown()


@cli.command()
@click.option('--window', 'window_minutes', default=60, show_default=True, help='Detection window in minutes')
@click.option('--alerts/--no-alerts', 'check_alerts', default=True, help='Also evaluate alert thresholds')
@click.pass_context
def scan(ctx, window_minutes, check_alerts):
    """Run suspicious activity detection once"""
    patterns, alerts = asyncio.run(_scan(ctx.obj['config'], window_minutes, check_alerts))

    if not patterns:
        console.print(f"[green]No suspicious activity in the last {window_minutes} minutes[/green]")
    else:
        table = Table(title=f"Suspicious activity (last {window_minutes} minutes)")
        table.add_column("Type")
        table.add_column("Severity")
        table.add_column("IP")
        table.add_column("Count", justify="right")
        table.add_column("Window")
        table.add_column("Description")
        for pattern in patterns:
            severity = pattern.severity.value
            table.add_row(
                pattern.type.value,
                f"[{SEVERITY_STYLES.get(severity, '')}]{severity}[/]",
                pattern.ip_address or "-",
                str(pattern.count),
                pattern.time_window,
                pattern.description,
            )
        console.print(table)

    for alert in alerts:
        console.print(f"[bold red]ALERT[/bold red] {alert.title}: {alert.description}")


async def _cleanup(config, days: int) -> int:
    services = build_services(config)
    await services.startup(start_scheduler=False)
    try:
        return await services.event_store.cleanup_older_than(days)
    finally:
        await services.shutdown()


@cli.command()
@click.option('--days', default=None, type=int, help='Retention period (defaults to monitoring.event_retention_days)')
@click.pass_context
def cleanup(ctx, days):
    """Delete security events older than the retention period"""
    config = ctx.obj['config']
    days = days or config.monitoring.event_retention_days
    deleted = asyncio.run(_cleanup(config, days))
    console.print(f"[green]Deleted {deleted} security events older than {days} days[/green]")


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
