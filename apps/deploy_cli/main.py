# ====================================
# 📁 apps/deploy_cli/main.py
# ====================================
import typer
import logging
import os
import sys # For sys.stderr in logging config

from .commands import pipeline_cmds

# --- Configure Root Logger for CLI ---
# stdout carries command output (identifier, report JSON); logs go to stderr.
CLI_LOG_LEVEL_STR = os.getenv("LOG_LEVEL", "INFO").upper()
numeric_log_level = getattr(logging, CLI_LOG_LEVEL_STR, logging.INFO)

logging.basicConfig(
    level=numeric_log_level,
    format='%(asctime)s [%(levelname)-8s] %(name)-25s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
    stream=sys.stderr
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("botocore").setLevel(logging.WARNING)
# --- End Logger Config ---

app = typer.Typer(
    name="branch-deploy",
    help="Resolve deployment identifiers for branches and drive their deploy pipeline.",
    no_args_is_help=True, # Show help if no command is given
    add_completion=False
)

app.command("resolve")(pipeline_cmds.resolve_cmd)
app.command("run")(pipeline_cmds.run_cmd)
app.command("infra-status")(pipeline_cmds.infra_status_cmd)


@app.callback()
def main_cli_setup(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose DEBUG logging for all loggers.")
):
    """
    Branch Deploy CLI Main Entry Point.
    Global options like --verbose are handled here.
    """
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        for handler in logging.getLogger().handlers:
            handler.setLevel(logging.DEBUG)
        logging.getLogger(__name__).debug("Verbose (DEBUG) logging enabled for branch-deploy CLI.")

    from shared.app_config import app_config
    if app_config.otel_exporter_otlp_traces_endpoint:
        from core.observability.tracing import setup_tracing
        setup_tracing(app_config.service_name, app_config.otel_exporter_otlp_traces_endpoint)


def run():
    app()


if __name__ == "__main__":
    # python -m apps.deploy_cli.main run --branch feature/pr-212 --artifact s3://bucket/api-handler.zip
    app()
