"""
CLI interface for kjob.

Provides `job-runner JOBFILE` and the `kjob` command group (run, validate,
status).
"""

import signal
from pathlib import Path
from typing import Optional

import click

from kjob import __version__
from kjob.config import ConfigError, load_config
from kjob.errors import PermanentError
from kjob.runner import EXIT_FAILED, JobRunner, exit_code_for
from kjob.utils import format_duration, print_error, print_info, print_success


LOG_FILES_HELP = """
Log Files: Logs are stored in the 'logs' directory within the current
working directory.

\b
  - Job Runner Log: {jobName}-runner-{yyyy-mm-dd_hhmmss}.log
  - Container Log: {jobName}-{containerName}-{yyyy-mm-dd_hhmmss}.log
  - Regular Job Describe Output Log: {jobName}-describe-{yyyy-mm-dd_hhmmss}.log
  - Logger Restarted Job & Pod Describe Output Log: {jobName}-restarted-describe-{yyyy-mm-dd_hhmmss}.log
  - Job Completion Job & Pod Describe Output Log: {jobName}-completion-describe-{yyyy-mm-dd_hhmmss}.log

A 'done' file is created in the current working directory once the job
has finished (or was lost) and removed at the start of each run.
"""


def _install_signal_handlers(runner: JobRunner) -> None:
    def handler(signum, frame):
        runner.request_stop()

    signal.signal(signal.SIGINT, handler)
    signal.signal(signal.SIGTERM, handler)


def _run_impl(jobfile: Path, config_path: Optional[Path] = None, verbose: bool = False) -> None:
    """Run a job file and exit with the matching status code."""
    try:
        config = load_config(config_path)
    except ConfigError as e:
        print_error(f"Configuration invalid: {e}")
        raise SystemExit(EXIT_FAILED)

    runner = JobRunner(config)
    _install_signal_handlers(runner)

    try:
        result = runner.run(jobfile, verbose=verbose)
    except PermanentError as e:
        print_error(f"{e}. Exiting.")
        raise SystemExit(EXIT_FAILED)

    raise SystemExit(exit_code_for(result))


@click.command(name="job-runner", epilog=LOG_FILES_HELP)
@click.argument("jobfile", type=click.Path(path_type=Path))
@click.version_option(version=__version__, prog_name="job-runner")
def job_runner(jobfile: Path):
    """
    Deploy a Kubernetes Job and tail its container logs until it finishes.

    JOBFILE is the Job YAML file. It must hold exactly one `kind: Job`
    definition with a namespace, a name and at least one container.
    """
    _run_impl(jobfile)


@click.group()
@click.version_option(version=__version__, prog_name="kjob")
def main():
    """
    kjob - Kubernetes Job runner with self-healing log capture.
    """
    pass


@main.command(epilog=LOG_FILES_HELP)
@click.argument("jobfile", type=click.Path(path_type=Path))
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    help="Custom configuration file (default: $KJOB_HOME/config.yaml)",
)
@click.option(
    "--verbose",
    is_flag=True,
    help="Enable debug logging",
)
def run(jobfile: Path, config_path: Optional[Path], verbose: bool):
    """
    Deploy a Job and supervise its log capture.

    Examples:

      # Run a job file
      kjob run job.hello.gpu.yaml

      # Verbose logging
      kjob run job.hello.gpu.yaml --verbose

      # Custom config
      kjob run job.hello.gpu.yaml --config /path/to/config.yaml
    """
    _run_impl(jobfile, config_path=config_path, verbose=verbose)


@main.command()
@click.argument("jobfile", type=click.Path(path_type=Path))
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    help="Custom configuration file",
)
def validate(jobfile: Path, config_path: Optional[Path]):
    """
    Validate a job file and the kubectl setup without deploying anything.

    Examples:

      kjob validate job.hello.gpu.yaml
    """
    try:
        runner = JobRunner(load_config(config_path))
        context = runner.validate(jobfile)
    except (ConfigError, PermanentError) as e:
        print_error(f"Validation failed: {e}")
        raise SystemExit(EXIT_FAILED)

    descriptor = context.descriptor
    print_success(f"{jobfile} is a valid Job file")
    print_info(f"Job: {descriptor.name}")
    print_info(f"Namespace: {descriptor.namespace}")
    print_info(f"Primary container: {descriptor.primary_container}")
    print_info(f"Container log: {context.artifacts.container_log.name}")


@main.command()
@click.argument("job_name")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    help="Custom configuration file",
)
def status(job_name: str, config_path: Optional[Path]):
    """
    Show the outcome of the last run of a job in this directory.

    Examples:

      kjob status sr-demo-gpu
    """
    try:
        runner = JobRunner(load_config(config_path))
        last_run = runner.status(job_name)
    except (ConfigError, OSError, ValueError) as e:
        print_error(f"Could not retrieve status: {e}")
        raise SystemExit(EXIT_FAILED)

    if not last_run:
        print_info(f"No previous runs found for job {job_name}")
        return

    state = last_run["state"]
    symbol = "✅" if state == "complete" and not last_run.get("job_failed") else "❌"

    click.echo(f"Job: {job_name}")
    click.echo(f"State: {symbol} {state.upper()}")
    click.echo(f"Started: {last_run['started_at']}")
    click.echo(f"Duration: {format_duration(last_run['duration_seconds'])}")
    click.echo(f"Polls: {last_run['ticks']}  Capture restarts: {last_run['restarts']}")
    if last_run.get("cancelled"):
        click.echo("Stopped by signal before reaching a terminal state")
    if last_run.get("error_message"):
        click.echo(f"Error: {last_run['error_message']}")

    runner_log = runner.latest_runner_log(job_name)
    if runner_log is not None:
        click.echo(f"\nLogs: {runner_log}")


if __name__ == "__main__":
    main()
