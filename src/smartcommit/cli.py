"""
Command line interface for the smartcommit tool.

This module defines the ``main`` function which is used as the entry
point when executing the ``smartc`` command. It orchestrates
configuration loading, repository detection, diff extraction, commit
generation, interaction with the user, and the actual staging, commit
and push operations. Exit codes are listed below.
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import List, Optional

import click

from smartcommit import __version__
from smartcommit.config.loader import (
    API_KEY_ENV_VAR,
    DEFAULTS,
    ConfigError,
    clean_config,
    config_exists,
    get_config_directory,
    load_config,
    save_config,
)
from smartcommit.context import RunContext
from smartcommit.diff.context_extractor import DEFAULT_RADIUS
from smartcommit.diff.diff_extractor import DiffBundle, build_diff_bundle
from smartcommit.grouping.group_model import (
    CommitOutcome,
    CommitProposal,
    ReviewDecision,
    SingleCommitDecision,
)
from smartcommit.grouping.orchestrator import GroupedCommitOrchestrator
from smartcommit.history.store import HistoryStore
from smartcommit.llm.base import LLMError, check_connection
from smartcommit.llm.generation_engine import GenerationError, GenerationInputs, GenerationRetryEngine
from smartcommit.llm.ollama_client import OllamaClient
from smartcommit.llm.openrouter_client import DEFAULT_BASE_URL, OpenRouterClient
from smartcommit.llm.request_builder import RequestBuilder
from smartcommit.vcs.git_client import GitClient, GitError, RepositoryError
from smartcommit.vcs.staging import StagingCoordinator, StagingError

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


# ---------------------------------------------------------------------------
# Exit codes
# ---------------------------------------------------------------------------
EXIT_SUCCESS = 0
EXIT_GENERIC_ERROR = 1
EXIT_INVALID_USAGE = 2
EXIT_NO_REPO = 3
EXIT_NO_CHANGES = 4
EXIT_CONFIG_ERROR = 5
EXIT_VCS_FAILURE = 6
EXIT_LLM_FAILURE = 7
EXIT_ALL_DECLINED = 8
EXIT_PARTIAL_FAILURE = 9


# ---------------------------------------------------------------------------
# Progress and status display utilities
# ---------------------------------------------------------------------------

class ProgressIndicator:
    """Simple progress indicator for user feedback."""

    def __init__(self, message: str, show_spinner: bool = True):
        self.message = message
        self.show_spinner = show_spinner
        self.start_time = None

    def __enter__(self):
        self.start_time = time.time()
        if self.show_spinner:
            click.echo(f"⠋ {self.message}...", nl=False)
        else:
            click.echo(f"→ {self.message}...")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        elapsed = time.time() - self.start_time
        if exc_type is not None:
            click.echo(f"\r✗ {self.message} (failed after {elapsed:.1f}s)")
        elif self.show_spinner:
            click.echo(f"\r✓ {self.message} (took {elapsed:.1f}s)")
        else:
            click.echo(f"  ✓ Done ({elapsed:.1f}s)")
        return False


def print_step(step_num: int, total_steps: int, message: str):
    """Print a step indicator."""
    click.echo(f"\n{'='*60}")
    click.echo(f"Step {step_num}/{total_steps}: {message}")
    click.echo(f"{'='*60}")


def print_info(message: str, indent: int = 0):
    """Print an info message."""
    prefix = "  " * indent
    click.echo(f"{prefix}ℹ {message}", err=False)


def print_success(message: str, indent: int = 0):
    """Print a success message."""
    prefix = "  " * indent
    click.echo(f"{prefix}✓ {message}", err=False)


def print_warning(message: str, indent: int = 0):
    """Print a warning message."""
    prefix = "  " * indent
    click.echo(f"{prefix}⚠ {message}", err=False)


def print_error(message: str, indent: int = 0):
    """Print an error message."""
    prefix = "  " * indent
    click.echo(f"{prefix}✗ {message}", err=True)


def print_summary_box(title: str, items: List[str]):
    """Print a formatted summary box."""
    max_width = max(len(title), max(len(item) for item in items) if items else 0)
    box_width = min(max_width + 4, 60)

    click.echo(f"\n┌{'─' * box_width}┐")
    click.echo(f"│ {title.ljust(box_width - 2)}│")
    click.echo(f"├{'─' * box_width}┤")
    for item in items:
        click.echo(f"│ {item.ljust(box_width - 2)}│")
    click.echo(f"└{'─' * box_width}┘")


def print_proposal(proposal: CommitProposal, heading: str) -> None:
    """Show a commit proposal in a box."""
    click.echo(f"\n{'─'*60}")
    click.echo(f"📦 {heading}")
    click.echo(f"{'─'*60}")

    type_label = f"{proposal.type}({proposal.scope})" if proposal.scope else proposal.type
    click.echo(f"\n🏷️  Type: {click.style(type_label, fg='cyan', bold=True)}")
    if proposal.breaking:
        click.echo(f"   {click.style('BREAKING CHANGE', fg='red', bold=True)}")

    if proposal.files:
        click.echo(f"\n📄 Files ({len(proposal.files)}):")
        for file in proposal.files:
            click.echo(f"   • {file}")

    click.echo("\n💬 Proposed commit message:")
    click.echo("   ┌" + "─" * 56 + "┐")
    for line in proposal.message.splitlines():
        display_line = line[:54] if len(line) > 54 else line
        click.echo(f"   │ {display_line.ljust(54)} │")
    click.echo("   └" + "─" * 56 + "┘")


# ---------------------------------------------------------------------------
# Interactive decisions
# ---------------------------------------------------------------------------

def decide_on_single_commit(proposal: CommitProposal) -> SingleCommitDecision:
    """Ask whether to accept, regenerate or cancel a single commit."""
    choice = click.prompt(
        "   Choose action (A = Accept | R = Regenerate | C = Cancel)",
        type=click.Choice(["A", "R", "C", "a", "r", "c"], case_sensitive=False),
        default="A",
        show_choices=False,
        show_default=True,
    ).strip().lower()
    if choice == "a":
        return SingleCommitDecision.ACCEPT
    if choice == "r":
        return SingleCommitDecision.REGENERATE
    return SingleCommitDecision.CANCEL


def decide_on_proposal(proposal: CommitProposal, review_pass: int) -> ReviewDecision:
    """Ask whether to accept, skip or cancel one grouped proposal."""
    heading = f"Commit {proposal.tracking_id}"
    if review_pass > 1:
        heading += " (skipped earlier, last chance)"
    print_proposal(proposal, heading)

    click.echo("")
    choice = click.prompt(
        "   Choose action (A = Accept | S = Skip | C = Cancel)",
        type=click.Choice(["A", "S", "C", "a", "s", "c"], case_sensitive=False),
        default="A",
        show_choices=False,
        show_default=True,
    ).strip().lower()
    if choice == "a":
        return ReviewDecision.ACCEPT
    if choice == "s":
        return ReviewDecision.SKIP
    return ReviewDecision.CANCEL


# ---------------------------------------------------------------------------
# Core functionality
# ---------------------------------------------------------------------------

def ensure_config() -> None:
    """Create a configuration on first run.

    The API key is taken from the environment if present, otherwise the
    user is asked for it with hidden input.
    """
    if config_exists():
        return

    print_info("No configuration found, starting first-time setup")
    data = {"provider": DEFAULTS["provider"], "model": DEFAULTS["model"]}
    if os.environ.get(API_KEY_ENV_VAR):
        print_info(f"Using API key from {API_KEY_ENV_VAR}", indent=1)
    else:
        api_key = click.prompt("   Enter your OpenRouter API key", hide_input=True).strip()
        if not api_key:
            raise ConfigError("An API key is required")
        data["api_key"] = api_key
    path = save_config(data)
    print_success(f"Configuration saved to {path}")


def make_client(config):
    """Build the completion client for the configured provider."""
    timeout = float(config.get("request_timeout", DEFAULTS["request_timeout"]))
    max_tokens = config.get("max_tokens", DEFAULTS["max_tokens"])
    if config.get("provider") == "ollama":
        return OllamaClient(
            base_url=config.get("base_url", "http://localhost"),
            port=config.get("port", 11434),
            request_timeout=timeout,
            max_tokens=max_tokens,
        )
    return OpenRouterClient(
        api_key=config["api_key"],
        base_url=config.get("base_url", DEFAULT_BASE_URL),
        request_timeout=timeout,
        max_tokens=max_tokens,
    )


def show_stats(store: HistoryStore, repo_name: Optional[str]) -> None:
    stats = store.generation_stats()
    items = [
        f"Total generations: {stats['total']}",
        f"Accepted: {stats['accepted']}",
        f"Rejected: {stats['rejected']}",
        f"Acceptance rate: {stats['acceptance_rate']}%",
    ]
    print_summary_box("Generation statistics", items)
    if repo_name:
        repo_stats = store.generation_stats(repo_name)
        print_info(
            f"{repo_name}: {repo_stats['accepted']}/{repo_stats['total']} accepted "
            f"({repo_stats['acceptance_rate']}%)"
        )


def run_single_commit(
    ctx: RunContext,
    client: GitClient,
    engine: GenerationRetryEngine,
    store: HistoryStore,
    bundle: DiffBundle,
    decide=decide_on_single_commit,
) -> int:
    """Generate, review and apply one commit. Returns an exit code.

    Raises
    ------
    GenerationError
        If the engine gave up.
    StagingError, GitError
        If staging, committing or pushing failed.
    """
    inputs = GenerationInputs(
        bundle=bundle,
        recent_commits=store.load_history(ctx.repo_name),
        additional_instruction=ctx.additional_instruction,
        selective_instruction=ctx.selective_instruction,
    )

    for round_num in range(1, ctx.max_attempts + 1):
        with ProgressIndicator("Generating commit message"):
            result = engine.generate(inputs)
        if result.heuristic:
            print_warning("Response was not valid JSON; message recovered from plain text")
        print_info(f"Model: {result.model_used} ({result.elapsed_ms}ms)", indent=1)

        record_id = store.save_generation(
            ctx.repo_name,
            result.proposal.to_dict(),
            accepted=False,
            request=result.request_metadata(),
            model=result.model_used,
        )
        proposal = result.proposal
        print_proposal(proposal, f"Commit message ({round_num}/{ctx.max_attempts})")

        if ctx.auto:
            print_info("Auto-accept mode enabled - accepting commit")
            decision = SingleCommitDecision.ACCEPT
        else:
            click.echo("")
            decision = decide(proposal)

        if decision is SingleCommitDecision.CANCEL:
            store.update_status(record_id, accepted=False)
            print_warning("Commit cancelled")
            return EXIT_SUCCESS
        if decision is SingleCommitDecision.REGENERATE:
            print_info("Regenerating commit message")
            continue

        store.update_status(record_id, accepted=True)
        stager = StagingCoordinator(client)
        with ProgressIndicator("Staging changes"):
            if proposal.files:
                staged = stager.stage_exact(list(proposal.files))
            else:
                if ctx.selective_instruction:
                    print_warning("No files were selected; staging all changes")
                stager.stage_all()
                staged = bundle.paths
        print_success(f"Staged {len(staged)} file(s)")

        with ProgressIndicator("Committing"):
            client.commit(proposal.message)
        store.append_commit(ctx.repo_name, proposal, files=list(staged))
        print_success(f"Committed: {proposal.summary}")

        with ProgressIndicator("Pushing"):
            client.push()
        print_success("Pushed to remote")
        return EXIT_SUCCESS

    print_warning(f"Maximum regeneration attempts ({ctx.max_attempts}) reached; nothing committed")
    return EXIT_ALL_DECLINED


def run_grouped(
    ctx: RunContext,
    client: GitClient,
    engine: GenerationRetryEngine,
    store: HistoryStore,
    bundle: DiffBundle,
    decide=decide_on_proposal,
) -> int:
    """Generate, review and apply grouped commits. Returns an exit code.

    Raises
    ------
    GenerationError
        If the engine gave up.
    """
    inputs = GenerationInputs(bundle=bundle, additional_instruction=ctx.additional_instruction)
    with ProgressIndicator("Grouping changes into commits (this may take a moment)"):
        result = engine.generate_grouped(inputs)
    print_success(f"Generated {len(result.proposals)} commit group(s)")
    for idx, proposal in enumerate(result.proposals, 1):
        print_info(f"Group {idx}: {proposal.summary} - {len(proposal.files)} file(s)", indent=1)

    record_id = store.save_generation(
        ctx.repo_name,
        {"commits": [proposal.to_dict() for proposal in result.proposals]},
        accepted=False,
        request=result.request_metadata(),
        model=result.model_used,
    )

    def on_outcome(outcome: CommitOutcome) -> None:
        if outcome.committed:
            store.append_commit(ctx.repo_name, outcome.proposal)
        if outcome.success:
            print_success(f"Committed and pushed: {outcome.proposal.summary}")
        elif outcome.committed:
            print_error(f"Committed but push failed: {outcome.error}")
        else:
            print_error(f"Failed to apply {outcome.proposal.tracking_id}: {outcome.error}")

    if ctx.auto:
        print_info("Auto-accept mode enabled - accepting all groups")
    orchestrator = GroupedCommitOrchestrator(
        client,
        StagingCoordinator(client),
        decide=decide,
        auto=ctx.auto,
        on_outcome=on_outcome,
    )
    report = orchestrator.run(result.proposals)
    store.update_status(record_id, accepted=report.committed_count > 0)

    items = [report.summary_line()]
    if report.declined:
        items.append(f"Declined: {', '.join(report.declined)}")
    if report.cancelled:
        items.append("Run cancelled")
    print_summary_box("Summary", items)

    if report.failed_count:
        return EXIT_PARTIAL_FAILURE if report.committed_count else EXIT_VCS_FAILURE
    if report.committed_count == 0 and not report.cancelled:
        print_warning("All commit groups were declined; no changes committed.")
        return EXIT_ALL_DECLINED
    return EXIT_SUCCESS


@click.command()
@click.argument(
    "path",
    required=False,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)
@click.option("--additional", "additional", metavar="TEXT", help="Extra context for the commit message.")
@click.option("--only", "only", metavar="TEXT", help="Commit only the changes related to TEXT.")
@click.option(
    "--radius",
    type=click.IntRange(min=1),
    default=DEFAULT_RADIUS,
    show_default=True,
    help="Lines of context around each changed line.",
)
@click.option("--grouped", is_flag=True, help="Split the changes into several commits.")
@click.option("--auto", is_flag=True, help="Accept generated commits without prompting.")
@click.option("--model", metavar="NAME", help="Override the configured model.")
@click.option("--test", "test_connection", is_flag=True, help="Check the connection to the model and exit.")
@click.option("--clean", is_flag=True, help="Remove configuration, history and generation records.")
@click.option("--stats", is_flag=True, help="Show generation statistics and exit.")
@click.option("--verbose", is_flag=True, help="Enable verbose (debug) output.")
@click.version_option(version=__version__, prog_name="smartc")
def main(
    path: Optional[Path],
    additional: Optional[str],
    only: Optional[str],
    radius: int,
    grouped: bool,
    auto: bool,
    model: Optional[str],
    test_connection: bool,
    clean: bool,
    stats: bool,
    verbose: bool,
) -> None:
    """🚀 AI-powered commit assistant for Git repositories.

    Reads the pending changes of the repository at PATH (default: the
    current directory), asks a language model for a commit message, and
    stages, commits and pushes once you accept it.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
        force=True,
    )

    if grouped and only:
        raise click.UsageError("--grouped cannot be combined with --only")

    ctx = click.get_current_context(silent=True)
    data_dir = get_config_directory()

    try:
        if clean:
            HistoryStore(data_dir).clean()
            removed = clean_config()
            print_success("Removed history and generation records")
            if removed:
                print_success("Removed configuration")
            raise click.exceptions.Exit(EXIT_SUCCESS)

        target = (path or Path.cwd()).resolve()

        if stats:
            repo_root = GitClient.find_repo_root(target)
            show_stats(HistoryStore(data_dir), repo_root.name if repo_root else None)
            raise click.exceptions.Exit(EXIT_SUCCESS)

        click.echo("\n" + "="*60)
        click.echo("🤖 SmartCommit".center(60))
        click.echo("="*60)

        total_steps = 4

        # Step 1: Load configuration
        print_step(1, total_steps, "Loading Configuration")
        try:
            ensure_config()
            config = load_config()
        except ConfigError as exc:
            print_error(f"Configuration error: {exc}")
            raise click.exceptions.Exit(EXIT_CONFIG_ERROR)
        llm_client = make_client(config)
        print_success("Configuration loaded successfully")
        print_info(f"Provider: {config['provider']}", indent=1)
        print_info(f"Model: {model or config['model']}", indent=1)

        if test_connection:
            try:
                with ProgressIndicator("Testing connection"):
                    reply, model_used, elapsed_ms = check_connection(llm_client, model or config["model"])
            except LLMError as exc:
                print_error(f"Connection test failed: {exc}")
                raise click.exceptions.Exit(EXIT_LLM_FAILURE)
            print_success(f"Response: {reply}")
            print_info(f"Model used: {model_used} ({elapsed_ms}ms)", indent=1)
            raise click.exceptions.Exit(EXIT_SUCCESS)

        # Step 2: Open repository
        print_step(2, total_steps, "Detecting Repository")
        try:
            client = GitClient.open(target)
        except RepositoryError as exc:
            print_error(str(exc))
            raise click.exceptions.Exit(EXIT_NO_REPO)
        print_success(f"Found Git repository at: {client.repo_root}")

        run_ctx = RunContext.from_options(
            client.repo_root,
            client.repo_name,
            config,
            model=model,
            radius=radius,
            additional=additional,
            only=only,
            grouped=grouped,
            auto=auto,
        )
        logger.debug("Run context: %s", run_ctx)

        # Step 3: Analyse changes
        print_step(3, total_steps, "Analyzing Changes")
        try:
            with ProgressIndicator("Reading changes and building excerpts"):
                bundle = build_diff_bundle(client, radius=run_ctx.radius)
        except GitError as exc:
            print_error(f"VCS error: {exc}")
            raise click.exceptions.Exit(EXIT_VCS_FAILURE)

        if bundle is None:
            print_warning("No changes detected; the repository is clean.")
            raise click.exceptions.Exit(EXIT_NO_CHANGES)

        print_success(f"Found {len(bundle.files)} changed file{'s' if len(bundle.files) != 1 else ''}")
        for change in bundle.files[:5]:
            print_info(f"{change.status} {change.path}", indent=1)
        if len(bundle.files) > 5:
            print_info(f"... and {len(bundle.files) - 5} more", indent=1)

        # Step 4: Generate, review and commit
        print_step(4, total_steps, "Generating and Committing")
        store = HistoryStore(data_dir, provider=run_ctx.provider, version=__version__)
        engine = GenerationRetryEngine(
            llm_client,
            RequestBuilder(run_ctx.repo_name),
            run_ctx.model,
            max_attempts=run_ctx.max_attempts,
        )
        try:
            if run_ctx.grouped:
                code = run_grouped(run_ctx, client, engine, store, bundle)
            else:
                code = run_single_commit(run_ctx, client, engine, store, bundle)
        except GenerationError as exc:
            print_error(str(exc))
            raise click.exceptions.Exit(EXIT_LLM_FAILURE)
        except (StagingError, GitError) as exc:
            print_error(f"Failed to commit/push changes: {exc}")
            raise click.exceptions.Exit(EXIT_VCS_FAILURE)

        if code == EXIT_SUCCESS:
            click.echo("\n🎉 All done!\n")
        raise click.exceptions.Exit(code)

    except click.exceptions.Exit:
        raise
    except click.Abort:
        raise
    except Exception as exc:
        logging.exception("Unhandled error: %s", exc)
        print_error(f"Unexpected error: {exc}")
        ctx.exit(EXIT_GENERIC_ERROR)
