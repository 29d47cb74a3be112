"""CLI entrypoints for readme-bot commands."""

from __future__ import annotations

import argparse
import difflib
import json
import os
import sys
from pathlib import Path
from typing import Mapping

from .config import BotConfig, load_config, write_default_config
from .errors import CommitFailure, ConfigError, ReadmeBotError
from .git.github import GitHubClient, parse_repository
from .logging import configure_logging, get_logger
from .models import AnalysisResult, PullRequestContext, ReadmeFile
from .orchestrator import Orchestrator, SyncRequest
from .postproc.report import REPORT_FORMATS, ReportFormatter, format_analysis_comment
from .service.app import build_orchestrator

logger = get_logger("cli")


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_config_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to .readme-bot.yml (defaults to the current directory).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="readme-bot",
        description="Keep README files in sync with pull request changes.",
    )
    _add_verbose_option(parser)
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Analyze a pull request for README updates.",
    )
    _add_verbose_option(analyze_parser, suppress_default=True)
    _add_config_option(analyze_parser)
    analyze_parser.add_argument("-r", "--repo", required=True, help="GitHub repository (owner/repo or URL).")
    analyze_parser.add_argument("-p", "--pr", required=True, type=int, help="Pull request number.")
    analyze_parser.add_argument(
        "--format",
        choices=REPORT_FORMATS,
        default="cli",
        help="Output format for the analysis report.",
    )
    analyze_parser.add_argument(
        "--post-comment",
        action="store_true",
        help="Post suggestions as a PR comment instead of committing them.",
    )
    analyze_parser.add_argument(
        "--update-comment",
        action="store_true",
        help="Update the existing readme-bot comment if one is found.",
    )
    analyze_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show the merged README diff without committing.",
    )

    action_parser = subparsers.add_parser(
        "action",
        help="Run inside GitHub Actions using the workflow event payload.",
    )
    _add_verbose_option(action_parser, suppress_default=True)
    _add_config_option(action_parser)

    serve_parser = subparsers.add_parser("serve", help="Run the webhook service.")
    _add_verbose_option(serve_parser, suppress_default=True)
    _add_config_option(serve_parser)
    serve_parser.add_argument("--host", default="0.0.0.0")
    serve_parser.add_argument("--port", type=int, default=int(os.getenv("PORT", "8000")))

    init_parser = subparsers.add_parser("init", help="Create a default .readme-bot.yml.")
    init_parser.add_argument("path", nargs="?", default=".", help="Directory to write the config into.")

    validate_parser = subparsers.add_parser("validate", help="Validate configuration.")
    _add_config_option(validate_parser)
    validate_parser.add_argument(
        "--webhook",
        action="store_true",
        help="Also require webhook settings needed by `serve`.",
    )

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for readme-bot commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(getattr(args, "verbose", False)))

    if args.command == "init":
        try:
            path = write_default_config(Path(args.path).expanduser().resolve())
        except FileExistsError as exc:
            parser.exit(1, f"{exc}\n")
        print(f"Created configuration file: {_relativize(path)}")
        print("Remember to set ANTHROPIC_API_KEY and GITHUB_TOKEN in the environment.")
        return

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        parser.exit(1, f"Configuration error: {exc}\n")

    if args.command == "validate":
        try:
            config.validate(require_webhook=bool(args.webhook))
        except ConfigError as exc:
            parser.exit(1, f"Configuration validation failed: {exc}\n")
        print("Configuration is valid")
    elif args.command == "serve":
        from .service.app import run_service

        try:
            run_service(args.host, args.port, config=config)
        except ConfigError as exc:
            parser.exit(1, f"Configuration error: {exc}\n")
    elif args.command == "analyze":
        try:
            needs_update = run_analyze(args, config)
        except (ReadmeBotError, ValueError) as exc:
            parser.exit(1, f"readme-bot analyze failed: {exc}\nRun with --verbose for more details.\n")
        # Non-zero exit signals CI that documentation is out of date.
        if needs_update:
            sys.exit(1)
    elif args.command == "action":
        try:
            run_action(config)
        except (ReadmeBotError, ValueError, KeyError, OSError) as exc:
            _write_action_outputs({"needs_update": "unknown", "error": str(exc)})
            parser.exit(1, f"readme-bot action failed: {exc}\n")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def run_analyze(args: argparse.Namespace, config: BotConfig) -> bool:
    """Analyze a PR from the command line; returns whether README updates are needed."""
    config.validate()
    owner, repo = parse_repository(args.repo)
    orchestrator = build_orchestrator(config)
    client = orchestrator.clients.get(None)
    request = SyncRequest(owner=owner, repo=repo, number=args.pr)

    context, readme = orchestrator.fetch(client, request)
    analysis = orchestrator.analyze(context, readme)

    formatter = ReportFormatter(args.format, verbose=bool(getattr(args, "verbose", False)))
    report = formatter.format(
        analysis,
        repo_name=context.full_name,
        pr_number=context.number,
        author=context.author,
        has_existing_readme=readme.exists,
    )
    print(report)

    if not analysis.needs_update:
        return False

    if args.dry_run:
        merged = orchestrator.publisher.render(readme, analysis.suggestions)
        print(_render_diff(readme.text, merged.text) or "(no diff)")
    elif args.post_comment or args.update_comment:
        _post_comment(orchestrator, client, context, readme, analysis, update=bool(args.update_comment))
    else:
        try:
            commit = orchestrator.publisher.commit_suggestions(client, context, readme, analysis.suggestions)
        except CommitFailure as exc:
            print(f"Failed to commit README updates: {exc}")
            print("Here are the suggested changes:")
            print(report)
        else:
            if commit is None:
                print("No README changes needed")
            else:
                print(f"Committed {commit.suggestions_applied} README updates: {commit.url}")
    return True


def run_action(config: BotConfig, environ: Mapping[str, str] | None = None) -> AnalysisResult:
    """GitHub Actions mode: commit suggestions, falling back to a PR comment."""
    env = os.environ if environ is None else environ
    event_path = env.get("GITHUB_EVENT_PATH")
    repository = env.get("GITHUB_REPOSITORY")
    if not event_path or not repository:
        raise ConfigError("GitHub environment variables not found")
    owner, repo = parse_repository(repository)
    event = json.loads(Path(event_path).read_text(encoding="utf-8"))
    pull_number = (event.get("pull_request") or {}).get("number")
    if not pull_number:
        raise ConfigError("Not a pull request event")

    config.validate()
    orchestrator = build_orchestrator(config)
    client = orchestrator.clients.get(None)
    context, readme = orchestrator.fetch(client, SyncRequest(owner=owner, repo=repo, number=int(pull_number)))
    analysis = orchestrator.analyze(context, readme)

    if analysis.needs_update:
        try:
            commit = orchestrator.publisher.commit_suggestions(client, context, readme, analysis.suggestions)
        except CommitFailure as exc:
            logger.warning("Commit failed, falling back to comment mode: %s", exc)
            _post_comment(orchestrator, client, context, readme, analysis, update=True)
        else:
            if commit is None:
                logger.info("No README changes needed")
            else:
                logger.info("Committed %d README updates: %s", commit.suggestions_applied, commit.url)
    else:
        logger.info("README is up to date")

    _write_action_outputs(
        {
            "needs_update": str(analysis.needs_update).lower(),
            "suggestion_count": str(len(analysis.suggestions)),
        },
        env,
    )
    return analysis


def _post_comment(
    orchestrator: Orchestrator,
    client: GitHubClient,
    context: PullRequestContext,
    readme: ReadmeFile,
    analysis: AnalysisResult,
    *,
    update: bool,
) -> None:
    body = format_analysis_comment(
        analysis,
        has_existing_readme=readme.exists,
        marker=orchestrator.comment_marker,
        publish_mode="comment",
    )
    if update:
        comment_id = orchestrator.upsert_comment(client, context, body)
    else:
        comment_id = client.create_comment(context.owner, context.repo, context.number, body).get("id")
    print(f"Posted README suggestions as comment {comment_id}")


def _write_action_outputs(values: Mapping[str, str], environ: Mapping[str, str] | None = None) -> None:
    env = os.environ if environ is None else environ
    output_path = env.get("GITHUB_OUTPUT")
    if not output_path:
        return
    with open(output_path, "a", encoding="utf-8") as handle:
        for key, value in values.items():
            handle.write(f"{key}={value}\n")


def _render_diff(original: str, updated: str) -> str:
    diff = difflib.unified_diff(
        original.splitlines(),
        updated.splitlines(),
        fromfile="README.md (current)",
        tofile="README.md (merged)",
        lineterm="",
    )
    return "\n".join(diff)


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
