import argparse
import logging
import sys
from pathlib import Path

import httpx

from src.adapters.sqlite.migrator import SQLiteMigrator
from src.adapters.sqlite.repos import SQLiteLookup, SQLiteRuleRepo
from src.api.deps import Settings, register_hooks
from src.components.nice_urls import (
    ConvertInput,
    ConverterRegistry,
    DeleteRuleInput,
    HookRegistry,
    InvertInput,
    UrlRouter,
    run_convert,
    run_delete_rule,
    run_invert,
)
from src.rules.loader import RulesValidationError, load_rules, seed_rules

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("cli")


def build_router(settings: Settings, repo: SQLiteRuleRepo) -> UrlRouter:
    hooks = HookRegistry()
    register_hooks(hooks, settings)
    converters = ConverterRegistry(
        lookup=SQLiteLookup(settings.db_path),
        hooks=hooks,
        timeout=settings.config.strategy_timeout,
    )
    return UrlRouter(
        store=repo,
        base_url=settings.base_url,
        converters=converters,
        config=settings.config,
    )


def handle_migrate(settings: Settings, args: argparse.Namespace) -> int:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    applied = SQLiteMigrator(settings.db_path, settings.migrations_dir).run_migrations()
    print(f"Applied {len(applied)} migrations.")
    return 0


def handle_load_rules(settings: Settings, args: argparse.Namespace) -> int:
    try:
        rules = load_rules(Path(args.path))
    except (FileNotFoundError, RulesValidationError) as e:
        logger.error("%s", e)
        return 1

    repo = SQLiteRuleRepo(settings.db_path)
    if args.replace:
        url_router = build_router(settings, repo)
        for rule in repo.list_all():
            if rule.id is not None:
                run_delete_rule(DeleteRuleInput(rule_id=rule.id), store=repo, router=url_router)

    saved = seed_rules(repo, rules)
    print(f"Loaded {len(saved)} rules.")
    return 0


def handle_convert(settings: Settings, args: argparse.Namespace) -> int:
    url_router = build_router(settings, SQLiteRuleRepo(settings.db_path))
    try:
        result = run_convert(ConvertInput(path=args.path), router=url_router)
    finally:
        url_router.converters.shutdown()
    if not result.success:
        for error in result.errors:
            logger.error("%s: %s", error.code, error.message)
        return 1
    print(result.url)
    return 0


def handle_invert(settings: Settings, args: argparse.Namespace) -> int:
    url_router = build_router(settings, SQLiteRuleRepo(settings.db_path))
    try:
        result = run_invert(InvertInput(url=args.url), router=url_router)
    finally:
        url_router.converters.shutdown()
    if not result.success:
        for error in result.errors:
            logger.error("%s: %s", error.code, error.message)
        return 1
    print(result.url)
    return 0


def handle_delete_rule(settings: Settings, args: argparse.Namespace) -> int:
    if args.server:
        return delete_via_server(args.server, args.rule_id)

    repo = SQLiteRuleRepo(settings.db_path)
    result = run_delete_rule(
        DeleteRuleInput(rule_id=args.rule_id),
        store=repo,
        router=build_router(settings, repo),
    )
    if not result.success:
        logger.error("Rule %s not found.", args.rule_id)
        return 1
    print(f"Deleted rule {args.rule_id}.")
    return 0


def delete_via_server(server: str, rule_id: int) -> int:
    """Delete through a running server's admin API so its caches are invalidated too."""
    url = f"{server.rstrip('/')}/api/admin/rules/{rule_id}"
    try:
        response = httpx.delete(url, timeout=10.0)
    except httpx.HTTPError as e:
        logger.error("Could not reach %s: %s", server, e)
        return 1

    if response.status_code == 404:
        logger.error("Rule %s not found.", rule_id)
        return 1
    if response.is_error:
        logger.error("Server answered %s deleting rule %s", response.status_code, rule_id)
        return 1

    invalidated = response.json()["invalidated"]
    print(f"Deleted rule {rule_id} ({invalidated} cached URLs invalidated).")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Nice URL Router CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # migrate
    subparsers.add_parser("migrate", help="Apply database migrations")

    # load-rules
    load_parser = subparsers.add_parser("load-rules", help="Load rules from a YAML file")
    load_parser.add_argument("path", help="Path to the rules YAML file")
    load_parser.add_argument(
        "--replace",
        action="store_true",
        help="Delete existing rules before loading (a running server keeps its cache)",
    )

    # convert
    convert_parser = subparsers.add_parser("convert", help="Resolve a nice path")
    convert_parser.add_argument("path", help="Nice path, e.g. course/intro-to-cs")

    # invert
    invert_parser = subparsers.add_parser("invert", help="Find the nice URL for a URL")
    invert_parser.add_argument("url", help="Internal URL")

    # delete-rule
    delete_parser = subparsers.add_parser(
        "delete-rule",
        help="Delete a rule",
        description=(
            "Delete a rule. Without --server the rule is removed from the database "
            "only; a running server keeps its cached URLs for the rule until restart."
        ),
    )
    delete_parser.add_argument("rule_id", type=int, help="Rule id")
    delete_parser.add_argument(
        "--server",
        help="Base URL of a running server; delete through its admin API instead",
    )

    args = parser.parse_args(argv)
    settings = Settings()

    handlers = {
        "migrate": handle_migrate,
        "load-rules": handle_load_rules,
        "convert": handle_convert,
        "invert": handle_invert,
        "delete-rule": handle_delete_rule,
    }
    return handlers[args.command](settings, args)


if __name__ == "__main__":
    sys.exit(main())
