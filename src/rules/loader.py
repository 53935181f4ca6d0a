import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from src.components.nice_urls import Rule, RuleStorePort, validate_rule
from src.rules.models import RuleFile

logger = logging.getLogger(__name__)


class RulesValidationError(Exception):
    """Raised when a rule file fails schema or rule validation."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        super().__init__(f"Rules validation failed: {'; '.join(errors)}")


def parse_rules(data: object) -> list[Rule]:
    """
    Validate already-parsed rule data.
    Raises RulesValidationError on schema errors or invalid rules.
    """
    try:
        rule_file = RuleFile.model_validate(data or {})
    except ValidationError as e:
        raise RulesValidationError([str(e)]) from e

    rules = [definition.to_rule() for definition in rule_file.rules]

    errors: list[str] = []
    for index, rule in enumerate(rules):
        for error in validate_rule(rule):
            errors.append(f"rules[{index}].{error.field}: {error.message}")
    if errors:
        raise RulesValidationError(errors)

    return rules


def load_rules(path: Path) -> list[Rule]:
    """
    Load and validate a YAML rule file.
    Raises FileNotFoundError if file missing.
    Raises RulesValidationError if the YAML or any rule is invalid.
    """
    if not path.exists():
        raise FileNotFoundError(f"Rules file not found at: {path}")

    with open(path) as f:
        content = f.read()

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise RulesValidationError([f"Invalid YAML syntax in rules file: {e}"]) from e

    return parse_rules(data)


def seed_rules(store: RuleStorePort, rules: list[Rule]) -> list[Rule]:
    """Save rules into the store, returning them with their assigned ids."""
    saved = [store.save(rule) for rule in rules]
    logger.info("Seeded %d nice URL rules", len(saved))
    return saved
