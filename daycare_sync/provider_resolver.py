"""Select the parser strategy for a report sender from the user's provider bindings."""

import logging
from dataclasses import dataclass

from daycare_sync.models import ProviderBinding
from daycare_sync.parsers import ParserStrategy

logger = logging.getLogger(__name__)


def sender_matches(sender: str, matcher: str) -> bool:
    """True if sender matches a binding's matcher.

    A matcher starting with "@" is a domain suffix; anything else must equal
    the sender address. Both sides are compared lowercased.
    """
    sender = sender.lower()
    matcher = (matcher or "").strip().lower()
    if not matcher:
        return False
    if matcher.startswith("@"):
        return sender.endswith(matcher)
    return sender == matcher


def sender_domain(sender: str) -> str:
    return sender.lower().rpartition("@")[2]


@dataclass(frozen=True)
class InferenceRule:
    """Pick a strategy when the sender's domain and a provider-name keyword agree.

    hint_keyword of None matches any hint, including a missing one.
    """

    strategy: ParserStrategy
    sender_domain: str
    hint_keyword: str | None = None

    def matches(self, sender: str, hint: str | None) -> bool:
        domain = sender_domain(sender)
        if domain != self.sender_domain and not domain.endswith("." + self.sender_domain):
            return False
        if self.hint_keyword is None:
            return True
        return self.hint_keyword in (hint or "").lower()


# Evaluated in order against the matched binding's provider name
INFERENCE_RULES = [
    InferenceRule(ParserStrategy.GODDARD_TADPOLES_V1, "tadpoles.com", "goddard"),
    InferenceRule(ParserStrategy.TADPOLES_V1, "tadpoles.com"),
]

# Evaluated in order against every binding's provider name when no binding matched the sender
FALLBACK_RULES = [
    InferenceRule(ParserStrategy.GODDARD_TADPOLES_V1, "tadpoles.com", "goddard"),
    InferenceRule(ParserStrategy.TADPOLES_V1, "tadpoles.com", "tadpoles"),
]


def _infer(rules: list[InferenceRule], sender: str, hint: str | None) -> ParserStrategy | None:
    for rule in rules:
        if rule.matches(sender, hint):
            return rule.strategy
    return None


def resolve_strategy(
    sender: str,
    bindings: list[ProviderBinding],
    log: logging.Logger | logging.LoggerAdapter = logger,
) -> ParserStrategy | None:
    """Resolve which parser strategy handles mail from sender.

    Order: first binding matching the sender (explicit strategy id, else
    inference from domain and provider name), then a fallback scan of all
    bindings' provider names. Returns None when nothing resolves; callers
    must not substitute a default parser.
    """
    sender = (sender or "").lower()
    if not sender:
        log.warning("No sender address; cannot resolve a parser")
        return None

    matched = next((b for b in bindings if sender_matches(sender, b.sender_matcher)), None)

    if matched is not None:
        if matched.strategy_id:
            try:
                strategy = ParserStrategy(matched.strategy_id)
            except ValueError:
                log.warning(
                    "Unknown parser strategy '%s' on binding %s; attempting inference",
                    matched.strategy_id, matched.sender_matcher,
                )
            else:
                log.info("Using configured parser %s (provider=%s)", strategy, matched.provider_name)
                return strategy

        strategy = _infer(INFERENCE_RULES, sender, matched.provider_name)
        if strategy is None:
            log.warning(
                "Sender matched binding %s but no parser could be inferred",
                matched.sender_matcher,
            )
            return None
        log.info("Inferred parser %s (provider=%s)", strategy, matched.provider_name)
        return strategy

    for binding in bindings:
        strategy = _infer(FALLBACK_RULES, sender, binding.provider_name)
        if strategy is not None:
            log.info("Fallback parser %s from provider name '%s'", strategy, binding.provider_name)
            return strategy

    log.warning("No provider binding or fallback matched sender")
    return None
