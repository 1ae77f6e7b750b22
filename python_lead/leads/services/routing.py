"""
Routing rule evaluator.

Rules are compiled once into ``CompiledRule`` values when loaded and then
evaluated without touching the database. Evaluation order is priority
ascending; rules sharing a priority keep insertion (primary key) order.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List, Optional

from leads.models import AppointmentRoutingRule, Endpoint, ForwardingRule, RuleCriteria

logger = logging.getLogger(__name__)

WILDCARD = RuleCriteria.WILDCARD

FIRST_MATCH = Endpoint.ForwardMode.FIRST_MATCH
ALL_MATCHES = Endpoint.ForwardMode.ALL_MATCHES

METHOD_PRIORITY = 'priority'
METHOD_AUTO = 'auto'
METHOD_UNROUTED = 'unrouted'


def parse_criteria(value) -> List[str]:
    """
    Turn stored criteria into a list of trimmed strings.

    Accepts a list, a JSON-encoded list or a comma separated string.
    """
    if value is None:
        return []
    if isinstance(value, str):
        text = value.strip()
        if text.startswith('['):
            try:
                value = json.loads(text)
            except json.JSONDecodeError:
                logger.warning(f"Unparseable rule criteria {text!r}, treating as comma separated")
                value = text.strip('[]').split(',')
        else:
            value = text.split(',')
    return [str(item).strip().strip('"') for item in value if str(item).strip()]


@dataclass(frozen=True)
class Candidate:
    product_type: Optional[str]
    zip_code: Optional[str]


@dataclass(frozen=True)
class CompiledRule:
    """A routing rule parsed into its matching sets."""

    rule_id: int
    priority: int
    destination_id: str
    destination_url: Optional[str] = None
    products: FrozenSet[str] = frozenset()
    zips: FrozenSet[str] = frozenset()
    any_product: bool = False
    any_zip: bool = False

    @classmethod
    def build(cls, rule_id, priority, destination_id, product_types, zip_codes, destination_url=None):
        products = parse_criteria(product_types)
        zips = parse_criteria(zip_codes)
        return cls(
            rule_id=rule_id,
            priority=priority,
            destination_id=destination_id,
            destination_url=destination_url,
            products=frozenset(p.lower() for p in products if p != WILDCARD),
            zips=frozenset(z for z in zips if z != WILDCARD),
            any_product=WILDCARD in products,
            any_zip=WILDCARD in zips,
        )

    @property
    def sort_key(self):
        return (self.priority, self.rule_id)

    def matches(self, candidate: Candidate) -> bool:
        product = str(candidate.product_type or '').strip().lower()
        zip_code = str(candidate.zip_code or '').strip()
        product_ok = self.any_product or (bool(product) and product in self.products)
        zip_ok = self.any_zip or (bool(zip_code) and zip_code in self.zips)
        return product_ok and zip_ok


@dataclass
class RoutingDecision:
    method: str
    matches: List[CompiledRule] = field(default_factory=list)
    destination_id: Optional[str] = None

    @property
    def routed(self) -> bool:
        return self.method != METHOD_UNROUTED


def evaluate(candidate: Candidate, rules: Iterable[CompiledRule], mode: str = FIRST_MATCH) -> List[CompiledRule]:
    """
    Return the rules matching ``candidate`` in evaluation order.

    Args:
        candidate: Product type and zip code being routed
        rules: Compiled rules of one scope, in any order
        mode: ``first-match`` (at most one rule) or ``all-matches``

    Returns:
        Matching rules; empty when nothing matches
    """
    matched = []
    for rule in sorted(rules, key=lambda r: r.sort_key):
        if not rule.matches(candidate):
            continue
        matched.append(rule)
        if mode != ALL_MATCHES:
            break
    return matched


def resolve_route(
    candidate: Candidate,
    rules: Iterable[CompiledRule],
    mode: str = FIRST_MATCH,
    explicit_destination: Optional[str] = None,
) -> RoutingDecision:
    """
    Decide where a candidate goes.

    An explicit destination (already verified active by the caller) wins
    outright. Otherwise the rules are evaluated; no match is the
    ``unrouted`` outcome, which is not an error.
    """
    if explicit_destination:
        return RoutingDecision(METHOD_PRIORITY, destination_id=explicit_destination)

    matched = evaluate(candidate, rules, mode)
    if not matched:
        logger.info(
            f"No routing rule matched product={candidate.product_type!r} zip={candidate.zip_code!r}"
        )
        return RoutingDecision(METHOD_UNROUTED)
    return RoutingDecision(METHOD_AUTO, matches=matched, destination_id=matched[0].destination_id)


def load_forwarding_rules(endpoint: Endpoint) -> List[CompiledRule]:
    """Active, forward-enabled rules of a source endpoint."""
    rules = ForwardingRule.objects.filter(
        source_endpoint=endpoint,
        is_active=True,
        forward_enabled=True,
    ).order_by('priority', 'id')
    return [
        CompiledRule.build(
            rule.id, rule.priority, rule.target_endpoint_id,
            rule.product_types, rule.zip_codes, destination_url=rule.target_url,
        )
        for rule in rules
    ]


def load_appointment_rules() -> List[CompiledRule]:
    """Active rules of active workspaces."""
    rules = AppointmentRoutingRule.objects.filter(
        is_active=True,
        workspace__is_active=True,
    ).select_related('workspace').order_by('priority', 'id')
    return [
        CompiledRule.build(
            rule.id, rule.priority, rule.workspace.workspace_id,
            rule.product_types, rule.zip_codes, destination_url=rule.workspace.outbound_webhook_url,
        )
        for rule in rules
    ]
