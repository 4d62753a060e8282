"""Policy to rule linking.

Rules name their policy by display name, so the join is on `policy.name`,
not on the policy id. A renamed policy loses its rules until the rules'
back-reference is updated upstream.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Generic, List, Sequence, TypeVar

from .hierarchy import priority_key

logger = logging.getLogger(__name__)

R = TypeVar("R")


@dataclass
class PolicyRuleLinks(Generic[R]):
    by_policy: Dict[str, List[R]] = field(default_factory=dict)
    # rules whose policy name matched no policy
    unresolved: List[R] = field(default_factory=list)

    def rules_for(self, policy_name: str) -> List[R]:
        return self.by_policy.get(policy_name, [])


def link_rules(policies: Sequence, rules: Sequence[R], kind: str = "DLP") -> PolicyRuleLinks[R]:
    """Map each policy name to the rules referencing it, ordered by priority."""
    links: PolicyRuleLinks[R] = PolicyRuleLinks()
    for policy in policies:
        if policy.name in links.by_policy:
            logger.warning("Duplicate %s policy name %r; rules are shared between them", kind, policy.name)
        links.by_policy.setdefault(policy.name, [])

    for rule in rules:
        group = links.by_policy.get(rule.policy_name)
        if group is None:
            links.unresolved.append(rule)
        else:
            group.append(rule)

    for name, group in links.by_policy.items():
        links.by_policy[name] = sorted(group, key=priority_key)

    if links.unresolved:
        logger.warning("%d %s rule(s) reference a policy name that was not exported: %s", len(links.unresolved),
                       kind, ", ".join(f"{r.name} -> {r.policy_name!r}" for r in links.unresolved))
    return links
