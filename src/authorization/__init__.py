"""Messaging authorization — role-pair rules and the audited decision engine."""

from src.authorization.engine import AuthorizationDecisionEngine
from src.authorization.gateways import LookupFailed
from src.authorization.rules import RelationshipContext, RoleRuleResolver, role_rule_resolver
from src.schemas.authorization import Actor, ConversationRef, Decision, MessageRef, RequestContext, Verdict

__all__ = [
    "AuthorizationDecisionEngine",
    "RoleRuleResolver",
    "RelationshipContext",
    "role_rule_resolver",
    "LookupFailed",
    "Actor",
    "ConversationRef",
    "MessageRef",
    "RequestContext",
    "Decision",
    "Verdict",
]
