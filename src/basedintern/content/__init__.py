from basedintern.content.dedupe import Deduplicator
from basedintern.content.models import ContentCandidate, ContentPlan, PlannerContext, PlanReason
from basedintern.content.planner import ContentPlanner
from basedintern.content.render import render_memo_post, should_include_disclaimer

__all__ = [
    "ContentCandidate",
    "ContentPlan",
    "ContentPlanner",
    "Deduplicator",
    "PlanReason",
    "PlannerContext",
    "render_memo_post",
    "should_include_disclaimer",
]
