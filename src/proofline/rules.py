"""Default major-event rules (sports-commentary taxonomy)."""

from proofline.models import EventRule, MajorEventType

DEFAULT_RULES: tuple[EventRule, ...] = (
    EventRule(
        id="goal-delivery",
        event_type=MajorEventType.GOAL,
        any_of=("fixed", "implemented", "merged", "shipped", "done", "success",
                "完成", "已实现", "搞定"),
        weight=1.2,
    ),
    EventRule(
        id="assist-tool",
        event_type=MajorEventType.ASSIST,
        any_of=("tool", "shell", "apply_patch", "function_call", "query",
                "tool_use", "tool_result"),
        weight=1.0,
    ),
    EventRule(
        id="penalty-failure",
        event_type=MajorEventType.PENALTY,
        any_of=("error", "failed", "exception", "timeout", "cannot",
                "失败", "报错", "超时"),
        weight=1.1,
    ),
    EventRule(
        id="yellow-warning",
        event_type=MajorEventType.YELLOW_CARD,
        any_of=("warning", "deprecated", "risk", "caution", "warning:", "注意", "风险"),
        weight=0.9,
    ),
    EventRule(
        id="red-blocker",
        event_type=MajorEventType.RED_CARD,
        any_of=("blocked", "fatal", "security", "permission denied", "blocked by",
                "权限", "阻塞"),
        weight=1.4,
    ),
    EventRule(
        id="corner-setup",
        event_type=MajorEventType.CORNER,
        any_of=("plan", "scaffold", "initialize", "setup", "skeleton",
                "规划", "计划", "初始化"),
        weight=0.8,
    ),
    EventRule(
        id="offside-revert",
        event_type=MajorEventType.OFFSIDE,
        any_of=("revert", "rollback", "wrong", "mistake", "撤销", "回滚", "误判"),
        weight=1.0,
    ),
    EventRule(
        id="substitution-switch",
        event_type=MajorEventType.SUBSTITUTION,
        any_of=("switch", "replace", "migrate", "refactor", "替换", "切换", "迁移"),
        weight=0.8,
    ),
)
