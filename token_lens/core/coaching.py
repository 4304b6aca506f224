"""
Coaching tips for the weakest clarity signal.

Picks the metric furthest from its "good" threshold and returns
pre-authored tips from a static bank. Tips rotate by ISO week so the
same week always shows the same advice.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .metrics import (
    CLARIFICATION_GOOD,
    CORRECTION_GOOD,
    FRONT_LOAD_GOOD,
    ClarityMetrics,
    Metric,
    MetricLevel,
    metric_insight,
)
from .signals import CORRECTION_TYPES, CorrectionType

# Tie-break order when two metrics are equally far from good
METRIC_PRECEDENCE = (Metric.CORRECTION_RATE, Metric.CLARIFICATION_RATE, Metric.FRONT_LOAD_RATIO)


@dataclass(frozen=True)
class CoachingTip:
    """A single actionable nudge tied to a clarity metric."""
    metric: Metric
    level: MetricLevel
    headline: str
    technique: str
    weak_example: str
    strong_example: str
    sub_metric: Optional[CorrectionType] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metric": self.metric.value,
            "sub_metric": self.sub_metric.value if self.sub_metric else None,
            "level": self.level.value,
            "headline": self.headline,
            "technique": self.technique,
            "weak_example": self.weak_example,
            "strong_example": self.strong_example,
        }


def bank_key(metric: Metric, level: MetricLevel, sub_metric: Optional[CorrectionType] = None) -> str:
    """Tip bank key: ``<metric>_<level>`` or ``correction_<type>_<level>``."""
    if sub_metric is not None:
        return f"correction_{sub_metric.value}_{level.value}"
    return f"{metric.value}_{level.value}"


def _tip(metric, level, headline, technique, weak, strong, sub_metric=None) -> CoachingTip:
    return CoachingTip(
        metric=metric,
        level=level,
        headline=headline,
        technique=technique,
        weak_example=weak,
        strong_example=strong,
        sub_metric=sub_metric,
    )


_C, _CL, _F = Metric.CORRECTION_RATE, Metric.CLARIFICATION_RATE, Metric.FRONT_LOAD_RATIO
_WARN, _OK = MetricLevel.WARN, MetricLevel.OK
_SCOPE, _FORMAT, _INTENT = CorrectionType.SCOPE, CorrectionType.FORMAT, CorrectionType.INTENT

_TIPS: Tuple[CoachingTip, ...] = (
    _tip(_C, _WARN, "Write a spec comment first",
         "Before typing the request, note what you want done, the shape of the output, and what "
         "must not change. Open your prompt with those notes; it forces precision before the "
         "model starts work.",
         "Clean up this function",
         "Refactor load_config to reduce nesting.\nMax 2 levels deep. Keep the signature "
         "unchanged.\nDo not alter any test files."),
    _tip(_C, _WARN, "State all constraints upfront",
         "Most corrections mean the model solved the right problem under the wrong constraints. "
         "List every hard constraint in the first message: runtime version, interfaces to keep, "
         "performance limits, things to avoid.",
         "Add authentication to the API",
         "Add token auth to the /api routes via a FastAPI dependency.\nPython 3.11, no new "
         "dependencies. Do not modify the DB schema.\nKeep every handler signature."),
    _tip(_C, _OK, "Add a 'do not' line",
         "One explicit 'Do not X' at the end of a prompt prevents the most common walk-back. "
         "Think about what the model usually does that you then undo, and rule it out upfront.",
         "Improve error handling in the parser",
         "Improve error handling in parse_file.\nRaise ValueError with the offending line "
         "number.\nDo not change the return type."),
    _tip(_C, _OK, "End with the acceptance criterion",
         "Close with one sentence describing the outcome that satisfies you: 'Done when X'. "
         "The model gets a clear stopping point and overshoots less.",
         "Make the tests faster",
         "Speed up tests/test_parser.py with shared fixtures.\nDone when pytest finishes in "
         "under 2 seconds.\nDo not change any assertions."),
    _tip(_CL, _WARN, "Specify output format explicitly",
         "Clarifying questions are usually about scope or format. End the prompt with "
         "'Return X in format Y. Skip Z.' and the ambiguity is gone before the model has "
         "to ask.",
         "Explain how caching works",
         "Explain prompt caching in 3 bullet points.\nCover when cache hits occur and their "
         "cost impact.\nSkip API mechanics and price tables."),
    _tip(_CL, _WARN, "Add a scope boundary",
         "Vague prompts invite questions. Add one sentence saying what is in scope and what is "
         "out. 'Only modify X, leave Y unchanged' removes most of the ambiguity.",
         "Fix the bug in the parser",
         "Fix the KeyError in parse_file at line 43.\nModify only that function.\nDo not "
         "refactor surrounding code."),
    _tip(_CL, _OK, "State the output medium",
         "Many clarifying questions are about format. Say whether you want code, prose, a "
         "table or bullets; that single choice removes a whole round of back-and-forth.",
         "Show me how to handle errors in Python",
         "Show Python error handling as a code snippet.\nCover exception chaining and custom "
         "exception classes.\nCode only, no prose."),
    _tip(_CL, _OK, "Give a length budget",
         "Uncertainty about depth causes questions. Tell the model how much you want, such as "
         "'one paragraph' or 'a single function', and it has a concrete scope to fill.",
         "Summarize what this code does",
         "Summarize what cli/main.py does in 3 bullet points.\nAudience: a new contributor.\n"
         "No implementation details."),
    _tip(_F, _WARN, "Paste everything in the first message",
         "Context trickled in over several turns forces the model to re-read state it has "
         "already seen and defeats caching. Put the code, paths and constraints in one "
         "opening prompt; a long first message beats a short back-and-forth.",
         "Update the parser\n[next turn] Here's the relevant code: ...\n[next turn] Oh and "
         "don't change the interface",
         "Update parse_file in parser.py to skip blank lines.\n[paste full function]\nDo not "
         "change the function signature."),
    _tip(_F, _WARN, "Use a prompt template",
         "A four-part structure stops context from leaking out gradually: Task (one sentence), "
         "Context (relevant code or files), Constraints (what must not change), Output (the "
         "format you expect).",
         "Make the tests pass",
         "Task: fix 3 failing tests in tests/test_parser.py.\nContext: [paste tests and "
         "parse_file].\nConstraints: do not alter assertions.\nOutput: only the corrected "
         "parse_file."),
    _tip(_F, _OK, "Lead with the relevant code",
         "If you are talking about code, paste it in the opening prompt instead of waiting to "
         "be asked. A complete first message also means better cache use on every follow-up.",
         "Can you improve the performance here?\n[next turn] Here's the hot path: ...",
         "Optimize this hot path for latency. [paste function]\nReduce allocations. Keep the "
         "same external interface."),
    _tip(_F, _OK, "Paste error output with the question",
         "When debugging, the error message, the traceback and the surrounding code belong in "
         "the first message. The model solves it in one pass when the evidence is already "
         "there.",
         "Why is my test failing?",
         "Why is test_parse_file failing? Error:\n[paste traceback]\nRelevant code:\n[paste "
         "function and test]"),
    _tip(_C, _WARN, "Write a constraints block",
         "Scope corrections happen when the model touches files or interfaces you wanted left "
         "alone. Add a constraints block right after the task: files that are off-limits, "
         "interfaces that must stay intact, folders that are read-only.",
         "Refactor the parser",
         "Refactor parse_config in config/parser.py to reduce nesting.\nConstraints: only "
         "modify config/parser.py. Do not touch config/types.py, tests, or the public "
         "parse_config signature.",
         _SCOPE),
    _tip(_C, _WARN, "Scope the task by file, not topic",
         "A task described by topic ('fix error handling') lets the model roam every related "
         "file. Name the exact file and function instead and the boundary needs no extra "
         "constraint line.",
         "Fix the error handling across the codebase",
         "Fix error handling in parse_file in parser.py only.\nChain exceptions with "
         "'raise ... from'. Do not modify other files.",
         _SCOPE),
    _tip(_C, _OK, "List what must stay unchanged",
         "Even when scope corrections are rare, naming the untouchable parts upfront avoids "
         "them entirely. One line, 'Do not modify X, Y or Z', gives the model a clear "
         "boundary.",
         "Add a cache to the session loader",
         "Add an in-memory cache to load_session in session.py.\nDo not modify the Session "
         "class, its callers, or the tests.",
         _SCOPE),
    _tip(_C, _OK, "Use 'Only X, nothing else'",
         "'Only X, nothing else' is the most compact scope constraint. It adds almost no bulk "
         "and leaves no doubt about how far the change may spread.",
         "Update the README",
         "Update the Installation section in README.md only, nothing else.\nMention the "
         "--json flag.",
         _SCOPE),
    _tip(_C, _WARN, "Specify output medium first",
         "Format corrections mean prose came back when you wanted code, or a whole file when "
         "you wanted one function. Put the medium in the very first sentence, before the "
         "task, where it cannot be missed.",
         "How do I implement a retry loop in Python?",
         "Show me as a Python snippet: a retry loop with exponential backoff.\nCode only. "
         "Standard library only.",
         _FORMAT),
    _tip(_C, _WARN, "End with a format line",
         "If you can't lead with the format, always close with one. 'Return only the modified "
         "function, no explanation' prevents the usual walk-back: a full file or a wall of "
         "prose around a small change.",
         "Update the error message in validate_input",
         "Update the error message in validate_input to include the field name.\nReturn only "
         "the modified function, no explanation.",
         _FORMAT),
    _tip(_C, _OK, "Name the anti-format explicitly",
         "Saying what you don't want works as well as saying what you do. 'No prose', 'no "
         "comments', 'no markdown' each remove a whole class of unwanted output.",
         "Summarize how the cache works",
         "Summarize how the cache works in 3 bullet points. No prose, no headers.",
         _FORMAT),
    _tip(_C, _OK, "Set a length ceiling",
         "Length corrections happen when the answer is longer or shorter than expected. A "
         "budget such as 'one function' or 'under 20 lines' sets a ceiling before the "
         "overshoot starts.",
         "Write a helper to parse ISO dates",
         "Write a Python helper that parses ISO 8601 dates.\nUnder 15 lines. Return None on "
         "failure.",
         _FORMAT),
    _tip(_C, _WARN, "Lead with the task, not the context",
         "Intent corrections happen when background comes first and buries the actual ask. "
         "State the goal in the first sentence and the context after it; 'Goal: X. Context: "
         "Y.' is rarely misread.",
         "I've been working on a parser and the tests keep failing because of how None is "
         "handled. Can you help?",
         "Fix the TypeError in parse_file at line 43.\nContext: tests fail on empty input; "
         "the None check at line 38 is never reached.",
         _INTENT),
    _tip(_C, _WARN, "State the goal, not just the action",
         "An action without a goal ('add logging') leaves the model free to build something "
         "you didn't picture. One 'so that X' clause anchors the implementation.",
         "Add logging to the HTTP handler",
         "Add request logging to the HTTP handler so I can trace latency per endpoint.\nLog "
         "to stderr with the logging module. Do not log request bodies.",
         _INTENT),
    _tip(_C, _OK, "Anchor with an example",
         "When intent is subtle, an example settles it faster than a description. 'Like X, "
         "but for Y' or 'Output should look like: ...' closes the gap between what you mean "
         "and what the model infers.",
         "Reformat the output to be more readable",
         "Reformat the output to match:\n  Model     Tokens    Cost\n  sonnet    1.2M      "
         "$1.20\nAlign columns, right-justify numbers.",
         _INTENT),
    _tip(_C, _OK, "Use 'I want X, not Y'",
         "The 'X, not Y' pattern pre-empts an intent mismatch with one extra clause: it rules "
         "out the wrong answer before the model can give it.",
         "Explain the caching strategy",
         "Explain the caching strategy. I want a conceptual overview, not implementation "
         "details or code.",
         _INTENT),
)


def _build_bank(tips) -> Mapping[str, Tuple[CoachingTip, ...]]:
    bank: Dict[str, List[CoachingTip]] = {}
    for tip in tips:
        bank.setdefault(bank_key(tip.metric, tip.level, tip.sub_metric), []).append(tip)
    return MappingProxyType({key: tuple(entries) for key, entries in bank.items()})


# Read-only reference data, built once at import
TIP_BANK = _build_bank(_TIPS)


def metric_gaps(metrics: ClarityMetrics) -> Dict[Metric, float]:
    """Normalized distance of each metric from its good threshold.

    Each gap is scaled by the distance from the threshold to the worst
    possible value, so all three lie in [0, 1]; 0 means already good.
    """
    return {
        Metric.CORRECTION_RATE: max(
            (metrics.correction_rate - CORRECTION_GOOD) / (1 - CORRECTION_GOOD), 0.0),
        Metric.CLARIFICATION_RATE: max(
            (metrics.clarification_rate - CLARIFICATION_GOOD) / (1 - CLARIFICATION_GOOD), 0.0),
        Metric.FRONT_LOAD_RATIO: max(
            (FRONT_LOAD_GOOD - metrics.front_load_ratio) / FRONT_LOAD_GOOD, 0.0),
    }


def weakest_metric(metrics: ClarityMetrics) -> Metric:
    """Metric with the largest gap; ties follow METRIC_PRECEDENCE."""
    gaps = metric_gaps(metrics)
    # max() keeps the first of equal elements
    return max(METRIC_PRECEDENCE, key=lambda metric: gaps[metric])


def rotation_index(today: date, size: int) -> int:
    """Deterministic weekly rotation over a bucket of ``size`` tips.

    Counts weeks by the ordinal of the ISO-week Monday, so the
    index keeps advancing across year boundaries.
    """
    monday = today - timedelta(days=today.weekday())
    return (monday.toordinal() // 7) % size


def select_coaching_tips(
    metrics: Optional[ClarityMetrics],
    today: Optional[date] = None,
    bank: Mapping[str, Tuple[CoachingTip, ...]] = TIP_BANK,
) -> List[CoachingTip]:
    """Select coaching tips for the weakest clarity metric.

    When correction rate is weakest and typed corrections were recorded,
    one tip is returned per detected type in scope, format, intent order.
    Otherwise a single tip for the weakest metric is returned.

    Args:
        metrics: Overall clarity metrics, or None when data is insufficient
        today: Date that picks the weekly rotation (defaults to today)
        bank: Tip bank keyed by ``bank_key``

    Returns:
        Tips to show; empty when every metric is already good
    """
    if metrics is None:
        return []

    levels = {metric: metric_insight(metric, metrics.value(metric)).level for metric in Metric}
    if all(level == MetricLevel.GOOD for level in levels.values()):
        return []

    weakest = weakest_metric(metrics)
    level = levels[weakest]
    if level == MetricLevel.GOOD:
        return []

    today = today or date.today()

    if weakest == Metric.CORRECTION_RATE and metrics.has_typed_corrections:
        tips = []
        for correction_type in CORRECTION_TYPES:
            if metrics.corrections_by_type.get(correction_type.value, 0) <= 0:
                continue
            bucket = bank.get(bank_key(weakest, level, correction_type))
            if bucket:
                tips.append(bucket[rotation_index(today, len(bucket))])
        if tips:
            return tips

    bucket = bank.get(bank_key(weakest, level))
    if not bucket:
        return []
    return [bucket[rotation_index(today, len(bucket))]]
