"""
End-of-session output: session_metrics.json, report.html and a form-score plot.
"""
from __future__ import annotations

import html
import json
import logging
import os
from collections import Counter
from typing import Optional

import numpy as np

from .engine import EngineResult
from .exercises import get_exercise

logger = logging.getLogger(__name__)

# Most recent form-log entries listed in the HTML report.
MAX_LOG_ROWS = 50


def _fmt_time(seconds: int) -> str:
    mins, secs = divmod(max(0, int(seconds)), 60)
    return f"{mins:02d}:{secs:02d}"


def _joint_error_counts(result: EngineResult) -> Counter:
    """Count warning/error log entries per measured joint label."""
    definition = get_exercise(result.exercise)
    counts: Counter = Counter()
    for entry in result.session.form_error_log:
        for spec in definition.angles:
            if entry.message.startswith(f"{spec.label} angle"):
                counts[spec.label] += 1
                break
    return counts


def write_session_metrics(result: EngineResult, output_dir: str, source: str = "live") -> str:
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, "session_metrics.json")
    data = result.to_dict(include_log=True)
    data["source"] = source
    with open(path, "w") as f:
        json.dump(data, f, indent=2)
    logger.info("session metrics: %s", path)
    return path


def _plot_form_scores(result: EngineResult, output_dir: str, correct_min_score: int) -> Optional[str]:
    scores = [r.form_score for r in result.session.rep_log if r.form_score is not None]
    if not scores:
        return None
    import matplotlib
    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    path = os.path.join(output_dir, "form_score_by_rep.png")
    plt.figure(figsize=(6, 4))
    plt.plot(range(1, len(scores) + 1), scores, "o-")
    plt.axhline(correct_min_score, color="gray", linestyle="--", linewidth=1)
    plt.ylim(0, 105)
    plt.xlabel("Rep")
    plt.ylabel("Form score")
    plt.title("Form score by rep")
    plt.savefig(path, dpi=100)
    plt.close()
    return path


def write_session_report(
    result: EngineResult,
    output_dir: str,
    source: str = "live",
    plot: bool = True,
    correct_min_score: int = 70,
) -> str:
    """
    Write session_metrics.json and report.html (plus form_score_by_rep.png when
    reps were recorded) for a finished session. Returns the report path.
    """
    os.makedirs(output_dir, exist_ok=True)
    write_session_metrics(result, output_dir, source=source)
    definition = get_exercise(result.exercise)
    stats = result.session
    counter = result.counter

    logger.info(
        "report input: source=%s exercise=%s reps=%s correct=%s sets=%s elapsed=%ss errors=%s",
        source, definition.id.value, stats.total_reps, stats.correct_reps,
        counter.total_sets_completed, stats.exercise_elapsed_seconds, stats.form_error_count,
    )

    report_lines = [
        "<!DOCTYPE html>",
        f"<html><head><meta charset='utf-8'><title>{html.escape(definition.name)} Report</title></head><body>",
        f"<h1>{html.escape(definition.name)} Session Report</h1>",
        f"<p><b>Source:</b> {html.escape(source)}</p>",
        f"<p><b>Duration:</b> {_fmt_time(stats.exercise_elapsed_seconds)}</p>",
        f"<p><b>Total reps:</b> {stats.total_reps}</p>",
        f"<p><b>Correct reps:</b> {stats.correct_reps} ({stats.accuracy}%)</p>",
        f"<p><b>Sets completed:</b> {counter.total_sets_completed}</p>",
        f"<p><b>Average pose confidence:</b> {round(stats.average_confidence * 100)}%</p>",
    ]

    scores = [r.form_score for r in stats.rep_log if r.form_score is not None]
    if scores:
        report_lines.append(
            f"<p><b>Form score per rep:</b> mean {float(np.mean(scores)):.1f}, "
            f"min {min(scores)}, max {max(scores)}</p>"
        )

    if stats.total_reps == 0:
        overall = "No reps recorded."
    elif stats.accuracy >= 80:
        overall = "Great form overall."
    elif stats.accuracy >= 50:
        overall = "Decent form with a few consistency issues."
    else:
        overall = "Form needs attention; focus on consistency."
    report_lines.append("<h2>Quick summary</h2>")
    report_lines.append(f"<p><b>Overall:</b> {overall}</p>")

    counts = _joint_error_counts(result)
    tips = []
    for label, n in counts.most_common():
        spec = next(s for s in definition.angles if s.label == label)
        tips.append(f"{label} angle flagged in {n} frames (ideal: {spec.ideal_text()}).")
    if not tips:
        tips.append("Nice work - keep the same cues next set.")
    report_lines.append("<p><b>Tips:</b> " + html.escape(" ".join(tips)) + "</p>")

    report_lines.append("<h2>Instructions</h2><ul>")
    for line in definition.instructions:
        report_lines.append(f"<li>{html.escape(line)}</li>")
    report_lines.append("</ul>")

    report_lines.append("<h2>Per-rep metrics</h2>")
    report_lines.append(
        "<table border='1'><tr><th>Rep</th><th>Set</th><th>Time (s)</th>"
        "<th>Form score</th><th>Correct</th></tr>"
    )
    for r in stats.rep_log:
        score = r.form_score if r.form_score is not None else "--"
        report_lines.append(
            f"<tr><td>{r.rep}</td><td>{r.set}</td><td>{r.timestamp:.2f}</td>"
            f"<td>{score}</td><td>{'yes' if r.correct else 'no'}</td></tr>"
        )
    report_lines.append("</table>")

    if stats.form_error_log:
        report_lines.append(f"<h2>Form log (last {MAX_LOG_ROWS})</h2>")
        report_lines.append("<table border='1'><tr><th>Time (s)</th><th>Status</th><th>Message</th></tr>")
        for e in stats.form_error_log[-MAX_LOG_ROWS:]:
            report_lines.append(
                f"<tr><td>{e.timestamp:.2f}</td><td>{e.status.value}</td>"
                f"<td>{html.escape(e.message)}</td></tr>"
            )
        report_lines.append("</table>")

    if plot:
        try:
            plot_path = _plot_form_scores(result, output_dir, correct_min_score)
        except (ImportError, RuntimeError, OSError) as e:
            logger.warning("could not write form score plot: %s", e)
            plot_path = None
        if plot_path:
            report_lines.append(f"<img src='{os.path.basename(plot_path)}' alt='Form score by rep'>")

    report_lines.append("</body></html>")
    report_path = os.path.join(output_dir, "report.html")
    with open(report_path, "w") as f:
        f.write("\n".join(report_lines))
    logger.info("report: %s", report_path)
    return report_path
