from __future__ import annotations

from collections import Counter
from typing import Any


def _avg_time(events: list[dict[str, Any]]) -> float:
    times = [e["response_time_ms"] for e in events if "response_time_ms" in e]
    return round(sum(times) / len(times), 1) if times else 0.0


def compute_analytics(events: list[dict[str, Any]]) -> dict[str, Any]:
    listings = [e for e in events if e["type"] == "list_available"]
    recommendations = [e for e in events if e["type"] == "list_recommended"]
    retrains = [e for e in events if e["type"] == "retrain"]
    requests = listings + recommendations

    # Which branch of the ranking cascade answered
    path_counter: Counter[str] = Counter()
    for r in recommendations:
        path_counter[r.get("path") or "unknown"] += 1

    city_counter: Counter[str] = Counter()
    for r in requests:
        if r.get("target_city"):
            city_counter[r["target_city"]] += 1
    top_cities = [{"name": n, "count": c} for n, c in city_counter.most_common(10)]

    empty_results = sum(1 for r in requests if r.get("results_returned", 0) == 0)

    retrain_ok = sum(1 for r in retrains if r.get("ok"))
    retrain_durations = [r["duration_ms"] for r in retrains if r.get("ok") and "duration_ms" in r]

    return {
        "total_requests": len(requests),
        "list_available": {
            "count": len(listings),
            "avg_response_time_ms": _avg_time(listings),
        },
        "list_recommended": {
            "count": len(recommendations),
            "avg_response_time_ms": _avg_time(recommendations),
            "paths": dict(path_counter),
        },
        "empty_result_rate": round(empty_results / len(requests) * 100, 1) if requests else 0.0,
        "top_cities": top_cities,
        "retrain": {
            "runs": len(retrains),
            "succeeded": retrain_ok,
            "failed": len(retrains) - retrain_ok,
            "avg_duration_ms": (
                round(sum(retrain_durations) / len(retrain_durations), 1)
                if retrain_durations else 0.0
            ),
        },
    }
