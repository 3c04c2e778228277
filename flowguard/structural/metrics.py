# flowguard/structural/metrics.py

from collections import Counter
from typing import Any, Dict, Iterator, List, Tuple


def _iter_slots(connections: Any) -> Iterator[Tuple[str, List[Any]]]:
    """
    Yield (category, hops) for every output slot of an n8n-style 'connections' map:
      connections[src]["main"] = [
         [ {"node": "B", "type": "main", "index": 0}, {"node": "C", ...} ],   # slot 0, two targets
         [ {"node": "D", "type": "main", "index": 0} ]                         # slot 1
      ]
    Branches of the wrong shape are skipped.
    """
    if not isinstance(connections, dict):
        return
    for _src_name, categories in connections.items():
        if not isinstance(categories, dict):
            continue
        for category, slots in categories.items():
            if not isinstance(slots, list):
                continue
            for hops in slots:
                if isinstance(hops, list):
                    yield str(category), hops


def count_connections(connections: Any) -> int:
    """
    Total number of edges: sum of the lengths of every innermost edge list.
    Category-agnostic (main, ai_tool, ai_languageModel, ai_memory, ...).
    Malformed branches contribute 0; this is a metric, not a validation gate.
    """
    return sum(len(hops) for _category, hops in _iter_slots(connections))


def count_connections_by_category(connections: Any) -> Dict[str, int]:
    """Same walk as count_connections, broken down per connection category."""
    counts: Counter = Counter()
    for category, hops in _iter_slots(connections):
        counts[category] += len(hops)
    return dict(counts)
