"""
Statement matcher - scores bank statement lines against open expenses.

Each pair gets four partial scores (party, description, amount, date) that
are combined with fixed weights into a confidence between 0 and 1. Pairs
below LOW_CONFIDENCE are dropped; a best pair at or above HIGH_CONFIDENCE
is auto-matched and its expense is not offered to later statements.
"""

import re
from datetime import date
from typing import Optional

DATE_TOLERANCE_DAYS = 2
DATE_HORIZON_DAYS = 30
AMOUNT_TOLERANCE = 0.05

WEIGHTS = {"party": 0.35, "description": 0.25, "amount": 0.25, "date": 0.15}

HIGH_CONFIDENCE = 0.85
MEDIUM_CONFIDENCE = 0.65
LOW_CONFIDENCE = 0.45

MAX_MATCHES = 5
MIN_DESCRIPTION_LENGTH = 3
SIMILARITY_THRESHOLD = 0.6

# Statement type each kind of entry can settle
COMPATIBLE_TYPES = {"Expense": "Debit"}

_PUNCTUATION = re.compile(r"[^\w\s]")


def _weights_without_party() -> dict[str, float]:
    rest = {key: value for key, value in WEIGHTS.items() if key != "party"}
    total = sum(rest.values())
    return {"party": 0.0, **{key: value / total for key, value in rest.items()}}


NO_PARTY_WEIGHTS = _weights_without_party()


def _normalize(text: str) -> str:
    return _PUNCTUATION.sub("", text.lower().strip())


def levenshtein(a: str, b: str) -> int:
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j - 1] + cost, current[j - 1] + 1, previous[j] + 1))
        previous = current
    return previous[-1]


def string_similarity(first: Optional[str], second: Optional[str]) -> float:
    """0..1; containment counts as 0.8, short strings never match unless equal"""
    if not first or not second:
        return 0.0

    a = _normalize(first)
    b = _normalize(second)
    if a == b:
        return 1.0
    if len(a) < MIN_DESCRIPTION_LENGTH or len(b) < MIN_DESCRIPTION_LENGTH:
        return 0.0
    if a in b or b in a:
        return 0.8

    longest = max(len(a), len(b))
    return max(0.0, (longest - levenshtein(a, b)) / longest)


def amount_score(statement_amount: Optional[float], entry_value: Optional[float]) -> tuple[float, Optional[float]]:
    """(score, absolute difference); difference is None when either side is missing or zero"""
    if not statement_amount or not entry_value:
        return 0.0, None

    first = abs(statement_amount)
    second = abs(entry_value)
    difference = abs(first - second)
    tolerance = (first + second) / 2 * AMOUNT_TOLERANCE

    if difference <= tolerance:
        return max(0.7, 1 - difference / tolerance), difference

    degradation = min(5.0, difference / tolerance)
    return max(0.0, 0.5 / degradation), difference


def date_score(statement_date: Optional[date], entry_date: Optional[date]) -> tuple[float, Optional[int]]:
    if not statement_date or not entry_date:
        return 0.0, None

    days = abs((statement_date - entry_date).days)
    if days <= DATE_TOLERANCE_DAYS:
        return max(0.7, 1 - days / DATE_TOLERANCE_DAYS), days
    if days > DATE_HORIZON_DAYS:
        return 0.0, days
    return max(0.0, 0.3 * (1 - days / DATE_HORIZON_DAYS)), days


def confidence_level(confidence: float) -> str:
    if confidence >= HIGH_CONFIDENCE:
        return "high"
    if confidence >= MEDIUM_CONFIDENCE:
        return "medium"
    return "low"


def _party_score(statement: dict, entry: dict) -> tuple[float, bool]:
    if statement.get("party_id") and entry.get("party_id"):
        same = statement["party_id"] == entry["party_id"]
        return (1.0 if same else 0.0), same

    similarity = string_similarity(statement.get("party_name"), entry.get("party_name"))
    if similarity >= SIMILARITY_THRESHOLD:
        return similarity, similarity > 0.8
    return 0.0, False


def _has_party(statement: dict) -> bool:
    return bool(statement.get("party_id") or statement.get("party_name"))


def explain(scores: dict, details: dict) -> str:
    reasons = []
    if details["party_match"]:
        reasons.append("Mesmo favorecido")
    if details["description_similarity"] > 0.7:
        reasons.append(f"Descrição {round(details['description_similarity'] * 100)}% similar")

    difference = details["amount_difference"]
    if difference == 0:
        reasons.append("Valor exato")
    elif scores["amount"] >= 0.7 and difference is not None:
        reasons.append(f"Valor dentro da tolerância (dif: R$ {difference:.2f})")

    days = details["date_difference"]
    if days == 0:
        reasons.append("Mesma data")
    elif scores["date"] >= 0.7:
        reasons.append(f"Data com {days} dia(s) de diferença")

    return ", ".join(reasons) if reasons else "Correspondência de baixa confiança"


def score_pair(statement: dict, entry: dict) -> dict:
    """
    Score one statement line against one entry.

    Statement lines imported from a bank carry no party; for them the party
    weight is spread over the other three scores so a perfect description,
    amount and date still reach 1.0.
    """
    party, party_match = _party_score(statement, entry)
    description = string_similarity(statement.get("description"), entry.get("description"))
    amount, amount_difference = amount_score(statement.get("amount"), entry.get("value"))
    day_score, date_difference = date_score(statement.get("date"), entry.get("date"))

    scores = {"party": party, "description": description, "amount": amount, "date": day_score}
    details = {
        "party_match": party_match,
        "description_similarity": round(description, 2),
        "amount_difference": round(amount_difference, 2) if amount_difference is not None else None,
        "date_difference": date_difference,
    }

    weights = WEIGHTS if _has_party(statement) else NO_PARTY_WEIGHTS
    confidence = round(sum(scores[key] * weights[key] for key in scores), 2)

    return {
        "confidence": confidence,
        "confidence_level": confidence_level(confidence),
        "scores": {key: round(value, 2) for key, value in scores.items()},
        "details": details,
        "explanation": explain(scores, details),
    }


def is_compatible(statement: dict, entry: dict) -> bool:
    expected = COMPATIBLE_TYPES.get(entry.get("kind", "Expense"))
    return expected is None or statement.get("type") == expected


def find_matches(statements: list[dict], entries: list[dict]) -> dict:
    """
    Greedy matching in statement order.

    Returns {"matches": [...grouped by statement...], "statistics": {...}}.
    """
    flat: list[dict] = []
    used_entries: set = set()

    for statement in statements:
        candidates = []
        for entry in entries:
            if entry["id"] in used_entries or not is_compatible(statement, entry):
                continue
            match = score_pair(statement, entry)
            if match["confidence"] >= LOW_CONFIDENCE:
                candidates.append(
                    {
                        "statement_id": statement["id"],
                        "entry_id": entry["id"],
                        "entry_type": entry.get("kind", "Expense"),
                        "auto_matched": False,
                        **match,
                    }
                )

        candidates.sort(key=lambda m: m["confidence"], reverse=True)
        best = candidates[:MAX_MATCHES]
        if best and best[0]["confidence"] >= HIGH_CONFIDENCE:
            best[0]["auto_matched"] = True
            used_entries.add(best[0]["entry_id"])
        flat.extend(best)

    return {"matches": group_by_statement(flat), "statistics": statistics(flat, statements, entries)}


def group_by_statement(matches: list[dict]) -> list[dict]:
    grouped: dict[str, dict] = {}
    for match in matches:
        group = grouped.setdefault(
            match["statement_id"],
            {"statement_id": match["statement_id"], "matches": [], "best_match": None, "auto_matched": False},
        )
        group["matches"].append(match)
        if group["best_match"] is None or match["confidence"] > group["best_match"]["confidence"]:
            group["best_match"] = match
        if match["auto_matched"]:
            group["auto_matched"] = True
    return list(grouped.values())


def statistics(matches: list[dict], statements: list[dict], entries: list[dict]) -> dict:
    auto_matches = sum(1 for m in matches if m["auto_matched"])
    stats = {
        "total_statements": len(statements),
        "total_entries": len(entries),
        "total_matches": len(matches),
        "auto_matches": auto_matches,
        "confidence_distribution": {
            level: sum(1 for m in matches if m["confidence_level"] == level) for level in ("high", "medium", "low")
        },
        "average_confidence": 0.0,
        "match_rate": 0.0,
        "auto_match_rate": 0.0,
    }
    if matches:
        stats["average_confidence"] = round(sum(m["confidence"] for m in matches) / len(matches), 2)
    if statements:
        matched = {m["statement_id"] for m in matches}
        stats["match_rate"] = round(len(matched) / len(statements), 2)
        stats["auto_match_rate"] = round(auto_matches / len(statements), 2)
    return stats
