# contest/utils_rounds.py
import hashlib
import random


def _seed_int(s: str) -> int:
    return int(hashlib.sha256(s.encode("utf-8")).hexdigest()[:12], 16)


def deterministic_shuffle(ids, seed_text: str):
    """Same seed, same order: a resumed paper keeps its question order."""
    rnd = random.Random(_seed_int(seed_text))
    ids = list(ids)
    rnd.shuffle(ids)
    return ids


def paper_seed(round_id, token) -> str:
    return f"round:{round_id}:{token}"
