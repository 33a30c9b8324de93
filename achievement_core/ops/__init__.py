from achievement_core.ops.consistency import check_backends, find_inconsistencies

__all__ = [
    "check_backends",
    "find_inconsistencies",
]
