from importlib import import_module

__all__ = [
    "ChainRPC",
    "LogPaginator",
    "HolderEnumerator",
    "LeaderboardOrchestrator",
    "LeaderboardCache",
    "LeaderboardService",
    "SeasonHistory",
    "get_leaderboard_service",
]

_LAZY_EXPORTS = {
    "ChainRPC": ("services.chain_rpc", "ChainRPC"),
    "LogPaginator": ("services.log_paginator", "LogPaginator"),
    "HolderEnumerator": ("services.holder_enumerator", "HolderEnumerator"),
    "LeaderboardOrchestrator": ("services.leaderboard_orchestrator", "LeaderboardOrchestrator"),
    "LeaderboardCache": ("services.leaderboard_cache", "LeaderboardCache"),
    "LeaderboardService": ("services.leaderboard_service", "LeaderboardService"),
    "SeasonHistory": ("services.season_history", "SeasonHistory"),
    "get_leaderboard_service": ("services.leaderboard_service", "get_leaderboard_service"),
}


def __getattr__(name):
    if name not in _LAZY_EXPORTS:
        raise AttributeError(f"module 'services' has no attribute {name!r}")

    module_name, attr_name = _LAZY_EXPORTS[name]
    module = import_module(module_name)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value
