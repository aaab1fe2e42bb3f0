"""
Market recommendations: per-market statistics, composite score, ranking,
narrative advice, and report output.

Modules
-------
scorer    : MarketStats + compute_market_stats() + ScoreComponents /
            compute_score() + transport cost helpers.  Pure functions.
ranker    : build_scored_markets() + rank_markets() + best_markets() /
            best_state_markets() + apply_distances().
narrative : NarrativeSuggester protocol + OpenAINarrativeSuggester +
            build_fallback_narrative() + suggest_narrative().
reporter  : write_ranking_csv() + write_report_json() — file output.
"""
