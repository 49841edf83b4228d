"""riskgate: inline rule-based transaction fraud scoring."""
