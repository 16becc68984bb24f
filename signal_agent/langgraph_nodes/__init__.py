"""
LangGraph Nodes - 4-Node Crypto Signal Pipeline

static_filter → data_fetch → llm_analysis → format_signal

Each node is a step (state) -> (partial_update, outcome) and is
independently testable. Routing lives in signal_agent.graph.workflow.
"""
