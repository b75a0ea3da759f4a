"""
Decision agent for Jobber webhooks.

Rules apply to events from every Jobber user; per-user counts are tracked in
Stats so cross-user visibility can be checked from the status endpoints.
"""
from jobber_agent.agent.pipeline import JobberAgent, PipelineContext, build_agent
