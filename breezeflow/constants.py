"""Shared defaults for breezeflow."""

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_BASE = 2.0
DEFAULT_BACKOFF_JITTER = 0.5
DEFAULT_BACKOFF_MAX_DELAY = 60.0

DEFAULT_NODE_TIMEOUT_SECONDS = 120.0
DEFAULT_CLAIM_TTL_SECONDS = 300

DEFAULT_SCHEDULER_INTERVAL_SECONDS = 30.0
MAX_SCHEDULER_INTERVAL_SECONDS = 3600.0
DEFAULT_SCHEDULER_BATCH_SIZE = 100
DEFAULT_SCHEDULER_CONCURRENCY = 10

DEFAULT_AI_PROVIDER = "openai"
DEFAULT_AI_MODEL = "gpt-4o-mini"
DEFAULT_WEBHOOK_TIMEOUT_SECONDS = 10.0

DEFAULT_EXECUTION_LIST_LIMIT = 50

# Template sources that always refer to the triggering event payload.
TRIGGER_SOURCES = frozenset({"trigger", "trigger_data"})
PREVIOUS_NODE_SOURCE = "previous_node"

CONDITION_YES = "yes"
CONDITION_NO = "no"
