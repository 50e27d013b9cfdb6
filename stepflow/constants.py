DEFAULT_NODE_TIMEOUT = 30.0
DEFAULT_RETRY_ATTEMPTS = 3
DEFAULT_RETRY_BASE = 1.5
DEFAULT_RETRY_JITTER = 0.5
DEFAULT_WORKFLOW_NAME = "Untitled Workflow"
