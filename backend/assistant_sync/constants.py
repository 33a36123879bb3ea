"""
Stable constants for the assistant sync service.

Remote status vocabularies are defined by the Pinecone Assistant API and do
not vary per environment. For operational parameters that do (delays,
timeouts, table names), see config.py.
"""

API_TITLE = "Pinecone Assistant Sync API"
API_VERSION = "0.1.0"

# --- Remote assistant statuses ---
ASSISTANT_INITIALIZING = "Initializing"
ASSISTANT_READY = "Ready"
ASSISTANT_FAILED = "Failed"
ASSISTANT_TERMINATING = "Terminating"

# --- Remote file statuses ---
FILE_PROCESSING = "Processing"
FILE_AVAILABLE = "Available"
FILE_PROCESSING_FAILED = "ProcessingFailed"
FILE_DELETING = "Deleting"

# --- Output channels ---
DEFAULT_OUTPUT = "default"
ASSISTANT_ERROR_OUTPUT = "assistant_error"

# --- Chat ---
CHAT_MODELS: frozenset[str] = frozenset(
    {
        "gpt-4o",
        "gpt-4.1",
        "o4-mini",
        "claude-3-5-sonnet",
        "claude-3-7-sonnet",
        "gemini-2.5-pro",
    }
)

# Retrieval bounds for context snippets (remote API rejects values outside).
DEFAULT_TOP_K = 16
MAX_TOP_K = 64

# Prefix for the private directories upload content is staged in.
UPLOAD_TEMP_PREFIX = "assistant-upload-"
