"""
spanlabel utilities package - cross-cutting helpers.

Logging is forwarded through ``__all__`` to keep intra-package imports clean.
"""

from .logging import (
    setup_logging,
    get_logger,
    get_current_log_file,
    get_session_id,
    log_stage_attempt,
    log_stage_failure,
    log_prompt,
    log_llm_response,
    log_label_complete,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "get_current_log_file",
    "get_session_id",
    "log_stage_attempt",
    "log_stage_failure",
    "log_prompt",
    "log_llm_response",
    "log_label_complete",
]
